"""
The rules engine seen from the match coordinator.

The coordinator never inspects a board. It asks a RulesEngine whose turn it is, whether a move is legal, and
whether the game has ended. `PythonChessEngine` implements the protocol on top of the `chess` library.
"""

from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Protocol, Self

import chess

from chessroom.core.exceptions import IllegalMoveError, InvalidFENError
from chessroom.core.shared_types import Color

STARTING_FEN = chess.STARTING_FEN
PROMOTION_PIECES = ("q", "r", "b", "n")


@dataclass(frozen=True)
class CandidateMove:
    """A legal move, plus what the AI needs to know about it without replaying it."""

    uci: str
    from_square: str
    to_square: str
    promotion: Optional[str] = None  # piece letter, lower case
    captured: Optional[str] = None  # piece letter, lower case. "p" for en passant


@dataclass(frozen=True)
class MoveRecord:
    """A move that has been played."""

    ply: int
    color: Color
    from_square: str
    to_square: str
    san: str
    uci: str


class RulesEngine(Protocol):
    """Everything the coordinator and the AI search need from a chess implementation."""

    @property
    def starting_fen(self) -> str: ...
    def fen(self) -> str: ...
    def turn(self) -> Color: ...
    def apply_move(
        self, from_square: str, to_square: str, promotion: Optional[str] = None
    ) -> MoveRecord: ...
    def move_history(self) -> list[MoveRecord]: ...
    def legal_moves(self) -> list[CandidateMove]: ...
    def after(self, move: CandidateMove) -> "RulesEngine": ...
    def gives_check(self, move: CandidateMove) -> bool: ...
    def is_mating_move(self, move: CandidateMove) -> bool: ...
    def pieces(self) -> Iterable[tuple[Color, str]]: ...
    def copy(self) -> "RulesEngine": ...

    # --- terminal state ---
    def is_terminal(self) -> bool: ...
    def is_checkmate(self) -> bool: ...
    def is_stalemate(self) -> bool: ...
    def is_insufficient_material(self) -> bool: ...
    def is_threefold_repetition(self) -> bool: ...
    def is_draw(self) -> bool: ...


# Builds an engine from a FEN (None -> standard starting position), optionally replaying UCI moves on top of it.
RulesEngineFactory = Callable[[Optional[str], Optional[list[str]]], RulesEngine]


def to_color(side: chess.Color) -> Color:
    return Color.WHITE if side == chess.WHITE else Color.BLACK


class PythonChessEngine:
    """RulesEngine backed by `chess.Board`."""

    def __init__(self, board: chess.Board, starting_fen: str) -> None:
        self._board = board
        self._starting_fen = starting_fen
        self._records: list[MoveRecord] = []

    @classmethod
    def from_fen(cls, fen: Optional[str] = None, moves_uci: Optional[list[str]] = None) -> Self:
        """
        Construct from a FEN (or the standard starting position) and replay the given moves.
        ----

        Raises InvalidFENError if the FEN cannot be parsed and IllegalMoveError if one of the moves does not apply.
        """
        starting_fen = fen or STARTING_FEN
        try:
            board = chess.Board(starting_fen)
        except ValueError as exc:
            raise InvalidFENError(f"Cannot interpret supplied string as FEN: {starting_fen}") from exc

        engine = cls(board, starting_fen)
        for uci in moves_uci or []:
            engine._push(engine._parse_uci(uci))
        return engine

    @property
    def starting_fen(self) -> str:
        return self._starting_fen

    def fen(self) -> str:
        return self._board.fen()

    def turn(self) -> Color:
        return to_color(self._board.turn)

    def apply_move(
        self, from_square: str, to_square: str, promotion: Optional[str] = None
    ) -> MoveRecord:
        """
        Play a move given as two squares.
        ----

        The promotion hint only matters for a pawn reaching the last rank. It defaults to a queen there and is
        ignored for every other move, so clients can always send it.
        """
        try:
            origin = chess.parse_square(from_square)
            target = chess.parse_square(to_square)
        except ValueError as exc:
            raise IllegalMoveError(f"Move not allowed: {from_square}{to_square}") from exc

        move = chess.Move(origin, target)
        if self._is_promotion_push(move):
            piece_char = (promotion or "q").lower()
            if piece_char not in PROMOTION_PIECES:
                raise IllegalMoveError(f"Cannot promote into {promotion!r}")
            move.promotion = chess.Piece.from_symbol(piece_char).piece_type

        if not self._board.is_legal(move):
            raise IllegalMoveError(f"Move not allowed: {move.uci()}")
        return self._push(move)

    def move_history(self) -> list[MoveRecord]:
        return list(self._records)

    def legal_moves(self) -> list[CandidateMove]:
        return [self._describe(move) for move in self._board.legal_moves]

    def after(self, move: CandidateMove) -> "PythonChessEngine":
        """A new engine with the move applied. This engine is left untouched (used by the search)."""
        board = self._board.copy()
        board.push(chess.Move.from_uci(move.uci))
        # the search does not need SAN records, only the board
        return PythonChessEngine(board, self._starting_fen)

    def gives_check(self, move: CandidateMove) -> bool:
        return self._board.gives_check(chess.Move.from_uci(move.uci))

    def is_mating_move(self, move: CandidateMove) -> bool:
        board = self._board
        board.push(chess.Move.from_uci(move.uci))
        try:
            return board.is_checkmate()
        finally:
            board.pop()

    def pieces(self) -> Iterable[tuple[Color, str]]:
        for piece in self._board.piece_map().values():
            yield to_color(piece.color), piece.symbol().lower()

    def copy(self) -> "PythonChessEngine":
        engine = PythonChessEngine(self._board.copy(), self._starting_fen)
        engine._records = list(self._records)
        return engine

    # --- terminal state ---
    def is_terminal(self) -> bool:
        return self.is_checkmate() or self.is_draw()

    def is_checkmate(self) -> bool:
        return self._board.is_checkmate()

    def is_stalemate(self) -> bool:
        return self._board.is_stalemate()

    def is_insufficient_material(self) -> bool:
        return self._board.is_insufficient_material()

    def is_threefold_repetition(self) -> bool:
        return self._board.is_repetition(3)

    def is_draw(self) -> bool:
        """Any drawn end: stalemate, insufficient material, threefold repetition or the fifty-move rule."""
        return (
            self.is_stalemate()
            or self.is_insufficient_material()
            or self.is_threefold_repetition()
            or self._board.is_fifty_moves()
        )

    # -- PRIVATE HELPERS ---
    def _parse_uci(self, uci: str) -> chess.Move:
        try:
            move = chess.Move.from_uci(uci)
        except ValueError as exc:
            raise IllegalMoveError(f"Cannot interpret {uci!r} as a UCI move") from exc
        if not self._board.is_legal(move):
            raise IllegalMoveError(f"Move not allowed: {uci}")
        return move

    def _push(self, move: chess.Move) -> MoveRecord:
        """SAN depends on the position before the move, so compute it first."""
        record = MoveRecord(
            ply=len(self._records) + 1,
            color=self.turn(),
            from_square=chess.square_name(move.from_square),
            to_square=chess.square_name(move.to_square),
            san=self._board.san(move),
            uci=move.uci(),
        )
        self._board.push(move)
        self._records.append(record)
        return record

    def _is_promotion_push(self, move: chess.Move) -> bool:
        piece = self._board.piece_at(move.from_square)
        if piece is None or piece.piece_type != chess.PAWN:
            return False
        return chess.square_rank(move.to_square) in (0, 7)

    def _describe(self, move: chess.Move) -> CandidateMove:
        captured: Optional[str] = None
        if self._board.is_en_passant(move):
            captured = "p"
        else:
            target = self._board.piece_at(move.to_square)
            if target is not None:
                captured = target.symbol().lower()

        return CandidateMove(
            uci=move.uci(),
            from_square=chess.square_name(move.from_square),
            to_square=chess.square_name(move.to_square),
            promotion=chess.piece_symbol(move.promotion) if move.promotion else None,
            captured=captured,
        )


def python_chess_factory(fen: Optional[str] = None, moves_uci: Optional[list[str]] = None) -> RulesEngine:
    return PythonChessEngine.from_fen(fen, moves_uci)
