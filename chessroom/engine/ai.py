"""
Move selection for the engine-controlled seat.

Key idea: strategy pattern, one selection function per strength level (see `LEVEL_STRATEGIES`).
All of them only talk to the RulesEngine protocol, so they never mutate the position they are given.
"""

import math
import random
from typing import Callable, Optional

from chessroom.core.shared_types import AiLevel, Color
from chessroom.engine.rules import CandidateMove, RulesEngine

PIECE_VALUES: dict[str, int] = {
    "p": 100,
    "n": 320,
    "b": 330,
    "r": 500,
    "q": 900,
    "k": 0,
}

MATE_SCORE = 100_000

# Intermediate level: bonuses added to a move's score
PROMOTION_BONUS = 80
CHECK_BONUS = 70
MATE_BONUS = 5_000
JITTER = 10.0

# Master level: plies searched below each root move
MASTER_DEPTH = 2


# --- STATIC EVALUATION ---
def evaluate(engine: RulesEngine, perspective: Color) -> int:
    """
    Score a position from the point of view of `perspective`.
    ----

    * checkmate: +MATE_SCORE if the side to move (the mated side) is the opponent, -MATE_SCORE otherwise
    * any draw: 0
    * otherwise: material balance using PIECE_VALUES
    """
    if engine.is_checkmate():
        return -MATE_SCORE if engine.turn() == perspective else MATE_SCORE
    if engine.is_draw():
        return 0

    score = 0
    for color, piece in engine.pieces():
        value = PIECE_VALUES.get(piece, 0)
        score += value if color == perspective else -value
    return score


# --- LEVEL STRATEGIES ---
def random_move(engine: RulesEngine, moves: list[CandidateMove], rng: random.Random) -> CandidateMove:
    return rng.choice(moves)


def heuristic_move(engine: RulesEngine, moves: list[CandidateMove], rng: random.Random) -> CandidateMove:
    """Greedy: prefer mates, captures of valuable pieces, promotions and checks. Jitter breaks ties."""

    def score(move: CandidateMove) -> float:
        total = 0.0
        if move.captured:
            total += PIECE_VALUES.get(move.captured, 0)
        if move.promotion:
            total += PROMOTION_BONUS
        if engine.gives_check(move):
            total += CHECK_BONUS
            if engine.is_mating_move(move):
                total += MATE_BONUS
        return total + rng.random() * JITTER

    return max(moves, key=score)


def one_ply_move(engine: RulesEngine, moves: list[CandidateMove], rng: random.Random) -> CandidateMove:
    """Apply every move and keep the one whose resulting position evaluates best for the mover."""
    perspective = engine.turn()
    best_move: Optional[CandidateMove] = None
    best_score = -math.inf
    for move in moves:
        score = evaluate(engine.after(move), perspective)
        if score > best_score:
            best_score = score
            best_move = move
    return best_move or moves[0]


def minimax_move(engine: RulesEngine, moves: list[CandidateMove], rng: random.Random) -> CandidateMove:
    """For every root move, search MASTER_DEPTH plies deeper (opponent replies first) with alpha-beta pruning."""
    perspective = engine.turn()
    best_move: Optional[CandidateMove] = None
    best_score = -math.inf
    for move in _ordered(moves):
        score = minimax(
            engine.after(move),
            depth=MASTER_DEPTH,
            maximizing=False,
            alpha=-math.inf,
            beta=math.inf,
            perspective=perspective,
        )
        if score > best_score:
            best_score = score
            best_move = move
    return best_move or moves[0]


def minimax(
    engine: RulesEngine,
    depth: int,
    maximizing: bool,
    alpha: float,
    beta: float,
    perspective: Color,
) -> float:
    """
    Minimax with alpha-beta pruning.
    ----

    `maximizing` is True on plies where `perspective` is to move.
    """
    if depth == 0 or engine.is_terminal():
        return evaluate(engine, perspective)

    moves = engine.legal_moves()
    if not moves:
        return evaluate(engine, perspective)

    if maximizing:
        best = -math.inf
        for move in _ordered(moves):
            best = max(best, minimax(engine.after(move), depth - 1, False, alpha, beta, perspective))
            alpha = max(alpha, best)
            if beta <= alpha:
                break
        return best

    best = math.inf
    for move in _ordered(moves):
        best = min(best, minimax(engine.after(move), depth - 1, True, alpha, beta, perspective))
        beta = min(beta, best)
        if beta <= alpha:
            break
    return best


def _ordered(moves: list[CandidateMove]) -> list[CandidateMove]:
    """Captures of valuable pieces first: alpha-beta prunes more when good moves come early."""
    return sorted(moves, key=lambda move: PIECE_VALUES.get(move.captured or "", 0), reverse=True)


# -- STRATEGY PATTERN: LEVELS ---
SelectMoveFn = Callable[[RulesEngine, list[CandidateMove], random.Random], CandidateMove]
LEVEL_STRATEGIES: dict[AiLevel, SelectMoveFn] = {
    AiLevel.BEGINNER: random_move,
    AiLevel.INTERMEDIATE: heuristic_move,
    AiLevel.HARD: one_ply_move,
    AiLevel.MASTER: minimax_move,
}


def choose_move(
    engine: RulesEngine, level: AiLevel, rng: Optional[random.Random] = None
) -> Optional[CandidateMove]:
    """
    Pick a move for the side to move.
    ----

    Returns None only when there is no legal move at all. Otherwise always returns a move: if a strategy
    comes up empty, any legal move is played.
    """
    moves = engine.legal_moves()
    if not moves:
        return None
    strategy = LEVEL_STRATEGIES.get(level, random_move)
    return strategy(engine, moves, rng or random.Random()) or moves[0]
