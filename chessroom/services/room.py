"""
The Room aggregate: everything the coordinator tracks about one match.

Only plain state and read-only queries live here. Mutations go through the Service (and the clock / chat /
forfeit helpers it calls), so that persistence and broadcasting cannot be forgotten.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional

from chessroom.core.shared_types import (
    AiLevel,
    Color,
    GameResult,
    RoomStatus,
    is_ai_address,
)
from chessroom.engine.rules import RulesEngine

if TYPE_CHECKING:
    from chessroom.services.broadcast import ClientConnection


@dataclass
class ClockState:
    white_ms: int
    black_ms: int
    increment_ms: int
    running: bool = False
    last_tick_at: Optional[int] = None

    @classmethod
    def fresh(cls, initial_ms: int, increment_ms: int) -> ClockState:
        return cls(white_ms=initial_ms, black_ms=initial_ms, increment_ms=increment_ms)

    def remaining(self, color: Color) -> int:
        return self.white_ms if color == Color.WHITE else self.black_ms

    def set_remaining(self, color: Color, value: int) -> None:
        value = max(0, value)
        if color == Color.WHITE:
            self.white_ms = value
        else:
            self.black_ms = value

    def stop(self) -> None:
        self.running = False
        self.last_tick_at = None


@dataclass
class ChatMember:
    username: str
    avatar: str


@dataclass
class ChatMessage:
    id: str
    at: int
    address: str
    username: str
    avatar: str
    text: str


@dataclass
class ChatState:
    members: dict[str, ChatMember] = field(default_factory=dict)
    messages: list[ChatMessage] = field(default_factory=list)


@dataclass
class AiState:
    enabled: bool = False
    level: Optional[AiLevel] = None
    bot_address: Optional[str] = None
    thinking: bool = False


@dataclass
class ForfeitState:
    """Pending disconnect-forfeit. Process local: never persisted."""

    color: Optional[Color] = None
    deadline_at: Optional[int] = None
    task: Optional[asyncio.Task[None]] = None

    @property
    def pending(self) -> bool:
        return self.color is not None

    def clear(self) -> None:
        # The expiry task clears the state itself once it fires; it must not cancel itself.
        if self.task is not None and self.task is not asyncio.current_task():
            self.task.cancel()
        self.task = None
        self.color = None
        self.deadline_at = None


@dataclass(eq=False)
class Room:
    id: str
    engine: RulesEngine
    players: dict[Color, Optional[str]]
    clock: ClockState
    created_at: int
    chat: ChatState = field(default_factory=ChatState)
    ai: AiState = field(default_factory=AiState)
    forced_result: Optional[GameResult] = None
    draw_offer_by: Optional[Color] = None
    rematch_offers: set[Color] = field(default_factory=set)

    # --- transient ---
    forfeit: ForfeitState = field(default_factory=ForfeitState)
    connections: set[ClientConnection] = field(default_factory=set)
    # Set on rooms rebuilt from a snapshot: forfeit timers have to be derived again on the first attach.
    needs_forfeit_check: bool = False

    @property
    def is_finished(self) -> bool:
        return self.forced_result is not None or self.engine.is_terminal()

    @property
    def result(self) -> Optional[GameResult]:
        """The forced result wins over whatever the rules engine concludes."""
        if self.forced_result is not None:
            return self.forced_result

        engine = self.engine
        if not engine.is_terminal():
            return None
        if engine.is_checkmate():
            # the side to move got mated
            return GameResult.BLACK_WINS if engine.turn() == Color.WHITE else GameResult.WHITE_WINS
        if engine.is_stalemate():
            return GameResult.STALEMATE
        if engine.is_insufficient_material():
            return GameResult.INSUFFICIENT_MATERIAL
        if engine.is_threefold_repetition():
            return GameResult.THREEFOLD_REPETITION
        if engine.is_draw():
            return GameResult.DRAW
        return GameResult.GAME_OVER

    @property
    def status(self) -> RoomStatus:
        if self.is_finished:
            return RoomStatus.FINISHED
        if not self.both_seated:
            return RoomStatus.AWAITING_OPPONENT
        return RoomStatus.ACTIVE

    @property
    def turn(self) -> Color:
        return self.engine.turn()

    @property
    def both_seated(self) -> bool:
        return bool(self.players[Color.WHITE]) and bool(self.players[Color.BLACK])

    @property
    def move_count(self) -> int:
        return len(self.engine.move_history())

    @property
    def never_started(self) -> bool:
        """Abandoned before anything happened: nobody took the black seat and no move was played."""
        return self.players[Color.BLACK] is None and self.move_count == 0

    def color_of(self, address: Optional[str]) -> Optional[Color]:
        if not address:
            return None
        for color in (Color.WHITE, Color.BLACK):
            if self.players[color] == address:
                return color
        return None

    def connected_count(self, color: Color) -> int:
        player = self.players[color]
        if not player:
            return 0
        return sum(1 for conn in self.connections if conn.is_open and conn.address == player)

    def is_online(self, color: Color) -> bool:
        """The engine never disconnects."""
        if is_ai_address(self.players[color]):
            return True
        return self.connected_count(color) > 0

    def clear_offers(self) -> None:
        self.draw_offer_by = None
        self.rematch_offers.clear()
