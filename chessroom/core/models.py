"""
Boundary layer data model(s).

A RoomSnapshot is the durable projection of a live Room. The Service writes one after every mutation and
the store backends (memory / Redis / SQL) only ever see this model, never the Room itself.
(Decouples the storage format from the live object, which also carries connections and timer handles.)
"""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from chessroom.core.shared_types import AiLevel, Color, GameResult

SNAPSHOT_VERSION = 1

# Type aliases to make the models easier to read
Address = str
Millis = int


class CamelModel(BaseModel):
    """Snake case in Python, camelCase on the wire / in storage."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PlayersSnapshot(CamelModel):
    white: Optional[Address] = None
    black: Optional[Address] = None


class ClockSnapshot(CamelModel):
    white_ms: Millis = Field(ge=0)
    black_ms: Millis = Field(ge=0)
    increment_ms: Millis = Field(ge=0)
    running: bool = False
    last_tick_at: Optional[Millis] = None


class ChatMemberSnapshot(CamelModel):
    username: str
    avatar: str = ""


class ChatMessageSnapshot(CamelModel):
    id: str = ""
    at: Millis = 0
    address: Address = ""
    username: str = ""
    avatar: str = ""
    text: str = ""


class ChatSnapshot(CamelModel):
    members: dict[Address, ChatMemberSnapshot] = Field(default_factory=dict)
    messages: list[ChatMessageSnapshot] = Field(default_factory=list)


class AiSnapshot(CamelModel):
    enabled: bool = False
    level: Optional[AiLevel] = None
    bot_address: Optional[Address] = None
    thinking: bool = False


class RoomSnapshot(CamelModel):
    """Versioned, serializable record of a room. Excludes connections and the forfeit timer."""

    version: Literal[1] = SNAPSHOT_VERSION
    id: str
    fen: str
    starting_fen: Optional[str] = None
    moves: list[str] = Field(default_factory=list)  # UCI, played from starting_fen
    players: PlayersSnapshot
    forced_result: Optional[GameResult] = None
    draw_offer_by: Optional[Color] = None
    rematch_offers: list[Color] = Field(default_factory=list)
    clock: ClockSnapshot
    chat: ChatSnapshot = Field(default_factory=ChatSnapshot)
    ai: AiSnapshot = Field(default_factory=AiSnapshot)
    created_at: Millis
    updated_at: Optional[Millis] = None

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_json(cls, raw: str | bytes) -> "RoomSnapshot":
        return cls.model_validate_json(raw)
