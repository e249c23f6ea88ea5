"""Requests and Response models"""

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from chessroom.core.exceptions import InvalidRequestError
from chessroom.core.models import ChatSnapshot
from chessroom.core.shared_types import AI_ADDRESS_PREFIX, AiLevel, Color

Address = str
SideToMove = Literal["w", "b"]


class WireModel(BaseModel):
    """Clients send and receive camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --- ENVELOPE ---
class Envelope(BaseModel):
    """Every inbound frame: {"type": "<command>", "payload": {...}}"""

    type: str
    payload: dict[str, Any] = Field(default_factory=dict)

    @field_validator("payload", mode="before")
    @classmethod
    def missing_payload_is_empty(cls, value: Any) -> Any:
        return {} if value is None else value


# --- REQUEST MODELS ---
class AddressedRequest(WireModel):
    """
    Actors are identified by the wallet address they send, case-insensitively.
    The `ai:` prefix is reserved for the engine's seat.
    """

    address: Address = Field(default="", validate_default=True)

    @field_validator("address", mode="before")
    @classmethod
    def normalize_address(cls, value: Any) -> str:
        address = str(value or "").strip().lower()
        if not address:
            raise InvalidRequestError("Missing address")
        if address.startswith(AI_ADDRESS_PREFIX):
            raise InvalidRequestError("Address is reserved for the AI opponent")
        return address


class CreateRoomRequest(AddressedRequest):
    pass


class RoomRequest(AddressedRequest):
    room_id: str = Field(default="", validate_default=True)

    @field_validator("room_id", mode="before")
    @classmethod
    def validate_room_id(cls, value: Any) -> str:
        room_id = str(value or "").strip()
        if not room_id:
            raise InvalidRequestError("Missing room id")
        return room_id


class JoinRoomRequest(RoomRequest):
    pass


class ResumeRoomRequest(RoomRequest):
    pass


class SetAiLevelRequest(RoomRequest):
    level: AiLevel

    @field_validator("level", mode="before")
    @classmethod
    def validate_level(cls, value: Any) -> AiLevel:
        level = str(value or "").strip().lower()
        if level not in AiLevel.__members__.values():
            raise InvalidRequestError("Invalid AI level")
        return AiLevel(level)


class MoveRequest(RoomRequest):
    from_square: str = Field(alias="from")
    to_square: str = Field(alias="to")
    promotion: Optional[str] = None

    @field_validator("from_square", "to_square")
    @classmethod
    def validate_square(cls, value: str) -> str:
        def _is_algebraic_notation(value: str) -> bool:
            if len(value) != 2:
                return False
            file_char, rank_char = value[0], value[1]
            return file_char in "abcdefgh" and rank_char in "12345678"

        value = value.strip().lower()
        if not _is_algebraic_notation(value):
            raise InvalidRequestError(f"Cannot interpret {value!r} as a valid square name.")
        return value

    @field_validator("promotion")
    @classmethod
    def validate_promotion(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        value = value.strip().lower()
        if value not in {"q", "r", "b", "n"}:
            raise InvalidRequestError(f"Cannot promote into {value!r}")
        return value


class ResignRequest(RoomRequest):
    pass


class OfferDrawRequest(RoomRequest):
    pass


class AcceptDrawRequest(RoomRequest):
    pass


class OfferRematchRequest(RoomRequest):
    pass


class EnterChatRequest(RoomRequest):
    username: str = ""
    avatar: str = ""


class SendChatRequest(RoomRequest):
    text: str = ""
    # only used if the sender never entered the chat
    username: str = ""
    avatar: str = ""


class EscrowLogRequest(RoomRequest):
    action: str = "unknown"
    asset_type: Optional[str] = None
    stake_amount: Optional[str | int | float] = None
    tx_hash: Optional[str] = None
    transfer_tx_hash: Optional[str] = None
    at: Optional[int] = None


# --- RESPONSE MODELS ---
class MoveView(WireModel):
    ply: int
    color: SideToMove
    from_square: str = Field(serialization_alias="from")
    to_square: str = Field(serialization_alias="to")
    san: str


class ClockView(WireModel):
    white_ms: int
    black_ms: int
    running: bool
    increment_ms: int


class ConnectionView(WireModel):
    white_online: bool
    black_online: bool
    forfeit_color: Optional[Color] = None
    forfeit_deadline_at: Optional[int] = None


class AiView(WireModel):
    enabled: bool
    level: Optional[AiLevel] = None
    thinking: bool


class GameStateView(WireModel):
    """Payload of every `game_state` push."""

    id: str
    fen: str
    turn: SideToMove
    status: str
    players: dict[Color, Optional[Address]]
    finished: bool
    result: Optional[str] = None
    draw_offer_by: Optional[Color] = None
    rematch_offers: list[Color]
    move_history: list[MoveView]
    clock: ClockView
    chat: ChatSnapshot
    connection: ConnectionView
    ai: AiView

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)
