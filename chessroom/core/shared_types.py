"""
Type definitions used across layers
"""

from enum import StrEnum

# Seats held by the embedded engine carry this prefix, followed by the level name. ex) "ai:master"
AI_ADDRESS_PREFIX = "ai:"


class Color(StrEnum):
    WHITE = "white"
    BLACK = "black"

    @property
    def opponent(self) -> "Color":
        return Color.BLACK if self == Color.WHITE else Color.WHITE


class AiLevel(StrEnum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    HARD = "hard"
    MASTER = "master"


class RoomStatus(StrEnum):
    AWAITING_OPPONENT = "awaiting opponent"
    ACTIVE = "active"
    FINISHED = "finished"


class GameResult(StrEnum):
    """Result tags. The `*_by_*` and `draw_agreed` ones are forced results set by the coordinator."""

    WHITE_WINS = "white_wins"
    BLACK_WINS = "black_wins"
    STALEMATE = "stalemate"
    INSUFFICIENT_MATERIAL = "insufficient_material"
    THREEFOLD_REPETITION = "threefold_repetition"
    DRAW = "draw"
    GAME_OVER = "game_over"

    WHITE_WINS_BY_TIMEOUT = "white_wins_by_timeout"
    BLACK_WINS_BY_TIMEOUT = "black_wins_by_timeout"
    WHITE_WINS_BY_FORFEIT = "white_wins_by_forfeit"
    BLACK_WINS_BY_FORFEIT = "black_wins_by_forfeit"
    WHITE_WINS_BY_RESIGN = "white_wins_by_resign"
    BLACK_WINS_BY_RESIGN = "black_wins_by_resign"
    DRAW_AGREED = "draw_agreed"

    @classmethod
    def win_by(cls, winner: Color, reason: str) -> "GameResult":
        """ex) win_by(Color.WHITE, "forfeit") -> WHITE_WINS_BY_FORFEIT"""
        return cls(f"{winner.value}_wins_by_{reason}")


def ai_address(level: AiLevel) -> str:
    return f"{AI_ADDRESS_PREFIX}{level.value}"


def is_ai_address(address: str | None) -> bool:
    return isinstance(address, str) and address.startswith(AI_ADDRESS_PREFIX)
