"""Runtime configuration, read from environment variables and validated by pydantic."""

import os
from typing import Literal, Mapping, Optional, Self

from pydantic import BaseModel, ConfigDict, Field


class Settings(BaseModel):
    """
    Server settings.
    ----

    Every field can be set through the environment variable named in its alias, e.g. `CLOCK_INITIAL_MS=600000`.
    pydantic coerces the raw strings, so a non-numeric value for a numeric field fails at startup.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=8080, alias="PORT", gt=0, lt=65536)

    # --- room store ---
    store_type: Literal["memory", "redis", "sql"] = Field(default="memory", alias="GAMESTORE_TYPE")
    redis_url: str = Field(default="", alias="REDIS_URL")
    redis_key_prefix: str = Field(default="chessroom:room:", alias="REDIS_KEY_PREFIX")
    database_url: str = Field(default="sqlite:///chessroom.db", alias="DATABASE_URL")

    # --- time control (milliseconds) ---
    clock_initial_ms: int = Field(default=300_000, alias="CLOCK_INITIAL_MS", gt=0)
    clock_increment_ms: int = Field(default=2_000, alias="CLOCK_INCREMENT_MS", ge=0)
    disconnect_forfeit_ms: int = Field(default=60_000, alias="DISCONNECT_FORFEIT_MS", gt=0)
    ai_move_delay_ms: int = Field(default=400, alias="AI_MOVE_DELAY_MS", ge=0)
    tick_interval_ms: int = Field(default=1_000, alias="TICK_INTERVAL_MS", gt=0)

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> Self:
        """Pick up the known variables from the environment (or from the mapping supplied, for tests)."""
        env = os.environ if environ is None else environ
        aliases = {field.alias for field in cls.model_fields.values() if field.alias}
        return cls.model_validate({key: value for key, value in env.items() if key in aliases})
