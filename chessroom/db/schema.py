"""Database tables / schema"""

from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import JSON, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class DBRoom(Base):
    __tablename__ = "rooms"
    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    # The full RoomSnapshot, dumped with camelCase keys
    snapshot: Mapped[dict[str, Any]] = mapped_column(JSON)
    # Copied out of the snapshot, so games can be looked up by player without parsing JSON
    white: Mapped[Optional[str]] = mapped_column(String(128), index=True)
    black: Mapped[Optional[str]] = mapped_column(String(128), index=True)
    result: Mapped[Optional[str]]
    created_at: Mapped[datetime] = mapped_column(default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(default=utc_now, onupdate=utc_now)
