"""Protocol room store (implemented for an in-memory dict, Redis and SQLAlchemy)"""

from typing import Protocol

from chessroom.core.models import RoomSnapshot


class RoomStore(Protocol):
    """Persistence layer orchestration. Snapshots are keyed by room id."""

    async def get_room(self, room_id: str) -> RoomSnapshot | None:
        """Get snapshot by ID, if record exists."""
        ...

    async def create_room(self, snapshot: RoomSnapshot) -> RoomSnapshot:
        """Store the first snapshot of a new room. Backends without a distinct insert path just save it."""
        ...

    async def save_room(self, snapshot: RoomSnapshot) -> RoomSnapshot:
        """Insert or overwrite."""
        ...

    async def delete_room(self, room_id: str) -> None:
        """Remove a room's record. Unknown ids are ignored."""
        ...

    async def close(self) -> None:
        """Release connections held by the backend."""
        ...
