"""Volatile RoomStore: a dict. Rooms do not survive a restart."""

from chessroom.core.models import RoomSnapshot


class InMemoryRoomStore:
    def __init__(self) -> None:
        self._rooms: dict[str, RoomSnapshot] = {}

    async def get_room(self, room_id: str) -> RoomSnapshot | None:
        snapshot = self._rooms.get(room_id)
        # hand out copies, so nobody mutates the stored record in place
        return snapshot.model_copy(deep=True) if snapshot else None

    async def create_room(self, snapshot: RoomSnapshot) -> RoomSnapshot:
        return await self.save_room(snapshot)

    async def save_room(self, snapshot: RoomSnapshot) -> RoomSnapshot:
        self._rooms[snapshot.id] = snapshot.model_copy(deep=True)
        return snapshot

    async def delete_room(self, room_id: str) -> None:
        self._rooms.pop(room_id, None)

    async def close(self) -> None:
        self._rooms.clear()

    def __len__(self) -> int:
        return len(self._rooms)
