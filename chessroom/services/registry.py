"""
Live rooms owned by this process, with one lock per room id.

Every command for a room (including timer expiries and the periodic tick) runs inside `exclusive(room_id)`.
The lock is held across awaits (store I/O, the AI's delay), so check-then-act sequences cannot interleave.
Different room ids never wait on each other.
"""

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Iterator

from chessroom.services.room import Room


@dataclass
class _LockEntry:
    lock: asyncio.Lock
    users: int = 0


class RoomRegistry:
    def __init__(self) -> None:
        self._rooms: dict[str, Room] = {}
        self._locks: dict[str, _LockEntry] = {}

    @asynccontextmanager
    async def exclusive(self, room_id: str) -> AsyncIterator[None]:
        """Hold the room's lock. Lock entries are dropped again once nobody holds or waits for them."""
        entry = self._locks.get(room_id)
        if entry is None:
            entry = self._locks[room_id] = _LockEntry(asyncio.Lock())
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0:
                self._locks.pop(room_id, None)

    def get(self, room_id: str) -> Room | None:
        return self._rooms.get(room_id)

    def add(self, room: Room) -> None:
        self._rooms[room.id] = room

    def remove(self, room_id: str) -> Room | None:
        return self._rooms.pop(room_id, None)

    def room_ids(self) -> list[str]:
        """Copy of the ids: the registry may change while the caller awaits."""
        return list(self._rooms)

    def __contains__(self, room_id: str) -> bool:
        return room_id in self._rooms

    def __iter__(self) -> Iterator[Room]:
        return iter(list(self._rooms.values()))

    def __len__(self) -> int:
        return len(self._rooms)
