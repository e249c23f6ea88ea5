"""RoomStore on Redis: one JSON string per room under `<prefix><room id>`."""

from redis.asyncio import Redis
from redis.exceptions import RedisError

from chessroom.core.exceptions import RepositoryError
from chessroom.core.models import RoomSnapshot

DEFAULT_KEY_PREFIX = "chessroom:room:"


class RedisRoomStore:
    def __init__(self, client: Redis, key_prefix: str = DEFAULT_KEY_PREFIX) -> None:
        self.client = client
        self.key_prefix = key_prefix

    def key(self, room_id: str) -> str:
        return f"{self.key_prefix}{room_id}"

    async def get_room(self, room_id: str) -> RoomSnapshot | None:
        try:
            raw = await self.client.get(self.key(room_id))
        except RedisError as exc:
            raise RepositoryError(f"Cannot read room {room_id}") from exc
        return RoomSnapshot.from_json(raw) if raw else None

    async def create_room(self, snapshot: RoomSnapshot) -> RoomSnapshot:
        return await self.save_room(snapshot)

    async def save_room(self, snapshot: RoomSnapshot) -> RoomSnapshot:
        try:
            await self.client.set(self.key(snapshot.id), snapshot.to_json())
        except RedisError as exc:
            raise RepositoryError(f"Cannot save room {snapshot.id}") from exc
        return snapshot

    async def delete_room(self, room_id: str) -> None:
        try:
            await self.client.delete(self.key(room_id))
        except RedisError as exc:
            raise RepositoryError(f"Cannot delete room {room_id}") from exc

    async def close(self) -> None:
        await self.client.aclose()
