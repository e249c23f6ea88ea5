"""Unit tests for chessroom/db/redis_store.py (the Redis client is mocked)"""

import asyncio
from unittest.mock import AsyncMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from chessroom.core.exceptions import RepositoryError
from chessroom.core.models import ClockSnapshot, PlayersSnapshot, RoomSnapshot
from chessroom.db.redis_store import RedisRoomStore


@pytest.fixture
def client() -> AsyncMock:
    return AsyncMock()


def make_snapshot() -> RoomSnapshot:
    return RoomSnapshot(
        id="red00001",
        fen="8/8/8/8/8/8/k7/7K w - - 0 1",
        players=PlayersSnapshot(white="0xwhite", black="ai:master"),
        clock=ClockSnapshot(white_ms=1_000, black_ms=1_000, increment_ms=0),
        created_at=1,
    )


def test_key_prefix(client: AsyncMock) -> None:
    assert RedisRoomStore(client).key("abc") == "chessroom:room:abc"
    assert RedisRoomStore(client, "test:").key("abc") == "test:abc"


def test_save_writes_json(client: AsyncMock) -> None:
    store = RedisRoomStore(client)
    snapshot = make_snapshot()
    asyncio.run(store.save_room(snapshot))
    client.set.assert_awaited_once_with("chessroom:room:red00001", snapshot.to_json())


def test_get_parses_json(client: AsyncMock) -> None:
    snapshot = make_snapshot()
    client.get.return_value = snapshot.to_json().encode()
    store = RedisRoomStore(client)

    assert asyncio.run(store.get_room("red00001")) == snapshot
    client.get.assert_awaited_once_with("chessroom:room:red00001")


def test_get_missing(client: AsyncMock) -> None:
    client.get.return_value = None
    assert asyncio.run(RedisRoomStore(client).get_room("nope")) is None


def test_delete(client: AsyncMock) -> None:
    asyncio.run(RedisRoomStore(client).delete_room("red00001"))
    client.delete.assert_awaited_once_with("chessroom:room:red00001")


def test_redis_errors_become_repository_errors(client: AsyncMock) -> None:
    client.get.side_effect = RedisConnectionError("connection refused")
    client.set.side_effect = RedisConnectionError("connection refused")
    store = RedisRoomStore(client)

    with pytest.raises(RepositoryError):
        asyncio.run(store.get_room("red00001"))
    with pytest.raises(RepositoryError):
        asyncio.run(store.save_room(make_snapshot()))


def test_close(client: AsyncMock) -> None:
    asyncio.run(RedisRoomStore(client).close())
    client.aclose.assert_awaited_once()
