"""Unit tests for chessroom/services/registry.py"""

import asyncio

from chessroom.core.shared_types import Color
from chessroom.engine.rules import python_chess_factory
from chessroom.services.registry import RoomRegistry
from chessroom.services.room import ClockState, Room


def make_room(room_id: str) -> Room:
    return Room(
        id=room_id,
        engine=python_chess_factory(),
        players={Color.WHITE: "0xwhite", Color.BLACK: None},
        clock=ClockState.fresh(1_000, 0),
        created_at=0,
    )


def test_add_get_remove() -> None:
    registry = RoomRegistry()
    room = make_room("r1")
    registry.add(room)
    assert "r1" in registry
    assert registry.get("r1") is room
    assert len(registry) == 1
    assert registry.remove("r1") is room
    assert registry.get("r1") is None


def test_same_room_is_serialized() -> None:
    """Two critical sections on one room never interleave."""
    registry = RoomRegistry()
    events: list[str] = []

    async def worker(name: str) -> None:
        async with registry.exclusive("r1"):
            events.append(f"{name} in")
            await asyncio.sleep(0.01)
            events.append(f"{name} out")

    async def scenario() -> None:
        await asyncio.gather(worker("a"), worker("b"))

    asyncio.run(scenario())
    assert events == ["a in", "a out", "b in", "b out"]


def test_different_rooms_run_in_parallel() -> None:
    registry = RoomRegistry()
    events: list[str] = []

    async def worker(room_id: str) -> None:
        async with registry.exclusive(room_id):
            events.append(f"{room_id} in")
            await asyncio.sleep(0.01)
            events.append(f"{room_id} out")

    async def scenario() -> None:
        await asyncio.gather(worker("r1"), worker("r2"))

    asyncio.run(scenario())
    assert events[:2] == ["r1 in", "r2 in"]


def test_lock_entries_are_dropped() -> None:
    registry = RoomRegistry()

    async def scenario() -> None:
        async with registry.exclusive("r1"):
            assert "r1" in registry._locks

    asyncio.run(scenario())
    assert registry._locks == {}
