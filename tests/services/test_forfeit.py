"""
Disconnect-forfeit scenarios for chessroom/services/match_service.py

NOTE the forfeit window in the test settings is 50 ms of real time; the scenarios sleep past it.
"""

import asyncio

from chessroom.api.models import CreateRoomRequest, JoinRoomRequest, ResumeRoomRequest
from chessroom.core.config import Settings
from chessroom.core.shared_types import Color, GameResult
from chessroom.db.memory_store import InMemoryRoomStore
from chessroom.engine.rules import python_chess_factory
from chessroom.services.broadcast import ClientConnection
from chessroom.services.codec import to_snapshot
from chessroom.services.match_service import MatchService
from chessroom.services.room import ClockState, Room
from tests.helpers import BLACK_ADDRESS, WHITE_ADDRESS, FakeClock, FakeSocket, connect

PAST_DEADLINE = 0.2


async def seat_both(service: MatchService) -> tuple[str, ClientConnection, FakeSocket, ClientConnection]:
    white_conn, white_socket = connect()
    black_conn, black_socket = connect()
    view = await service.create_room(white_conn, CreateRoomRequest(address=WHITE_ADDRESS))
    await service.join_room(black_conn, JoinRoomRequest(room_id=view.id, address=BLACK_ADDRESS))
    return view.id, white_conn, white_socket, black_conn


def test_disconnected_player_forfeits(service: MatchService, fake_clock: FakeClock) -> None:
    async def scenario() -> None:
        room_id, _, white_socket, black_conn = await seat_both(service)
        black_conn.is_open = False
        await service.detach(black_conn)

        connection = white_socket.last_state["connection"]
        assert connection["blackOnline"] is False
        assert connection["forfeitColor"] == "black"
        assert connection["forfeitDeadlineAt"] == fake_clock.now + 50

        await asyncio.sleep(PAST_DEADLINE)
        state = white_socket.last_state
        assert state["result"] == GameResult.WHITE_WINS_BY_FORFEIT
        assert state["finished"]
        assert not state["clock"]["running"]
        assert state["connection"]["forfeitColor"] is None

    asyncio.run(scenario())


def test_reconnect_cancels_forfeit(service: MatchService) -> None:
    async def scenario() -> None:
        room_id, _, white_socket, black_conn = await seat_both(service)
        await service.detach(black_conn)
        room = service.registry.get(room_id)
        assert room is not None
        task = room.forfeit.task
        assert task is not None

        conn, _ = connect()
        view = await service.resume_room(conn, ResumeRoomRequest(room_id=room_id, address=BLACK_ADDRESS))
        assert view.connection.forfeit_color is None
        assert view.connection.black_online

        await asyncio.sleep(PAST_DEADLINE)
        assert task.cancelled()
        assert not room.is_finished
        assert white_socket.last_state["result"] is None

    asyncio.run(scenario())


def test_no_forfeit_when_both_are_gone(service: MatchService, memory_store: InMemoryRoomStore) -> None:
    """The last connection leaving evicts the room and drops the pending timer with it."""

    async def scenario() -> None:
        room_id, white_conn, _, black_conn = await seat_both(service)
        await service.detach(black_conn)
        await service.detach(white_conn)
        assert room_id not in service.registry

        await asyncio.sleep(PAST_DEADLINE)
        snapshot = await memory_store.get_room(room_id)
        assert snapshot is not None
        assert snapshot.forced_result is None

    asyncio.run(scenario())


def test_no_forfeit_before_opponent_joined(service: MatchService) -> None:
    async def scenario() -> None:
        white_conn, _ = connect()
        second_conn, _ = connect()
        view = await service.create_room(white_conn, CreateRoomRequest(address=WHITE_ADDRESS))
        await service.resume_room(second_conn, ResumeRoomRequest(room_id=view.id, address=WHITE_ADDRESS))
        await service.detach(white_conn)

        room = service.registry.get(view.id)
        assert room is not None
        assert not room.forfeit.pending

    asyncio.run(scenario())


def test_second_connection_keeps_player_online(service: MatchService) -> None:
    async def scenario() -> None:
        room_id, _, _, black_conn = await seat_both(service)
        extra_tab, _ = connect()
        await service.resume_room(extra_tab, ResumeRoomRequest(room_id=room_id, address=BLACK_ADDRESS))
        await service.detach(black_conn)

        room = service.registry.get(room_id)
        assert room is not None
        assert room.is_online(Color.BLACK)
        assert not room.forfeit.pending

    asyncio.run(scenario())


def test_restart_replaces_pending_timer(service: MatchService) -> None:
    async def scenario() -> None:
        room_id, _, _, black_conn = await seat_both(service)
        await service.detach(black_conn)
        room = service.registry.get(room_id)
        assert room is not None
        first = room.forfeit.task

        assert service._maybe_start_forfeit(room, Color.BLACK)
        second = room.forfeit.task
        assert second is not first

        await asyncio.sleep(PAST_DEADLINE)
        assert first is not None and first.cancelled()
        assert room.forced_result == GameResult.WHITE_WINS_BY_FORFEIT

    asyncio.run(scenario())


def test_restored_room_starts_timer_on_first_attach(memory_store: InMemoryRoomStore, settings: Settings) -> None:
    """A forfeit timer is never read back from storage: it is derived from who shows up first."""
    clock = FakeClock()
    room = Room(
        id="restore1",
        engine=python_chess_factory(None, ["e2e4"]),
        players={Color.WHITE: WHITE_ADDRESS, Color.BLACK: BLACK_ADDRESS},
        clock=ClockState(white_ms=300_000, black_ms=300_000, increment_ms=2_000, running=True, last_tick_at=clock.now),
        created_at=clock.now,
    )

    async def scenario() -> None:
        await memory_store.save_room(to_snapshot(room))
        service = MatchService(memory_store, settings, clock=clock)

        conn, socket = connect()
        view = await service.resume_room(conn, ResumeRoomRequest(room_id="restore1", address=WHITE_ADDRESS))
        assert view.connection.forfeit_color == Color.BLACK

        await asyncio.sleep(PAST_DEADLINE)
        assert socket.last_state["result"] == GameResult.WHITE_WINS_BY_FORFEIT

    asyncio.run(scenario())
