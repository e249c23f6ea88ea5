"""Unit tests for chessroom/services/broadcast.py"""

import asyncio

from chessroom.services.broadcast import broadcast
from tests.helpers import connect


def test_envelope() -> None:
    conn, socket = connect()
    asyncio.run(conn.send_error("Not your turn"))
    assert socket.sent == [{"type": "error", "payload": {}, "message": "Not your turn"}]


def test_failed_send_does_not_affect_others() -> None:
    good, good_socket = connect()
    bad, _ = connect(fail=True)

    asyncio.run(broadcast({good, bad}, "game_state", {"id": "r1"}))
    assert good_socket.sent == [{"type": "game_state", "payload": {"id": "r1"}}]
    assert good.is_open
    assert not bad.is_open


def test_closed_connection_is_skipped() -> None:
    conn, socket = connect()
    conn.is_open = False
    asyncio.run(broadcast({conn}, "game_state", {}))
    assert socket.sent == []
