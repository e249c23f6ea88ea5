"""Fakes and constants shared by the test modules."""

from typing import Any

from chessroom.services.broadcast import ClientConnection

WHITE_ADDRESS = "0xaaaa000000000000000000000000000000000001"
BLACK_ADDRESS = "0xbbbb000000000000000000000000000000000002"
STRANGER_ADDRESS = "0xcccc000000000000000000000000000000000003"


class FakeSocket:
    """Stands in for a fastapi WebSocket: records everything pushed to it."""

    def __init__(self, fail: bool = False) -> None:
        self.sent: list[dict[str, Any]] = []
        self.fail = fail

    async def send_json(self, data: Any) -> None:
        if self.fail:
            raise ConnectionError("socket is gone")
        self.sent.append(data)

    def of_type(self, type: str) -> list[dict[str, Any]]:
        return [frame for frame in self.sent if frame["type"] == type]

    @property
    def last_state(self) -> dict[str, Any]:
        """Payload of the most recent game_state push."""
        return self.of_type("game_state")[-1]["payload"]


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, start: int = 1_700_000_000_000) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


def connect(fail: bool = False) -> tuple[ClientConnection, FakeSocket]:
    socket = FakeSocket(fail=fail)
    return ClientConnection(socket), socket
