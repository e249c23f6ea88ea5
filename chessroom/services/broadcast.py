"""
Fan-out of room updates to the attached connections.

A failed send to one connection never affects the others: the connection is marked closed and skipped from then
on (its socket's disconnect handler takes care of detaching it).
"""

import asyncio
import logging
from typing import Any, Optional, Protocol

logger = logging.getLogger(__name__)


class JsonSocket(Protocol):
    """Just the part of a websocket the server pushes through (fastapi.WebSocket satisfies it)."""

    async def send_json(self, data: Any) -> None: ...


class ClientConnection:
    """One client socket, and the room / address it is currently bound to."""

    def __init__(self, socket: JsonSocket) -> None:
        self.socket = socket
        self.room_id: Optional[str] = None
        self.address: Optional[str] = None
        self.is_open = True

    def bind(self, room_id: str, address: str) -> None:
        self.room_id = room_id
        self.address = address

    def unbind(self) -> None:
        self.room_id = None
        self.address = None

    async def send(self, type: str, payload: Optional[dict[str, Any]] = None, message: Optional[str] = None) -> None:
        """Envelope used for every push: {type, payload, message}"""
        if not self.is_open:
            return
        envelope: dict[str, Any] = {"type": type, "payload": payload or {}}
        if message is not None:
            envelope["message"] = message
        await self.socket.send_json(envelope)

    async def send_error(self, message: str) -> None:
        await self.send("error", {}, message)

    def __repr__(self) -> str:
        return f"ClientConnection(room_id={self.room_id!r}, address={self.address!r}, open={self.is_open})"


async def broadcast(connections: set[ClientConnection], type: str, payload: dict[str, Any]) -> None:
    """Send the same push to every connection, concurrently."""
    targets = [conn for conn in connections if conn.is_open]
    results = await asyncio.gather(
        *(conn.send(type, payload) for conn in targets), return_exceptions=True
    )
    for conn, result in zip(targets, results):
        if isinstance(result, Exception):
            conn.is_open = False
            logger.warning("Dropping %r after failed send: %s", conn, result)
