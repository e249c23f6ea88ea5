"""Routing of inbound websocket frames to the MatchService."""

import json
import logging
from typing import Any, Awaitable, Callable

from pydantic import BaseModel, ValidationError

from chessroom.api.models import (
    AcceptDrawRequest,
    CreateRoomRequest,
    EnterChatRequest,
    Envelope,
    EscrowLogRequest,
    JoinRoomRequest,
    MoveRequest,
    OfferDrawRequest,
    OfferRematchRequest,
    ResignRequest,
    ResumeRoomRequest,
    SendChatRequest,
    SetAiLevelRequest,
)
from chessroom.core.exceptions import GameError, InvalidRequestError
from chessroom.services.broadcast import ClientConnection
from chessroom.services.match_service import MatchService

logger = logging.getLogger(__name__)

Handler = Callable[[MatchService, ClientConnection, Any], Awaitable[Any]]

# message type -> (request model, call into the service)
ROUTES: dict[str, tuple[type[BaseModel], Handler]] = {
    "create_room": (CreateRoomRequest, lambda svc, conn, req: svc.create_room(conn, req)),
    "join_room": (JoinRoomRequest, lambda svc, conn, req: svc.join_room(conn, req)),
    "resume_room": (ResumeRoomRequest, lambda svc, conn, req: svc.resume_room(conn, req)),
    "set_ai_level": (SetAiLevelRequest, lambda svc, conn, req: svc.set_ai_level(req)),
    "make_move": (MoveRequest, lambda svc, conn, req: svc.make_move(req)),
    "resign": (ResignRequest, lambda svc, conn, req: svc.resign(req)),
    "offer_draw": (OfferDrawRequest, lambda svc, conn, req: svc.offer_draw(req)),
    "accept_draw": (AcceptDrawRequest, lambda svc, conn, req: svc.accept_draw(req)),
    "offer_rematch": (OfferRematchRequest, lambda svc, conn, req: svc.offer_rematch(req)),
    "enter_chat": (EnterChatRequest, lambda svc, conn, req: svc.enter_chat(req)),
    "send_chat": (SendChatRequest, lambda svc, conn, req: svc.send_chat(req)),
    "escrow_log": (EscrowLogRequest, lambda svc, conn, req: svc.escrow_log(req)),
}


def parse_envelope(raw: str) -> Envelope:
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise InvalidRequestError("Invalid JSON") from exc
    if not isinstance(data, dict):
        raise InvalidRequestError("Invalid JSON")
    try:
        return Envelope.model_validate(data)
    except ValidationError as exc:
        raise InvalidRequestError("Invalid message envelope") from exc


def describe_validation_error(exc: ValidationError) -> str:
    """First problem only, e.g. 'from: Field required'."""
    first = exc.errors()[0]
    location = ".".join(str(part) for part in first["loc"])
    return f"{location}: {first['msg']}" if location else first["msg"]


async def handle_frame(service: MatchService, conn: ClientConnection, raw: str) -> None:
    """
    Parse one text frame and run the command it carries.
    ----

    Anything the client got wrong comes back to that client as an `error` push; the socket stays open.
    The resulting `game_state` is broadcast by the service itself.
    """
    try:
        envelope = parse_envelope(raw)
        route = ROUTES.get(envelope.type)
        if route is None:
            raise InvalidRequestError(f"Unknown message type: {envelope.type}")

        model, handler = route
        try:
            request = model.model_validate(envelope.payload)
        except ValidationError as exc:
            raise InvalidRequestError(describe_validation_error(exc)) from exc
        await handler(service, conn, request)
    except GameError as exc:
        logger.debug("Rejected frame from %r: %s", conn, exc)
        await conn.send_error(str(exc))
