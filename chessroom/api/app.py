"""FastAPI application: health check plus the websocket every client talks through."""

import asyncio
import logging
from contextlib import asynccontextmanager, suppress
from typing import AsyncIterator, Optional

import uvicorn
from fastapi import FastAPI, WebSocket, WebSocketDisconnect

from chessroom.api.dispatch import handle_frame
from chessroom.core.config import Settings
from chessroom.core.logging_config import configure_logging
from chessroom.db.database import create_room_store
from chessroom.db.repository import RoomStore
from chessroom.services.broadcast import ClientConnection
from chessroom.services.match_service import MatchService

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None, store: Optional[RoomStore] = None) -> FastAPI:
    """
    Build the application.
    ----

    Without an explicit `store`, the backend named in the settings is connected during startup.
    The MatchService is available as `app.state.service` once the lifespan has started.
    """
    settings = settings or Settings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        configure_logging(settings.log_level)
        room_store = store if store is not None else await create_room_store(settings)
        service = MatchService(room_store, settings)
        app.state.service = service
        ticker = asyncio.create_task(service.run_ticker())
        logger.info("Chess room server ready")
        try:
            yield
        finally:
            ticker.cancel()
            with suppress(asyncio.CancelledError):
                await ticker
            service.shutdown()
            await room_store.close()

    app = FastAPI(title="Chess room server", lifespan=lifespan)

    @app.get("/health")
    async def health() -> dict[str, bool]:
        return {"ok": True}

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket) -> None:
        await websocket.accept()
        service: MatchService = app.state.service
        conn = ClientConnection(websocket)
        try:
            while True:
                raw = await websocket.receive_text()
                await handle_frame(service, conn, raw)
        except WebSocketDisconnect:
            pass
        finally:
            conn.is_open = False
            await service.detach(conn)

    return app


def run() -> None:
    """Console entry point: serve with uvicorn on the configured host and port."""
    settings = Settings.from_env()
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port, log_level=settings.log_level.lower())
