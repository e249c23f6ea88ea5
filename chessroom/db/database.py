"""Pick and connect the room store backend named in the settings"""

import logging

from redis.asyncio import Redis
from redis.exceptions import RedisError
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from chessroom.core.config import Settings
from chessroom.db.memory_store import InMemoryRoomStore
from chessroom.db.redis_store import RedisRoomStore
from chessroom.db.repository import RoomStore
from chessroom.db.schema import Base
from chessroom.db.sql_repository import SQLRoomStore

logger = logging.getLogger(__name__)


def open_sql_session(database_url: str) -> Session:
    """Create the engine, make sure all tables exist, and open one long-lived session for the store."""
    connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}
    engine = create_engine(database_url, connect_args=connect_args)
    Base.metadata.create_all(bind=engine)
    return sessionmaker(bind=engine)()


async def create_room_store(settings: Settings) -> RoomStore:
    """
    Build the configured backend.
    ----

    A Redis store that cannot be reached is not fatal: the server falls back to the in-memory store and logs why.
    """
    if settings.store_type == "redis":
        if not settings.redis_url:
            logger.warning("GAMESTORE_TYPE=redis but REDIS_URL missing; falling back to in-memory store")
            return InMemoryRoomStore()

        client = Redis.from_url(settings.redis_url)
        try:
            await client.ping()
        except (RedisError, OSError) as exc:
            logger.error("Redis connection failed; using in-memory store: %s", exc)
            await client.aclose()
            return InMemoryRoomStore()
        logger.info("Room store: Redis connected")
        return RedisRoomStore(client, settings.redis_key_prefix)

    if settings.store_type == "sql":
        logger.info("Room store: SQL (%s)", settings.database_url.split("://", 1)[0])
        return SQLRoomStore(open_sql_session(settings.database_url))

    logger.info("Room store: in-memory")
    return InMemoryRoomStore()
