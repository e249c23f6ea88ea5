"""Implementation of RoomStore using SQLAlchemy"""

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from chessroom.core.exceptions import RepositoryError
from chessroom.core.models import RoomSnapshot
from chessroom.db.schema import DBRoom


class SQLRoomStore:
    """
    Data stored using SQL / methods implemented using SQLAlchemy.

    NOTE the session is synchronous: each call blocks the event loop for one short query.
    """

    def __init__(self, db_session: Session) -> None:
        self.db = db_session

    async def get_room(self, room_id: str) -> RoomSnapshot | None:
        """Get snapshot by ID, if record exists."""
        try:
            room_db = self._fetch_room(room_id)
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise RepositoryError(f"Cannot read room {room_id}") from exc
        if room_db:
            return self._to_model(room_db)
        return None

    async def create_room(self, snapshot: RoomSnapshot) -> RoomSnapshot:
        """Store new room."""
        room_db = DBRoom(id=snapshot.id)
        self._copy_into(room_db, snapshot)
        self._commit(room_db, f"Cannot create room {snapshot.id}")
        return self._to_model(room_db)

    async def save_room(self, snapshot: RoomSnapshot) -> RoomSnapshot:
        """Overwrite an existing record (or insert it if it is not there yet)."""
        try:
            room_db = self._fetch_room(snapshot.id)
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise RepositoryError(f"Cannot save room {snapshot.id}") from exc
        if room_db is None:
            room_db = DBRoom(id=snapshot.id)
        self._copy_into(room_db, snapshot)
        self._commit(room_db, f"Cannot save room {snapshot.id}")
        return self._to_model(room_db)

    async def delete_room(self, room_id: str) -> None:
        """Remove a room's record."""
        try:
            room_db = self._fetch_room(room_id)
            if not room_db:
                return
            self.db.delete(room_db)
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise RepositoryError(f"Cannot delete room {room_id}") from exc

    async def close(self) -> None:
        self.db.close()

    def _fetch_room(self, room_id: str) -> DBRoom | None:
        query = select(DBRoom).where(DBRoom.id == room_id)
        return self.db.scalar(query)

    def _commit(self, room_db: DBRoom, failure: str) -> None:
        try:
            self.db.add(room_db)
            self.db.commit()
            self.db.refresh(room_db)
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise RepositoryError(failure) from exc

    def _copy_into(self, room_db: DBRoom, snapshot: RoomSnapshot) -> None:
        room_db.snapshot = snapshot.model_dump(mode="json", by_alias=True)
        room_db.white = snapshot.players.white
        room_db.black = snapshot.players.black
        room_db.result = snapshot.forced_result

    def _to_model(self, room_db: DBRoom) -> RoomSnapshot:
        """Convert SQLAlchemy model to data transfer model."""
        return RoomSnapshot.model_validate(room_db.snapshot)
