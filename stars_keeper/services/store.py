"""Insert-or-overwrite stores for `stars` and `repositories`, one commit per record."""

from __future__ import annotations

import logging
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError

from stars_keeper.config.database import SessionFactory, StorageError
from stars_keeper.models.repository import Repository
from stars_keeper.models.star import Star

logger = logging.getLogger(__name__)


class UpsertStore:
    """Last-write-wins persistence keyed by the model's `id` column.

    Every call to `upsert` runs in its own short-lived session and commits
    before returning, so a failure only rolls back the record being written.
    """

    model: Any = None

    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory
        self._columns = tuple(column.name for column in self.model.__table__.columns)

    def upsert(self, row: dict[str, Any]) -> None:
        missing = [name for name in self._columns if name not in row]
        unknown = [name for name in row if name not in self._columns]
        if missing or unknown:
            raise ValueError(
                f"{self.model.__tablename__} row must set exactly {list(self._columns)} "
                f"(missing={missing}, unknown={unknown})"
            )

        statement = sqlite_insert(self.model).values(**row)
        statement = statement.on_conflict_do_update(
            index_elements=[self.model.id],
            set_={name: statement.excluded[name] for name in self._columns if name != "id"},
        )

        db = self._session_factory()
        try:
            db.execute(statement)
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error(
                "Failed to upsert record",
                extra={"table": self.model.__tablename__, "id": row.get("id"), "error": str(exc)},
            )
            raise StorageError(f"failed to save {self.model.__tablename__} row {row.get('id')}: {exc}") from exc
        finally:
            db.close()

    def get(self, record_id: str) -> Optional[Any]:
        db = self._session_factory()
        try:
            return db.get(self.model, record_id)
        finally:
            db.close()

    def count(self) -> int:
        db = self._session_factory()
        try:
            return int(db.execute(select(func.count()).select_from(self.model)).scalar_one())
        finally:
            db.close()


class StarsStore(UpsertStore):
    """Stores one row per star event."""

    model = Star


class RepositoriesStore(UpsertStore):
    """Stores the most recent snapshot of every starred repository."""

    model = Repository
