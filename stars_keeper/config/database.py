"""SQLite engine, session factory and schema management."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from sqlalchemy import create_engine, event, inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from stars_keeper.config.settings import ConfigurationError, settings

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], Session]

_SIDECAR_SUFFIXES = ("-journal", "-wal", "-shm")


class Base(DeclarativeBase):
    """Declarative base shared by all persisted models."""


class StorageError(Exception):
    """Raised when a schema change or a record write fails."""


@dataclass(frozen=True, slots=True)
class ColumnMigration:
    """Additive column change, skipped when the column already exists."""

    table: str
    column: str
    ddl: str


# Ordered; tables created by older builds only carried `id` and `body`.
SCHEMA_MIGRATIONS: tuple[ColumnMigration, ...] = (
    ColumnMigration("repositories", "description", "ALTER TABLE repositories ADD COLUMN description TEXT DEFAULT NULL"),
    ColumnMigration("repositories", "topics", "ALTER TABLE repositories ADD COLUMN topics TEXT DEFAULT NULL"),
    ColumnMigration("repositories", "readme", "ALTER TABLE repositories ADD COLUMN readme TEXT DEFAULT NULL"),
)


def prepare_database_path(path: Path) -> Path:
    """Create the parent directory of the database file if needed."""
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise ConfigurationError(f"cannot create storage directory {path.parent}: {exc}") from exc
    logger.info("Configuration folder: %s", path.parent)
    return path


def create_database_engine(path: Path, *, busy_timeout_ms: int | None = None) -> Engine:
    """Open the SQLite database at `path` (created on first connect)."""
    engine = create_engine(f"sqlite:///{path}")
    timeout = settings.SQLITE_BUSY_TIMEOUT_MS if busy_timeout_ms is None else busy_timeout_ms

    @event.listens_for(engine, "connect")
    def _apply_pragmas(dbapi_connection, _connection_record) -> None:
        cursor = dbapi_connection.cursor()
        try:
            if timeout > 0:
                cursor.execute(f"PRAGMA busy_timeout = {int(timeout)}")
        finally:
            cursor.close()

    return engine


def create_session_factory(engine: Engine) -> SessionFactory:
    return sessionmaker(bind=engine, expire_on_commit=False)


def initialize_schema(engine: Engine) -> list[str]:
    """Create missing tables, then apply pending additive migrations.

    Safe to call against an up-to-date schema: nothing is executed twice.
    Returns the list of `table.column` migrations applied in this call.
    """

    # Registers the mapped tables on Base.metadata.
    from stars_keeper import models  # noqa: F401

    try:
        Base.metadata.create_all(engine, checkfirst=True)
    except SQLAlchemyError as exc:
        raise StorageError(f"failed to initialise database: {exc}") from exc

    applied: list[str] = []
    for migration in SCHEMA_MIGRATIONS:
        try:
            with engine.begin() as connection:
                columns = {column["name"] for column in inspect(connection).get_columns(migration.table)}
                if migration.column in columns:
                    continue
                connection.execute(text(migration.ddl))
        except SQLAlchemyError as exc:
            raise StorageError(
                f"failed to apply migration {migration.table}.{migration.column}: {exc}"
            ) from exc
        applied.append(f"{migration.table}.{migration.column}")
        logger.info("Applied schema migration", extra={"table": migration.table, "column": migration.column})

    return applied


def purge_database(path: Path) -> bool:
    """Delete the database file. Returns False when there was nothing to delete."""
    if not path.exists():
        logger.info("Database not found, nothing to purge: %s", path)
        return False

    path.unlink()
    for suffix in _SIDECAR_SUFFIXES:
        sidecar = path.with_name(path.name + suffix)
        if sidecar.exists():
            sidecar.unlink()
    logger.info("Database purged: %s", path)
    return True
