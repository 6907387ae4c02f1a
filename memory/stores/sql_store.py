"""SQLite SQLAlchemy store wrapper."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from sqlalchemy import create_engine, event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from memory.errors import StorageError
from memory.schemas import Base

BUSY_TIMEOUT_MS = 5000


class SQLStore:
    """Provides SQLAlchemy session management for SQLite persistence.

    ``db_path=None`` opens a private in-memory database on a single shared
    connection; callers must serialize access to it.
    """

    def __init__(self, db_path: Path | None = None) -> None:
        self.db_path = db_path
        if db_path is None:
            self.engine = create_engine(
                "sqlite+pysqlite://",
                future=True,
                poolclass=StaticPool,
                connect_args={"check_same_thread": False},
            )
        else:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self.engine = create_engine(
                f"sqlite+pysqlite:///{self.db_path}",
                future=True,
                connect_args={"check_same_thread": False},
            )
        event.listen(self.engine, "connect", self._configure_connection)
        self._session_factory = sessionmaker(bind=self.engine, future=True, expire_on_commit=False)

    @property
    def shared_connection(self) -> bool:
        return self.db_path is None

    def _configure_connection(self, dbapi_connection: Any, _record: Any) -> None:
        cursor = dbapi_connection.cursor()
        try:
            if not self.shared_connection:
                cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute(f"PRAGMA busy_timeout={BUSY_TIMEOUT_MS}")
        finally:
            cursor.close()

    def create_all(self) -> None:
        """Create all schema tables if missing."""
        try:
            Base.metadata.create_all(self.engine)
        except SQLAlchemyError as exc:
            raise StorageError(f"failed to initialize memory schema: {exc}") from exc

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Context manager that commits on success and rolls back on error."""
        sess = self._session_factory()
        try:
            yield sess
            sess.commit()
        except SQLAlchemyError as exc:
            sess.rollback()
            raise StorageError(str(exc)) from exc
        except Exception:
            sess.rollback()
            raise
        finally:
            sess.close()

    def dispose(self) -> None:
        self.engine.dispose()
