from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from loguru import logger
from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import Session, sessionmaker

from langlearn.db.models.base import Base


def _sqlite_url(path: Path | str) -> str:
    """SQLite URL for a file path; ``:memory:`` passes through."""
    if str(path) == ":memory:":
        return "sqlite:///:memory:"
    return f"sqlite:///{Path(path)}"


def _apply_durability_pragmas(dbapi_connection: Any, _connection_record: Any) -> None:
    """WAL + synchronous=FULL so a committed write survives a crash."""
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA synchronous=FULL")
    cursor.close()


class LocalDatabase:
    """
    Persistence context for the local offline store.

    Constructed explicitly and handed to the components that need it;
    there is no module-level engine. Lifecycle::

        db = LocalDatabase(path)
        db.open()
        with db.session_scope() as session:
            ...
        db.close()

    Also usable as a context manager.
    """

    def __init__(self, path: Path | str, echo: bool = False):
        self.path = path
        self._echo = echo
        self._engine: Engine | None = None
        self._session_factory: sessionmaker[Session] | None = None

    def __enter__(self) -> LocalDatabase:
        self.open()
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    @property
    def is_open(self) -> bool:
        return self._engine is not None

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            raise RuntimeError("LocalDatabase is not open")
        return self._engine

    def open(self) -> None:
        """Create the engine and tables. Idempotent."""
        if self._engine is not None:
            return

        if str(self.path) != ":memory:":
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)

        self._engine = create_engine(_sqlite_url(self.path), echo=self._echo)
        event.listen(self._engine, "connect", _apply_durability_pragmas)
        self._session_factory = sessionmaker(
            bind=self._engine, autoflush=False, expire_on_commit=False
        )
        Base.metadata.create_all(bind=self._engine)
        logger.info(f"Local database opened at {self.path}")

    def close(self) -> None:
        """Dispose the engine. Safe to call twice."""
        if self._engine is None:
            return
        self._engine.dispose()
        self._engine = None
        self._session_factory = None
        logger.info(f"Local database closed at {self.path}")

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """Provide a transactional scope around a series of operations."""
        if self._session_factory is None:
            raise RuntimeError("LocalDatabase is not open")
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:  # Intentionally broad - rollback on any error before re-raising
            session.rollback()
            raise
        finally:
            session.close()
