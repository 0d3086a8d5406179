"""
Storage - Key/Value Stores.

============================================================
RESPONSIBILITY
============================================================
Persisted key/value interface used by the cache's second tier.

- KeyValueStore: the injectable interface
- MemoryKeyValueStore: process-local dict, for tests and one-shot runs
- SqlKeyValueStore: SQLAlchemy-backed store (SQLite by default)

============================================================
DESIGN PRINCIPLES
============================================================
- String keys, string values; callers serialize
- Explicit transactions, rollback on failure
- Storage failures raise StorageError, never leak driver errors

============================================================
"""

import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Dict, Generator, List, Optional

from sqlalchemy import create_engine, delete, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from core.exceptions import StorageError
from storage.models import Base, KeyValueRecord


logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "sqlite:///ingest_cache.db"


# ============================================================
# INTERFACE
# ============================================================

class KeyValueStore(ABC):
    """Injectable persisted key/value store."""

    @abstractmethod
    def get_item(self, key: str) -> Optional[str]:
        """Return the stored value or None."""
        pass

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        """Store a value, replacing any previous one."""
        pass

    @abstractmethod
    def remove_item(self, key: str) -> None:
        """Remove a key; missing keys are ignored."""
        pass

    @abstractmethod
    def clear(self) -> None:
        """Remove every key."""
        pass

    @abstractmethod
    def keys(self, prefix: str = "") -> List[str]:
        """List stored keys starting with prefix."""
        pass


# ============================================================
# IN-MEMORY STORE
# ============================================================

class MemoryKeyValueStore(KeyValueStore):
    """Dict-backed store."""

    def __init__(self) -> None:
        self._data: Dict[str, str] = {}

    def get_item(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove_item(self, key: str) -> None:
        self._data.pop(key, None)

    def clear(self) -> None:
        self._data.clear()

    def keys(self, prefix: str = "") -> List[str]:
        return [k for k in self._data if k.startswith(prefix)]

    def __len__(self) -> int:
        return len(self._data)


# ============================================================
# SQL STORE
# ============================================================

class SqlKeyValueStore(KeyValueStore):
    """
    SQLAlchemy-backed store.

    Creates its table on first use. Pass an existing engine to share
    a connection pool, or a URL to let the store own one.
    """

    def __init__(
        self,
        database_url: Optional[str] = None,
        engine: Optional[Engine] = None,
        echo: bool = False,
    ) -> None:
        self._owns_engine = engine is None
        self._engine = engine or create_engine(
            database_url or DEFAULT_DATABASE_URL,
            echo=echo,
            future=True,
        )
        self._session_factory = sessionmaker(bind=self._engine, expire_on_commit=False)

        try:
            Base.metadata.create_all(self._engine, tables=[KeyValueRecord.__table__])
        except SQLAlchemyError as e:
            raise StorageError(
                f"Failed to initialise key/value table: {e}",
                operation="create_all",
                cause=e,
            )

        logger.info(f"Key/value store ready: {self._engine.url.render_as_string(hide_password=True)}")

    @contextmanager
    def _session_scope(self, operation: str) -> Generator[Session, None, None]:
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Key/value store {operation} failed: {e}")
            raise StorageError(
                f"Key/value {operation} failed",
                operation=operation,
                cause=e,
            )
        finally:
            session.close()

    def get_item(self, key: str) -> Optional[str]:
        with self._session_scope("get") as session:
            record = session.get(KeyValueRecord, key)
            return record.value if record is not None else None

    def set_item(self, key: str, value: str) -> None:
        with self._session_scope("set") as session:
            record = session.get(KeyValueRecord, key)
            if record is None:
                session.add(KeyValueRecord(key=key, value=value))
            else:
                record.value = value

    def remove_item(self, key: str) -> None:
        with self._session_scope("remove") as session:
            session.execute(delete(KeyValueRecord).where(KeyValueRecord.key == key))

    def clear(self) -> None:
        with self._session_scope("clear") as session:
            session.execute(delete(KeyValueRecord))

    def keys(self, prefix: str = "") -> List[str]:
        with self._session_scope("keys") as session:
            stmt = select(KeyValueRecord.key)
            if prefix:
                stmt = stmt.where(KeyValueRecord.key.startswith(prefix, autoescape=True))
            return list(session.scalars(stmt))

    def close(self) -> None:
        """Dispose the engine if this store created it."""
        if self._owns_engine:
            self._engine.dispose()
