"""
Key-value store for all persisted application state.

Every value is JSON-serialized under a string key. Read and write failures are
logged and treated as "no data"; nothing here raises into callers. When no
backing URL is configured the store is a no-op that returns defaults.
"""
import json
import logging
from typing import Any, Optional
from sqlalchemy.exc import SQLAlchemyError
from testplan_manager.db import KeyValueEntry, create_session_factory, create_store_engine

logger = logging.getLogger(__name__)


class KeyValueStore:
    """JSON key-value store over a single SQLAlchemy table."""

    def __init__(self, url: Optional[str] = None):
        """
        Initialize the store.

        Args:
            url: SQLAlchemy database URL. Empty or None disables persistence.
        """
        self.url = url or ""
        self.engine = None
        self._session_factory = None

        if not self.url:
            logger.warning("No storage URL configured - running without persistence")
            return

        try:
            self.engine = create_store_engine(self.url)
            self._session_factory = create_session_factory(self.engine)
        except (SQLAlchemyError, OSError, ImportError) as e:
            logger.error(f"Failed to open key-value store - running without persistence: {e}")
            self.engine = None
            self._session_factory = None

    @property
    def available(self) -> bool:
        return self._session_factory is not None

    def get(self, key: str, default: Any = None) -> Any:
        """
        Read and decode the value stored under key.

        Returns:
            Decoded JSON value, or default when missing or unreadable
        """
        if not self.available:
            return default

        session = self._session_factory()
        try:
            entry = session.get(KeyValueEntry, key)
            if entry is None:
                return default
            return json.loads(entry.value)
        except (ValueError, SQLAlchemyError) as e:
            logger.error(f'Failed to read store item "{key}": {e}')
            return default
        finally:
            session.close()

    def set(self, key: str, value: Any) -> None:
        """Serialize value and upsert it under key. Failures are logged only."""
        if not self.available:
            return

        try:
            payload = json.dumps(value)
        except (TypeError, ValueError) as e:
            logger.error(f'Failed to serialize store item "{key}": {e}')
            return

        session = self._session_factory()
        try:
            session.merge(KeyValueEntry(key=key, value=payload))
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f'Failed to set store item "{key}": {e}')
        finally:
            session.close()

    def remove(self, key: str) -> None:
        """Delete the value under key if present."""
        if not self.available:
            return

        session = self._session_factory()
        try:
            entry = session.get(KeyValueEntry, key)
            if entry is not None:
                session.delete(entry)
                session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f'Failed to remove store item "{key}": {e}')
        finally:
            session.close()

    def close(self) -> None:
        if self.engine is not None:
            self.engine.dispose()


# Process-wide store, created once at startup
_store: Optional[KeyValueStore] = None


def init_store(url: Optional[str] = None) -> KeyValueStore:
    """
    Create the process-wide store, replacing any existing one.

    Args:
        url: Storage URL; defaults to settings.storage_url

    Returns:
        KeyValueStore: The initialized store
    """
    global _store
    if url is None:
        from testplan_manager.config import settings
        url = settings.storage_url
    reset_store()
    _store = KeyValueStore(url)
    return _store


def get_store() -> KeyValueStore:
    """Return the process-wide store, initializing it on first use. FastAPI dependency."""
    if _store is None:
        return init_store()
    return _store


def reset_store() -> None:
    global _store
    if _store is not None:
        _store.close()
    _store = None
