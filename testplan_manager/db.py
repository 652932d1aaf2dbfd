"""
SQLAlchemy setup for the key-value table backing the local store.
"""
import logging
import os
from sqlalchemy import Column, String, Text, create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

Base = declarative_base()


class KeyValueEntry(Base):
    """One JSON-serialized value under a string key."""

    __tablename__ = "kv_entries"

    key = Column(String(255), primary_key=True)
    value = Column(Text, nullable=False)


def create_store_engine(url: str) -> Engine:
    """
    Create an engine for the store URL and make sure the table exists.

    SQLite connections are shared across FastAPI's threadpool, and in-memory
    databases use a single static connection so every session sees the same data.

    Args:
        url: SQLAlchemy database URL (e.g. "sqlite:///./data/testplan_manager.db")

    Returns:
        Engine: Configured SQLAlchemy engine
    """
    kwargs = {}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        else:
            _ensure_sqlite_dir(url)

    engine = create_engine(url, echo=False, **kwargs)
    Base.metadata.create_all(bind=engine)
    logger.info("Key-value store ready (%s)", engine.url.get_backend_name())
    return engine


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def _ensure_sqlite_dir(url: str) -> None:
    path = url.split("///", 1)[-1]
    directory = os.path.dirname(path)
    if directory and not os.path.exists(directory):
        os.makedirs(directory, exist_ok=True)
