"""
Database connection management.

Supports:
  - SQLite (local dev and tests, no setup; in-memory via "sqlite://")
  - PostgreSQL (production)

Connection string comes from DATABASE_URL / Settings.database_url.
"""

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from docseal.config.settings import get_settings
from docseal.infrastructure.db.models import Base

logger = logging.getLogger(__name__)


def get_database_url() -> str:
    """Get database URL from settings (env: DATABASE_URL)."""
    return get_settings().database_url


def create_db_engine(url: str | None = None) -> Engine:
    """Create SQLAlchemy engine."""
    db_url = url or get_database_url()

    if db_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}, "echo": False}
        if db_url in ("sqlite://", "sqlite:///:memory:"):
            # one shared connection, otherwise every session sees an empty DB
            kwargs["poolclass"] = StaticPool
        return create_engine(db_url, **kwargs)

    # PostgreSQL
    return create_engine(
        db_url,
        pool_size=10,
        max_overflow=20,
        pool_pre_ping=True,
        echo=False,
    )


class Database:
    """Engine + session factory for one database."""

    def __init__(self, url: str | None = None):
        self.url = url or get_database_url()
        self.engine = create_db_engine(self.url)
        self._session_factory = sessionmaker(bind=self.engine, expire_on_commit=False)

    def init(self) -> None:
        """Create all tables. Safe to call multiple times."""
        Base.metadata.create_all(self.engine)
        logger.info(f"Database initialized: {self.url.split('@')[-1] if '@' in self.url else self.url}")

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Context manager for database sessions; commits on success."""
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def dispose(self) -> None:
        self.engine.dispose()


# ── Global database ──
_database: Database | None = None


def get_database() -> Database:
    """Get or create the global database."""
    global _database
    if _database is None:
        _database = Database()
    return _database


def init_db() -> Database:
    db = get_database()
    db.init()
    return db
