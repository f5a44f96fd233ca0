"""Database session management and schema initialization."""

from contextlib import contextmanager
from functools import lru_cache
from typing import Generator

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session

from theorogram.config.settings import settings
from theorogram.logger import get_logger


logger = get_logger(__name__)

# Plain SQL that runs on both Postgres and SQLite. Ids are generated in Python.
SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS users (
        id TEXT PRIMARY KEY,
        username TEXT NOT NULL UNIQUE,
        role TEXT NOT NULL DEFAULT 'user',
        reputation_score INTEGER NOT NULL DEFAULT 0,
        level INTEGER NOT NULL DEFAULT 1,
        banned_status BOOLEAN NOT NULL DEFAULT FALSE,
        shadowbanned BOOLEAN NOT NULL DEFAULT FALSE,
        suspended_until TIMESTAMP,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS theories (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL REFERENCES users(id),
        title TEXT NOT NULL,
        body TEXT NOT NULL,
        refs TEXT,
        moderation_status TEXT NOT NULL,
        complexity_score INTEGER NOT NULL DEFAULT 0,
        is_mature BOOLEAN NOT NULL DEFAULT FALSE,
        last_rescanned_at TIMESTAMP,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS moderation_logs (
        id TEXT PRIMARY KEY,
        theory_id TEXT,
        classification TEXT NOT NULL,
        confidence FLOAT NOT NULL,
        action_taken TEXT NOT NULL,
        reasoning TEXT,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS audit_logs (
        id TEXT PRIMARY KEY,
        admin_id TEXT NOT NULL,
        action TEXT NOT NULL,
        target_type TEXT NOT NULL,
        target_id TEXT NOT NULL,
        reason TEXT,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
]


def build_engine(url: str) -> Engine:
    if url.startswith("sqlite"):
        # Pooled connections are reused across threads (rescan scheduler, ledger).
        return create_engine(url, connect_args={"check_same_thread": False, "timeout": 30})
    return create_engine(url, pool_pre_ping=True, pool_size=5)


class Database:
    """Owns the engine and hands out transactional sessions."""

    def __init__(self, url: str | None = None):
        self.url = url or settings.database_url
        self.engine = build_engine(self.url)
        self.SessionLocal = sessionmaker(bind=self.engine, autocommit=False, autoflush=False)

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        """
        Context manager for database sessions.

        Commits on success, rolls back and re-raises on error.

        :return: Database session generator
        """
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def init_schema(self) -> None:
        """Create tables if they do not exist yet."""
        with self.session() as session:
            for statement in SCHEMA:
                session.execute(text(statement))
        logger.info("schema_initialized", tables=len(SCHEMA))

    def check_connection(self) -> bool:
        try:
            with self.session() as session:
                session.execute(text("SELECT 1"))
            logger.info("database_ok")
            return True
        except Exception as e:
            logger.error("database_failed", error=str(e))
            return False


@lru_cache(maxsize=1)
def get_database() -> Database:
    """Process-wide database built from settings."""
    return Database()
