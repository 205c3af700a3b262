"""
Database connection management (async).

Supports:
  - SQLite via aiosqlite (local dev, no setup)
  - PostgreSQL via asyncpg

Connection string comes from Settings.database_url.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from src.core.exceptions import DatastoreUnavailable
from src.infrastructure.db.models import Base

logger = logging.getLogger(__name__)

# Default to SQLite for zero-setup local dev
DEFAULT_DB_URL = "sqlite+aiosqlite:///homologation.db"


def create_db_engine(url: str = DEFAULT_DB_URL) -> AsyncEngine:
    """Create SQLAlchemy async engine."""
    if url.startswith("sqlite"):
        return create_async_engine(url, echo=False)

    # PostgreSQL
    return create_async_engine(
        url,
        pool_size=10,
        max_overflow=20,
        pool_pre_ping=True,
        echo=False,
    )


class Database:
    """Engine + session factory, built once at startup."""

    def __init__(self, url: str = DEFAULT_DB_URL):
        self.url = url
        self.engine = create_db_engine(url)
        self._session_factory = async_sessionmaker(bind=self.engine, expire_on_commit=False)

    async def init(self) -> None:
        """Create all tables. Safe to call multiple times."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info(f"Database initialized: {self.url.split('@')[-1] if '@' in self.url else self.url}")

    async def ping(self) -> None:
        async with self.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

    async def dispose(self) -> None:
        await self.engine.dispose()

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """
        Session with commit on success, rollback on error.

        Connection and driver failures surface as DatastoreUnavailable (503,
        retryable). Constraint violations and domain errors propagate as-is.
        """
        session = self._session_factory()
        try:
            yield session
            await session.commit()
        except IntegrityError:
            await self._rollback(session)
            raise
        except (SQLAlchemyError, OSError) as e:
            await self._rollback(session)
            logger.warning(f"Datastore error: {e}")
            raise DatastoreUnavailable("Datastore unavailable; try again later") from e
        except Exception:
            await self._rollback(session)
            raise
        finally:
            await session.close()

    @staticmethod
    async def _rollback(session: AsyncSession) -> None:
        try:
            await session.rollback()
        except (SQLAlchemyError, OSError) as e:
            # the original error is the one worth raising
            logger.warning(f"Rollback failed: {e}")
