"""
Database Management and Configuration.

This module sets up and manages the asynchronous database connection for the
Social Feed API. It uses SQLAlchemy with `asyncio` support and SQLModel for
data modeling.

Key Components:
- `Database`: Owns the async engine and session factory for one database URL.
  It is created by the application factory from `Settings.database_url` and
  shared by every service for the lifetime of the process.
- `Database.create_all`: A startup hook that creates all tables from the
  SQLModel metadata.
- `Database.session`: Opens an `AsyncSession`; services use it as an async
  context manager around each unit of work.
- `Database.health_check`: Diagnostic information for the health endpoint.

SQLite (via `aiosqlite`) is the development default; PostgreSQL (via
`asyncpg`) gets a pooled engine with pre-ping.
"""

from typing import Any, Dict

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import AsyncAdaptedQueuePool
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from core.exceptions import DatabaseConnectionError
from core.logging_config import get_logger

# Table definitions must be registered on the metadata before create_all
import core.models  # noqa: F401

logger = get_logger(__name__)


class Database:
    """Async engine plus session factory for one database URL"""

    def __init__(self, url: str, echo: bool = False):
        self.url = url

        if url.startswith("sqlite"):
            self.engine = create_async_engine(
                url,
                connect_args={"check_same_thread": False},
                echo=echo,
                poolclass=AsyncAdaptedQueuePool,
            )
        else:
            self.engine = create_async_engine(
                url,
                poolclass=AsyncAdaptedQueuePool,
                pool_size=5,
                max_overflow=10,
                pool_pre_ping=True,  # Validate connections before use
                echo=echo,
            )

        self.session_factory = async_sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False
        )

    @property
    def database_type(self) -> str:
        return "postgresql" if "postgresql" in self.url else "sqlite"

    def session(self) -> AsyncSession:
        """Open a new session; use as ``async with database.session() as session``"""
        return self.session_factory()

    async def create_all(self):
        """Create all tables. Called during application startup."""
        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(SQLModel.metadata.create_all)
            logger.info("Database tables created successfully")
        except SQLAlchemyError as e:
            logger.error(f"Failed to create database tables: {e}")
            raise DatabaseConnectionError("create_all", str(e)) from e

    async def dispose(self):
        await self.engine.dispose()

    async def health_check(self) -> Dict[str, Any]:
        """Perform a basic connectivity check"""
        try:
            async with self.engine.connect() as conn:
                result = await conn.execute(text("SELECT 1"))
                result.scalar()
            connection_healthy = True
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            connection_healthy = False

        return {
            "connection_healthy": connection_healthy,
            "database_type": self.database_type,
        }
