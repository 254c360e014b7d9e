"""Database session management.

Manages the SQLAlchemy async engine and session creation with support
for both SQLite and PostgreSQL databases.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from guildgate.infra.db.models import Base


class DatabaseSessionManager:
    """Database session manager.

    Example:
        manager = DatabaseSessionManager("sqlite+aiosqlite:///./guildgate.db")
        await manager.init()

        async with manager.session() as session:
            record = await session.get(GuildConfigRecord, "guild")

        await manager.close()
    """

    def __init__(self, database_url: str, echo: bool = False) -> None:
        self.database_url = database_url
        self.echo = echo
        self._engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    async def init(self, create_schema: bool = True) -> None:
        """Initialize database engine and session factory.

        Args:
            create_schema: Create missing tables (no migrations for a single table)
        """
        if self.is_sqlite:
            connect_args = {"check_same_thread": False, "timeout": 30.0}
            pool_config = {}
        else:
            connect_args = {}
            pool_config = {"pool_pre_ping": True, "pool_recycle": 3600}

        self._engine = create_async_engine(
            self.database_url,
            echo=self.echo,
            connect_args=connect_args,
            **pool_config,
        )

        self._session_factory = async_sessionmaker(
            self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

        if create_schema:
            async with self._engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)

    async def close(self) -> None:
        """Close database engine and cleanup connections."""
        if self._engine:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Get database session context manager.

        Automatically commits on success or rolls back on error.

        Raises:
            RuntimeError: If session manager not initialized
        """
        if self._session_factory is None:
            raise RuntimeError("SessionManager not initialized. Call init() first.")

        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise
