"""
Connection lifecycle of the indexing state store.

Owns the async engine and session factory. SQLite (aiosqlite) is the default
backend; any SQLAlchemy async URL works.

Dependencies: sqlalchemy, aiosqlite
"""

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from shared.db.base import Base
from shared.helper.HelperConfig import HelperConfig

# registers the tables on Base.metadata
import shared.db.models.IndexingState  # noqa: F401


class StateStore:
    def __init__(self, helper_config: HelperConfig, database_url: str, echo: bool = False) -> None:
        self.logging = helper_config.get_logger()
        self._database_url = database_url
        self._engine: AsyncEngine = self._create_engine(database_url, echo)
        self._session_factory = async_sessionmaker(
            bind=self._engine,
            autoflush=False,
            expire_on_commit=False,
        )

    @staticmethod
    def _create_engine(database_url: str, echo: bool) -> AsyncEngine:
        """Create the async engine.

        In-memory SQLite needs a single shared connection, otherwise every
        session would see its own empty database.
        """
        if database_url.startswith("sqlite") and ":memory:" in database_url:
            return create_async_engine(
                database_url,
                echo=echo,
                poolclass=StaticPool,
                connect_args={"check_same_thread": False},
            )
        return create_async_engine(database_url, echo=echo, pool_pre_ping=True)

    def session(self) -> AsyncSession:
        """Open a new session. Use as ``async with store.session() as session``."""
        return self._session_factory()

    async def create_tables(self) -> None:
        """Create missing tables. Existing tables are left untouched."""
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        self.logging.info("State store ready at %s", self._safe_url())

    async def close(self) -> None:
        await self._engine.dispose()

    def _safe_url(self) -> str:
        return self._engine.url.render_as_string(hide_password=True)
