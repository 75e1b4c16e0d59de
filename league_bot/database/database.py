import asyncio
from contextlib import asynccontextmanager
from typing import Any, Awaitable, Callable, Dict, List, Optional

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

from league_bot.config import Config
from league_bot.database.models import Base
from league_bot.utils.league_exceptions import StoreUnavailable
from league_bot.utils.logger import setup_logger


@asynccontextmanager
async def translate_store_errors(operation: str):
    """Re-raise transient backend failures as StoreUnavailable."""
    try:
        yield
    except (OperationalError, InterfaceError) as e:
        raise StoreUnavailable(operation, str(e.orig or e)) from e
    except DBAPIError as e:
        if e.connection_invalidated:
            raise StoreUnavailable(operation, str(e.orig or e)) from e
        raise


class Database:
    """
    Store handle for the league.

    Owns the async engine and session factory. A single instance is built at
    startup and passed to every component; nothing in the package reaches for
    a module-level connection.
    """

    def __init__(self, database_url: Optional[str] = None, echo: Optional[bool] = None,
                 max_retries: Optional[int] = None):
        self.logger = setup_logger(__name__)
        self.database_url = database_url or Config.DATABASE_URL
        self.echo = Config.DEBUG if echo is None else echo
        self.max_retries = max_retries if max_retries is not None else Config.STORE_MAX_RETRIES
        self.engine = None
        self.async_session = None

    @property
    def session_factory(self) -> async_sessionmaker:
        return self.async_session

    async def initialize(self):
        """Initialize the database connection and create tables"""
        self.logger.info("Initializing database...")

        # Convert sqlite URL to async if needed
        database_url = self.database_url
        if database_url.startswith('sqlite:///'):
            database_url = database_url.replace('sqlite:///', 'sqlite+aiosqlite:///')

        self.engine = create_async_engine(
            database_url,
            echo=self.echo,
            future=True
        )

        self.async_session = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False
        )

        async with translate_store_errors("initialize"):
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)

        self.logger.info("Database initialized successfully")

    @asynccontextmanager
    async def get_session(self):
        """Get a database session for reads; the caller commits if it writes"""
        async with self.async_session() as session:
            try:
                async with translate_store_errors("session"):
                    yield session
            except Exception:
                await session.rollback()
                raise

    @asynccontextmanager
    async def transaction(self):
        """
        Create a transaction boundary for atomic operations.

        Everything done with the yielded session commits together when the
        block exits normally and rolls back together when it raises.

        Usage:
            async with db.transaction() as session:
                session.add(match)
                await session.execute(update(User)...)
        """
        async with self.async_session() as session:
            try:
                async with translate_store_errors("transaction"):
                    yield session
                    await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def fetch_all(self, query: str, params: Optional[Dict[str, Any]] = None) -> List[Any]:
        """
        Run a textual query and return all rows.

        Values must be passed through ``params`` and referenced as ``:name``
        in the query; they are bound by the driver, never formatted into the
        SQL string.
        """
        async with self.get_session() as session:
            result = await session.execute(text(query), params or {})
            return result.all()

    async def execute_with_retry(self, func: Callable[[], Awaitable[Any]], operation: str = None) -> Any:
        """
        Await ``func`` and retry it when the store is unavailable.

        Only StoreUnavailable is retried, with exponential backoff. ``func``
        must open its own transaction so every attempt starts clean.
        """
        operation = operation or getattr(func, '__name__', 'operation')
        attempts = max(1, self.max_retries)
        for attempt in range(attempts):
            try:
                return await func()
            except StoreUnavailable as e:
                if attempt == attempts - 1:
                    self.logger.error(f"{operation} failed after {attempts} attempts: {e}")
                    raise
                self.logger.warning(f"Retry attempt {attempt + 1} for {operation}: {e}")
                await asyncio.sleep(0.1 * (2 ** attempt))  # Exponential backoff

    async def close(self):
        """Close the database connection"""
        if self.engine:
            await self.engine.dispose()
            self.logger.info("Database connection closed")
