"""
Base service class for the league bot.

Provides transactional session scopes and store retry for the service layer
on top of an injected Database handle.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Awaitable, Callable, Any
from sqlalchemy.ext.asyncio import AsyncSession

from league_bot.config import Config


class BaseService:
    """Base class for all services with async database session management."""

    def __init__(self, database, config=Config):
        """
        Initialize base service.

        Args:
            database: Database handle shared by the whole bot
            config: Settings class (Config or a subclass)
        """
        self.db = database
        self.config = config

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """Provide a transactional scope for async database operations."""
        async with self.db.transaction() as session:
            yield session

    async def execute_with_retry(self, func: Callable[[], Awaitable[Any]], operation: str = None) -> Any:
        """Execute a function with automatic retry when the store is unavailable."""
        return await self.db.execute_with_retry(func, operation=operation)
