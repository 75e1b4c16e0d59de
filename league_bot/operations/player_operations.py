"""
Player Operations Module

Registration and participation state for league members. Discord users are
identified by ``external_id``; everything else in the package works with the
internal ``users.id``.
"""

from typing import Optional

from sqlalchemy import select, update, func, or_
from sqlalchemy.exc import IntegrityError

from league_bot.config import Config
from league_bot.database.models import Match, User
from league_bot.utils.elo import EloCalculator
from league_bot.utils.league_exceptions import AlreadyRegistered, NotRegistered
from league_bot.utils.logger import setup_logger

logger = setup_logger(__name__)


class PlayerOperations:
    """Business logic for registering players and toggling competition."""

    def __init__(self, database, config=Config):
        """Initialize with database instance"""
        self.db = database
        self.config = config
        self.logger = logger

    async def register(self, external_id: int, display_name: str) -> User:
        """
        Register a new competing player.

        The very first registrant starts at the configured starting rating;
        everyone after that starts at the (rounded) average rating of the
        players currently competing.

        Raises:
            AlreadyRegistered: external_id already has a record
        """
        return await self.db.execute_with_retry(
            lambda: self._register(external_id, display_name),
            operation="register"
        )

    async def _register(self, external_id: int, display_name: str) -> User:
        async with self.db.transaction() as session:
            existing = await session.scalar(select(User.id).where(User.external_id == external_id))
            if existing is not None:
                raise AlreadyRegistered(external_id)

            starting_rating = await self._starting_rating(session)
            user = User(
                external_id=external_id,
                display_name=display_name,
                rating=starting_rating,
                competing=True
            )
            session.add(user)
            try:
                await session.flush()
            except IntegrityError as e:
                raise AlreadyRegistered(external_id) from e

        self.logger.info(f"Registered user {user.id} ({display_name}, external {external_id}) at {starting_rating}")
        return user

    async def _starting_rating(self, session) -> int:
        average = await session.scalar(
            select(func.avg(User.rating)).where(User.competing.is_(True))
        )
        if not average:
            return self.config.STARTING_RATING
        return EloCalculator.round_half_away_from_zero(float(average))

    async def get_by_external_id(self, external_id: int) -> Optional[User]:
        async with self.db.get_session() as session:
            return await session.scalar(select(User).where(User.external_id == external_id))

    async def get_user(self, user_id: int) -> Optional[User]:
        async with self.db.get_session() as session:
            return await session.get(User, user_id)

    async def require_user(self, external_id: int, is_self: bool = True) -> User:
        """Get a registered user or raise NotRegistered"""
        user = await self.get_by_external_id(external_id)
        if user is None:
            raise NotRegistered(external_id, is_self=is_self)
        return user

    async def set_competing(self, external_id: int, competing: bool) -> User:
        """
        Join or leave the league. Rejoining clears the inactivity streak.

        Raises:
            NotRegistered: external_id has no record
        """
        values = {'competing': competing}
        if competing:
            values['inactive_weeks'] = 0

        async with self.db.transaction() as session:
            result = await session.execute(
                update(User)
                .where(User.external_id == external_id)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise NotRegistered(external_id)
            user = await session.scalar(select(User).where(User.external_id == external_id))

        self.logger.info(f"User {user.id} is {'now' if competing else 'no longer'} competing")
        return user

    async def sync_display_name(self, external_id: int, display_name: str) -> None:
        """Keep the stored name in step with the platform; no-op for unknown users"""
        async with self.db.transaction() as session:
            await session.execute(
                update(User)
                .where(User.external_id == external_id, User.display_name != display_name)
                .values(display_name=display_name)
                .execution_options(synchronize_session=False)
            )

    async def count_users(self, competing_only: bool = False) -> int:
        async with self.db.get_session() as session:
            query = select(func.count(User.id))
            if competing_only:
                query = query.where(User.competing.is_(True))
            return await session.scalar(query) or 0

    async def confirmed_match_count(self, user_id: int) -> int:
        async with self.db.get_session() as session:
            return await session.scalar(
                select(func.count(Match.id)).where(
                    Match.confirmed.is_(True),
                    or_(Match.player_id == user_id, Match.opponent_id == user_id)
                )
            ) or 0
