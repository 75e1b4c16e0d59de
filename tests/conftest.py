"""
Shared fixtures: a fresh SQLite league per test and helpers to seed users.
"""

import itertools

import pytest
import pytest_asyncio
from sqlalchemy import update

from league_bot.config import Config
from league_bot.database.database import Database
from league_bot.database.match_operations import MatchOperations
from league_bot.database.models import Match, MatchStatus, User, utcnow
from league_bot.operations.player_operations import PlayerOperations
from league_bot.services.leaderboard import LeaderboardService
from league_bot.services.maintenance import WeeklyMaintenanceService


class LeagueTestConfig(Config):
    """Fixed league settings so tests do not depend on the environment"""
    STORE_MAX_RETRIES = 3
    STARTING_RATING = 1500
    K_FACTOR = 50
    BONUS_POINTS = 5
    WEEKLY_CHALLENGE_LIMIT = 6
    PROVISIONAL_MATCH_COUNT = 0

    DECAY_ENABLED = True
    DECAY_AMOUNT = 25
    RATING_FLOOR = None
    AUTO_QUIT_ENABLED = True
    AUTO_QUIT_WEEKS = 4
    AUTO_QUIT_RESET_TO_AVERAGE = False

    TOP_PLAYERS_DEFAULT = 25
    NEARBY_PLAYERS_DEFAULT = 2

    MAINTENANCE_WEEKDAY = 0
    MAINTENANCE_HOUR = 0
    MAINTENANCE_TIMEZONE = 'UTC'


@pytest.fixture
def config():
    return LeagueTestConfig


@pytest_asyncio.fixture
async def db(tmp_path):
    database = Database(f"sqlite+aiosqlite:///{tmp_path / 'league.db'}", echo=False, max_retries=3)
    await database.initialize()
    yield database
    await database.close()


@pytest.fixture
def player_ops(db, config):
    return PlayerOperations(db, config)


@pytest.fixture
def match_ops(db, config):
    return MatchOperations(db, config)


@pytest.fixture
def leaderboard(db, config):
    return LeaderboardService(db, config)


@pytest.fixture
def maintenance(db, config):
    return WeeklyMaintenanceService(db, config)


@pytest.fixture
def make_user(db):
    """Insert a user directly with the given rating and flags"""
    external_ids = itertools.count(100000)

    async def _make(rating=1500, competing=True, name=None, **fields):
        external_id = next(external_ids)
        user = User(
            external_id=external_id,
            display_name=name or f"player{external_id}",
            rating=rating,
            competing=competing,
            **fields
        )
        async with db.transaction() as session:
            session.add(user)
        return user

    return _make


@pytest.fixture
def fetch_user(db):
    async def _fetch(user_id):
        async with db.get_session() as session:
            return await session.get(User, user_id)

    return _fetch


@pytest.fixture
def set_rating(db):
    async def _set(user_id, rating):
        async with db.transaction() as session:
            await session.execute(update(User).where(User.id == user_id).values(rating=rating))

    return _set


@pytest.fixture
def make_match(db):
    """Insert a confirmed match directly, dated ``created_at``"""
    async def _make(player, opponent, created_at=None, player_won=True):
        played_at = created_at or utcnow()
        match = Match(
            player_id=player.id,
            opponent_id=opponent.id,
            result=player_won,
            confirmed=True,
            status=MatchStatus.CONFIRMED,
            player_start_rating=player.rating,
            opponent_start_rating=opponent.rating,
            created_at=played_at,
            resolved_at=played_at
        )
        async with db.transaction() as session:
            session.add(match)
        return match

    return _make
