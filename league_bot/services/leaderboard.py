"""
Leaderboard service: rank lookups and ranked player lists.

Read-only. Ranks are dense over every user's rating (ties share a rank and
the next distinct rating gets the next integer), whether or not the user is
currently competing.
"""

from typing import List, Optional

from sqlalchemy import select, func, or_

from league_bot.data_models.leaderboard import RankedPlayer
from league_bot.database.models import Match, User
from league_bot.services.base import BaseService
from league_bot.utils.league_exceptions import NotRegistered
from league_bot.utils.logger import setup_logger

logger = setup_logger(__name__)

RANK_QUERY = """
    SELECT u.rating,
           (SELECT COUNT(DISTINCT o.rating) FROM users o WHERE o.rating > u.rating) + 1 AS rating_rank
    FROM users u
    WHERE u.id = :user_id
"""


class LeaderboardService(BaseService):
    """Service for rating ranks, top lists and nearby competitors."""

    async def rank(self, user_id: int) -> int:
        """
        Dense rank of a user's rating, 1 being the highest.

        Raises:
            NotRegistered: Unknown user id
        """
        rows = await self.db.fetch_all(RANK_QUERY, {'user_id': user_id})
        if not rows:
            raise NotRegistered(user_id)
        return int(rows[0].rating_rank)

    def _ranked_users(self):
        matches_played = (
            select(func.count(Match.id))
            .where(
                Match.confirmed.is_(True),
                or_(Match.player_id == User.id, Match.opponent_id == User.id)
            )
            .correlate(User)
            .scalar_subquery()
        )
        return select(
            User.id.label('user_id'),
            User.external_id,
            User.display_name,
            User.rating,
            User.competing,
            func.dense_rank().over(order_by=User.rating.desc()).label('rank'),
            matches_played.label('matches_played')
        ).subquery('ranked')

    @staticmethod
    def _to_player(row) -> RankedPlayer:
        return RankedPlayer(**dict(row._mapping))

    async def top_players(self, n: Optional[int] = None, active_only: bool = True,
                          include_provisional: bool = False) -> List[RankedPlayer]:
        """
        Top ``n`` users by rating, highest first.

        Args:
            n: Number of rows (defaults to TOP_PLAYERS_DEFAULT)
            active_only: Only include competing users
            include_provisional: Include users below PROVISIONAL_MATCH_COUNT confirmed matches
        """
        n = self.config.TOP_PLAYERS_DEFAULT if n is None else n
        if n <= 0:
            raise ValueError("n must be positive")

        ranked = self._ranked_users()
        query = select(ranked)
        if active_only:
            query = query.where(ranked.c.competing.is_(True))
        if not include_provisional and self.config.PROVISIONAL_MATCH_COUNT > 0:
            query = query.where(ranked.c.matches_played >= self.config.PROVISIONAL_MATCH_COUNT)
        query = query.order_by(ranked.c.rating.desc(), ranked.c.user_id).limit(n)

        async with self.db.get_session() as session:
            result = await session.execute(query)
            return [self._to_player(row) for row in result]

    async def nearby_players(self, user_id: int, n: Optional[int] = None) -> List[RankedPlayer]:
        """
        The user plus the competing players closest to them in rating.

        Made of three partitions: the user and other players on the same
        rating (at most 2n of them), the n nearest strictly-lower ratings and
        the n nearest strictly-higher ratings. The merged list is always
        ordered by rating descending, then rank, then user id.

        Raises:
            NotRegistered: Unknown user id
        """
        n = self.config.NEARBY_PLAYERS_DEFAULT if n is None else n
        if n < 0:
            raise ValueError("n cannot be negative")

        ranked = self._ranked_users()
        async with self.db.get_session() as session:
            me = (await session.execute(select(ranked).where(ranked.c.user_id == user_id))).first()
            if me is None:
                raise NotRegistered(user_id)

            players = [self._to_player(me)]
            if n > 0:
                others = select(ranked).where(ranked.c.competing.is_(True), ranked.c.user_id != user_id)
                partitions = (
                    others.where(ranked.c.rating == me.rating)
                    .order_by(ranked.c.user_id)
                    .limit(2 * n),
                    # Nearest first on both sides
                    others.where(ranked.c.rating < me.rating)
                    .order_by(ranked.c.rating.desc(), ranked.c.user_id)
                    .limit(n),
                    others.where(ranked.c.rating > me.rating)
                    .order_by(ranked.c.rating.asc(), ranked.c.user_id)
                    .limit(n),
                )
                for partition in partitions:
                    result = await session.execute(partition)
                    players.extend(self._to_player(row) for row in result)

        players.sort(key=lambda p: (-p.rating, p.rank, p.user_id))
        logger.debug(f"Nearby players for user {user_id} (n={n}): {[p.user_id for p in players]}")
        return players
