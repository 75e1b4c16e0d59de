"""
Match Operations Module - head-to-head match lifecycle

Drives a match from submission to confirmation (or dispute/cancellation)
and applies rating changes atomically.

State machine per match:
    SUBMITTED -> CONFIRMED | DISPUTED | CANCELLED
Admin corrections:
    CONFIRMED -> NULLIFIED          (nullify)
    SUBMITTED | DISPUTED -> CONFIRMED  (admin_confirm)

Concurrency:
- Operations on the same ordered (submitter, opponent) pair are serialized
  by an in-process asyncio.Lock; the uq_pending_matches_pair constraint
  backs this up across processes.
- Confirmation claims its PendingMatch with a DELETE and checks the rowcount,
  then guards the Match UPDATE on its status, so a second confirmation can
  only ever see NotFound.
- User ratings are shifted with relative UPDATEs (rating = rating + delta) so
  a confirmation and a maintenance pass on the same user never overwrite
  each other.
"""

import asyncio
from collections import defaultdict
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from sqlalchemy import select, update, delete, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from league_bot.config import Config
from league_bot.data_models.match import ConfirmationResult
from league_bot.database.models import Match, MatchStatus, PendingMatch, User, utcnow
from league_bot.utils.elo import EloCalculator
from league_bot.utils.league_exceptions import (
    AlreadyPending, Forbidden, InvalidMatchState, LimitExceeded,
    NotCompeting, NotFound, NotRegistered
)
from league_bot.utils.logger import setup_logger

logger = setup_logger(__name__)


class MatchOperations:
    """
    Lifecycle manager for head-to-head matches.

    All user ids are internal ``users.id`` values; resolve Discord ids with
    PlayerOperations first.
    """

    def __init__(self, database, config=Config):
        self.db = database
        self.config = config
        self.logger = logger
        self._pair_locks: Dict[Tuple[int, int], asyncio.Lock] = defaultdict(asyncio.Lock)

    def _pair_lock(self, submitter_id: int, opponent_id: int) -> asyncio.Lock:
        return self._pair_locks[(submitter_id, opponent_id)]

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    async def submit(self, submitter_id: int, opponent_id: int, player_won: bool,
                     correlation_id: int) -> Match:
        """
        Record a result reported by the submitter and wait for the opponent.

        Args:
            submitter_id: User reporting the result (stored as the match's player)
            opponent_id: User expected to confirm
            player_won: True if the submitter won
            correlation_id: Id of the originating interaction/message

        Returns:
            The new SUBMITTED Match with start snapshots and NULL end ratings

        Raises:
            Forbidden: Submitter and opponent are the same user
            NotRegistered: Either user does not exist
            NotCompeting: Either user is not competing
            AlreadyPending: The ordered pair already has a pending match
            LimitExceeded: Either user already played the weekly match limit
        """
        if submitter_id == opponent_id:
            raise Forbidden(submitter_id, "You cannot submit a match against yourself.")

        async with self._pair_lock(submitter_id, opponent_id):
            return await self.db.execute_with_retry(
                lambda: self._submit(submitter_id, opponent_id, player_won, correlation_id),
                operation="submit"
            )

    async def _submit(self, submitter_id: int, opponent_id: int, player_won: bool,
                      correlation_id: int) -> Match:
        async with self.db.transaction() as session:
            submitter = await session.get(User, submitter_id)
            if submitter is None:
                raise NotRegistered(submitter_id)
            opponent = await session.get(User, opponent_id)
            if opponent is None:
                raise NotRegistered(opponent_id, is_self=False)
            if not submitter.competing:
                raise NotCompeting(submitter_id)
            if not opponent.competing:
                raise NotCompeting(opponent_id, is_self=False)

            existing = await session.scalar(
                select(PendingMatch).where(
                    PendingMatch.submitter_id == submitter_id,
                    PendingMatch.user_id == opponent_id
                )
            )
            if existing:
                raise AlreadyPending(submitter_id, opponent_id, existing.match_id)

            # Check and count in one statement per player; a capped opponent rolls back the submitter's count
            limit = self.config.WEEKLY_CHALLENGE_LIMIT
            for user_id, is_self in ((submitter_id, True), (opponent_id, False)):
                counted = await session.execute(
                    update(User)
                    .where(User.id == user_id, User.weekly_challenges < limit)
                    .values(weekly_challenges=User.weekly_challenges + 1)
                    .execution_options(synchronize_session=False)
                )
                if counted.rowcount == 0:
                    raise LimitExceeded(user_id, limit, is_self=is_self)

            match = Match(
                player_id=submitter_id,
                opponent_id=opponent_id,
                result=player_won,
                confirmed=False,
                status=MatchStatus.SUBMITTED,
                player_start_rating=submitter.rating,
                opponent_start_rating=opponent.rating,
                created_at=utcnow()
            )
            session.add(match)
            await session.flush()

            session.add(PendingMatch(
                correlation_id=correlation_id,
                match_id=match.id,
                user_id=opponent_id,
                submitter_id=submitter_id
            ))
            try:
                await session.flush()
            except IntegrityError as e:
                raise AlreadyPending(submitter_id, opponent_id) from e

        self.logger.info(
            f"Match {match.id} submitted: user {submitter_id} vs {opponent_id} "
            f"(player_won={player_won}, correlation={correlation_id})"
        )
        return match

    # ------------------------------------------------------------------
    # Confirmation / dispute
    # ------------------------------------------------------------------

    async def confirm(self, correlation_id: int, confirmer_id: int) -> ConfirmationResult:
        """
        Confirm a pending match and apply the rating change.

        Ratings are computed from the snapshots stored at submission, never
        from the users' current ratings.

        Raises:
            NotFound: No pending match for this correlation id (or already resolved)
            Forbidden: Caller is not the recorded confirmer
        """
        pending = await self.get_pending(correlation_id)
        if pending is None:
            raise NotFound("pending match", correlation_id)

        async with self._pair_lock(pending.submitter_id, pending.user_id):
            result = await self.db.execute_with_retry(
                lambda: self._confirm(correlation_id, confirmer_id),
                operation="confirm"
            )

        self.logger.info(
            f"Match {result.match_id} confirmed by user {confirmer_id}: "
            f"{result.player_start_rating}->{result.player_end_rating}, "
            f"{result.opponent_start_rating}->{result.opponent_end_rating}"
        )
        return result

    async def _confirm(self, correlation_id: int, confirmer_id: int) -> ConfirmationResult:
        async with self.db.transaction() as session:
            pending = await self._claim_pending(session, correlation_id, confirmer_id)
            match = await session.get(Match, pending.match_id)
            if match is None:
                raise NotFound("match", pending.match_id)
            return await self._apply_confirmation(session, match, (MatchStatus.SUBMITTED,))

    async def dispute(self, correlation_id: int, disputer_id: int) -> Match:
        """
        Reject a pending match and leave it for an admin to resolve.

        The PendingMatch is removed and the Match is kept unconfirmed with
        status DISPUTED. No rating changes.

        Raises:
            NotFound: No pending match for this correlation id
            Forbidden: Caller is not the recorded confirmer
        """
        pending = await self.get_pending(correlation_id)
        if pending is None:
            raise NotFound("pending match", correlation_id)

        async with self._pair_lock(pending.submitter_id, pending.user_id):
            match = await self.db.execute_with_retry(
                lambda: self._dispute(correlation_id, disputer_id),
                operation="dispute"
            )

        self.logger.info(f"Match {match.id} disputed by user {disputer_id}")
        return match

    async def _dispute(self, correlation_id: int, disputer_id: int) -> Match:
        async with self.db.transaction() as session:
            pending = await self._claim_pending(session, correlation_id, disputer_id)
            await session.execute(
                update(Match)
                .where(Match.id == pending.match_id, Match.status == MatchStatus.SUBMITTED)
                .values(status=MatchStatus.DISPUTED, resolved_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            match = await session.get(Match, pending.match_id, populate_existing=True)
            return match

    async def _claim_pending(self, session: AsyncSession, correlation_id: int,
                             responder_id: int) -> PendingMatch:
        """Check the responder and delete the PendingMatch; losing a race means NotFound."""
        pending = await session.get(PendingMatch, correlation_id)
        if pending is None:
            raise NotFound("pending match", correlation_id)
        if pending.user_id != responder_id:
            if pending.submitter_id == responder_id:
                raise Forbidden(responder_id, "You cannot respond to your own submission.")
            raise Forbidden(responder_id, "Only the opponent can respond to this match.")

        claimed = await session.execute(
            delete(PendingMatch)
            .where(PendingMatch.correlation_id == correlation_id)
            .execution_options(synchronize_session=False)
        )
        if claimed.rowcount == 0:
            raise NotFound("pending match", correlation_id)
        return pending

    async def _apply_confirmation(self, session: AsyncSession, match: Match,
                                  allowed: Tuple[MatchStatus, ...]) -> ConfirmationResult:
        player_end, opponent_end = EloCalculator.compute_update(
            match.player_start_rating,
            match.opponent_start_rating,
            match.result,
            k_factor=self.config.K_FACTOR,
            bonus=self.config.BONUS_POINTS
        )

        updated = await session.execute(
            update(Match)
            .where(Match.id == match.id, Match.status.in_(allowed))
            .values(
                confirmed=True,
                status=MatchStatus.CONFIRMED,
                player_end_rating=player_end,
                opponent_end_rating=opponent_end,
                resolved_at=utcnow()
            )
            .execution_options(synchronize_session=False)
        )
        if updated.rowcount == 0:
            raise InvalidMatchState(match.id, match.status.value, "submitted")

        await self._shift_rating(session, match.player_id, player_end - match.player_start_rating)
        await self._shift_rating(session, match.opponent_id, opponent_end - match.opponent_start_rating)

        return ConfirmationResult(
            match_id=match.id,
            player_id=match.player_id,
            opponent_id=match.opponent_id,
            player_won=match.result,
            player_start_rating=match.player_start_rating,
            player_end_rating=player_end,
            opponent_start_rating=match.opponent_start_rating,
            opponent_end_rating=opponent_end
        )

    async def _shift_rating(self, session: AsyncSession, user_id: int, delta: int) -> None:
        await session.execute(
            update(User)
            .where(User.id == user_id)
            .values(rating=User.rating + delta)
            .execution_options(synchronize_session=False)
        )

    # ------------------------------------------------------------------
    # Cancellation and admin corrections
    # ------------------------------------------------------------------

    async def cancel(self, correlation_id: Optional[int] = None, match_id: Optional[int] = None,
                     user_id: Optional[int] = None, requester_id: Optional[int] = None) -> List[int]:
        """
        Delete by any matching key: remove every PendingMatch whose
        correlation id, match id or expected confirmer matches one of the
        supplied values (inclusive OR), and mark those matches CANCELLED.

        Ratings are untouched since nothing was applied yet.

        Args:
            correlation_id: Originating interaction/message id
            match_id: Match id
            user_id: Expected confirmer; removes everything awaiting that user
            requester_id: When set, every matched row must involve this user

        Returns:
            Ids of the cancelled matches

        Raises:
            NotFound: No pending match matched any key
            Forbidden: requester_id is not a participant of a matched row
        """
        if correlation_id is None and match_id is None and user_id is None:
            raise ValueError("cancel() needs at least one of correlation_id, match_id or user_id")

        cancelled = await self.db.execute_with_retry(
            lambda: self._cancel(correlation_id, match_id, user_id, requester_id),
            operation="cancel"
        )
        self.logger.info(
            f"Cancelled matches {cancelled} (correlation={correlation_id}, match={match_id}, "
            f"user={user_id}, requester={requester_id})"
        )
        return cancelled

    async def _cancel(self, correlation_id: Optional[int], match_id: Optional[int],
                      user_id: Optional[int], requester_id: Optional[int]) -> List[int]:
        keys = []
        if correlation_id is not None:
            keys.append(PendingMatch.correlation_id == correlation_id)
        if match_id is not None:
            keys.append(PendingMatch.match_id == match_id)
        if user_id is not None:
            keys.append(PendingMatch.user_id == user_id)

        async with self.db.transaction() as session:
            rows = (await session.execute(select(PendingMatch).where(or_(*keys)))).scalars().all()
            if not rows:
                raise NotFound("pending match", correlation_id or match_id or user_id)

            if requester_id is not None:
                for row in rows:
                    if requester_id not in (row.submitter_id, row.user_id):
                        raise Forbidden(requester_id, "You can only withdraw your own matches.")

            cancelled = []
            for row in rows:
                removed = await session.execute(
                    delete(PendingMatch)
                    .where(PendingMatch.correlation_id == row.correlation_id)
                    .execution_options(synchronize_session=False)
                )
                if removed.rowcount:
                    cancelled.append(row.match_id)

            if not cancelled:
                raise NotFound("pending match", correlation_id or match_id or user_id)

            await session.execute(
                update(Match)
                .where(Match.id.in_(cancelled), Match.status == MatchStatus.SUBMITTED)
                .values(status=MatchStatus.CANCELLED, resolved_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            return cancelled

    async def nullify(self, match_id: int) -> Match:
        """
        Reverse a confirmed match (admin correction).

        Both users get the inverse of the delta they received, bonus
        included. The snapshots stay on the row for audit.

        Raises:
            NotFound: Unknown match id
            InvalidMatchState: Match is not confirmed
        """
        match = await self.db.execute_with_retry(lambda: self._nullify(match_id), operation="nullify")
        self.logger.warning(
            f"Match {match_id} nullified: user {match.player_id} {-match.player_delta:+d}, "
            f"user {match.opponent_id} {-match.opponent_delta:+d}"
        )
        return match

    async def _nullify(self, match_id: int) -> Match:
        async with self.db.transaction() as session:
            match = await session.get(Match, match_id)
            if match is None:
                raise NotFound("match", match_id)
            if not match.confirmed or match.status != MatchStatus.CONFIRMED:
                raise InvalidMatchState(match_id, match.status.value, "confirmed")

            updated = await session.execute(
                update(Match)
                .where(Match.id == match_id, Match.confirmed.is_(True))
                .values(confirmed=False, status=MatchStatus.NULLIFIED, resolved_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            if updated.rowcount == 0:
                raise InvalidMatchState(match_id, match.status.value, "confirmed")

            await self._shift_rating(session, match.player_id, -match.player_delta)
            await self._shift_rating(session, match.opponent_id, -match.opponent_delta)

            return await session.get(Match, match_id, populate_existing=True)

    async def admin_confirm(self, match_id: int) -> ConfirmationResult:
        """
        Confirm a SUBMITTED or DISPUTED match on the opponent's behalf.

        Raises:
            NotFound: Unknown match id
            InvalidMatchState: Match is already confirmed, cancelled or nullified
        """
        result = await self.db.execute_with_retry(lambda: self._admin_confirm(match_id), operation="admin_confirm")
        self.logger.warning(
            f"Match {match_id} force-confirmed: "
            f"{result.player_start_rating}->{result.player_end_rating}, "
            f"{result.opponent_start_rating}->{result.opponent_end_rating}"
        )
        return result

    async def _admin_confirm(self, match_id: int) -> ConfirmationResult:
        async with self.db.transaction() as session:
            match = await session.get(Match, match_id)
            if match is None:
                raise NotFound("match", match_id)
            if match.status not in (MatchStatus.SUBMITTED, MatchStatus.DISPUTED):
                raise InvalidMatchState(match_id, match.status.value, "submitted or disputed")

            await session.execute(
                delete(PendingMatch)
                .where(PendingMatch.match_id == match_id)
                .execution_options(synchronize_session=False)
            )
            return await self._apply_confirmation(
                session, match, (MatchStatus.SUBMITTED, MatchStatus.DISPUTED)
            )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_match(self, match_id: int) -> Optional[Match]:
        async with self.db.get_session() as session:
            result = await session.execute(
                select(Match)
                .options(selectinload(Match.player), selectinload(Match.opponent))
                .where(Match.id == match_id)
            )
            return result.scalar_one_or_none()

    async def get_pending(self, correlation_id: int) -> Optional[PendingMatch]:
        async with self.db.get_session() as session:
            return await session.get(PendingMatch, correlation_id)

    async def get_pending_for_user(self, user_id: int) -> List[PendingMatch]:
        """Pending matches waiting for this user's confirmation, oldest first"""
        async with self.db.get_session() as session:
            result = await session.execute(
                select(PendingMatch)
                .options(
                    selectinload(PendingMatch.match).selectinload(Match.player),
                    selectinload(PendingMatch.match).selectinload(Match.opponent)
                )
                .where(PendingMatch.user_id == user_id)
                .order_by(PendingMatch.created_at, PendingMatch.correlation_id)
            )
            return list(result.scalars().all())

    async def get_matches_since(self, user_id: int, since: datetime) -> List[Match]:
        """Every match this user played (any status) created at or after ``since``"""
        async with self.db.get_session() as session:
            result = await session.execute(
                select(Match)
                .options(selectinload(Match.player), selectinload(Match.opponent))
                .where(
                    or_(Match.player_id == user_id, Match.opponent_id == user_id),
                    Match.created_at >= since
                )
                .order_by(Match.created_at, Match.id)
            )
            return list(result.scalars().all())
