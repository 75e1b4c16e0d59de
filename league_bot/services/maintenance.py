"""
Weekly Maintenance Service

Runs the weekly jobs against the league at each weekly boundary
(MAINTENANCE_WEEKDAY / MAINTENANCE_HOUR in MAINTENANCE_TIMEZONE):

1. Challenge reset - zero every user's weekly submitted-match counter
2. Inactivity decay - competing users who have played before but had no
   match in the past week lose DECAY_AMOUNT
3. Auto-quit - track consecutive inactive weeks and retire users past AUTO_QUIT_WEEKS

Each step is a bounded bulk UPDATE committed in its own transaction together
with a MaintenanceRun marker for (boundary, step). A step whose marker exists
is skipped, so re-running a boundary is harmless. A failing step is logged
and reported without stopping the steps after it. Boundaries missed while
the bot was offline are run in order on the next check.
"""

from dataclasses import dataclass, field
from datetime import datetime, time, timedelta
from typing import Awaitable, Callable, List, Optional

import pytz
from sqlalchemy import select, update, func, and_, or_, case
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from league_bot.database.models import MaintenanceRun, Match, User
from league_bot.services.base import BaseService
from league_bot.utils.elo import EloCalculator
from league_bot.utils.logger import setup_logger

logger = setup_logger(__name__)

STEP_CHALLENGE_RESET = "challenge_reset"
STEP_INACTIVITY_DECAY = "inactivity_decay"
STEP_AUTO_QUIT = "auto_quit"
STEPS = (STEP_CHALLENGE_RESET, STEP_INACTIVITY_DECAY, STEP_AUTO_QUIT)


@dataclass
class StepOutcome:
    """Result of one maintenance step: applied, skipped, disabled or failed."""
    step: str
    status: str
    affected: int = 0
    error: Optional[str] = None


@dataclass
class MaintenanceReport:
    boundary: datetime
    steps: List[StepOutcome] = field(default_factory=list)

    def outcome(self, step: str) -> Optional[StepOutcome]:
        return next((s for s in self.steps if s.step == step), None)

    @property
    def failed(self) -> bool:
        return any(s.status == "failed" for s in self.steps)


class WeeklyMaintenanceService(BaseService):
    """Service for the weekly challenge reset, inactivity decay and auto-quit."""

    def current_boundary(self, now: Optional[datetime] = None) -> datetime:
        """
        Most recent weekly boundary at or before ``now``.

        Args:
            now: Aware datetime, or naive UTC (defaults to the current time)

        Returns:
            Naive UTC datetime, comparable with the stored timestamps
        """
        tz = pytz.timezone(self.config.MAINTENANCE_TIMEZONE)
        if now is None:
            now = datetime.now(pytz.utc)
        elif now.tzinfo is None:
            now = pytz.utc.localize(now)
        local_now = now.astimezone(tz)

        hour = time(self.config.MAINTENANCE_HOUR)
        days_back = (local_now.weekday() - self.config.MAINTENANCE_WEEKDAY) % 7
        boundary_date = local_now.date() - timedelta(days=days_back)
        boundary = tz.localize(datetime.combine(boundary_date, hour))
        if boundary > local_now:
            boundary = tz.localize(datetime.combine(boundary_date - timedelta(days=7), hour))

        return boundary.astimezone(pytz.utc).replace(tzinfo=None)

    def next_boundary(self, boundary: datetime) -> datetime:
        """Boundary one week after ``boundary``, following DST shifts in the local zone"""
        return self.current_boundary(boundary + timedelta(days=7, hours=12))

    async def run_if_due(self, now: Optional[datetime] = None) -> Optional[MaintenanceReport]:
        """
        Run every boundary up to the current one that has not fully run yet.

        Boundaries are taken from the last one with a marker, so weeks the
        bot was offline for still reset, decay and count towards auto-quit.
        A league with no markers starts at the current boundary.

        Returns:
            Report for the current boundary, or None when nothing was due
        """
        boundary = self.current_boundary(now)
        if await self._completed_steps(boundary) >= len(STEPS):
            return None

        async with self.db.get_session() as session:
            last = await session.scalar(
                select(func.max(MaintenanceRun.boundary)).where(MaintenanceRun.boundary < boundary)
            )

        pending = []
        if last is not None:
            if await self._completed_steps(last) < len(STEPS):
                pending.append(last)
            missed = self.next_boundary(last)
            while missed < boundary:
                pending.append(missed)
                missed = self.next_boundary(missed)
        if pending:
            logger.warning(f"Catching up {len(pending)} missed maintenance boundaries before {boundary.isoformat()}")

        for missed in pending:
            await self.run_weekly(missed)
        return await self.run_weekly(boundary)

    async def _completed_steps(self, boundary: datetime) -> int:
        async with self.db.get_session() as session:
            return await session.scalar(
                select(func.count(MaintenanceRun.id)).where(
                    MaintenanceRun.boundary == boundary,
                    MaintenanceRun.step.in_(STEPS)
                )
            )

    async def run_weekly(self, boundary: Optional[datetime] = None) -> MaintenanceReport:
        """
        Run all three steps for ``boundary`` in order.

        Returns:
            MaintenanceReport with one StepOutcome per step
        """
        boundary = boundary or self.current_boundary()
        report = MaintenanceReport(boundary=boundary)
        logger.info(f"Weekly maintenance starting for boundary {boundary.isoformat()}")

        for step, run in (
            (STEP_CHALLENGE_RESET, self.reset_challenge_counts),
            (STEP_INACTIVITY_DECAY, self.apply_inactivity_decay),
            (STEP_AUTO_QUIT, self.apply_auto_quit),
        ):
            try:
                outcome = await run(boundary)
            except Exception as e:
                logger.error(f"Maintenance step {step} failed for {boundary.isoformat()}: {e}", exc_info=True)
                outcome = StepOutcome(step, "failed", error=str(e))
            report.steps.append(outcome)

        logger.info(
            "Weekly maintenance finished: "
            + ", ".join(f"{s.step}={s.status}({s.affected})" for s in report.steps)
        )
        return report

    async def reset_challenge_counts(self, boundary: datetime) -> StepOutcome:
        """Zero weekly_challenges for all users, competing or not"""
        async def reset(session: AsyncSession, boundary: datetime) -> int:
            result = await session.execute(
                update(User)
                .where(User.weekly_challenges != 0)
                .values(weekly_challenges=0)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount

        return await self._run_step(STEP_CHALLENGE_RESET, boundary, reset)

    async def apply_inactivity_decay(self, boundary: datetime) -> StepOutcome:
        """
        Subtract DECAY_AMOUNT from every inactive competing user (clamped at RATING_FLOOR if set).

        Only users with a positive rating and at least one match before
        ``boundary`` decay; players who joined and never played keep their rating.
        """
        amount = self.config.DECAY_AMOUNT
        floor = self.config.RATING_FLOOR

        async def decay(session: AsyncSession, boundary: datetime) -> int:
            conditions = [self._inactive(boundary), self._has_played(boundary), User.rating > 0]
            decayed = User.rating - amount
            if floor is not None:
                conditions.append(User.rating > floor)
                decayed = case((User.rating - amount < floor, floor), else_=User.rating - amount)

            result = await session.execute(
                update(User)
                .where(*conditions)
                .values(rating=decayed)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount

        return await self._run_step(
            STEP_INACTIVITY_DECAY, boundary, decay,
            enabled=self.config.DECAY_ENABLED and amount > 0
        )

    async def apply_auto_quit(self, boundary: datetime) -> StepOutcome:
        """
        Update inactivity streaks, then retire users inactive for AUTO_QUIT_WEEKS.

        Streaks are tracked even while auto-quit is disabled. With
        AUTO_QUIT_RESET_TO_AVERAGE, a retiring user rated above the average
        of competing users is brought down to that average.
        """
        async def auto_quit(session: AsyncSession, boundary: datetime) -> int:
            await session.execute(
                update(User)
                .where(self._inactive(boundary))
                .values(inactive_weeks=User.inactive_weeks + 1)
                .execution_options(synchronize_session=False)
            )
            await session.execute(
                update(User)
                .where(User.competing.is_(True), ~self._inactive(boundary))
                .values(inactive_weeks=0)
                .execution_options(synchronize_session=False)
            )

            if not self.config.AUTO_QUIT_ENABLED:
                return 0

            quitting = and_(User.competing.is_(True), User.inactive_weeks >= self.config.AUTO_QUIT_WEEKS)
            if self.config.AUTO_QUIT_RESET_TO_AVERAGE:
                average = await session.scalar(
                    select(func.avg(User.rating)).where(User.competing.is_(True))
                )
                if average is not None:
                    average = EloCalculator.round_half_away_from_zero(float(average))
                    await session.execute(
                        update(User)
                        .where(quitting, User.rating > average)
                        .values(rating=average)
                        .execution_options(synchronize_session=False)
                    )

            result = await session.execute(
                update(User)
                .where(quitting)
                .values(competing=False)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount

        return await self._run_step(STEP_AUTO_QUIT, boundary, auto_quit)

    def _inactive(self, boundary: datetime):
        """Competing users created before ``boundary`` with no match of any status in the week before it"""
        window_start = boundary - timedelta(days=7)
        played = (
            select(Match.id)
            .where(
                or_(Match.player_id == User.id, Match.opponent_id == User.id),
                Match.created_at >= window_start,
                Match.created_at < boundary
            )
            .exists()
        )
        return and_(User.competing.is_(True), User.created_at < boundary, ~played)

    @staticmethod
    def _has_played(boundary: datetime):
        """Users with a match of any status before ``boundary``"""
        return (
            select(Match.id)
            .where(
                or_(Match.player_id == User.id, Match.opponent_id == User.id),
                Match.created_at < boundary
            )
            .exists()
        )

    async def _run_step(self, step: str, boundary: datetime,
                        apply: Callable[[AsyncSession, datetime], Awaitable[int]],
                        enabled: bool = True) -> StepOutcome:
        try:
            outcome = await self.execute_with_retry(
                lambda: self._run_step_once(step, boundary, apply, enabled),
                operation=step
            )
        except IntegrityError:
            # Another runner recorded this boundary first
            outcome = StepOutcome(step, "skipped")

        if outcome.status == "skipped":
            logger.debug(f"Maintenance step {step} already ran for {boundary.isoformat()}")
        else:
            logger.info(f"Maintenance step {step} {outcome.status} for {boundary.isoformat()}: {outcome.affected} users")
        return outcome

    async def _run_step_once(self, step: str, boundary: datetime,
                             apply: Callable[[AsyncSession, datetime], Awaitable[int]],
                             enabled: bool) -> StepOutcome:
        async with self.get_session() as session:
            done = await session.scalar(
                select(MaintenanceRun.id).where(
                    MaintenanceRun.boundary == boundary,
                    MaintenanceRun.step == step
                )
            )
            if done is not None:
                return StepOutcome(step, "skipped")

            affected = await apply(session, boundary) if enabled else 0
            session.add(MaintenanceRun(boundary=boundary, step=step, affected=affected))

        return StepOutcome(step, "applied" if enabled else "disabled", affected)
