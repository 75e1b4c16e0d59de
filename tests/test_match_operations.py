"""
Match lifecycle tests: submit, confirm, dispute, cancel and admin corrections.
"""

import asyncio
from datetime import timedelta

import pytest

from league_bot.database.models import MatchStatus, utcnow
from league_bot.utils.elo import EloCalculator
from league_bot.utils.league_exceptions import (
    AlreadyPending, Forbidden, InvalidMatchState, LimitExceeded,
    NotCompeting, NotFound, NotRegistered
)


@pytest.fixture
async def pair(make_user):
    a = await make_user(1500, name="Alice")
    b = await make_user(1500, name="Bob")
    return a, b


# =============================================================================
# Submission
# =============================================================================

class TestSubmit:
    async def test_submit_records_snapshots_and_pending(self, match_ops, pair, fetch_user):
        a, b = pair
        match = await match_ops.submit(a.id, b.id, True, correlation_id=111)

        assert match.status == MatchStatus.SUBMITTED
        assert match.confirmed is False
        assert match.player_id == a.id and match.opponent_id == b.id
        assert match.player_start_rating == 1500
        assert match.opponent_start_rating == 1500
        assert match.player_end_rating is None
        assert match.opponent_end_rating is None

        pending = await match_ops.get_pending(111)
        assert pending.match_id == match.id
        assert pending.user_id == b.id
        assert pending.submitter_id == a.id

        assert (await fetch_user(a.id)).weekly_challenges == 1
        assert (await fetch_user(b.id)).weekly_challenges == 1

    async def test_submit_does_not_change_ratings(self, match_ops, pair, fetch_user):
        a, b = pair
        await match_ops.submit(a.id, b.id, True, correlation_id=1)
        assert (await fetch_user(a.id)).rating == 1500
        assert (await fetch_user(b.id)).rating == 1500

    async def test_cannot_play_yourself(self, match_ops, pair):
        a, _ = pair
        with pytest.raises(Forbidden):
            await match_ops.submit(a.id, a.id, True, correlation_id=1)

    async def test_unknown_opponent(self, match_ops, pair):
        a, _ = pair
        with pytest.raises(NotRegistered) as exc_info:
            await match_ops.submit(a.id, 9999, True, correlation_id=1)
        assert exc_info.value.is_self is False

    async def test_unknown_submitter(self, match_ops, pair):
        _, b = pair
        with pytest.raises(NotRegistered) as exc_info:
            await match_ops.submit(9999, b.id, True, correlation_id=1)
        assert exc_info.value.is_self is True

    async def test_submitter_not_competing(self, match_ops, make_user, pair):
        _, b = pair
        retired = await make_user(1500, competing=False)
        with pytest.raises(NotCompeting):
            await match_ops.submit(retired.id, b.id, True, correlation_id=1)

    async def test_opponent_not_competing(self, match_ops, make_user, pair):
        a, _ = pair
        retired = await make_user(1500, competing=False)
        with pytest.raises(NotCompeting) as exc_info:
            await match_ops.submit(a.id, retired.id, True, correlation_id=1)
        assert exc_info.value.is_self is False

    async def test_second_submission_for_same_pair_fails(self, match_ops, pair, fetch_user):
        a, b = pair
        first = await match_ops.submit(a.id, b.id, True, correlation_id=1)
        with pytest.raises(AlreadyPending) as exc_info:
            await match_ops.submit(a.id, b.id, False, correlation_id=2)

        assert exc_info.value.match_id == first.id
        assert await match_ops.get_pending(2) is None
        # The rejected submission is not counted
        assert (await fetch_user(a.id)).weekly_challenges == 1

    async def test_reverse_pair_is_independent(self, match_ops, pair):
        a, b = pair
        await match_ops.submit(a.id, b.id, True, correlation_id=1)
        reverse = await match_ops.submit(b.id, a.id, True, correlation_id=2)
        assert reverse.player_id == b.id

    async def test_concurrent_submissions_create_one_match(self, match_ops, pair):
        a, b = pair
        results = await asyncio.gather(
            match_ops.submit(a.id, b.id, True, correlation_id=1),
            match_ops.submit(a.id, b.id, True, correlation_id=2),
            return_exceptions=True
        )

        created = [r for r in results if not isinstance(r, Exception)]
        rejected = [r for r in results if isinstance(r, AlreadyPending)]
        assert len(created) == 1
        assert len(rejected) == 1
        assert len(await match_ops.get_pending_for_user(b.id)) == 1

    async def test_weekly_limit(self, match_ops, config, pair, fetch_user):
        a, b = pair
        for correlation_id in range(1, config.WEEKLY_CHALLENGE_LIMIT + 1):
            await match_ops.submit(a.id, b.id, True, correlation_id=correlation_id)
            await match_ops.cancel(correlation_id=correlation_id)

        with pytest.raises(LimitExceeded) as exc_info:
            await match_ops.submit(a.id, b.id, True, correlation_id=99)

        assert exc_info.value.limit == config.WEEKLY_CHALLENGE_LIMIT
        assert exc_info.value.is_self is True
        assert (await fetch_user(a.id)).weekly_challenges == config.WEEKLY_CHALLENGE_LIMIT
        assert await match_ops.get_pending(99) is None

    async def test_weekly_limit_counts_both_players(self, match_ops, config, make_user, fetch_user):
        busy = await make_user(1500)
        opponents = [await make_user(1500) for _ in range(config.WEEKLY_CHALLENGE_LIMIT - 1)]
        for i, opponent in enumerate(opponents):
            await match_ops.submit(opponent.id, busy.id, True, correlation_id=i + 1)

        assert (await fetch_user(busy.id)).weekly_challenges == config.WEEKLY_CHALLENGE_LIMIT - 1
        await match_ops.submit(busy.id, opponents[0].id, True, correlation_id=100)
        assert (await fetch_user(busy.id)).weekly_challenges == config.WEEKLY_CHALLENGE_LIMIT

    async def test_opponent_at_weekly_limit_is_refused(self, match_ops, config, make_user, fetch_user):
        busy = await make_user(1500)
        opponents = [await make_user(1500) for _ in range(config.WEEKLY_CHALLENGE_LIMIT)]
        for i, opponent in enumerate(opponents):
            await match_ops.submit(opponent.id, busy.id, True, correlation_id=i + 1)

        latecomer = await make_user(1500)
        with pytest.raises(LimitExceeded) as exc_info:
            await match_ops.submit(latecomer.id, busy.id, True, correlation_id=100)

        assert exc_info.value.user_id == busy.id
        assert exc_info.value.is_self is False
        assert "That player" in exc_info.value.user_message
        # Nothing recorded and the submitter's count was rolled back
        assert await match_ops.get_pending(100) is None
        assert (await fetch_user(latecomer.id)).weekly_challenges == 0
        assert await match_ops.get_matches_since(latecomer.id, utcnow() - timedelta(days=1)) == []


# =============================================================================
# Confirmation and dispute
# =============================================================================

class TestConfirm:
    async def test_confirm_applies_rating_change(self, match_ops, pair, fetch_user):
        a, b = pair
        match = await match_ops.submit(a.id, b.id, True, correlation_id=1)
        result = await match_ops.confirm(1, b.id)

        assert result.match_id == match.id
        assert (result.player_end_rating, result.opponent_end_rating) == (1530, 1480)
        assert result.player_delta == 30
        assert result.opponent_delta == -20

        assert (await fetch_user(a.id)).rating == 1530
        assert (await fetch_user(b.id)).rating == 1480

        stored = await match_ops.get_match(match.id)
        assert stored.confirmed is True
        assert stored.status == MatchStatus.CONFIRMED
        assert stored.player_end_rating == 1530
        assert stored.opponent_end_rating == 1480
        assert stored.resolved_at is not None
        assert await match_ops.get_pending(1) is None

    async def test_confirm_uses_submission_snapshots(self, match_ops, pair, set_rating, fetch_user):
        a, b = pair
        await set_rating(a.id, 1600)
        await match_ops.submit(a.id, b.id, False, correlation_id=1)

        # Ratings drift between submission and confirmation
        await set_rating(a.id, 1575)
        await set_rating(b.id, 1510)

        result = await match_ops.confirm(1, b.id)
        expected = EloCalculator.compute_update(1600, 1500, False, k_factor=50, bonus=5)
        assert (result.player_end_rating, result.opponent_end_rating) == expected

        # Current ratings move by the same delta
        assert (await fetch_user(a.id)).rating == 1575 + result.player_delta
        assert (await fetch_user(b.id)).rating == 1510 + result.opponent_delta

    async def test_double_confirm(self, match_ops, pair, fetch_user):
        a, b = pair
        await match_ops.submit(a.id, b.id, True, correlation_id=1)

        results = await asyncio.gather(
            match_ops.confirm(1, b.id),
            match_ops.confirm(1, b.id),
            return_exceptions=True
        )
        confirmed = [r for r in results if not isinstance(r, Exception)]
        missing = [r for r in results if isinstance(r, NotFound)]
        assert len(confirmed) == 1
        assert len(missing) == 1

        assert (await fetch_user(a.id)).rating == 1530
        assert (await fetch_user(b.id)).rating == 1480

    async def test_confirm_after_confirm_is_not_found(self, match_ops, pair):
        a, b = pair
        await match_ops.submit(a.id, b.id, True, correlation_id=1)
        await match_ops.confirm(1, b.id)
        with pytest.raises(NotFound):
            await match_ops.confirm(1, b.id)

    async def test_wrong_confirmer(self, match_ops, make_user, pair, fetch_user):
        a, b = pair
        stranger = await make_user(1500)
        match = await match_ops.submit(a.id, b.id, True, correlation_id=1)

        with pytest.raises(Forbidden):
            await match_ops.confirm(1, stranger.id)

        assert (await match_ops.get_pending(1)).match_id == match.id
        assert (await match_ops.get_match(match.id)).status == MatchStatus.SUBMITTED
        assert (await fetch_user(a.id)).rating == 1500
        assert (await fetch_user(b.id)).rating == 1500

    async def test_submitter_cannot_confirm_own_match(self, match_ops, pair):
        a, b = pair
        await match_ops.submit(a.id, b.id, True, correlation_id=1)
        with pytest.raises(Forbidden) as exc_info:
            await match_ops.confirm(1, a.id)
        assert "own submission" in exc_info.value.user_message

    async def test_confirm_unknown_correlation(self, match_ops, pair):
        _, b = pair
        with pytest.raises(NotFound):
            await match_ops.confirm(424242, b.id)

    async def test_confirm_frees_the_pair(self, match_ops, pair):
        a, b = pair
        await match_ops.submit(a.id, b.id, True, correlation_id=1)
        await match_ops.confirm(1, b.id)
        rematch = await match_ops.submit(a.id, b.id, False, correlation_id=2)
        assert rematch.player_start_rating == 1530


class TestDispute:
    async def test_dispute_keeps_ratings(self, match_ops, pair, fetch_user):
        a, b = pair
        match = await match_ops.submit(a.id, b.id, True, correlation_id=1)
        disputed = await match_ops.dispute(1, b.id)

        assert disputed.id == match.id
        assert disputed.status == MatchStatus.DISPUTED
        assert disputed.confirmed is False
        assert disputed.player_end_rating is None
        assert await match_ops.get_pending(1) is None
        assert (await fetch_user(a.id)).rating == 1500
        assert (await fetch_user(b.id)).rating == 1500

    async def test_confirm_after_dispute(self, match_ops, pair):
        a, b = pair
        await match_ops.submit(a.id, b.id, True, correlation_id=1)
        await match_ops.dispute(1, b.id)
        with pytest.raises(NotFound):
            await match_ops.confirm(1, b.id)

    async def test_wrong_disputer(self, match_ops, make_user, pair):
        a, b = pair
        stranger = await make_user(1500)
        await match_ops.submit(a.id, b.id, True, correlation_id=1)
        with pytest.raises(Forbidden):
            await match_ops.dispute(1, stranger.id)
        assert await match_ops.get_pending(1) is not None


# =============================================================================
# Cancellation
# =============================================================================

class TestCancel:
    async def test_cancel_by_correlation_id(self, match_ops, pair):
        a, b = pair
        match = await match_ops.submit(a.id, b.id, True, correlation_id=1)
        assert await match_ops.cancel(correlation_id=1) == [match.id]
        assert await match_ops.get_pending(1) is None
        assert (await match_ops.get_match(match.id)).status == MatchStatus.CANCELLED

    async def test_cancel_by_match_id(self, match_ops, pair):
        a, b = pair
        match = await match_ops.submit(a.id, b.id, True, correlation_id=1)
        assert await match_ops.cancel(match_id=match.id) == [match.id]
        assert await match_ops.get_pending(1) is None

    async def test_cancel_by_user_removes_everything_awaiting_them(self, match_ops, make_user, pair):
        a, b = pair
        c = await make_user(1500)
        first = await match_ops.submit(a.id, c.id, True, correlation_id=1)
        second = await match_ops.submit(b.id, c.id, False, correlation_id=2)
        untouched = await match_ops.submit(c.id, a.id, True, correlation_id=3)

        cancelled = await match_ops.cancel(user_id=c.id)

        assert sorted(cancelled) == sorted([first.id, second.id])
        assert await match_ops.get_pending_for_user(c.id) == []
        assert (await match_ops.get_pending(3)).match_id == untouched.id

    async def test_cancel_matches_any_key(self, match_ops, make_user, pair):
        a, b = pair
        c = await make_user(1500)
        first = await match_ops.submit(a.id, b.id, True, correlation_id=1)
        second = await match_ops.submit(a.id, c.id, True, correlation_id=2)

        cancelled = await match_ops.cancel(correlation_id=1, match_id=second.id)
        assert sorted(cancelled) == sorted([first.id, second.id])

    async def test_cancel_does_not_touch_ratings(self, match_ops, pair, fetch_user):
        a, b = pair
        await match_ops.submit(a.id, b.id, True, correlation_id=1)
        await match_ops.cancel(correlation_id=1)
        assert (await fetch_user(a.id)).rating == 1500
        assert (await fetch_user(b.id)).rating == 1500

    async def test_cancel_nothing_matches(self, match_ops, pair):
        with pytest.raises(NotFound):
            await match_ops.cancel(correlation_id=5)

    async def test_cancel_needs_a_key(self, match_ops):
        with pytest.raises(ValueError):
            await match_ops.cancel()

    async def test_withdraw_by_participant(self, match_ops, pair):
        a, b = pair
        match = await match_ops.submit(a.id, b.id, True, correlation_id=1)
        assert await match_ops.cancel(match_id=match.id, requester_id=a.id) == [match.id]

    async def test_withdraw_by_outsider_is_forbidden(self, match_ops, make_user, pair):
        a, b = pair
        stranger = await make_user(1500)
        match = await match_ops.submit(a.id, b.id, True, correlation_id=1)
        with pytest.raises(Forbidden):
            await match_ops.cancel(match_id=match.id, requester_id=stranger.id)
        assert await match_ops.get_pending(1) is not None

    async def test_cancelled_match_cannot_be_confirmed(self, match_ops, pair):
        a, b = pair
        await match_ops.submit(a.id, b.id, True, correlation_id=1)
        await match_ops.cancel(correlation_id=1)
        with pytest.raises(NotFound):
            await match_ops.confirm(1, b.id)


# =============================================================================
# Admin corrections
# =============================================================================

class TestAdminCorrections:
    async def test_nullify_reverses_both_deltas(self, match_ops, pair, fetch_user):
        a, b = pair
        match = await match_ops.submit(a.id, b.id, True, correlation_id=1)
        await match_ops.confirm(1, b.id)

        nullified = await match_ops.nullify(match.id)

        assert nullified.status == MatchStatus.NULLIFIED
        assert nullified.confirmed is False
        # Snapshots stay for the audit trail
        assert nullified.player_end_rating == 1530
        assert nullified.opponent_end_rating == 1480
        assert (await fetch_user(a.id)).rating == 1500
        assert (await fetch_user(b.id)).rating == 1500

    async def test_nullify_keeps_later_changes(self, match_ops, pair, set_rating, fetch_user):
        a, b = pair
        match = await match_ops.submit(a.id, b.id, True, correlation_id=1)
        await match_ops.confirm(1, b.id)
        await set_rating(a.id, 1510)

        await match_ops.nullify(match.id)
        assert (await fetch_user(a.id)).rating == 1480

    async def test_nullify_twice(self, match_ops, pair):
        a, b = pair
        match = await match_ops.submit(a.id, b.id, True, correlation_id=1)
        await match_ops.confirm(1, b.id)
        await match_ops.nullify(match.id)
        with pytest.raises(InvalidMatchState):
            await match_ops.nullify(match.id)

    async def test_nullify_unconfirmed(self, match_ops, pair):
        a, b = pair
        match = await match_ops.submit(a.id, b.id, True, correlation_id=1)
        with pytest.raises(InvalidMatchState):
            await match_ops.nullify(match.id)

    async def test_nullify_unknown(self, match_ops):
        with pytest.raises(NotFound):
            await match_ops.nullify(12345)

    async def test_admin_confirm_disputed_match(self, match_ops, pair, fetch_user):
        a, b = pair
        match = await match_ops.submit(a.id, b.id, False, correlation_id=1)
        await match_ops.dispute(1, b.id)

        result = await match_ops.admin_confirm(match.id)

        assert (result.player_end_rating, result.opponent_end_rating) == (1480, 1530)
        assert (await match_ops.get_match(match.id)).status == MatchStatus.CONFIRMED
        assert (await fetch_user(a.id)).rating == 1480
        assert (await fetch_user(b.id)).rating == 1530

    async def test_admin_confirm_submitted_match_clears_pending(self, match_ops, pair):
        a, b = pair
        match = await match_ops.submit(a.id, b.id, True, correlation_id=1)
        await match_ops.admin_confirm(match.id)
        assert await match_ops.get_pending(1) is None
        with pytest.raises(NotFound):
            await match_ops.confirm(1, b.id)

    async def test_admin_confirm_confirmed_match(self, match_ops, pair):
        a, b = pair
        match = await match_ops.submit(a.id, b.id, True, correlation_id=1)
        await match_ops.confirm(1, b.id)
        with pytest.raises(InvalidMatchState):
            await match_ops.admin_confirm(match.id)


# =============================================================================
# Queries
# =============================================================================

class TestQueries:
    async def test_pending_for_user_loads_players(self, match_ops, make_user, pair):
        a, b = pair
        c = await make_user(1500, name="Carol")
        await match_ops.submit(a.id, c.id, True, correlation_id=1)
        await match_ops.submit(b.id, c.id, True, correlation_id=2)

        pendings = await match_ops.get_pending_for_user(c.id)
        assert [p.correlation_id for p in pendings] == [1, 2]
        assert pendings[0].match.player.display_name == "Alice"
        assert pendings[1].match.opponent.display_name == "Carol"

    async def test_matches_since(self, match_ops, pair, make_user):
        a, b = pair
        c = await make_user(1500)
        since = utcnow() - timedelta(seconds=1)
        first = await match_ops.submit(a.id, b.id, True, correlation_id=1)
        second = await match_ops.submit(c.id, a.id, False, correlation_id=2)
        await match_ops.submit(b.id, c.id, True, correlation_id=3)

        matches = await match_ops.get_matches_since(a.id, since)
        assert [m.id for m in matches] == [first.id, second.id]
        assert await match_ops.get_matches_since(a.id, utcnow() + timedelta(minutes=1)) == []
