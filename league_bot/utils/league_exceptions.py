"""
Error taxonomy for the league with user-friendly messages.

Every lifecycle, registry and leaderboard operation raises one of these.
Only StoreUnavailable is ever retried; the rest are expected outcomes that
the command surface renders directly through ``user_message``.
"""

from typing import Optional


class LeagueError(Exception):
    """Base exception for league errors."""
    title = "League Error"

    def __init__(self, message: str, user_message: str = None):
        super().__init__(message)
        self.user_message = user_message or message


class NotRegistered(LeagueError):
    """Raised when a user (or their opponent) has no league record."""
    title = "Not Registered"

    def __init__(self, identity: int, is_self: bool = True):
        self.identity = identity
        self.is_self = is_self
        super().__init__(
            f"User {identity} is not registered",
            "❌ You are not registered in the league. Use `/register` to join!"
            if is_self else "❌ That player is not registered in the league."
        )


class AlreadyRegistered(LeagueError):
    """Raised when registering an external identity that already exists."""
    title = "Already Registered"

    def __init__(self, external_id: int):
        self.external_id = external_id
        super().__init__(
            f"External id {external_id} is already registered",
            "ℹ️ You are already registered in the league."
        )


class NotCompeting(LeagueError):
    """Raised when a participant is registered but not an active competitor."""
    title = "Not Competing"

    def __init__(self, user_id: int, is_self: bool = True):
        self.user_id = user_id
        self.is_self = is_self
        super().__init__(
            f"User {user_id} is not competing",
            "❌ You are not competing. Use `/compete` to rejoin the league."
            if is_self else "❌ That player is not currently competing."
        )


class AlreadyPending(LeagueError):
    """Raised when the ordered pair already has a match awaiting confirmation."""
    title = "Match Already Pending"

    def __init__(self, submitter_id: int, opponent_id: int, match_id: Optional[int] = None):
        self.submitter_id = submitter_id
        self.opponent_id = opponent_id
        self.match_id = match_id
        super().__init__(
            f"Pending match already exists for pair ({submitter_id}, {opponent_id})"
            + (f": match {match_id}" if match_id else ""),
            "❌ You already have a match against this player waiting for confirmation."
        )


class LimitExceeded(LeagueError):
    """Raised when the submitter (or their opponent) has played the weekly match cap."""
    title = "Weekly Limit Reached"

    def __init__(self, user_id: int, limit: int, is_self: bool = True):
        self.user_id = user_id
        self.limit = limit
        self.is_self = is_self
        super().__init__(
            f"User {user_id} reached the weekly limit of {limit} matches",
            f"❌ You have already played {limit}/{limit} matches this week."
            if is_self else f"❌ That player has already played {limit}/{limit} matches this week."
        )


class NotFound(LeagueError):
    """Raised when a match or pending confirmation does not exist (or was already resolved)."""
    title = "Not Found"

    def __init__(self, what: str, key):
        self.what = what
        self.key = key
        super().__init__(
            f"No {what} found for {key}",
            f"❌ That {what} no longer exists or has already been resolved."
        )


class Forbidden(LeagueError):
    """Raised when the caller is not allowed to act on a match."""
    title = "Not Allowed"

    def __init__(self, user_id: int, reason: str):
        self.user_id = user_id
        self.reason = reason
        super().__init__(f"User {user_id} forbidden: {reason}", f"❌ {reason}")


class InvalidMatchState(LeagueError):
    """Raised when a match is in the wrong state for an admin correction."""
    title = "Invalid Match State"

    def __init__(self, match_id: int, status: str, expected: str):
        self.match_id = match_id
        self.status = status
        super().__init__(
            f"Match {match_id} is {status}, expected {expected}",
            f"❌ Match #{match_id} is {status} and cannot be changed this way."
        )


class StoreUnavailable(LeagueError):
    """Raised when the database backend fails transiently."""
    title = "Database Unavailable"

    def __init__(self, operation: str, details: str = None):
        self.operation = operation
        super().__init__(
            f"Database error during {operation}: {details}",
            "❌ Database error occurred. Please try again later."
        )
