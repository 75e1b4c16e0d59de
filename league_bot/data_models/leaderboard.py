"""
Leaderboard data models.

Provides immutable data transfer objects for ranking queries.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class RankedPlayer:
    """Single leaderboard row; rank is dense over all users' ratings."""
    user_id: int
    external_id: int
    display_name: str
    rating: int
    rank: int
    competing: bool
    matches_played: int
