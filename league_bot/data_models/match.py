"""
Match lifecycle data models.

Immutable results handed from MatchOperations to the command surface.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class ConfirmationResult:
    """Ratings before and after a confirmed match."""
    match_id: int
    player_id: int
    opponent_id: int
    player_won: bool
    player_start_rating: int
    player_end_rating: int
    opponent_start_rating: int
    opponent_end_rating: int

    @property
    def player_delta(self) -> int:
        return self.player_end_rating - self.player_start_rating

    @property
    def opponent_delta(self) -> int:
        return self.opponent_end_rating - self.opponent_start_rating
