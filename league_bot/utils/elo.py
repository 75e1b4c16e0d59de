import math
from typing import Optional, Tuple
from league_bot.config import Config

class EloCalculator:
    """Handles Elo rating calculations for the league"""

    @staticmethod
    def calculate_expected_score(rating_a: int, rating_b: int) -> float:
        """
        Calculate the expected score for player A against player B

        Args:
            rating_a: Player A's current rating
            rating_b: Player B's current rating

        Returns:
            Expected score (0.0 to 1.0) for player A
        """
        return 1 / (1 + math.pow(10, (rating_b - rating_a) / 400))

    @staticmethod
    def round_half_away_from_zero(value: float) -> int:
        """Round to the nearest integer; halves go away from zero (2.5 -> 3, -2.5 -> -3)"""
        return int(math.copysign(math.floor(abs(value) + 0.5), value))

    @staticmethod
    def calculate_exchange(player_rating: int, opponent_rating: int,
                           player_won: bool, k_factor: Optional[int] = None) -> int:
        """
        Calculate the rating points the player gains (or loses) before any bonus

        The exchange is always computed from the winner's side and negated for
        the loser, so both participants move by the same amount and swapping
        the roles only flips the sign.

        Args:
            player_rating: Player's rating before the match
            opponent_rating: Opponent's rating before the match
            player_won: True if the player won
            k_factor: K-factor to scale the exchange (defaults to Config.K_FACTOR)

        Returns:
            Signed integer delta for the player; the opponent's is its negation
        """
        k = Config.K_FACTOR if k_factor is None else k_factor
        if player_won:
            winner_rating, loser_rating = player_rating, opponent_rating
        else:
            winner_rating, loser_rating = opponent_rating, player_rating

        expected = EloCalculator.calculate_expected_score(winner_rating, loser_rating)
        winner_gain = EloCalculator.round_half_away_from_zero(k * (1 - expected))
        return winner_gain if player_won else -winner_gain

    @staticmethod
    def compute_update(player_rating: int, opponent_rating: int, player_won: bool,
                       k_factor: Optional[int] = None,
                       bonus: Optional[int] = None) -> Tuple[int, int]:
        """
        Compute both participants' ratings after a match

        Pure and deterministic. The exchange is applied first, then the
        participation bonus is added to both sides regardless of outcome.

        Args:
            player_rating: Player's rating before the match
            opponent_rating: Opponent's rating before the match
            player_won: True if the player won
            k_factor: K-factor (defaults to Config.K_FACTOR)
            bonus: Points added to both players (defaults to Config.BONUS_POINTS)

        Returns:
            Tuple of (new_player_rating, new_opponent_rating)
        """
        bonus = Config.BONUS_POINTS if bonus is None else bonus
        exchange = EloCalculator.calculate_exchange(player_rating, opponent_rating, player_won, k_factor)
        return player_rating + exchange + bonus, opponent_rating - exchange + bonus

    @staticmethod
    def calculate_win_probability(rating_a: int, rating_b: int) -> float:
        """
        Calculate win probability for player A against player B

        Returns:
            Win probability as percentage (0.0 to 100.0)
        """
        expected_score = EloCalculator.calculate_expected_score(rating_a, rating_b)
        return expected_score * 100

    @staticmethod
    def format_rating_change(change: int) -> str:
        """Format a rating change for display, e.g. '+30' or '-20'"""
        if change > 0:
            return f"+{change}"
        return str(change)
