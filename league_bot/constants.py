"""
Bot-wide constants for the league Discord bot.

Display limits and UI values that are not user-configurable.
"""

class RatingConstants:
    """Constants related to stored rating fields."""

    # Column defaults for the (unused) Glicko fields
    DEFAULT_RATING = 1500
    DEFAULT_DEVIATION = 350
    DEFAULT_VOLATILITY = 0.06

class DisplayConstants:
    """Limits for embeds and listings."""

    # Discord embeds cap description length at 4096 characters
    MAX_TOP_PLAYERS = 50
    MAX_NEARBY_PLAYERS = 5
    MAX_PENDING_LISTED = 10

    # Seconds a confirmation view keeps its buttons live; the pending match itself never expires
    CONFIRMATION_VIEW_TIMEOUT = 24 * 60 * 60

class UIConstants:
    """Constants for Discord UI elements."""

    # Embed colors
    DEFAULT_EMBED_COLOR = 0x3498db  # Blue
    GOLD_RANK_COLOR = 0xffd700     # Gold for #1 ranked players
    ERROR_COLOR = 0xe74c3c         # Red for errors
    SUCCESS_COLOR = 0x2ecc71       # Green for success
    WARNING_COLOR = 0xf39c12       # Orange for disputes

    TROPHY_EMOJI = "🏆"
    SWORDS_EMOJI = "⚔️"
