"""
Centralized error embeds for the league bot.

Every LeagueError category gets its own title so players can tell a
duplicate submission from a weekly limit or a wrong confirmer at a glance.
"""

import discord

from league_bot.constants import UIConstants
from league_bot.utils.league_exceptions import LeagueError, StoreUnavailable
from league_bot.utils.logger import setup_logger

logger = setup_logger(__name__)


class ErrorEmbeds:
    """Centralized error embed factory for consistent error handling."""

    @staticmethod
    def from_league_error(error: LeagueError) -> discord.Embed:
        """Create embed for an expected league outcome."""
        color = discord.Color(UIConstants.WARNING_COLOR)
        if isinstance(error, StoreUnavailable):
            color = discord.Color(UIConstants.ERROR_COLOR)
        return discord.Embed(
            title=error.title,
            description=error.user_message,
            color=color
        )

    @staticmethod
    def command_error(error: str) -> discord.Embed:
        """Create embed for general command errors."""
        return discord.Embed(
            title="Command Error",
            description=f"{error}\n\nPlease try again or contact an administrator.",
            color=discord.Color(UIConstants.ERROR_COLOR)
        )

    @staticmethod
    def unexpected_error() -> discord.Embed:
        """Create embed for failures that must not leak internal detail."""
        return discord.Embed(
            title="Something Went Wrong",
            description="An unexpected error occurred. The administrators have been notified.",
            color=discord.Color(UIConstants.ERROR_COLOR)
        )

    @staticmethod
    def invalid_input(message: str) -> discord.Embed:
        """Create embed for invalid user input."""
        return discord.Embed(
            title="Invalid Input",
            description=message,
            color=discord.Color(UIConstants.ERROR_COLOR)
        )

    @staticmethod
    def permission_denied() -> discord.Embed:
        """Create embed for permission errors."""
        return discord.Embed(
            title="Administrative Privileges Required",
            description="This command is restricted to league administrators.",
            color=discord.Color(UIConstants.ERROR_COLOR)
        )


async def reply_with_error(interaction: discord.Interaction, command: str, error: Exception):
    """Show a LeagueError to the user; log anything else and hide its details."""
    if isinstance(error, LeagueError):
        embed = ErrorEmbeds.from_league_error(error)
    else:
        logger.error(f"Error in /{command} for user {interaction.user.id}: {error}", exc_info=True)
        embed = ErrorEmbeds.unexpected_error()

    if interaction.response.is_done():
        await interaction.followup.send(embed=embed, ephemeral=True)
    else:
        await interaction.response.send_message(embed=embed, ephemeral=True)
