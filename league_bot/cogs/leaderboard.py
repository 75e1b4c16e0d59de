import discord
from discord import app_commands
from discord.ext import commands
from typing import Optional

from league_bot.constants import DisplayConstants
from league_bot.utils.embeds import build_ranking_embed, send_embed
from league_bot.utils.error_embeds import ErrorEmbeds, reply_with_error


class LeaderboardCog(commands.Cog):
    """Rating and ranking commands"""

    def __init__(self, bot):
        self.bot = bot
        self.player_ops = bot.player_ops
        self.leaderboard_service = bot.leaderboard_service

    @app_commands.command(name="rating", description="Show a player's rating, rank and nearby competitors")
    @app_commands.describe(member="Player to look up (defaults to you)")
    async def rating(self, interaction: discord.Interaction, member: Optional[discord.Member] = None):
        """Display rank plus the players just above and below."""
        target = member or interaction.user
        await interaction.response.defer()

        try:
            user = await self.player_ops.require_user(target.id, is_self=member is None)
            rank = await self.leaderboard_service.rank(user.id)
            window = min(self.leaderboard_service.config.NEARBY_PLAYERS_DEFAULT, DisplayConstants.MAX_NEARBY_PLAYERS)
            nearby = await self.leaderboard_service.nearby_players(user.id, window)
            games = await self.player_ops.confirmed_match_count(user.id)

            footer = f"Rank #{rank} • {games} confirmed matches"
            if not user.competing:
                footer += " • not competing"
            embed = build_ranking_embed(
                f"{target.display_name}: {user.rating:,}",
                nearby,
                highlight_user_id=user.id,
                footer=footer
            )
            await send_embed(interaction, embed)
        except Exception as e:
            await reply_with_error(interaction, "rating", e)

    @app_commands.command(name="top", description="Show the highest rated competing players")
    @app_commands.describe(count=f"How many players to show (max {DisplayConstants.MAX_TOP_PLAYERS})")
    async def top(self, interaction: discord.Interaction, count: Optional[int] = None):
        if count is not None and not 1 <= count <= DisplayConstants.MAX_TOP_PLAYERS:
            await send_embed(
                interaction,
                ErrorEmbeds.invalid_input(f"Count must be between 1 and {DisplayConstants.MAX_TOP_PLAYERS}."),
                ephemeral=True
            )
            return

        await interaction.response.defer()
        try:
            if count is None:
                count = min(self.leaderboard_service.config.TOP_PLAYERS_DEFAULT, DisplayConstants.MAX_TOP_PLAYERS)
            players = await self.leaderboard_service.top_players(count)
            provisional = self.leaderboard_service.config.PROVISIONAL_MATCH_COUNT
            footer = f"Players need {provisional} confirmed matches to appear" if provisional > 0 else None
            await send_embed(interaction, build_ranking_embed("Top Players", players, footer=footer))
        except Exception as e:
            await reply_with_error(interaction, "top", e)


async def setup(bot):
    await bot.add_cog(LeaderboardCog(bot))
