"""
Match Commands Cog

/submit reports a result and posts Confirm / Dispute buttons for the
opponent. /pending re-posts buttons for everything awaiting the caller,
/matches lists the caller's matches since the last weekly boundary and
/withdraw cancels one of the caller's own pending submissions.
"""

import discord
from discord import app_commands
from discord.ext import commands

from league_bot.constants import DisplayConstants, UIConstants
from league_bot.ui.views import MatchConfirmationView
from league_bot.utils.embeds import build_match_list_embed, build_submission_embed, send_embed
from league_bot.utils.error_embeds import ErrorEmbeds, reply_with_error
from league_bot.utils.logger import setup_logger

logger = setup_logger(__name__)


class MatchCommandsCog(commands.Cog):
    """Submitting, confirming and reviewing matches"""

    def __init__(self, bot):
        self.bot = bot
        self.player_ops = bot.player_ops
        self.match_ops = bot.match_ops
        self.maintenance_service = bot.maintenance_service

    @app_commands.command(name="submit", description="Report the result of a match against another player")
    @app_commands.describe(opponent="The player you played against", result="Did you win or lose?")
    @app_commands.choices(result=[
        app_commands.Choice(name="Win", value="win"),
        app_commands.Choice(name="Loss", value="loss"),
    ])
    async def submit(self, interaction: discord.Interaction, opponent: discord.Member,
                     result: app_commands.Choice[str]):
        if opponent.bot:
            await send_embed(interaction, ErrorEmbeds.invalid_input("You cannot submit a match against a bot."), ephemeral=True)
            return

        await interaction.response.defer()
        try:
            submitter = await self.player_ops.require_user(interaction.user.id)
            await self.player_ops.sync_display_name(interaction.user.id, interaction.user.display_name)
            opponent_user = await self.player_ops.require_user(opponent.id, is_self=False)

            # The interaction id doubles as the pending match's correlation id
            match = await self.match_ops.submit(
                submitter.id, opponent_user.id, result.value == "win", interaction.id
            )

            view = MatchConfirmationView(interaction.id, self.match_ops, self.player_ops)
            view.message = await interaction.followup.send(
                content=opponent.mention,
                embed=build_submission_embed(match, interaction.user, opponent),
                view=view,
                wait=True
            )
        except Exception as e:
            await reply_with_error(interaction, "submit", e)

    @app_commands.command(name="pending", description="Show matches waiting for your confirmation")
    async def pending(self, interaction: discord.Interaction):
        await interaction.response.defer(ephemeral=True)
        try:
            user = await self.player_ops.require_user(interaction.user.id)
            pendings = await self.match_ops.get_pending_for_user(user.id)
            if not pendings:
                await interaction.followup.send("No matches are waiting for your confirmation.", ephemeral=True)
                return

            for pending in pendings[:DisplayConstants.MAX_PENDING_LISTED]:
                match = pending.match
                embed = discord.Embed(
                    title=f"Match #{match.id}",
                    description=(
                        f"**{match.player.display_name}** reported "
                        f"{'beating you' if match.result else 'losing to you'}."
                    ),
                    color=UIConstants.DEFAULT_EMBED_COLOR,
                    timestamp=match.created_at
                )
                view = MatchConfirmationView(pending.correlation_id, self.match_ops, self.player_ops)
                view.message = await interaction.followup.send(embed=embed, view=view, ephemeral=True, wait=True)

            if len(pendings) > DisplayConstants.MAX_PENDING_LISTED:
                await interaction.followup.send(
                    f"…and {len(pendings) - DisplayConstants.MAX_PENDING_LISTED} more.", ephemeral=True
                )
        except Exception as e:
            await reply_with_error(interaction, "pending", e)

    @app_commands.command(name="matches", description="Show your matches this week")
    async def matches(self, interaction: discord.Interaction):
        try:
            user = await self.player_ops.require_user(interaction.user.id)
            since = self.maintenance_service.current_boundary()
            weekly = await self.match_ops.get_matches_since(user.id, since)
            limit = self.match_ops.config.WEEKLY_CHALLENGE_LIMIT
            embed = build_match_list_embed(
                f"{interaction.user.display_name}'s matches this week",
                weekly,
                user.id,
                footer=f"{user.weekly_challenges}/{limit} matches played this week"
            )
            await send_embed(interaction, embed, ephemeral=True)
        except Exception as e:
            await reply_with_error(interaction, "matches", e)

    @app_commands.command(name="withdraw", description="Cancel one of your own pending matches")
    @app_commands.describe(match_id="Match number shown on the submission")
    async def withdraw(self, interaction: discord.Interaction, match_id: int):
        try:
            user = await self.player_ops.require_user(interaction.user.id)
            await self.match_ops.cancel(match_id=match_id, requester_id=user.id)
            await send_embed(interaction, discord.Embed(
                description=f"🚫 Match #{match_id} was withdrawn. No ratings were changed.",
                color=UIConstants.DEFAULT_EMBED_COLOR
            ))
            logger.info(f"User {user.id} withdrew match {match_id}")
        except Exception as e:
            await reply_with_error(interaction, "withdraw", e)


async def setup(bot):
    await bot.add_cog(MatchCommandsCog(bot))
