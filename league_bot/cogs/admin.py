import discord
from discord import app_commands
from discord.ext import commands
from typing import Optional

from league_bot.config import Config
from league_bot.constants import UIConstants
from league_bot.utils.embeds import build_confirmation_embed, build_match_info_embed, send_embed
from league_bot.utils.error_embeds import ErrorEmbeds, reply_with_error
from league_bot.utils.league_exceptions import NotFound
from league_bot.utils.logger import setup_logger

logger = setup_logger(__name__)


def is_league_admin(interaction: discord.Interaction) -> bool:
    """Bot owner, or a guild administrator"""
    if interaction.user.id == Config.OWNER_DISCORD_ID:
        return True
    permissions = getattr(interaction.user, "guild_permissions", None)
    return bool(permissions and permissions.administrator)


class AdminCog(commands.Cog):
    """Administrative corrections for matches and maintenance"""

    def __init__(self, bot):
        self.bot = bot
        self.player_ops = bot.player_ops
        self.match_ops = bot.match_ops
        self.maintenance_service = bot.maintenance_service

    async def _require_match(self, match_id: int):
        match = await self.match_ops.get_match(match_id)
        if match is None:
            raise NotFound("match", match_id)
        return match

    @app_commands.command(name="admin-match-info", description="[Admin] Show a match with its rating snapshots")
    @app_commands.describe(match_id="Match number")
    @app_commands.check(is_league_admin)
    async def admin_match_info(self, interaction: discord.Interaction, match_id: int):
        try:
            match = await self._require_match(match_id)
            await send_embed(interaction, build_match_info_embed(match), ephemeral=True)
        except Exception as e:
            await reply_with_error(interaction, "admin-match-info", e)

    @app_commands.command(name="admin-confirm", description="[Admin] Confirm a submitted or disputed match")
    @app_commands.describe(match_id="Match number")
    @app_commands.check(is_league_admin)
    async def admin_confirm(self, interaction: discord.Interaction, match_id: int):
        await interaction.response.defer()
        try:
            result = await self.match_ops.admin_confirm(match_id)
            match = await self._require_match(match_id)
            embed = build_confirmation_embed(result, match.player.display_name, match.opponent.display_name)
            embed.set_footer(text=f"Confirmed by administrator {interaction.user.display_name}")
            await send_embed(interaction, embed)
            logger.info(f"Admin {interaction.user.id} confirmed match {match_id}")
        except Exception as e:
            await reply_with_error(interaction, "admin-confirm", e)

    @app_commands.command(name="admin-cancel", description="[Admin] Cancel pending matches by match or by player")
    @app_commands.describe(
        match_id="Match number to cancel",
        member="Cancel every match awaiting this player's confirmation"
    )
    @app_commands.check(is_league_admin)
    async def admin_cancel(self, interaction: discord.Interaction, match_id: Optional[int] = None,
                           member: Optional[discord.Member] = None):
        if match_id is None and member is None:
            await send_embed(interaction, ErrorEmbeds.invalid_input("Give a match number or a player."), ephemeral=True)
            return

        try:
            user_id = None
            if member is not None:
                user_id = (await self.player_ops.require_user(member.id, is_self=False)).id
            cancelled = await self.match_ops.cancel(match_id=match_id, user_id=user_id)
            ids = ", ".join(f"#{mid}" for mid in cancelled)
            await send_embed(interaction, discord.Embed(
                title="🚫 Matches Cancelled",
                description=f"Cancelled {ids}. No ratings were changed.",
                color=UIConstants.DEFAULT_EMBED_COLOR
            ))
            logger.info(f"Admin {interaction.user.id} cancelled matches {cancelled}")
        except Exception as e:
            await reply_with_error(interaction, "admin-cancel", e)

    @app_commands.command(name="admin-nullify", description="[Admin] Reverse the rating change of a confirmed match")
    @app_commands.describe(match_id="Match number")
    @app_commands.check(is_league_admin)
    async def admin_nullify(self, interaction: discord.Interaction, match_id: int):
        await interaction.response.defer()
        try:
            await self.match_ops.nullify(match_id)
            match = await self._require_match(match_id)
            embed = build_match_info_embed(match)
            embed.title = f"↩️ Match #{match_id} Nullified"
            embed.description = "Both players' rating changes have been reversed."
            await send_embed(interaction, embed)
            logger.info(f"Admin {interaction.user.id} nullified match {match_id}")
        except Exception as e:
            await reply_with_error(interaction, "admin-nullify", e)

    @app_commands.command(name="admin-run-maintenance", description="[Admin] Run this week's maintenance now")
    @app_commands.check(is_league_admin)
    async def admin_run_maintenance(self, interaction: discord.Interaction):
        await interaction.response.defer(ephemeral=True)
        try:
            report = await self.maintenance_service.run_weekly()
            embed = discord.Embed(
                title="🧹 Weekly Maintenance",
                description=f"Boundary: {report.boundary:%Y-%m-%d %H:%M} UTC",
                color=UIConstants.ERROR_COLOR if report.failed else UIConstants.SUCCESS_COLOR
            )
            for outcome in report.steps:
                value = f"{outcome.status} ({outcome.affected} users)"
                if outcome.error:
                    value += f"\n{outcome.error}"
                embed.add_field(name=outcome.step, value=value, inline=False)
            await send_embed(interaction, embed, ephemeral=True)
        except Exception as e:
            await reply_with_error(interaction, "admin-run-maintenance", e)


async def setup(bot):
    await bot.add_cog(AdminCog(bot))
