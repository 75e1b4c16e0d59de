"""
Discord UI Views for the league bot

Components:
- MatchConfirmationView: Confirm / Dispute buttons attached to a submitted match
"""

import discord
from typing import Optional

from league_bot.constants import DisplayConstants, UIConstants
from league_bot.utils.embeds import build_confirmation_embed
from league_bot.utils.error_embeds import ErrorEmbeds
from league_bot.utils.league_exceptions import LeagueError, NotFound
from league_bot.utils.logger import setup_logger

logger = setup_logger(__name__)


class MatchConfirmationView(discord.ui.View):
    """
    Buttons for the opponent of a submitted match.

    The view only carries the correlation id; every click goes back to
    MatchOperations, which decides whether the clicker may respond. The
    buttons expire after CONFIRMATION_VIEW_TIMEOUT but the pending match
    does not, and ``/pending`` posts a fresh view for it.
    """

    def __init__(self, correlation_id: int, match_ops, player_ops,
                 timeout: Optional[float] = DisplayConstants.CONFIRMATION_VIEW_TIMEOUT):
        super().__init__(timeout=timeout)
        self.correlation_id = correlation_id
        self.match_ops = match_ops
        self.player_ops = player_ops
        self.message: Optional[discord.Message] = None

    @discord.ui.button(label="✅ Confirm", style=discord.ButtonStyle.green)
    async def confirm_button(self, interaction: discord.Interaction, button: discord.ui.Button):
        """Handle confirmation button click"""
        await self._respond(interaction, confirm=True)

    @discord.ui.button(label="⚠️ Dispute", style=discord.ButtonStyle.red)
    async def dispute_button(self, interaction: discord.Interaction, button: discord.ui.Button):
        """Handle dispute button click"""
        await self._respond(interaction, confirm=False)

    async def _respond(self, interaction: discord.Interaction, confirm: bool):
        await interaction.response.defer()
        try:
            responder = await self.player_ops.require_user(interaction.user.id)
            if confirm:
                result = await self.match_ops.confirm(self.correlation_id, responder.id)
                player = await self.player_ops.get_user(result.player_id)
                opponent = await self.player_ops.get_user(result.opponent_id)
                embed = build_confirmation_embed(result, player.display_name, opponent.display_name)
            else:
                match = await self.match_ops.dispute(self.correlation_id, responder.id)
                embed = discord.Embed(
                    title=f"⚠️ Match #{match.id} Disputed",
                    description="No ratings were changed. An administrator will review this match.",
                    color=UIConstants.WARNING_COLOR
                )
            await self._close(interaction, embed)

        except NotFound as e:
            # Already confirmed, disputed or cancelled elsewhere
            await self._close(interaction, None)
            await interaction.followup.send(embed=ErrorEmbeds.from_league_error(e), ephemeral=True)
        except LeagueError as e:
            await interaction.followup.send(embed=ErrorEmbeds.from_league_error(e), ephemeral=True)
        except Exception as e:
            logger.error(f"Error handling response for pending match {self.correlation_id}: {e}", exc_info=True)
            await interaction.followup.send(embed=ErrorEmbeds.unexpected_error(), ephemeral=True)

    async def _close(self, interaction: discord.Interaction, embed: Optional[discord.Embed]):
        self.clear_items()
        if embed is None:
            await interaction.edit_original_response(view=self)
        else:
            await interaction.edit_original_response(embed=embed, view=self)
        self.stop()

    async def on_timeout(self):
        for item in self.children:
            item.disabled = True
        if self.message:
            try:
                await self.message.edit(view=self)
            except discord.HTTPException as e:
                logger.debug(f"Could not disable buttons for pending match {self.correlation_id}: {e}")
