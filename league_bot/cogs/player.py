"""
Player Cog - registration and league participation

/register, /compete, /quit, /competing and /registered.
"""

import discord
from discord import app_commands
from discord.ext import commands
from typing import Optional

from league_bot.constants import UIConstants
from league_bot.utils.embeds import send_embed
from league_bot.utils.error_embeds import reply_with_error


class PlayerCog(commands.Cog):
    """Player registration and competing status"""

    def __init__(self, bot):
        self.bot = bot
        self.player_ops = bot.player_ops

    @app_commands.command(name="register", description="Register and start competing in the league")
    async def register(self, interaction: discord.Interaction):
        try:
            user = await self.player_ops.register(interaction.user.id, interaction.user.display_name)
            embed = discord.Embed(
                title="Welcome to the League!",
                description=(
                    f"{interaction.user.mention} is now registered and competing.\n"
                    f"Starting rating: **{user.rating:,}**"
                ),
                color=UIConstants.SUCCESS_COLOR
            )
            await send_embed(interaction, embed)
        except Exception as e:
            await reply_with_error(interaction, "register", e)

    @app_commands.command(name="compete", description="Start competing in the league again")
    async def compete(self, interaction: discord.Interaction):
        try:
            current = await self.player_ops.require_user(interaction.user.id)
            await self.player_ops.sync_display_name(interaction.user.id, interaction.user.display_name)
            if current.competing:
                await send_embed(interaction, discord.Embed(
                    description=f"{interaction.user.mention} is already competing.",
                    color=UIConstants.DEFAULT_EMBED_COLOR
                ), ephemeral=True)
                return
            await self.player_ops.set_competing(interaction.user.id, True)
            await send_embed(interaction, discord.Embed(
                description=f"✅ {interaction.user.mention} is now competing!",
                color=UIConstants.SUCCESS_COLOR
            ))
        except Exception as e:
            await reply_with_error(interaction, "compete", e)

    @app_commands.command(name="quit", description="Stop competing in the league")
    async def quit(self, interaction: discord.Interaction):
        try:
            current = await self.player_ops.require_user(interaction.user.id)
            if not current.competing:
                await send_embed(interaction, discord.Embed(
                    description=f"{interaction.user.mention} is not competing.",
                    color=UIConstants.DEFAULT_EMBED_COLOR
                ), ephemeral=True)
                return
            await self.player_ops.set_competing(interaction.user.id, False)
            await send_embed(interaction, discord.Embed(
                description=f"{interaction.user.mention} is no longer competing. Use `/compete` to return.",
                color=UIConstants.DEFAULT_EMBED_COLOR
            ))
        except Exception as e:
            await reply_with_error(interaction, "quit", e)

    @app_commands.command(name="competing", description="Check whether a player is competing")
    @app_commands.describe(member="Player to check (defaults to you)")
    async def competing(self, interaction: discord.Interaction, member: Optional[discord.Member] = None):
        target = member or interaction.user
        try:
            user = await self.player_ops.require_user(target.id, is_self=member is None)
            state = "is competing" if user.competing else "is not competing"
            total = await self.player_ops.count_users(competing_only=True)
            await send_embed(interaction, discord.Embed(
                description=f"{target.mention} {state}. ({total} players currently competing)",
                color=UIConstants.DEFAULT_EMBED_COLOR
            ))
        except Exception as e:
            await reply_with_error(interaction, "competing", e)

    @app_commands.command(name="registered", description="Check whether a player is registered")
    @app_commands.describe(member="Player to check (defaults to you)")
    async def registered(self, interaction: discord.Interaction, member: Optional[discord.Member] = None):
        target = member or interaction.user
        try:
            user = await self.player_ops.get_by_external_id(target.id)
            state = "is registered" if user else "is not registered"
            total = await self.player_ops.count_users()
            await send_embed(interaction, discord.Embed(
                description=f"{target.mention} {state} in the league. ({total} registered players)",
                color=UIConstants.DEFAULT_EMBED_COLOR
            ))
        except Exception as e:
            await reply_with_error(interaction, "registered", e)


async def setup(bot):
    await bot.add_cog(PlayerCog(bot))
