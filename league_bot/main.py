import asyncio
import logging
import traceback
from typing import Optional

import discord
from discord.ext import commands
from discord import app_commands

from league_bot.config import Config
from league_bot.database.database import Database
from league_bot.database.match_operations import MatchOperations
from league_bot.operations.player_operations import PlayerOperations
from league_bot.services.leaderboard import LeaderboardService
from league_bot.services.maintenance import WeeklyMaintenanceService
from league_bot.utils.error_embeds import ErrorEmbeds
from league_bot.utils.logger import setup_logger


class LeagueBot(commands.Bot):
    def __init__(self):
        intents = discord.Intents.default()
        intents.guilds = True
        intents.members = True

        super().__init__(
            command_prefix=Config.COMMAND_PREFIX,
            intents=intents,
            help_command=None
        )

        # Attach app command error handler
        self.tree.on_error = self.on_app_command_error

        self.db: Optional[Database] = None
        self.player_ops: Optional[PlayerOperations] = None
        self.match_ops: Optional[MatchOperations] = None
        self.leaderboard_service: Optional[LeaderboardService] = None
        self.maintenance_service: Optional[WeeklyMaintenanceService] = None
        self.logger = setup_logger(__name__)

    async def setup_hook(self):
        """Called when the bot is starting up"""
        self.logger.info("Setting up League Bot...")

        self.db = Database()
        await self.db.initialize()

        # One store shared by every component
        self.player_ops = PlayerOperations(self.db)
        self.match_ops = MatchOperations(self.db)
        self.leaderboard_service = LeaderboardService(self.db)
        self.maintenance_service = WeeklyMaintenanceService(self.db)

        await self.load_cogs()
        await self._sync_commands()

        self.logger.info("League Bot setup complete!")

    async def load_cogs(self):
        """Load all cogs"""
        cogs_to_load = [
            'league_bot.cogs.admin',
            'league_bot.cogs.player',
            'league_bot.cogs.match_commands',
            'league_bot.cogs.leaderboard',
            'league_bot.cogs.housekeeping',
        ]

        for cog in cogs_to_load:
            try:
                await self.load_extension(cog)
                self.logger.info(f"Loaded cog: {cog}")
            except Exception as e:
                self.logger.error(f"Failed to load cog {cog}: {e}", exc_info=True)

    async def _sync_commands(self):
        """Sync slash commands with Discord"""
        if not self.tree.get_commands():
            self.logger.warning("No application commands found to sync. Check for cog loading errors.")
            return

        try:
            guild_ids = Config.get_guild_ids()

            if guild_ids:
                # Guild-specific sync is instant
                self.logger.info(f"Attempting to sync commands to {len(guild_ids)} guild(s): {guild_ids}...")

                total_synced = 0
                for guild_id in guild_ids:
                    try:
                        guild = discord.Object(id=guild_id)
                        self.tree.copy_global_to(guild=guild)
                        synced = await self.tree.sync(guild=guild)
                        self.logger.info(f"Successfully synced {len(synced)} command(s) to guild {guild_id}")
                        total_synced += len(synced)
                    except discord.errors.Forbidden:
                        self.logger.error(
                            f"Permission error syncing to guild {guild_id}. Ensure the bot has the "
                            f"'application.commands' scope and is in the guild.", exc_info=True
                        )
                    except discord.errors.HTTPException as e:
                        self.logger.error(
                            f"HTTP error syncing to guild {guild_id}. Status: {e.status}, Response: {e.text}",
                            exc_info=True
                        )

                self.logger.info(f"Multi-guild sync complete: {total_synced} total command instances deployed")
            else:
                # Global sync (can take up to 1 hour)
                synced = await self.tree.sync()
                self.logger.info(f"Synced {len(synced)} command(s) globally")
                for cmd in synced:
                    self.logger.info(f"  - {cmd.name}: {cmd.description}")
        except Exception as e:
            self.logger.error(f"Failed to sync commands: {e}", exc_info=True)

    async def on_ready(self):
        """Called when the bot is ready"""
        self.logger.info(f'{self.user} has connected to Discord!')
        self.logger.info(f'Bot is in {len(self.guilds)} guilds')

        await self.change_presence(
            activity=discord.Game(name="Ranked League | /submit")
        )

    async def on_app_command_error(self, interaction: discord.Interaction, error: app_commands.AppCommandError):
        """Global error handler for slash commands"""
        command_name = interaction.command.name if interaction.command else 'Unknown'

        if isinstance(error, app_commands.CheckFailure):
            self.logger.info(f"Permission denied for command '{command_name}' by user {interaction.user}")
            if command_name.startswith('admin-'):
                embed = ErrorEmbeds.permission_denied()
                embed.set_footer(text="Contact the bot owner if you believe you should have access.")
            else:
                embed = ErrorEmbeds.command_error("You don't have the required permissions to use this command.")
        elif isinstance(error, app_commands.BotMissingPermissions):
            self.logger.warning(f"Missing bot permissions for '{command_name}': {error.missing_permissions}")
            embed = ErrorEmbeds.command_error("I don't have the required permissions to execute this command.")
        else:
            self.logger.error(f"Error in app command '{command_name}': {error}", exc_info=True)
            embed = ErrorEmbeds.unexpected_error()

        try:
            if interaction.response.is_done():
                await interaction.followup.send(embed=embed, ephemeral=True)
            else:
                await interaction.response.send_message(embed=embed, ephemeral=True)
        except Exception as e:
            self.logger.error(f"Failed to send error response: {e}")

    async def on_command_error(self, ctx: commands.Context, error: Exception):
        """Global error handler for prefix commands"""
        if isinstance(error, commands.CommandNotFound):
            return

        if isinstance(error, commands.CheckFailure):
            self.logger.info(f"Permission denied for command '{ctx.command.name if ctx.command else 'Unknown'}' by user {ctx.author}")
            await ctx.send("❌ You don't have permission to use this command.")
            return

        self.logger.error(f"Unexpected error in command {ctx.command}: {error}")
        self.logger.error(traceback.format_exc())
        await ctx.send(embed=ErrorEmbeds.unexpected_error())

    async def close(self):
        """Cleanup when bot is shutting down"""
        self.logger.info("Shutting down League Bot...")

        if self.db:
            await self.db.close()

        await super().close()


async def main():
    """Main entry point"""
    Config.validate()

    bot = LeagueBot()

    try:
        await bot.start(Config.DISCORD_TOKEN)
    except KeyboardInterrupt:
        await bot.close()
    except Exception as e:
        logging.error(f"Fatal error: {e}")
        traceback.print_exc()
    finally:
        await bot.close()


def run():
    asyncio.run(main())


if __name__ == "__main__":
    run()
