"""
Housekeeping Cog - Background Tasks

Checks hourly whether the weekly maintenance boundary has passed and runs
the challenge reset, inactivity decay and auto-quit steps when it has.
"""

from discord.ext import commands, tasks

from league_bot.utils.logger import setup_logger

logger = setup_logger(__name__)


class HousekeepingCog(commands.Cog):
    """Background maintenance tasks"""

    def __init__(self, bot):
        self.bot = bot
        self.maintenance_service = bot.maintenance_service
        self.logger = logger

    @commands.Cog.listener()
    async def on_ready(self):
        """Start background tasks once the bot is ready"""
        if not self.weekly_maintenance.is_running():
            self.weekly_maintenance.start()
            self.logger.info("HousekeepingCog: Background tasks started")

    def cog_unload(self):
        """Stop background tasks when cog is unloaded"""
        self.weekly_maintenance.cancel()
        self.logger.info("HousekeepingCog: Background tasks stopped")

    @tasks.loop(hours=1)
    async def weekly_maintenance(self):
        """Run weekly maintenance if the current boundary has not been processed"""
        try:
            report = await self.maintenance_service.run_if_due()
            if report and report.failed:
                self.logger.warning(f"Weekly maintenance for {report.boundary.isoformat()} had failed steps")
        except Exception as e:
            self.logger.error(f"Error in weekly maintenance task: {e}", exc_info=True)

    @weekly_maintenance.before_loop
    async def before_weekly_maintenance(self):
        """Wait for bot to be ready before starting the maintenance task"""
        await self.bot.wait_until_ready()


async def setup(bot):
    await bot.add_cog(HousekeepingCog(bot))
