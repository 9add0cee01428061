import aiosqlite
from discord.ext import commands, tasks

from database import server_configs
from database.core import db
from honeypot.channels import honeypot_channels
from utils.logger import get_logger

log = get_logger()

class CleanupService(commands.Cog):
    def __init__(self, bot: commands.Bot):
        self.bot = bot
        self.cleanup_task.start()

    def cog_unload(self):
        self.cleanup_task.cancel()

    @tasks.loop(hours=24)
    async def cleanup_task(self):
        """
        Runs every 24 hours to delete server configs that no whitelisted user belongs to.

        Removing or updating a user already reclaims the configs it orphans, this catches
        the rows that were missed, e.g. users deleted straight from the database.
        """
        if not db.connection:
            return

        try:
            removed = await server_configs.delete_orphaned()
        except aiosqlite.Error as e:
            log.error("Failed to run cleanup task", exc_info=e)
            return

        honeypot_channels.forget(removed)
        if removed:
            log.database(f"Cleanup Task: Removed {len(removed)} server config(s) without whitelisted users.")

    @cleanup_task.before_loop
    async def before_cleanup(self):
        await self.bot.wait_until_ready()

async def setup(bot: commands.Bot):
    await bot.add_cog(CleanupService(bot))
