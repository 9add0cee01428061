import discord
from discord.ext import commands

from moderation.interaction import ModerationButton, handle_legacy_interaction
from utils.logger import get_logger

log = get_logger()

class ModerationInteractions(commands.Cog):
    """Routes clicks on the moderation buttons under broadcast messages."""

    def __init__(self, bot: commands.Bot):
        self.bot = bot

    async def cog_load(self):
        # Lets buttons sent before a restart keep working
        self.bot.add_dynamic_items(ModerationButton)
        log.discord("Registered moderation buttons.")

    async def cog_unload(self):
        self.bot.remove_dynamic_items(ModerationButton)

    @commands.Cog.listener()
    async def on_interaction(self, interaction: discord.Interaction):
        await handle_legacy_interaction(self.bot, interaction)

async def setup(bot: commands.Bot):
    await bot.add_cog(ModerationInteractions(bot))
