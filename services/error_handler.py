import discord
from discord import app_commands
from discord.ext import commands

from utils.embed_builder import EmbedBuilder
from utils.logger import get_logger
from utils.permissions import NotAdmin, NotAdminServer, NotWhitelisted, NotWhitelistedHere

log = get_logger()

CHECK_TEMPLATES = {
    NotWhitelisted: "not_whitelisted",
    NotWhitelistedHere: "not_whitelisted_here",
    NotAdmin: "not_admin",
    NotAdminServer: "admin_server_only",
}

async def _reply(interaction: discord.Interaction, embed: discord.Embed):
    if not interaction.response.is_done():
        await interaction.response.send_message(embed=embed, ephemeral=True)
    else:
        await interaction.followup.send(embed=embed, ephemeral=True)

class ErrorHandler(commands.Cog):
    def __init__(self, bot: commands.Bot):
        self.bot = bot
        # Register global error handler for app commands
        bot.tree.on_error = self.on_app_command_error

    async def on_app_command_error(self, interaction: discord.Interaction, error: app_commands.AppCommandError):
        for check, template in CHECK_TEMPLATES.items():
            if isinstance(error, check):
                await _reply(interaction, EmbedBuilder.troubleshoot(template))
                return

        if isinstance(error, app_commands.NoPrivateMessage):
            await _reply(interaction, EmbedBuilder.error("Guild Only", "This command can only be used in a server!"))
            return

        if isinstance(error, app_commands.MissingPermissions):
            await _reply(interaction, EmbedBuilder.error(
                "Permission Denied", "You do not have the required permissions to run this command."
            ))
            return

        if isinstance(error, app_commands.BotMissingPermissions):
            missing = ", ".join(error.missing_permissions)
            await _reply(interaction, EmbedBuilder.error(
                "Bot Missing Permissions",
                f"I do not have the required permissions to execute this command.\nMissing: `{missing}`"
            ))
            return

        if isinstance(error, app_commands.CommandOnCooldown):
            await _reply(interaction, EmbedBuilder.error(
                "Cooldown", f"Please wait {error.retry_after:.1f}s before using this command again."
            ))
            return

        command_name = interaction.command.qualified_name if interaction.command else "command"
        original = getattr(error, "original", error)
        log.error(f"App Command Error in /{command_name}", exc_info=original)
        await self.bot.ops_log.error(original, f"Command /{command_name} failed for user {interaction.user.id}")

        try:
            await _reply(interaction, EmbedBuilder.error(
                "Command Error", f"An unexpected error occurred while executing `/{command_name}`."
            ))
        except discord.HTTPException as e:
            log.error("Failed to report command error to the user", exc_info=e)

async def setup(bot: commands.Bot):
    await bot.add_cog(ErrorHandler(bot))
