from typing import List, Optional

import aiosqlite
import discord
from discord import app_commands
from discord.ext import commands

from broadcast.listener import ServerConfigComplete
from broadcast.moderate import MAX_BAN_REASON_LENGTH, check_ban_reason
from database import server_configs
from database.models import ActionLevel
from honeypot.channels import honeypot_channels
from utils.embed_builder import EmbedBuilder
from utils.parsing import parse_ids
from utils.permissions import check_bot_permissions, whitelisted_here

HONEYPOT_WARNING = (
    "# ⚠️ Warning ⚠️\n"
    "**DO NOT POST MESSAGES in this channel, you will be banned from multiple servers if you do so!**\n"
    "This channel is used to catch bots that spam our server."
)

# Discord caps timeouts at 28 days
MAX_HONEYPOT_TIMEOUT_MINUTES = 28 * 24 * 60

def config_embeds(complete: ServerConfigComplete, interaction: discord.Interaction) -> List[discord.Embed]:
    """The config embed, followed by a warning when the bot lacks permissions it moderates with."""
    embeds = [complete.to_embed(interaction.user)]
    missing = check_bot_permissions(interaction.guild)
    if missing:
        embeds.append(EmbedBuilder.warning(
            "Missing Permissions",
            "Janitor cannot take every action your config asks for. Missing:\n"
            + "\n".join(f"• {m}" for m in missing)
        ))
    return embeds

class ServerConfigCommands(commands.Cog):
    def __init__(self, bot: commands.Bot):
        self.bot = bot

    config = app_commands.Group(name="config", description="Manage your server config", guild_only=True)

    @config.command(name="display", description="Display your own server config.")
    @whitelisted_here()
    async def display(self, interaction: discord.Interaction):
        await interaction.response.defer()

        server_config = await server_configs.get_by_guild_id(interaction.guild.id)
        if server_config is None:
            await interaction.followup.send("Your server doesn't have a config in the database!")
            return

        complete = await ServerConfigComplete.from_server_config(self.bot, server_config)
        await interaction.followup.send(embeds=config_embeds(complete, interaction))

    @config.command(name="update", description="Update your own server config.")
    @app_commands.describe(
        log_channel="The channel to log actions to.",
        ping_users="Ping users when action is taken.",
        ping_role="The role to ping when action is taken.",
        spam_action_level="The level of action to take for spamming users with hacked accounts.",
        impersonation_action_level="The level of action to take for users impersonating others.",
        bigotry_action_level="The level of action to take for users with bigot behaviour.",
        honeypot_action_level="The level of action to take for users reported through honeypots.",
        ignored_roles="Role IDs to ignore when taking action. Separate multiple with a comma (,).",
        ban_reason="Custom ban reason for automatic bans. Add {id} and/or {type} to show them in your reason.",
        honeypot_timeout="Timeout users who send messages in your honeypot channel in minutes. 0 to turn off."
    )
    @whitelisted_here()
    async def update(
        self,
        interaction: discord.Interaction,
        log_channel: Optional[discord.abc.GuildChannel] = None,
        ping_users: Optional[bool] = None,
        ping_role: Optional[discord.Role] = None,
        spam_action_level: Optional[ActionLevel] = None,
        impersonation_action_level: Optional[ActionLevel] = None,
        bigotry_action_level: Optional[ActionLevel] = None,
        honeypot_action_level: Optional[ActionLevel] = None,
        ignored_roles: Optional[str] = None,
        ban_reason: Optional[str] = None,
        honeypot_timeout: Optional[app_commands.Range[int, 0, MAX_HONEYPOT_TIMEOUT_MINUTES]] = None
    ):
        await interaction.response.defer()

        if log_channel is not None and log_channel.type != discord.ChannelType.text:
            await interaction.followup.send(f"{log_channel.name} is not a text channel.")
            return

        parsed_roles = None
        if ignored_roles is not None:
            try:
                parsed_roles = parse_ids(ignored_roles)
            except ValueError:
                await interaction.followup.send(
                    embed=EmbedBuilder.troubleshoot("invalid_input", f"Could not read role IDs from `{ignored_roles}`.")
                )
                return

        if ban_reason is not None:
            if len(ban_reason) > MAX_BAN_REASON_LENGTH:
                await interaction.followup.send(
                    f"Maximum ban reason length is {MAX_BAN_REASON_LENGTH}, got {len(ban_reason)}!"
                )
                return
            if not check_ban_reason(ban_reason):
                await interaction.followup.send(
                    "Your custom ban reason is wrongly formatted. Please fix it and try again!"
                )
                return

        updated = await server_configs.update(interaction.guild.id, {
            "log_channel_id": log_channel.id if log_channel else None,
            "ping_users": ping_users,
            "ping_role": ping_role.id if ping_role else None,
            "spam_action_level": spam_action_level,
            "impersonation_action_level": impersonation_action_level,
            "bigotry_action_level": bigotry_action_level,
            "honeypot_action_level": honeypot_action_level,
            "ignored_roles": parsed_roles,
            "ban_reason": ban_reason,
            "honeypot_timeout": honeypot_timeout,
        })

        complete = await ServerConfigComplete.from_server_config(self.bot, updated)
        await interaction.followup.send(
            content="Successfully updated your server config.",
            embeds=config_embeds(complete, interaction)
        )

    @config.command(name="enable_honeypot", description="Use this command in the channel you want the honeypot to be.")
    @whitelisted_here()
    async def enable_honeypot(self, interaction: discord.Interaction):
        await interaction.response.defer(ephemeral=True)
        channel = interaction.channel

        try:
            previous = await server_configs.set_honeypot_channel(interaction.guild.id, channel.id)
        except aiosqlite.Error as e:
            await self.bot.ops_log.error(e, f"Failed to add honeypot channel {channel.id}")
            await interaction.followup.send("Failed to add honeypot channel to the database")
            return

        # One honeypot per guild
        if previous is not None:
            honeypot_channels.discard(previous)
        honeypot_channels.add(channel.id)

        await interaction.followup.send(f"Successfully added channel {channel.name} (`{channel.id}`) to your config.")

    @config.command(name="disable_honeypot", description="Disable the honeypot feature for your server.")
    @whitelisted_here()
    async def disable_honeypot(self, interaction: discord.Interaction):
        await interaction.response.defer()

        try:
            removed = await server_configs.remove_honeypot_channel(interaction.guild.id)
        except aiosqlite.Error as e:
            await self.bot.ops_log.error(e, "Failed to remove honeypot channel from the server_configs table")
            await interaction.followup.send("Failed to remove honeypot channel from the database")
            return

        if removed is not None:
            honeypot_channels.discard(removed)
        await interaction.followup.send("Successfully removed honeypot channel from your config.")

    @config.command(
        name="honeypot_message",
        description="Sends the honeypot warning message for your members into this channel."
    )
    @whitelisted_here()
    async def honeypot_message(self, interaction: discord.Interaction):
        await interaction.response.defer(ephemeral=True)
        await interaction.channel.send(HONEYPOT_WARNING)
        await interaction.followup.send("Successfully posted honeypot warning message.")

async def setup(bot: commands.Bot):
    await bot.add_cog(ServerConfigCommands(bot))
