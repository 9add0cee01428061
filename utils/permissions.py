# Command access checks and the Discord permissions Janitor needs to moderate

import discord
from discord import app_commands
from typing import Dict, List

from config import shared_config
from database import admins, users

# Permission the bot needs for each thing it can do in a guild
BOT_PERMISSIONS: Dict[str, str] = {
    "Ban / Softban / Unban": "ban_members",
    "Kick": "kick_members",
    "Timeout": "moderate_members",
    "Honeypot cleanup": "manage_messages",
}

# Human-readable permission names for display
PERMISSION_DISPLAY_NAMES: Dict[str, str] = {
    "ban_members": "Ban Members",
    "kick_members": "Kick Members",
    "moderate_members": "Timeout Members",
    "manage_messages": "Manage Messages",
}

class NotWhitelisted(app_commands.CheckFailure):
    pass

class NotWhitelistedHere(app_commands.CheckFailure):
    pass

class NotAdmin(app_commands.CheckFailure):
    pass

class NotAdminServer(app_commands.CheckFailure):
    pass

def check_bot_permissions(guild: discord.Guild) -> List[str]:
    """Returns the display names of the permissions the bot is missing in the guild."""
    bot_perms = guild.me.guild_permissions
    return [
        f"{PERMISSION_DISPLAY_NAMES[perm]} ({feature})"
        for feature, perm in BOT_PERMISSIONS.items()
        if not getattr(bot_perms, perm, False)
    ]

async def is_bot_admin(user_id: int) -> bool:
    if shared_config.SUPERUSER_ID is not None and user_id == shared_config.SUPERUSER_ID:
        return True
    return await admins.get(user_id) is not None

def whitelisted():
    """Any whitelisted user, in any server."""
    async def predicate(interaction: discord.Interaction) -> bool:
        if interaction.guild is None:
            raise app_commands.NoPrivateMessage()
        if await users.get(interaction.user.id) is None and not await is_bot_admin(interaction.user.id):
            raise NotWhitelisted()
        return True
    return app_commands.check(predicate)

def whitelisted_here():
    """A whitelisted user inside one of the servers they are whitelisted for."""
    async def predicate(interaction: discord.Interaction) -> bool:
        if interaction.guild is None:
            raise app_commands.NoPrivateMessage()
        user = await users.get(interaction.user.id)
        if user is None:
            raise NotWhitelisted()
        if interaction.guild.id not in user.guild_ids:
            raise NotWhitelistedHere()
        return True
    return app_commands.check(predicate)

def admin_only():
    """Bot admins, and only from the admin server."""
    async def predicate(interaction: discord.Interaction) -> bool:
        if interaction.guild is None:
            raise app_commands.NoPrivateMessage()
        if not await is_bot_admin(interaction.user.id):
            raise NotAdmin()
        if interaction.guild.id != shared_config.ADMIN_SERVER_ID:
            raise NotAdminServer()
        return True
    return app_commands.check(predicate)
