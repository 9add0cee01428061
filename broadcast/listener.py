import asyncio
from dataclasses import dataclass
from typing import List, Optional

import aiosqlite
import discord

from database import server_configs, users as user_db
from database.models import ServerConfig
from utils.embed_builder import EmbedBuilder
from utils.format import channel_mention, display_bool, display_time, fdisplay, inline_code, role_mention, user_mention
from utils.logger import get_logger

log = get_logger()

class InvalidListener(Exception):
    """A guild's log channel cannot receive broadcasts."""

async def resolve_guild(bot, guild_id: int) -> discord.Guild:
    return bot.get_guild(guild_id) or await bot.fetch_guild(guild_id)

async def resolve_user(bot, user_id: int) -> discord.User:
    return bot.get_user(user_id) or await bot.fetch_user(user_id)

@dataclass
class ServerConfigComplete:
    server_config: ServerConfig
    guild: discord.Guild
    users: List[int]

    @classmethod
    async def from_server_config(cls, bot, server_config: ServerConfig) -> "ServerConfigComplete":
        guild, guild_users = await asyncio.gather(
            resolve_guild(bot, server_config.guild_id),
            user_db.get_by_guild(server_config.guild_id),
        )
        return cls(server_config, guild, [u.user_id for u in guild_users])

    def to_embed(self, interaction_user: discord.abc.User) -> discord.Embed:
        config = self.server_config
        ignored = ", ".join(role_mention(r) for r in config.ignored_roles) or "None set."
        fields = [
            ("Server ID", inline_code(self.guild.id), False),
            ("Log Channel", channel_mention(config.log_channel_id) if config.log_channel_id else "Not set.", True),
            ("Honeypot Channel", channel_mention(config.honeypot_channel_id) if config.honeypot_channel_id else "Not set.", True),
            ("Ping Users", display_bool(config.ping_users), True),
            ("Ping Role", role_mention(config.ping_role) if config.ping_role else "Not set.", True),
            ("Spam Action Level", str(config.spam_action_level), True),
            ("Impersonation Action Level", str(config.impersonation_action_level), True),
            ("Bigotry Action Level", str(config.bigotry_action_level), True),
            ("Honeypot Action Level", str(config.honeypot_action_level), True),
            ("Ignored Roles", ignored, False),
            ("Ban Reason", config.ban_reason or "Default", False),
            ("Honeypot Timeout", f"{config.honeypot_timeout} minutes" if config.honeypot_timeout else "Off", True),
            ("Users", "\n".join(user_mention(u) for u in self.users) or "None", False),
        ]
        if config.created_at:
            fields.append(("Created At", display_time(config.created_at), True))
        if config.updated_at:
            fields.append(("Updated At", display_time(config.updated_at), True))
        return EmbedBuilder.janitor(
            interaction_user,
            title=f"Server Config for {fdisplay(self.guild)}",
            fields=fields
        )

@dataclass
class BroadcastListener:
    config: ServerConfigComplete
    log_channel: discord.abc.Messageable

    @property
    def guild(self) -> discord.Guild:
        return self.config.guild

    @property
    def server_config(self) -> ServerConfig:
        return self.config.server_config

async def resolve_log_channel(bot, server_config: ServerConfig):
    """Resolves the configured log channel or raises InvalidListener with the reason."""
    guild_id = server_config.guild_id
    if server_config.log_channel_id is None:
        raise InvalidListener(f"There is no log channel defined for {guild_id}")

    channel = bot.get_channel(server_config.log_channel_id)
    if channel is None:
        try:
            channel = await bot.fetch_channel(server_config.log_channel_id)
        except discord.HTTPException as e:
            raise InvalidListener(f"Cannot get log channel for {guild_id}") from e

    if not isinstance(channel, discord.abc.GuildChannel):
        raise InvalidListener(f"Log channel for {guild_id} is not a guild channel")
    if not isinstance(channel, discord.abc.Messageable):
        raise InvalidListener(f"Log channel for {guild_id} is not a text channel")
    return channel

async def get_log_channel(bot, server_config: Optional[ServerConfig]):
    """Like resolve_log_channel(), but logs the reason and returns None instead of raising."""
    if server_config is None:
        return None
    try:
        return await resolve_log_channel(bot, server_config)
    except InvalidListener as e:
        log.warning(str(e))
        return None

async def _validate_listener(bot, server_config: ServerConfig) -> Optional[BroadcastListener]:
    guild_id = server_config.guild_id
    try:
        channel = await resolve_log_channel(bot, server_config)
    except InvalidListener as e:
        log.warning(f"Skipping guild {guild_id} for broadcasting: {e}")
        return None

    try:
        complete = await ServerConfigComplete.from_server_config(bot, server_config)
    except (discord.HTTPException, aiosqlite.Error) as e:
        log.warning(f"Skipping guild {guild_id} for broadcasting: Failed to upgrade server config for {guild_id}: {e}")
        return None

    return BroadcastListener(complete, channel)

async def get_valid_listeners(bot) -> List[BroadcastListener]:
    """
    Every guild that can currently receive a broadcast.

    A guild with a broken configuration is left out with a warning, it never stops
    the others from being resolved. The order of the result is not meaningful.
    """
    configs = await server_configs.get_all()
    results = await asyncio.gather(*(_validate_listener(bot, c) for c in configs))
    return [r for r in results if r is not None]
