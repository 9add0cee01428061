import pytest
import discord
from unittest.mock import AsyncMock, MagicMock

from broadcast.listener import InvalidListener, get_valid_listeners, resolve_log_channel
from database.models import ServerConfig

@pytest.mark.asyncio
async def test_missing_log_channel_id(bot):
    with pytest.raises(InvalidListener, match="There is no log channel defined for 1"):
        await resolve_log_channel(bot, ServerConfig(guild_id=1))

@pytest.mark.asyncio
async def test_unreachable_log_channel(bot):
    bot.get_channel.return_value = None
    bot.fetch_channel = AsyncMock(side_effect=discord.NotFound(MagicMock(status=404), "Unknown Channel"))

    with pytest.raises(InvalidListener, match="Cannot get log channel for 1"):
        await resolve_log_channel(bot, ServerConfig(guild_id=1, log_channel_id=5))

@pytest.mark.asyncio
async def test_private_channel_is_rejected(bot):
    bot.get_channel.return_value = MagicMock(spec=discord.DMChannel)

    with pytest.raises(InvalidListener, match="is not a guild channel"):
        await resolve_log_channel(bot, ServerConfig(guild_id=1, log_channel_id=5))

@pytest.mark.asyncio
async def test_non_text_channel_is_rejected(bot):
    bot.get_channel.return_value = MagicMock(spec=discord.CategoryChannel)

    with pytest.raises(InvalidListener, match="is not a text channel"):
        await resolve_log_channel(bot, ServerConfig(guild_id=1, log_channel_id=5))

@pytest.mark.asyncio
async def test_text_channel_is_accepted(bot, mock_channel):
    bot.get_channel.return_value = mock_channel

    assert await resolve_log_channel(bot, ServerConfig(guild_id=1, log_channel_id=5)) is mock_channel

@pytest.mark.asyncio
async def test_broken_guilds_are_skipped(mocker, bot, mock_guild, mock_channel):
    configs = [ServerConfig(guild_id=1, log_channel_id=5), ServerConfig(guild_id=2)]
    mocker.patch("broadcast.listener.server_configs.get_all", new_callable=AsyncMock, return_value=configs)
    mocker.patch("broadcast.listener.user_db.get_by_guild", new_callable=AsyncMock, return_value=[])
    bot.get_channel.return_value = mock_channel
    bot.get_guild.return_value = mock_guild

    listeners = await get_valid_listeners(bot)

    assert len(listeners) == 1
    assert listeners[0].guild is mock_guild
    assert listeners[0].log_channel is mock_channel
