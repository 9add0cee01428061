import os
from datetime import datetime, timezone

# config.py builds its singleton at import, give it what it requires
os.environ.setdefault("DISCORD_TOKEN", "test-token")
os.environ.setdefault("ADMIN_SERVER_ID", "900")
os.environ.setdefault("ADMIN_SERVER_LOG_CHANNEL", "901")
os.environ.setdefault("ADMIN_SERVER_ERROR_LOG_CHANNEL", "902")

import pytest
import pytest_asyncio
import discord
from unittest.mock import MagicMock, AsyncMock

from database.core import db
from database.models import BadActor, BadActorType, ServerConfig
from broadcast.listener import BroadcastListener, ServerConfigComplete

@pytest.fixture
def mock_guild():
    guild = MagicMock(spec=discord.Guild)
    guild.id = 1
    guild.name = "Test Guild"
    guild.get_member.return_value = None
    guild.fetch_member = AsyncMock()
    guild.ban = AsyncMock()
    guild.unban = AsyncMock()
    guild.kick = AsyncMock()
    return guild

@pytest.fixture
def mock_user():
    user = MagicMock(spec=discord.User)
    user.id = 111111
    user.name = "testuser"
    user.global_name = "TestUser"
    user.mention = "<@111111>"
    user.send = AsyncMock()
    return user

@pytest.fixture
def mock_channel():
    channel = MagicMock(spec=discord.TextChannel)
    channel.id = 222222
    channel.name = "janitor-log"
    channel.send = AsyncMock()
    return channel

@pytest.fixture
def bot():
    bot = MagicMock()
    bot.user = MagicMock(spec=discord.ClientUser)
    bot.user.id = 555
    bot.user.name = "Janitor"
    bot.user.global_name = None
    # OpsLogger port
    bot.ops_log = MagicMock()
    bot.ops_log.warn = AsyncMock()
    bot.ops_log.error = AsyncMock()
    return bot

def make_member(guild, user_id: int = 111111, role_ids=()):
    member = MagicMock(spec=discord.Member)
    member.id = user_id
    member.guild = guild
    everyone = MagicMock(spec=discord.Role)
    everyone.id = guild.id
    roles = [everyone]
    for role_id in role_ids:
        role = MagicMock(spec=discord.Role)
        role.id = role_id
        roles.append(role)
    member.roles = roles
    member.timeout = AsyncMock()
    member.kick = AsyncMock()
    return member

def make_listener(guild, channel, users=(), **config_values) -> BroadcastListener:
    config = ServerConfig(guild_id=guild.id, log_channel_id=channel.id, **config_values)
    return BroadcastListener(ServerConfigComplete(config, guild, list(users)), channel)

@pytest_asyncio.fixture
async def database(tmp_path):
    """A fresh SQLite file with the full schema, bound to the global db manager."""
    old_path = db.db_path
    db.db_path = str(tmp_path / "janitor_test.sqlite")
    await db.connect()
    yield db
    await db.close()
    db.db_path = old_path

@pytest.fixture
def member_factory(mock_guild):
    return lambda user_id=111111, role_ids=(): make_member(mock_guild, user_id, role_ids)

@pytest.fixture
def listener_factory(mock_guild, mock_channel):
    return lambda users=(), **values: make_listener(mock_guild, mock_channel, users, **values)

@pytest.fixture
def bad_actor_factory():
    def factory(entry_id=12, user_id=111111, actor_type=BadActorType.SPAM, screenshot_proof=None, is_active=True):
        now = datetime.now(timezone.utc)
        return BadActor(
            id=entry_id,
            user_id=user_id,
            is_active=is_active,
            actor_type=actor_type,
            origin_guild_id=2,
            screenshot_proof=screenshot_proof,
            explanation="spam links",
            created_at=now,
            updated_at=now,
            updated_by_user_id=333
        )
    return factory
