from datetime import datetime, timezone

import pytest
import discord
from unittest.mock import AsyncMock, MagicMock

from commands.scores import format_leaderboard, guild_score_message, user_score_message
from commands.server_config import config_embeds
from database.models import Scoreboard
from utils.embed_builder import EmbedBuilder, EmbedColor, clamp
from utils.format import display, display_bool, display_time, escape_markdown, fdisplay
from utils.logger import OpsLogger, sanitize_msg
from utils.parsing import parse_ids
from utils.permissions import check_bot_permissions, is_bot_admin
from utils.screenshot import FileManager, ScreenshotError

def test_display_helpers(mock_user, mock_guild):
    assert display(mock_user) == "TestUser (111111)"
    assert fdisplay(mock_user) == "TestUser (`111111`)"
    assert display(mock_guild) == "Test Guild (1)"
    assert escape_markdown("a_b*c") == "a\\_b\\*c"
    assert display_bool(True) == "Yes"

def test_display_time():
    dt = datetime(2024, 1, 1, tzinfo=timezone.utc)
    ts = int(dt.timestamp())
    assert display_time(dt) == f"<t:{ts}:D>\n<t:{ts}:R>"

def test_parse_ids():
    assert parse_ids("1, 2,3,, 2") == [1, 2, 3]
    assert parse_ids("") == []
    with pytest.raises(ValueError):
        parse_ids("1, abc")

def test_clamp():
    assert clamp("short", 10) == "short"
    assert clamp("x" * 100, 50).endswith("*(truncated)*")
    assert len(clamp("x" * 100, 50)) <= 50

def test_troubleshoot_embed():
    embed = EmbedBuilder.troubleshoot("not_admin")
    assert embed.color.value == EmbedColor.RED
    assert "/adminlist" in embed.description

def test_score_messages(mock_user, mock_guild):
    assert "have not created any reports" in guild_score_message(mock_guild, 0)
    assert "have reported 4 bad actors" in guild_score_message(mock_guild, 4)
    assert user_score_message(mock_user, 0).endswith("has not created any reports for bad actors yet.")
    assert user_score_message(mock_user, 20).endswith("Keep up the good work!")
    assert user_score_message(mock_user, 21).endswith("What a hero!")

def test_leaderboard_ranks_and_skips_zero():
    entries = [Scoreboard(1, 5), Scoreboard(2, 3), Scoreboard(3, 0)]
    assert format_leaderboard(entries, lambda s: f"<@{s.discord_id}>") == "1. <@1>: `5`\n2. <@2>: `3`"
    assert format_leaderboard([], str) == "Nobody has reported anyone yet."

def test_sanitize_msg():
    assert sanitize_msg("Failed to ban!") == "Failed to ban"
    assert sanitize_msg("Skipping report.") == "Skipping report"
    assert sanitize_msg("no punctuation") == "no punctuation"

@pytest.mark.asyncio
async def test_ops_logger_posts_embeds(mock_channel):
    bot = MagicMock()
    bot.get_channel.return_value = mock_channel
    ops_log = OpsLogger(bot, mock_channel.id)

    await ops_log.warn("Something looks off.")
    await ops_log.error(RuntimeError("boom"), "It broke!")

    warn_embed = mock_channel.send.call_args_list[0].kwargs["embed"]
    error_embed = mock_channel.send.call_args_list[1].kwargs["embed"]
    assert warn_embed.description == "Something looks off"
    assert warn_embed.color.value == OpsLogger.WARN_COLOR
    assert error_embed.description == "It broke\n\n```boom```"
    assert error_embed.color.value == OpsLogger.ERROR_COLOR
    assert error_embed.footer.text == "Error Log"

@pytest.mark.asyncio
async def test_ops_logger_survives_send_failure(mock_channel):
    bot = MagicMock()
    bot.get_channel.return_value = mock_channel
    mock_channel.send.side_effect = discord.Forbidden(MagicMock(status=403), "Missing Access")

    await OpsLogger(bot, mock_channel.id).warn("still fine")

def make_attachment(filename: str, size: int = 10, data: bytes = b"img"):
    attachment = MagicMock(spec=discord.Attachment)
    attachment.filename = filename
    attachment.size = size
    attachment.read = AsyncMock(return_value=data)
    return attachment

@pytest.mark.asyncio
async def test_screenshot_save_get_delete(tmp_path):
    manager = FileManager(str(tmp_path / "shots"))

    name = await manager.save(make_attachment("proof.PNG"), 42)

    assert name.endswith("_42.png")
    shot = manager.get(name)
    assert shot.data == b"img"
    assert shot.url == f"attachment://{name}"

    manager.delete(name)
    assert manager.get(name) is None

@pytest.mark.asyncio
async def test_screenshot_validation(tmp_path):
    manager = FileManager(str(tmp_path))

    with pytest.raises(ScreenshotError):
        await manager.save(make_attachment("proof.gif"), 1)
    with pytest.raises(ScreenshotError):
        await manager.save(make_attachment("proof.png", size=5 * 1024 * 1024), 1)

@pytest.mark.asyncio
async def test_superuser_is_always_admin(mocker):
    mocker.patch("utils.permissions.shared_config.SUPERUSER_ID", 1)
    lookup = mocker.patch("utils.permissions.admins.get", new_callable=AsyncMock, return_value=None)

    assert await is_bot_admin(1) is True
    lookup.assert_not_called()
    assert await is_bot_admin(2) is False

def test_missing_bot_permissions(mock_guild):
    mock_guild.me = MagicMock()
    mock_guild.me.guild_permissions = discord.Permissions(ban_members=True, kick_members=True)

    missing = check_bot_permissions(mock_guild)

    assert missing == ["Timeout Members (Timeout)", "Manage Messages (Honeypot cleanup)"]

def test_config_embeds_warns_about_missing_permissions(mock_guild, mock_user):
    complete = MagicMock()
    complete.to_embed.return_value = discord.Embed(title="Config")
    interaction = MagicMock(spec=discord.Interaction)
    interaction.guild = mock_guild
    interaction.user = mock_user

    mock_guild.me = MagicMock()
    mock_guild.me.guild_permissions = discord.Permissions.all()
    assert len(config_embeds(complete, interaction)) == 1

    mock_guild.me.guild_permissions = discord.Permissions(ban_members=True, kick_members=True)
    embeds = config_embeds(complete, interaction)

    assert len(embeds) == 2
    assert embeds[1].color.value == EmbedColor.GOLD
    assert "Timeout Members (Timeout)" in embeds[1].description
