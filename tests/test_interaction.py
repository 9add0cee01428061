import pytest
import discord
from unittest.mock import AsyncMock, MagicMock

from broadcast.embed import build_broadcast_embed
from broadcast.types import ModerationAction
from moderation.interaction import (
    ButtonTarget,
    handle_legacy_interaction,
    handle_moderation_button,
    parse_broadcast_embed,
    parse_legacy_custom_id,
)

def make_interaction(mock_guild, permissions: dict, custom_id: str = "ban"):
    interaction = MagicMock(spec=discord.Interaction)
    interaction.guild = mock_guild
    interaction.type = discord.InteractionType.component
    interaction.data = {"custom_id": custom_id}
    interaction.user = MagicMock(spec=discord.Member)
    interaction.user.id = 4242
    interaction.user.name = "moderator"
    interaction.user.global_name = None
    interaction.user.mention = "<@4242>"
    interaction.user.guild_permissions = MagicMock(**permissions)
    interaction.response = MagicMock()
    interaction.response.send_message = AsyncMock()
    interaction.response.defer = AsyncMock()
    interaction.message = MagicMock()
    interaction.message.edit = AsyncMock()
    return interaction

def test_parse_broadcast_embed(mock_user, bad_actor_factory):
    embed, _ = build_broadcast_embed(None, bad_actor_factory(entry_id=12, user_id=mock_user.id), mock_user, None)

    target = parse_broadcast_embed(embed, ModerationAction.BAN)

    assert target == ButtonTarget(ModerationAction.BAN, mock_user.id, report_id=12, actor_type="spam")

def test_foreign_embeds_are_rejected(mock_user, bad_actor_factory):
    embed, _ = build_broadcast_embed(None, bad_actor_factory(), mock_user, None)
    embed.add_field(name="Extra", value="field")

    assert parse_broadcast_embed(embed, ModerationAction.BAN) is None
    assert parse_broadcast_embed(discord.Embed(title="`123`"), ModerationAction.BAN) is None

def test_legacy_custom_ids():
    assert parse_legacy_custom_id("ban") is ModerationAction.BAN
    assert parse_legacy_custom_id("unban") is ModerationAction.UNBAN
    assert parse_legacy_custom_id("confirm") is None
    assert parse_legacy_custom_id("janitor:ban:1:2") is None

@pytest.mark.asyncio
async def test_missing_permission_is_refused(bot, mock_guild):
    interaction = make_interaction(mock_guild, {"ban_members": False})

    await handle_moderation_button(bot, interaction, ButtonTarget(ModerationAction.BAN, 111111, report_id=1))

    interaction.response.send_message.assert_awaited_once()
    assert interaction.response.send_message.call_args.kwargs["ephemeral"] is True
    mock_guild.ban.assert_not_called()
    interaction.message.edit.assert_not_called()

@pytest.mark.asyncio
async def test_ban_button_bans_and_strips_buttons(mocker, bot, mock_guild, mock_user, mock_channel, bad_actor_factory):
    interaction = make_interaction(mock_guild, {"ban_members": True})
    bot.get_user.return_value = mock_user
    mocker.patch("moderation.interaction.server_configs.get_by_guild_id", new_callable=AsyncMock, return_value=MagicMock(ban_reason=None))
    mocker.patch("moderation.interaction.bad_actors.get_by_id", new_callable=AsyncMock, return_value=bad_actor_factory(entry_id=1))
    mocker.patch("moderation.interaction.get_log_channel", new_callable=AsyncMock, return_value=mock_channel)

    await handle_moderation_button(bot, interaction, ButtonTarget(ModerationAction.BAN, mock_user.id, report_id=1))

    mock_guild.ban.assert_awaited_once()
    assert mock_guild.ban.call_args.kwargs["reason"] == "Bad Actor spam (1)"
    assert "took moderation action `ban`" in mock_channel.send.call_args[0][0]
    interaction.message.edit.assert_awaited_once_with(view=None)

@pytest.mark.asyncio
async def test_unknown_ban_on_unban(mocker, bot, mock_guild, mock_user, mock_channel):
    interaction = make_interaction(mock_guild, {"ban_members": True}, custom_id="unban")
    bot.get_user.return_value = mock_user
    mocker.patch("moderation.interaction.server_configs.get_by_guild_id", new_callable=AsyncMock, return_value=None)
    mocker.patch("moderation.interaction.bad_actors.get_by_id", new_callable=AsyncMock, return_value=None)
    mocker.patch("moderation.interaction.get_log_channel", new_callable=AsyncMock, return_value=mock_channel)
    mock_guild.unban.side_effect = discord.NotFound(MagicMock(status=404), {"code": 10026, "message": "Unknown Ban"})

    await handle_moderation_button(bot, interaction, ButtonTarget(ModerationAction.UNBAN, mock_user.id, report_id=1))

    assert "they were not banned in the first place" in mock_channel.send.call_args[0][0]
    bot.ops_log.error.assert_not_called()
    interaction.message.edit.assert_awaited_once_with(view=None)

@pytest.mark.asyncio
async def test_missing_log_channel_warns(mocker, bot, mock_guild, mock_user):
    interaction = make_interaction(mock_guild, {"kick_members": True}, custom_id="kick")
    bot.get_user.return_value = mock_user
    mocker.patch("moderation.interaction.server_configs.get_by_guild_id", new_callable=AsyncMock, return_value=None)
    mocker.patch("moderation.interaction.bad_actors.get_by_id", new_callable=AsyncMock, return_value=None)

    await handle_moderation_button(bot, interaction, ButtonTarget(ModerationAction.KICK, mock_user.id, report_id=1))

    bot.ops_log.warn.assert_awaited_once()
    assert "missing log channel" in bot.ops_log.warn.call_args[0][0]
    mock_guild.kick.assert_not_called()

@pytest.mark.asyncio
async def test_legacy_interaction_reads_the_embed(mocker, bot, mock_guild, mock_user, bad_actor_factory):
    interaction = make_interaction(mock_guild, {"ban_members": True})
    embed, _ = build_broadcast_embed(None, bad_actor_factory(entry_id=8, user_id=mock_user.id), mock_user, None)
    interaction.message.embeds = [embed]
    handler = mocker.patch("moderation.interaction.handle_moderation_button", new_callable=AsyncMock)

    await handle_legacy_interaction(bot, interaction)

    target = handler.call_args[0][2]
    assert target.action is ModerationAction.BAN
    assert target.user_id == mock_user.id
    assert target.report_id == 8
