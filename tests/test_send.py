import pytest
import discord
from unittest.mock import MagicMock

from broadcast.send import build_moderation_view, get_buttons, get_message_with_pings, send_broadcast_message
from broadcast.types import BroadcastOptions, BroadcastType, ModerationAction
from database.models import ActionLevel
from moderation.interaction import ModerationButton

MESSAGE = BroadcastType.REPORT.message

def test_origin_guild_is_never_pinged(mock_guild, listener_factory):
    listener = listener_factory(users=[10, 11], ping_users=True, ping_role=40)

    assert get_message_with_pings(MESSAGE, listener, mock_guild.id, ActionLevel.NOTIFY) == MESSAGE

def test_acting_guild_is_not_pinged(listener_factory):
    listener = listener_factory(users=[10], ping_users=True, ping_role=40)

    assert get_message_with_pings(MESSAGE, listener, 999, ActionLevel.BAN) == MESSAGE

def test_role_and_users_are_pinged(listener_factory):
    listener = listener_factory(users=[10, 11], ping_users=True, ping_role=40)

    content = get_message_with_pings(MESSAGE, listener, 999, ActionLevel.NOTIFY)

    assert content == f"{MESSAGE}\n<@&40>\n<@10>\n<@11>"

def test_users_only_pinged_when_enabled(listener_factory):
    listener = listener_factory(users=[10], ping_users=False, ping_role=40)

    assert get_message_with_pings(MESSAGE, listener, 999, ActionLevel.NOTIFY) == f"{MESSAGE}\n<@&40>"

def test_buttons_per_broadcast_type():
    new_report = (ModerationAction.BAN, ModerationAction.SOFTBAN, ModerationAction.KICK)

    assert get_buttons(BroadcastType.REPORT, ActionLevel.NOTIFY) == new_report
    assert get_buttons(BroadcastType.HONEYPOT, ActionLevel.NOTIFY) == new_report
    assert get_buttons(BroadcastType.REPORT, ActionLevel.BAN) == ()
    assert get_buttons(BroadcastType.DEACTIVATE, ActionLevel.NOTIFY) == (ModerationAction.UNBAN,)
    assert get_buttons(BroadcastType.UPDATE_EXPLANATION, ActionLevel.NOTIFY) == ()

@pytest.mark.asyncio
async def test_view_carries_report_and_user():
    view = build_moderation_view(BroadcastType.REPORT, ActionLevel.NOTIFY, report_id=12, user_id=34)

    assert view.timeout is None
    custom_ids = [item.item.custom_id for item in view.children if isinstance(item, ModerationButton)]
    assert custom_ids == ["janitor:ban:12:34", "janitor:softban:12:34", "janitor:kick:12:34"]

@pytest.mark.asyncio
async def test_no_view_without_buttons():
    assert build_moderation_view(BroadcastType.ADD_SCREENSHOT, ActionLevel.NOTIFY, 1, 2) is None

@pytest.mark.asyncio
async def test_send_failure_goes_to_ops_log(bot, mock_user, listener_factory):
    listener = listener_factory()
    listener.log_channel.send.side_effect = discord.Forbidden(MagicMock(status=403), "Missing Access")
    options = BroadcastOptions(
        bad_actor=MagicMock(id=1),
        target_user=mock_user,
        reporting_user=MagicMock(),
        broadcast_type=BroadcastType.ADD_SCREENSHOT,
        origin_guild_id=999
    )

    await send_broadcast_message(bot, listener, options, discord.Embed(), None, ActionLevel.NOTIFY)

    bot.ops_log.error.assert_awaited_once()
