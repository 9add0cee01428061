from typing import Optional, Tuple

import discord

from database.models import ActionLevel
from moderation.interaction import ModerationButton
from utils.format import display, role_mention, user_mention
from utils.logger import get_logger
from utils.screenshot import Screenshot

from .listener import BroadcastListener
from .types import BroadcastOptions, BroadcastType, ModerationAction

log = get_logger()

def get_buttons(broadcast_type: BroadcastType, action_level: ActionLevel) -> Tuple[ModerationAction, ...]:
    # A guild that already acted automatically has nothing left to decide
    if broadcast_type.is_new_report and action_level is not ActionLevel.NOTIFY:
        return ()
    return broadcast_type.buttons

def build_moderation_view(
    broadcast_type: BroadcastType,
    action_level: ActionLevel,
    report_id: int,
    user_id: int
) -> Optional[discord.ui.View]:
    buttons = get_buttons(broadcast_type, action_level)
    if not buttons:
        return None
    view = discord.ui.View(timeout=None)
    for action in buttons:
        view.add_item(ModerationButton(action, report_id, user_id))
    return view

def get_message_with_pings(
    message: str,
    listener: BroadcastListener,
    origin_guild_id: int,
    action_level: ActionLevel
) -> str:
    """
    Appends the listener's ping role and whitelisted users to the broadcast message.

    The guild that filed the report already knows, and a guild where an automatic
    action is being taken gets the result message instead, so neither is pinged.
    """
    if listener.guild.id == origin_guild_id or action_level is not ActionLevel.NOTIFY:
        return message

    config = listener.server_config
    content = message
    if config.ping_role is not None:
        content += f"\n{role_mention(config.ping_role)}"
    if config.ping_users and listener.config.users:
        content += "\n" + "\n".join(user_mention(u) for u in listener.config.users)
    return content

async def send_broadcast_message(
    bot,
    listener: BroadcastListener,
    options: BroadcastOptions,
    embed: discord.Embed,
    screenshot: Optional[Screenshot],
    action_level: ActionLevel
):
    content = get_message_with_pings(
        options.broadcast_type.message, listener, options.origin_guild_id, action_level
    )
    view = build_moderation_view(
        options.broadcast_type, action_level, options.bad_actor.id, options.target_user.id
    )

    kwargs = {"content": content, "embed": embed}
    if view is not None:
        kwargs["view"] = view
    if screenshot is not None:
        kwargs["file"] = screenshot.to_file()

    try:
        await listener.log_channel.send(**kwargs)
    except discord.HTTPException as e:
        await bot.ops_log.error(e, f"Failed to send broadcast message to {display(listener.guild)}")
