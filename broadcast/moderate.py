from datetime import timedelta
from typing import Awaitable, Callable, List, Optional

import discord

from database.models import ActionLevel, BadActor, BadActorType, ServerConfig
from utils.format import display, fdisplay, role_mention
from utils.logger import get_logger

from .listener import BroadcastListener
from .types import BroadcastOptions, BroadcastType

log = get_logger()

TIMEOUT_DURATION = timedelta(days=7)
BAN_DELETE_MESSAGE_SECONDS = 7 * 24 * 60 * 60
MAX_BAN_REASON_LENGTH = 500

SUCCESS_MESSAGES = {
    ActionLevel.TIMEOUT: "User {user} was timed out for 7 days!",
    ActionLevel.KICK: "User {user} was kicked from your server!",
    ActionLevel.SOFTBAN: "User {user} was softbanned from your server!",
    ActionLevel.BAN: "User {user} was banned from your server!",
}

def get_moderation_action(
    broadcast_type: BroadcastType,
    actor_type: BadActorType,
    server_config: ServerConfig
) -> ActionLevel:
    # Follow-up broadcasts only inform, enforcement happens once when the report is new
    if not broadcast_type.is_new_report:
        return ActionLevel.NOTIFY
    return server_config.action_level_for(actor_type)

def get_ban_reason(server_config: Optional[ServerConfig], bad_actor: BadActor) -> str:
    template = server_config.ban_reason if server_config else None
    if not template:
        return f"Bad Actor {bad_actor.actor_type} ({bad_actor.id})"
    return template.replace("{id}", str(bad_actor.id)).replace("{type}", str(bad_actor.actor_type))

def check_ban_reason(ban_reason: str) -> bool:
    """Braces must be balanced and never close before they open."""
    depth = 0
    for c in ban_reason:
        if c == "{":
            depth += 1
        elif c == "}":
            depth -= 1
        if depth < 0:
            return False
    return depth == 0

def get_non_ignored_roles(member: discord.Member, ignored_roles: List[int]) -> List[discord.Role]:
    # @everyone shares its id with the guild
    return [r for r in member.roles if r.id != member.guild.id and r.id not in ignored_roles]

async def fetch_member(guild: discord.Guild, user_id: int) -> Optional[discord.Member]:
    member = guild.get_member(user_id)
    if member is not None:
        return member
    try:
        return await guild.fetch_member(user_id)
    except discord.NotFound:
        return None

async def send_log_message(channel: discord.abc.Messageable, content: str):
    try:
        await channel.send(content)
    except discord.HTTPException as e:
        log.error(f"Failed to send moderation log message to channel {channel.id}", exc_info=e)

async def ban(guild: discord.Guild, user: discord.abc.Snowflake, reason: str):
    await guild.ban(user, reason=reason, delete_message_seconds=BAN_DELETE_MESSAGE_SECONDS)

async def softban(guild: discord.Guild, user: discord.abc.Snowflake, reason: str):
    await ban(guild, user, reason)
    await guild.unban(user, reason=reason)

async def execute(
    bot,
    listener: BroadcastListener,
    user: discord.abc.User,
    action_level: ActionLevel,
    action: Callable[[], Awaitable[None]]
) -> bool:
    """Runs one Discord side action and reports the outcome into the guild's log channel."""
    try:
        await action()
    except discord.HTTPException as e:
        await bot.ops_log.error(e, f"Error moderating {display(user)} in {display(listener.guild)}")
        await send_log_message(listener.log_channel, f"Failed to {action_level} user {fdisplay(user)} in your server!")
        return False

    await send_log_message(listener.log_channel, SUCCESS_MESSAGES[action_level].format(user=fdisplay(user)))
    return True

async def moderate(bot, listener: BroadcastListener, options: BroadcastOptions, action_level: ActionLevel):
    """
    Enforces a single report in a single listening guild.

    Nothing raised here reaches the caller. Each failure is logged and reported to the
    guild, so one guild can never break the broadcast for the others.
    """
    if action_level is ActionLevel.NOTIFY:
        return

    guild = listener.guild
    user = options.target_user
    reason = get_ban_reason(listener.server_config, options.bad_actor)

    try:
        member = await fetch_member(guild, user.id)
    except discord.HTTPException as e:
        await bot.ops_log.error(e, f"Error moderating {display(user)} in {display(guild)}")
        return

    if member is None:
        if action_level is ActionLevel.BAN:
            # Bans do not require membership
            await execute(bot, listener, user, action_level, lambda: ban(guild, user, reason))
        else:
            await send_log_message(
                listener.log_channel,
                f"User {fdisplay(user)} is not a member of your server. Skipping moderation."
            )
        return

    roles = get_non_ignored_roles(member, listener.server_config.ignored_roles)
    if roles:
        mentions = ", ".join(role_mention(r.id) for r in roles)
        await send_log_message(
            listener.log_channel,
            f"User {fdisplay(user)} has roles that are not ignored. Those roles are {mentions}. "
            "Skipping all moderation action."
        )
        return

    if action_level is ActionLevel.TIMEOUT:
        action = lambda: member.timeout(TIMEOUT_DURATION, reason=reason)
    elif action_level is ActionLevel.KICK:
        action = lambda: member.kick(reason=reason)
    elif action_level is ActionLevel.SOFTBAN:
        action = lambda: softban(guild, member, reason)
    else:
        action = lambda: ban(guild, member, reason)

    await execute(bot, listener, user, action_level, action)
