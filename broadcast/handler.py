import asyncio
from typing import Iterable, Optional

import aiosqlite
import discord

from utils.logger import get_logger
from utils.screenshot import Screenshot

from .admin import broadcast_admin_server, notify_user
from .embed import build_broadcast_embed
from .listener import BroadcastListener, get_valid_listeners
from .moderate import get_moderation_action, moderate
from .send import send_broadcast_message
from .types import BroadcastOptions
from .webhooks import broadcast_to_webhooks

log = get_logger()

async def _report_unexpected(bot, results: Iterable, context: str):
    for result in results:
        if isinstance(result, Exception):
            await bot.ops_log.error(result, f"Unexpected error while {context}")

async def broadcast_listener(
    bot,
    listener: BroadcastListener,
    options: BroadcastOptions,
    embed: discord.Embed,
    screenshot: Optional[Screenshot]
):
    action_level = get_moderation_action(
        options.broadcast_type, options.bad_actor.actor_type, listener.server_config
    )
    results = await asyncio.gather(
        send_broadcast_message(bot, listener, options, embed, screenshot, action_level),
        moderate(bot, listener, options, action_level),
        return_exceptions=True
    )
    await _report_unexpected(bot, results, f"broadcasting to guild {listener.guild.id}")

async def broadcast(bot, options: BroadcastOptions):
    """
    Tells the admin server, the target and every listening guild about a bad actor event.

    Order is admin server, then the DM, then all listeners and webhooks at once. Only
    failing to load the listeners or to build the embed stops a broadcast, everything
    after that is isolated per destination.
    """
    broadcast_type = options.broadcast_type
    bad_actor = options.bad_actor

    try:
        listeners = await get_valid_listeners(bot)
    except aiosqlite.Error as e:
        await bot.ops_log.error(e, "Failed to get valid listeners from the database")
        return

    try:
        embed, screenshot = build_broadcast_embed(
            bot.user,
            bad_actor,
            options.target_user,
            options.reporting_user,
            broadcast_type.color,
            options.origin_guild
        )
    except OSError as e:
        await bot.ops_log.error(e, f"Failed to build broadcast embed for bad actor {bad_actor.id}")
        return

    await broadcast_admin_server(bot, options, embed, screenshot)

    if broadcast_type.is_new_report:
        await notify_user(bot, options)

    results = await asyncio.gather(
        broadcast_to_webhooks(bot, broadcast_type.message, embed, screenshot),
        *(broadcast_listener(bot, listener, options, embed, screenshot) for listener in listeners),
        return_exceptions=True
    )
    await _report_unexpected(bot, results, f"broadcasting bad actor {bad_actor.id}")

    log.discord(f"Broadcast {broadcast_type.name} for bad actor {bad_actor.id} to {len(listeners)} listener(s)")
