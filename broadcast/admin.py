from typing import Optional

import discord

from config import shared_config
from utils.format import display
from utils.logger import get_logger
from utils.screenshot import Screenshot

from .types import BroadcastOptions

log = get_logger()

DM_NOTICE = (
    "It appears your account has been compromised and used as a spam bot.\n\n"
    "As part of a collaborative effort to more efficiently moderate TMC servers, the actions as listed "
    "in the embed have been taken against your account.\n"
    "Since not all guilds have automatic moderation, it's possible that you have been banned from more "
    "servers than listed.\n\n"
    "If you have now recovered your account, please join this server (https://discord.gg/7tp82FGk3n).\n"
    "Follow the instructions there to clear your name and remove the bans on your account."
)

async def broadcast_admin_server(
    bot,
    options: BroadcastOptions,
    embed: discord.Embed,
    screenshot: Optional[Screenshot]
):
    channel_id = shared_config.ADMIN_SERVER_LOG_CHANNEL
    kwargs = {"content": options.broadcast_type.message, "embed": embed}
    if screenshot is not None:
        kwargs["file"] = screenshot.to_file()
    try:
        channel = bot.get_channel(channel_id) or await bot.fetch_channel(channel_id)
        await channel.send(**kwargs)
    except discord.HTTPException as e:
        await bot.ops_log.error(e, "Failed to send broadcast embed to the admin server")

async def notify_user(bot, options: BroadcastOptions):
    try:
        await options.target_user.send(content=DM_NOTICE)
    except discord.HTTPException as e:
        await bot.ops_log.warn(f"Failed to notify {display(options.target_user)} about their report: {e}")
