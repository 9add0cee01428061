import asyncio
from typing import List, Optional, Tuple

import aiosqlite
import discord

from database import webhooks as webhook_db
from database.models import BroadcastWebhook
from utils.logger import get_logger
from utils.screenshot import Screenshot

log = get_logger()

async def _resolve(bot, row: BroadcastWebhook) -> Optional[Tuple[BroadcastWebhook, discord.Webhook]]:
    try:
        webhook = discord.Webhook.from_url(row.webhook_url, session=bot.http_session, client=bot)
        # from_url is offline, fetch() proves the webhook still exists
        webhook = await webhook.fetch()
    except (ValueError, discord.HTTPException) as e:
        await bot.ops_log.error(e, f"Failed to connect to webhook in guild {row.guild_name} ({row.guild_id})")
        return None
    return row, webhook

async def _execute(
    bot,
    row: BroadcastWebhook,
    webhook: discord.Webhook,
    content: str,
    embed: discord.Embed,
    screenshot: Optional[Screenshot]
):
    kwargs = {"content": content, "embed": embed, "username": bot.user.name if bot.user else "Janitor"}
    if screenshot is not None:
        kwargs["file"] = screenshot.to_file()
    try:
        await webhook.send(**kwargs)
    except discord.HTTPException as e:
        await bot.ops_log.error(e, f"Failed to send broadcast embed to webhook in guild {row.guild_name} ({row.guild_id})")

async def broadcast_to_webhooks(
    bot,
    content: str,
    embed: discord.Embed,
    screenshot: Optional[Screenshot] = None
):
    """Best effort delivery to every stored webhook, failures are logged and skipped."""
    try:
        rows = await webhook_db.get_all()
    except aiosqlite.Error as e:
        await bot.ops_log.error(e, "Failed to get webhooks from the database")
        return

    resolved: List[Tuple[BroadcastWebhook, discord.Webhook]] = [
        r for r in await asyncio.gather(*(_resolve(bot, row) for row in rows)) if r is not None
    ]
    if not resolved:
        return

    await asyncio.gather(
        *(_execute(bot, row, webhook, content, embed, screenshot) for row, webhook in resolved)
    )
    log.discord(f"Broadcast pushed to {len(resolved)}/{len(rows)} webhook(s)")
