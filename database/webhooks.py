from typing import List

from .core import db
from .models import BroadcastWebhook

async def get_all() -> List[BroadcastWebhook]:
    async with db.connection.execute("SELECT guild_id, guild_name, webhook_url FROM webhooks") as cursor:
        rows = await cursor.fetchall()
    return [BroadcastWebhook(r["guild_id"], r["guild_name"], r["webhook_url"]) for r in rows]
