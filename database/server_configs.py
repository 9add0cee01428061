import json
from typing import Any, Dict, List, Optional, Set

from .core import db, log
from .models import ActionLevel, ServerConfig

# Columns /config update may touch
UPDATABLE_FIELDS = (
    "log_channel_id",
    "ping_users",
    "ping_role",
    "spam_action_level",
    "impersonation_action_level",
    "bigotry_action_level",
    "honeypot_action_level",
    "ignored_roles",
    "ban_reason",
    "honeypot_timeout",
)

# Guilds whose id is not on any whitelisted user's server list
_ORPHAN_CLAUSE = """
    NOT EXISTS (
        SELECT 1 FROM users u, json_each(u.servers) j
        WHERE j.value = server_configs.guild_id
    )
"""

async def get_all() -> List[ServerConfig]:
    async with db.connection.execute("SELECT * FROM server_configs") as cursor:
        rows = await cursor.fetchall()
    return [ServerConfig.from_row(r) for r in rows]

async def get_by_guild_id(guild_id: int) -> Optional[ServerConfig]:
    async with db.connection.execute("SELECT * FROM server_configs WHERE guild_id = ?", (guild_id,)) as cursor:
        row = await cursor.fetchone()
    return ServerConfig.from_row(row) if row else None

async def get_multiple_by_guild_id(guild_ids: List[int]) -> List[ServerConfig]:
    if not guild_ids:
        return []
    placeholders = ", ".join("?" for _ in guild_ids)
    async with db.connection.execute(
        f"SELECT * FROM server_configs WHERE guild_id IN ({placeholders})", tuple(guild_ids)
    ) as cursor:
        rows = await cursor.fetchall()
    return [ServerConfig.from_row(r) for r in rows]

async def _insert_default(conn, guild_id: int):
    await conn.execute(
        "INSERT INTO server_configs (guild_id) VALUES (?) ON CONFLICT(guild_id) DO NOTHING",
        (guild_id,)
    )

async def create_default_if_not_exists(guild_id: int) -> ServerConfig:
    async with db.transaction() as conn:
        await _insert_default(conn, guild_id)
        return await get_by_guild_id(guild_id)

def _to_column(name: str, value: Any) -> Any:
    if name == "ignored_roles":
        return json.dumps([int(r) for r in value])
    if isinstance(value, ActionLevel):
        return int(value)
    if isinstance(value, bool):
        return int(value)
    return value

async def update(guild_id: int, values: Dict[str, Any]) -> Optional[ServerConfig]:
    """
    Applies the given column values to a guild's config.

    Keys with a None value are left untouched, so callers can pass every option of
    the /config update command as is.
    """
    changes = {k: v for k, v in values.items() if v is not None}
    unknown = set(changes) - set(UPDATABLE_FIELDS)
    if unknown:
        raise ValueError(f"Cannot update server config columns: {sorted(unknown)}")

    async with db.transaction() as conn:
        await _insert_default(conn, guild_id)
        if changes:
            assignments = ", ".join(f"{k} = ?" for k in changes)
            params = tuple(_to_column(k, v) for k, v in changes.items())
            await conn.execute(
                f"UPDATE server_configs SET {assignments}, updated_at = CURRENT_TIMESTAMP WHERE guild_id = ?",
                (*params, guild_id)
            )
        return await get_by_guild_id(guild_id)

async def _delete_where(conn, clause: str, params: tuple = ()) -> List[ServerConfig]:
    async with conn.execute(f"SELECT * FROM server_configs WHERE {clause}", params) as cursor:
        removed = [ServerConfig.from_row(r) for r in await cursor.fetchall()]
    await conn.execute(f"DELETE FROM server_configs WHERE {clause}", params)
    return removed

async def delete_if_needed(guild_id: int) -> Optional[ServerConfig]:
    """
    Deletes the config of a guild that no whitelisted user belongs to anymore.

    Returns the deleted config, so the caller can drop its honeypot channel.
    """
    async with db.transaction() as conn:
        removed = await _delete_where(conn, f"guild_id = ? AND {_ORPHAN_CLAUSE}", (guild_id,))
    if not removed:
        return None
    log.database(f"Deleted server config for guild {guild_id}, no whitelisted users left")
    return removed[0]

async def delete_orphaned() -> List[ServerConfig]:
    async with db.transaction() as conn:
        return await _delete_where(conn, _ORPHAN_CLAUSE)

async def set_honeypot_channel(guild_id: int, channel_id: int) -> Optional[int]:
    """Stores the honeypot channel and returns the one it replaced, if any."""
    async with db.transaction() as conn:
        await _insert_default(conn, guild_id)
        previous = await get_by_guild_id(guild_id)
        await conn.execute(
            "UPDATE server_configs SET honeypot_channel_id = ?, updated_at = CURRENT_TIMESTAMP WHERE guild_id = ?",
            (channel_id, guild_id)
        )
    return previous.honeypot_channel_id

async def remove_honeypot_channel(guild_id: int) -> Optional[int]:
    """Clears the honeypot channel and returns the removed id, if any."""
    async with db.transaction() as conn:
        config = await get_by_guild_id(guild_id)
        if config is None or config.honeypot_channel_id is None:
            return None
        await conn.execute(
            "UPDATE server_configs SET honeypot_channel_id = NULL, updated_at = CURRENT_TIMESTAMP WHERE guild_id = ?",
            (guild_id,)
        )
    return config.honeypot_channel_id

async def get_honeypot_channels() -> Set[int]:
    async with db.connection.execute(
        "SELECT honeypot_channel_id FROM server_configs WHERE honeypot_channel_id IS NOT NULL"
    ) as cursor:
        rows = await cursor.fetchall()
    return {r["honeypot_channel_id"] for r in rows}
