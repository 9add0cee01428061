import json
from typing import List, Optional

from .core import db, log
from .models import JanitorUser, UserType

class UserAlreadyExists(Exception):
    pass

async def create(user_id: int, user_type: UserType, guild_ids: List[int]) -> JanitorUser:
    async with db.transaction() as conn:
        if await get(user_id) is not None:
            raise UserAlreadyExists(user_id)
        await conn.execute(
            "INSERT INTO users (id, servers, user_type) VALUES (?, ?, ?)",
            (user_id, json.dumps(guild_ids), user_type.value)
        )
        created = await get(user_id)
    log.database(f"Whitelisted user {user_id} for {len(guild_ids)} server(s)")
    return created

async def get(user_id: int) -> Optional[JanitorUser]:
    async with db.connection.execute("SELECT * FROM users WHERE id = ?", (user_id,)) as cursor:
        row = await cursor.fetchone()
    return JanitorUser.from_row(row) if row else None

async def get_by_guild(guild_id: int, limit: int = 10) -> List[JanitorUser]:
    async with db.connection.execute(
        """
        SELECT * FROM users
        WHERE EXISTS (SELECT 1 FROM json_each(users.servers) j WHERE j.value = ?)
        LIMIT ?
        """,
        (guild_id, limit)
    ) as cursor:
        rows = await cursor.fetchall()
    return [JanitorUser.from_row(r) for r in rows]

async def update(
    user_id: int,
    guild_ids: Optional[List[int]] = None,
    user_type: Optional[UserType] = None
) -> Optional[JanitorUser]:
    async with db.transaction() as conn:
        current = await get(user_id)
        if current is None:
            return None
        servers = guild_ids if guild_ids is not None else current.guild_ids
        kind = user_type if user_type is not None else current.user_type
        await conn.execute(
            "UPDATE users SET servers = ?, user_type = ? WHERE id = ?",
            (json.dumps(servers), kind.value, user_id)
        )
        return await get(user_id)

async def delete(user_id: int) -> Optional[JanitorUser]:
    async with db.transaction() as conn:
        current = await get(user_id)
        if current is None:
            return None
        await conn.execute("DELETE FROM users WHERE id = ?", (user_id,))
    log.database(f"Removed user {user_id} from the whitelist")
    return current
