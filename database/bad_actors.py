from enum import Enum
from typing import List, Optional

from .core import db, log
from .models import BadActor, CreateBadActorOptions

class BadActorQueryType(str, Enum):
    ALL = "all"
    ACTIVE = "active"
    INACTIVE = "inactive"

async def create(options: CreateBadActorOptions) -> BadActor:
    async with db.transaction() as conn:
        cursor = await conn.execute(
            """
            INSERT INTO bad_actors (user_id, actor_type, origin_guild_id, screenshot_proof, explanation, updated_by_user_id)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                options.user_id,
                options.actor_type.value,
                options.origin_guild_id,
                options.screenshot_proof,
                options.explanation,
                options.updated_by_user_id,
            )
        )
        created = await get_by_id(cursor.lastrowid)
    log.database(f"Created bad actor entry {created.id} for user {options.user_id}")
    return created

async def get_by_id(entry_id: int) -> Optional[BadActor]:
    async with db.connection.execute("SELECT * FROM bad_actors WHERE id = ?", (entry_id,)) as cursor:
        row = await cursor.fetchone()
    return BadActor.from_row(row) if row else None

async def get_by_user_id(user_id: int) -> List[BadActor]:
    async with db.connection.execute(
        "SELECT * FROM bad_actors WHERE user_id = ? ORDER BY created_at DESC, id DESC", (user_id,)
    ) as cursor:
        rows = await cursor.fetchall()
    return [BadActor.from_row(r) for r in rows]

async def get_latest(limit: int, query_type: BadActorQueryType = BadActorQueryType.ALL) -> List[BadActor]:
    where = {
        BadActorQueryType.ALL: "",
        BadActorQueryType.ACTIVE: "WHERE is_active = 1",
        BadActorQueryType.INACTIVE: "WHERE is_active = 0",
    }[query_type]
    async with db.connection.execute(
        f"SELECT * FROM bad_actors {where} ORDER BY created_at DESC, id DESC LIMIT ?", (limit,)
    ) as cursor:
        rows = await cursor.fetchall()
    return [BadActor.from_row(r) for r in rows]

async def has_active_case(user_id: int) -> bool:
    async with db.connection.execute(
        "SELECT 1 FROM bad_actors WHERE user_id = ? AND is_active = 1 LIMIT 1", (user_id,)
    ) as cursor:
        return await cursor.fetchone() is not None

async def _update(entry_id: int, assignments: str, params: tuple) -> Optional[BadActor]:
    async with db.transaction() as conn:
        await conn.execute(
            f"UPDATE bad_actors SET {assignments}, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
            (*params, entry_id)
        )
        return await get_by_id(entry_id)

async def deactivate(entry_id: int, explanation: str, updated_by_user_id: int) -> Optional[BadActor]:
    return await _update(
        entry_id,
        "is_active = 0, explanation = ?, updated_by_user_id = ?",
        (explanation, updated_by_user_id)
    )

async def update_screenshot(entry_id: int, screenshot_proof: str, updated_by_user_id: int) -> Optional[BadActor]:
    return await _update(
        entry_id,
        "screenshot_proof = ?, updated_by_user_id = ?",
        (screenshot_proof, updated_by_user_id)
    )

async def update_explanation(entry_id: int, explanation: str, updated_by_user_id: int) -> Optional[BadActor]:
    return await _update(
        entry_id,
        "explanation = ?, updated_by_user_id = ?",
        (explanation, updated_by_user_id)
    )

async def delete(entry_id: int) -> Optional[BadActor]:
    """Hard delete, returns the removed row so the caller can clean up its screenshot."""
    async with db.transaction() as conn:
        bad_actor = await get_by_id(entry_id)
        if bad_actor is None:
            return None
        await conn.execute("DELETE FROM bad_actors WHERE id = ?", (entry_id,))
    log.database(f"Deleted bad actor entry {entry_id}")
    return bad_actor
