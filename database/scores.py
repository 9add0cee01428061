from typing import List

import aiosqlite

from .core import db, log
from .models import Scoreboard

async def create_or_increase_scoreboards(user_id: int, guild_id: int):
    """Adds one report to both the user's and the guild's score, or to neither."""
    try:
        async with db.transaction() as conn:
            await conn.execute(
                """
                INSERT INTO user_scores (user_id, score) VALUES (?, 1)
                ON CONFLICT(user_id) DO UPDATE SET score = score + 1
                """,
                (user_id,)
            )
            await conn.execute(
                """
                INSERT INTO guild_scores (guild_id, score) VALUES (?, 1)
                ON CONFLICT(guild_id) DO UPDATE SET score = score + 1
                """,
                (guild_id,)
            )
    except aiosqlite.Error:
        log.database(f"Rolled back score update for user {user_id} and guild {guild_id}")
        raise

async def get_user_score(user_id: int) -> Scoreboard:
    async with db.connection.execute("SELECT score FROM user_scores WHERE user_id = ?", (user_id,)) as cursor:
        row = await cursor.fetchone()
    return Scoreboard(user_id, row["score"] if row else 0)

async def get_guild_score(guild_id: int) -> Scoreboard:
    async with db.connection.execute("SELECT score FROM guild_scores WHERE guild_id = ?", (guild_id,)) as cursor:
        row = await cursor.fetchone()
    return Scoreboard(guild_id, row["score"] if row else 0)

async def get_top_users(limit: int = 10) -> List[Scoreboard]:
    async with db.connection.execute(
        "SELECT user_id, score FROM user_scores WHERE score > 0 ORDER BY score DESC LIMIT ?", (limit,)
    ) as cursor:
        rows = await cursor.fetchall()
    return [Scoreboard(r["user_id"], r["score"]) for r in rows]

async def get_top_guilds(limit: int = 10) -> List[Scoreboard]:
    async with db.connection.execute(
        "SELECT guild_id, score FROM guild_scores WHERE score > 0 ORDER BY score DESC LIMIT ?", (limit,)
    ) as cursor:
        rows = await cursor.fetchall()
    return [Scoreboard(r["guild_id"], r["score"]) for r in rows]
