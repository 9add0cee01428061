from typing import List, Optional

from .core import db
from .models import Admin, parse_timestamp

async def get(user_id: int) -> Optional[Admin]:
    async with db.connection.execute("SELECT * FROM admins WHERE id = ?", (user_id,)) as cursor:
        row = await cursor.fetchone()
    return Admin(row["id"], parse_timestamp(row["created_at"])) if row else None

async def get_all() -> List[Admin]:
    async with db.connection.execute("SELECT * FROM admins ORDER BY created_at") as cursor:
        rows = await cursor.fetchall()
    return [Admin(r["id"], parse_timestamp(r["created_at"])) for r in rows]
