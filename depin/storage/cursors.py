import time
from typing import Optional

import aiosqlite


class CursorRepo:
    """Indexer progress: last ingested event sequence per source name.

    Each cursor also records ``host_id``, the id of the host run whose log
    it points into.
    """

    def __init__(self, db: aiosqlite.Connection):
        self._db = db

    async def get(self, name: str) -> int:
        async with self._db.execute(
            "SELECT cursor FROM indexer_state WHERE name = ?", (name,)
        ) as cursor:
            row = await cursor.fetchone()
        return row[0] if row else 0

    async def get_host_id(self, name: str) -> Optional[str]:
        async with self._db.execute(
            "SELECT host_id FROM indexer_state WHERE name = ?", (name,)
        ) as cursor:
            row = await cursor.fetchone()
        return row[0] if row else None

    async def set(self, name: str, value: int, host_id: str = ""):
        await self._db.execute(
            "INSERT INTO indexer_state (name, cursor, host_id, updated_at) VALUES (?, ?, ?, ?) "
            "ON CONFLICT(name) DO UPDATE SET cursor = excluded.cursor, "
            "host_id = excluded.host_id, updated_at = excluded.updated_at",
            (name, value, host_id, time.time()),
        )
        await self._db.commit()
