from typing import List, Optional

import aiosqlite


class UptimeRepo:
    """UptimeRecorded projection."""

    def __init__(self, db: aiosqlite.Connection):
        self._db = db

    async def insert(self, key: str, node_id: int, minutes_up: int, timestamp: int, sequence: int) -> bool:
        cursor = await self._db.execute(
            "INSERT OR IGNORE INTO uptimes (id, node_id, minutes_up, timestamp, sequence) "
            "VALUES (?, ?, ?, ?, ?)",
            (key, node_id, str(minutes_up), timestamp, sequence),
        )
        await self._db.commit()
        return cursor.rowcount > 0

    async def list(self, node_id: Optional[int] = None, limit: Optional[int] = None, offset: int = 0) -> List[dict]:
        query = "SELECT id, node_id, minutes_up, timestamp FROM uptimes"
        params: tuple = ()
        if node_id is not None:
            query += " WHERE node_id = ?"
            params = (node_id,)
        query += " ORDER BY timestamp, sequence"
        if limit is not None:
            query += " LIMIT ? OFFSET ?"
            params = params + (limit, offset)
        results = []
        async with self._db.execute(query, params) as cursor:
            async for row in cursor:
                results.append({
                    "id": row[0],
                    "node_id": row[1],
                    "minutes_up": row[2],
                    "timestamp": row[3],
                })
        return results

    async def total_minutes(self, node_id: int) -> int:
        total = 0
        async with self._db.execute(
            "SELECT minutes_up FROM uptimes WHERE node_id = ?", (node_id,)
        ) as cursor:
            async for row in cursor:
                total += int(row[0])
        return total
