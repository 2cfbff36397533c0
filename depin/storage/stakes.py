from typing import List, Optional

import aiosqlite


class StakeRepo:
    """StakeUpdated projection. Amounts are wei as decimal text."""

    def __init__(self, db: aiosqlite.Connection):
        self._db = db

    async def insert(
        self, key: str, node_id: int, staker: str, amount: int, timestamp: int, sequence: int,
    ) -> bool:
        cursor = await self._db.execute(
            "INSERT OR IGNORE INTO stakes (id, node_id, staker, amount, timestamp, sequence) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (key, node_id, staker, str(amount), timestamp, sequence),
        )
        await self._db.commit()
        return cursor.rowcount > 0

    async def list(self, node_id: Optional[int] = None, limit: Optional[int] = None, offset: int = 0) -> List[dict]:
        query = "SELECT id, node_id, staker, amount, timestamp FROM stakes"
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
                    "staker": row[2],
                    "amount": row[3],
                    "timestamp": row[4],
                })
        return results

    async def total_for_node(self, node_id: int) -> int:
        total = 0
        async with self._db.execute(
            "SELECT amount FROM stakes WHERE node_id = ?", (node_id,)
        ) as cursor:
            async for row in cursor:
                total += int(row[0])
        return total
