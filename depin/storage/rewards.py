from typing import List, Optional

import aiosqlite


class RewardRepo:
    """RewardClaimed projection."""

    def __init__(self, db: aiosqlite.Connection):
        self._db = db

    async def insert(
        self, key: str, node_id: int, owner: str, amount: int, timestamp: int, sequence: int,
    ) -> bool:
        cursor = await self._db.execute(
            "INSERT OR IGNORE INTO rewards (id, node_id, owner, amount, timestamp, sequence) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (key, node_id, owner, str(amount), timestamp, sequence),
        )
        await self._db.commit()
        return cursor.rowcount > 0

    async def list(self, node_id: Optional[int] = None, limit: Optional[int] = None, offset: int = 0) -> List[dict]:
        query = "SELECT id, node_id, owner, amount, timestamp FROM rewards"
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
                    "owner": row[2],
                    "amount": row[3],
                    "timestamp": row[4],
                })
        return results
