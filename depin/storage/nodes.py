from typing import List, Optional

import aiosqlite


class NodeRepo:
    """NodeRegistered projection."""

    def __init__(self, db: aiosqlite.Connection):
        self._db = db

    async def insert(self, key: str, node_id: int, owner: str, timestamp: int, sequence: int) -> bool:
        cursor = await self._db.execute(
            "INSERT OR IGNORE INTO nodes (id, node_id, owner, timestamp, sequence) "
            "VALUES (?, ?, ?, ?, ?)",
            (key, node_id, owner, timestamp, sequence),
        )
        await self._db.commit()
        return cursor.rowcount > 0

    async def list(self, owner: Optional[str] = None, limit: Optional[int] = None, offset: int = 0) -> List[dict]:
        query = "SELECT id, node_id, owner, timestamp FROM nodes"
        params: tuple = ()
        if owner:
            query += " WHERE owner = ?"
            params = (owner.lower(),)
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
                    "timestamp": row[3],
                })
        return results

    async def count(self) -> int:
        async with self._db.execute("SELECT COUNT(*) FROM nodes") as cursor:
            row = await cursor.fetchone()
        return row[0] if row else 0
