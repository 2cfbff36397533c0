import json
from typing import List, Optional

import aiosqlite

from depin.events import EventRecord

_COLUMNS = "id, sequence, event, address, args_json, tx_hash, log_index, block_number, timestamp"


def encode_args(args: dict) -> str:
    """JSON-encode event args with every integer as a decimal string."""
    return json.dumps({
        k: str(v) if isinstance(v, int) and not isinstance(v, bool) else v
        for k, v in args.items()
    }, sort_keys=True)


def _row_to_dict(row) -> dict:
    return {
        "id": row[0],
        "sequence": row[1],
        "event": row[2],
        "address": row[3],
        "args": json.loads(row[4]),
        "tx_hash": row[5],
        "log_index": row[6],
        "block_number": row[7],
        "timestamp": row[8],
    }


class EventRepo:
    """Raw event log mirror, idempotent by record key."""

    def __init__(self, db: aiosqlite.Connection):
        self._db = db

    async def insert(self, record: EventRecord) -> bool:
        cursor = await self._db.execute(
            f"INSERT OR IGNORE INTO events ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (record.key, record.sequence, record.event, record.address,
             encode_args(record.args), record.tx_hash, record.log_index,
             record.block_number, record.timestamp),
        )
        await self._db.commit()
        return cursor.rowcount > 0

    async def get(self, key: str) -> Optional[dict]:
        async with self._db.execute(
            f"SELECT {_COLUMNS} FROM events WHERE id = ?", (key,)
        ) as cursor:
            row = await cursor.fetchone()
        return _row_to_dict(row) if row else None

    async def list(
        self, event: Optional[str] = None, limit: Optional[int] = None, offset: int = 0,
    ) -> List[dict]:
        query = f"SELECT {_COLUMNS} FROM events"
        params: tuple = ()
        if event:
            query += " WHERE event = ?"
            params = (event,)
        query += " ORDER BY sequence"
        if limit is not None:
            query += " LIMIT ? OFFSET ?"
            params = params + (limit, offset)
        results = []
        async with self._db.execute(query, params) as cursor:
            async for row in cursor:
                results.append(_row_to_dict(row))
        return results

    async def count(self, event: Optional[str] = None) -> int:
        if event:
            async with self._db.execute(
                "SELECT COUNT(*) FROM events WHERE event = ?", (event,)
            ) as cursor:
                row = await cursor.fetchone()
        else:
            async with self._db.execute("SELECT COUNT(*) FROM events") as cursor:
                row = await cursor.fetchone()
        return row[0] if row else 0
