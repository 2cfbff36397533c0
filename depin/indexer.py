"""
indexer.py - Event indexer.

Pulls committed events from the execution host by cursor and mirrors them
into SQLite:

 - every event goes to the ``events`` table
 - participation events are projected into ``nodes``, ``uptimes``, ``stakes``
   and ``rewards`` (one row per event, keyed by tx hash + log index)

Inserts are idempotent by record key, so re-ingesting a range after a crash
(or resetting the cursor) does not duplicate rows.

The stored cursor is tagged with the host's ``genesis_id``. The host log
lives in memory, so when the indexer attaches to a different host run the
index tables are cleared and the cursor starts again from 0.
"""

import asyncio
import logging
from typing import TYPE_CHECKING, Dict

from depin.events import EventRecord

if TYPE_CHECKING:
    from depin.host import ExecutionHost
    from depin.storage import StorageManager

logger = logging.getLogger("indexer")

CURSOR_NAME = "host"
DEFAULT_BATCH_SIZE = 500
DEFAULT_INTERVAL = 1.0


class EventIndexer:
    """Cursor-driven event mirror and projection builder."""

    def __init__(
        self,
        host: "ExecutionHost",
        storage: "StorageManager",
        batch_size: int = DEFAULT_BATCH_SIZE,
    ):
        self._host = host
        self._storage = storage
        self._batch_size = batch_size
        self._cursor = 0
        self._loaded = False
        self._lock = asyncio.Lock()

    @property
    def cursor(self) -> int:
        return self._cursor

    async def sync(self) -> int:
        """Ingest every event committed since the last sync. Returns the number ingested."""
        async with self._lock:
            if not self._loaded:
                await self._load_cursor()

            ingested = 0
            while True:
                batch = self._host.events_since(self._cursor, limit=self._batch_size)
                if not batch:
                    break
                for record in batch:
                    await self._ingest(record)
                    ingested += 1
                self._cursor = batch[-1].sequence
                await self._storage.cursors.set(CURSOR_NAME, self._cursor, self._host.genesis_id)

            if ingested:
                logger.debug("Indexed %d events (cursor=%d)", ingested, self._cursor)
            return ingested

    async def _load_cursor(self):
        stored_host = await self._storage.cursors.get_host_id(CURSOR_NAME)
        if stored_host is not None and stored_host != self._host.genesis_id:
            logger.warning(
                "Index was built from another host run (%s), rebuilding from sequence 0",
                stored_host[:12] or "unknown",
            )
            await self._storage.clear_index()
            self._cursor = 0
            await self._storage.cursors.set(CURSOR_NAME, 0, self._host.genesis_id)
        else:
            self._cursor = await self._storage.cursors.get(CURSOR_NAME)
        self._loaded = True

    async def _ingest(self, record: EventRecord):
        await self._storage.events.insert(record)

        args = record.args
        key = record.key
        if record.event == "NodeRegistered":
            await self._storage.nodes.insert(
                key, args["nodeId"], args["owner"], args["timestamp"], record.sequence,
            )
        elif record.event == "UptimeRecorded":
            await self._storage.uptimes.insert(
                key, args["nodeId"], args["minutesUp"], args["timestamp"], record.sequence,
            )
        elif record.event == "StakeUpdated":
            await self._storage.stakes.insert(
                key, args["nodeId"], args["staker"], args["amount"], args["timestamp"], record.sequence,
            )
        elif record.event == "RewardClaimed":
            await self._storage.rewards.insert(
                key, args["nodeId"], args["owner"], args["amount"], args["timestamp"], record.sequence,
            )

    async def reindex(self) -> int:
        """Replay the whole host log from the start (idempotent)."""
        async with self._lock:
            if not self._loaded:
                await self._load_cursor()
            self._cursor = 0
            await self._storage.cursors.set(CURSOR_NAME, 0, self._host.genesis_id)
        logger.info("Reindexing from sequence 0")
        return await self.sync()

    async def run(self, interval: float = DEFAULT_INTERVAL):
        """Background loop: sync forever, logging and surviving errors."""
        while True:
            try:
                await self.sync()
            except Exception:
                logger.exception("Error in indexer loop")
            await asyncio.sleep(interval)

    async def get_stats(self) -> Dict[str, int]:
        return {
            "cursor": self._cursor,
            "host_events": self._host.event_count,
            "lag": self._host.event_count - self._cursor,
            "indexed_events": await self._storage.events.count(),
            "nodes": await self._storage.nodes.count(),
        }
