import logging
from typing import Optional

import aiosqlite

from ._migrate import run_migrations
from .cursors import CursorRepo
from .events import EventRepo
from .nodes import NodeRepo
from .rewards import RewardRepo
from .stakes import StakeRepo
from .uptimes import UptimeRepo

logger = logging.getLogger("storage")


class StorageManager:
    """Top-level manager: opens the database, runs migrations, exposes repos."""

    def __init__(self, db_path: str = "depin.db"):
        self.db_path = db_path
        self._db: Optional[aiosqlite.Connection] = None
        self.events: Optional[EventRepo] = None
        self.nodes: Optional[NodeRepo] = None
        self.uptimes: Optional[UptimeRepo] = None
        self.stakes: Optional[StakeRepo] = None
        self.rewards: Optional[RewardRepo] = None
        self.cursors: Optional[CursorRepo] = None

    async def initialize(self):
        self._db = await aiosqlite.connect(self.db_path)
        await self._db.execute("PRAGMA journal_mode=WAL")
        await self._db.execute("PRAGMA foreign_keys=ON")
        await run_migrations(self._db, logger)

        self.events = EventRepo(self._db)
        self.nodes = NodeRepo(self._db)
        self.uptimes = UptimeRepo(self._db)
        self.stakes = StakeRepo(self._db)
        self.rewards = RewardRepo(self._db)
        self.cursors = CursorRepo(self._db)

        logger.info("Storage initialized: %s", self.db_path)

    async def clear_index(self):
        """Drop every indexed event and projection row. Cursors are left alone."""
        for table in ("events", "nodes", "uptimes", "stakes", "rewards"):
            await self._db.execute(f"DELETE FROM {table}")
        await self._db.commit()
        logger.info("Index tables cleared")

    async def close(self):
        if self._db:
            await self._db.close()
            self._db = None
            logger.info("Storage closed")
