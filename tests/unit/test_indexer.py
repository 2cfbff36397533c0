"""
test_indexer.py - Event indexer against in-memory SQLite

Covers:
 - Raw event mirror and participation projections
 - Big integer amounts stored and returned as decimal strings
 - Cursor persistence across indexer instances
 - Index rebuilt when the cursor belongs to another host run
 - Idempotent reindex (same record keys, no duplicates)
 - Ordering by timestamp, then log position
"""

import pytest
import pytest_asyncio

from depin.host import ExecutionHost
from depin.indexer import CURSOR_NAME, EventIndexer
from depin.registry import NodeRegistry
from depin.rights import NodeType
from depin.storage import StorageManager

from sim_constants import ADMIN, ALICE, BOB, DPN, ETH, START_TIME

pytestmark = pytest.mark.asyncio


@pytest_asyncio.fixture
async def storage():
    sm = StorageManager(":memory:")
    await sm.initialize()
    yield sm
    await sm.close()


@pytest_asyncio.fixture
async def indexer(host, storage):
    return EventIndexer(host, storage, batch_size=2)


def _seed(host, registry, ledger):
    """Two nodes, two uptime reports, a stake and a claim (6 events)."""
    a = registry.register_node(ALICE, "Node A")
    b = registry.register_node(BOB, "Node B")
    ledger.record_uptime(ALICE, a, 15)
    host.increase_time(60)
    ledger.record_uptime(BOB, b, 30)
    ledger.stake_to_node(BOB, a, 12 * ETH)
    ledger.claim_reward(ALICE, a)
    return a, b


# ── Sync ───────────────────────────────────────────────────────────────────

class TestSync:

    async def test_mirrors_every_event(self, host, registry, ledger, indexer, storage):
        _seed(host, registry, ledger)
        assert await indexer.sync() == host.event_count
        assert await storage.events.count() == host.event_count
        assert indexer.cursor == host.event_count
        assert await indexer.sync() == 0

    async def test_projections(self, host, registry, ledger, indexer, storage):
        a, b = _seed(host, registry, ledger)
        await indexer.sync()

        nodes = await storage.nodes.list()
        assert [(n["node_id"], n["owner"]) for n in nodes] == [(a, ALICE), (b, BOB)]
        assert await storage.nodes.list(owner=BOB) == [nodes[1]]

        uptimes = await storage.uptimes.list()
        assert [u["minutes_up"] for u in uptimes] == ["15", "30"]
        assert await storage.uptimes.total_minutes(a) == 15

        (stake,) = await storage.stakes.list(node_id=a)
        assert stake["staker"] == BOB
        assert stake["amount"] == str(12 * ETH)
        assert await storage.stakes.total_for_node(a) == 12 * ETH

        (reward,) = await storage.rewards.list()
        assert reward["amount"] == "15"
        assert reward["owner"] == ALICE

    async def test_record_identity(self, host, registry, indexer, storage):
        registry.register_node(ALICE, "Node A")
        await indexer.sync()
        record = host.events_since(0)[0]
        stored = await storage.events.get(record.key)
        assert stored["event"] == "NodeRegistered"
        assert stored["tx_hash"] == record.tx_hash
        assert stored["log_index"] == 0
        assert (await storage.nodes.list())[0]["id"] == record.key

    async def test_amounts_are_decimal_strings(self, host, engine, indexer, storage):
        engine.mint_node_rights(ALICE, NodeType.STORAGE, 1000 * DPN, "node", value=3 * ETH // 2)
        await indexer.sync()
        (minted,) = await storage.events.list(event="NodeRightsMinted")
        assert minted["args"]["ethStaked"] == "1500000000000000000"
        assert minted["args"]["dpnStaked"] == str(1000 * DPN)
        assert minted["args"]["owner"] == ALICE

    async def test_event_filter_and_paging(self, host, registry, ledger, indexer, storage):
        _seed(host, registry, ledger)
        await indexer.sync()
        assert await storage.events.count("UptimeRecorded") == 2
        page = await storage.events.list(limit=3, offset=2)
        assert [e["sequence"] for e in page] == [3, 4, 5]

    async def test_ordered_by_timestamp(self, host, registry, ledger, indexer, storage):
        node_id = registry.register_node(ALICE, "Node A")
        for minutes in (5, 10, 20):
            ledger.record_uptime(ALICE, node_id, minutes)
            host.increase_time(30)
        await indexer.sync()
        rows = await storage.uptimes.list(node_id=node_id)
        timestamps = [r["timestamp"] for r in rows]
        assert timestamps == sorted(timestamps)
        assert [r["minutes_up"] for r in rows] == ["5", "10", "20"]


# ── Cursor / replay ────────────────────────────────────────────────────────

class TestCursor:

    async def test_cursor_persisted(self, host, registry, ledger, indexer, storage):
        _seed(host, registry, ledger)
        await indexer.sync()
        assert await storage.cursors.get(CURSOR_NAME) == host.event_count

        fresh = EventIndexer(host, storage)
        assert await fresh.sync() == 0
        registry.register_node(BOB, "Node C")
        assert await fresh.sync() == 1

    async def test_reindex_is_idempotent(self, host, registry, ledger, indexer, storage):
        _seed(host, registry, ledger)
        await indexer.sync()
        before = await storage.events.list()

        assert await indexer.reindex() == host.event_count
        assert await storage.events.list() == before
        assert await storage.nodes.count() == 2
        assert len(await storage.uptimes.list()) == 2

    async def test_stats(self, host, registry, indexer):
        registry.register_node(ALICE, "Node A")
        registry.register_node(BOB, "Node B")
        stats = await indexer.get_stats()
        assert stats["lag"] == 2
        await indexer.sync()
        stats = await indexer.get_stats()
        assert stats == {
            "cursor": 2, "host_events": 2, "lag": 0, "indexed_events": 2, "nodes": 2,
        }


# ── Host restart ───────────────────────────────────────────────────────────

async def _open(path):
    sm = StorageManager(path)
    await sm.initialize()
    return sm


class TestHostRestart:

    async def test_new_host_run_rebuilds_index(self, tmp_path):
        db_path = str(tmp_path / "index.db")

        old_host = ExecutionHost(admin=ADMIN, clock=lambda: START_TIME)
        old_registry = NodeRegistry(old_host)
        for i in range(3):
            old_registry.register_node(ALICE, f"old {i}")
        sm = await _open(db_path)
        assert await EventIndexer(old_host, sm).sync() == 3
        await sm.close()

        new_host = ExecutionHost(admin=ADMIN, clock=lambda: START_TIME)
        new_registry = NodeRegistry(new_host)
        new_registry.register_node(BOB, "new 0")
        new_registry.register_node(BOB, "new 1")
        sm = await _open(db_path)
        try:
            indexer = EventIndexer(new_host, sm)
            assert await indexer.sync() == 2
            assert indexer.cursor == 2
            nodes = await sm.nodes.list()
            assert [(n["node_id"], n["owner"]) for n in nodes] == [(0, BOB), (1, BOB)]
            assert await sm.events.count() == 2
            assert await sm.cursors.get_host_id(CURSOR_NAME) == new_host.genesis_id
        finally:
            await sm.close()

    async def test_same_host_resumes_from_cursor(self, host, registry, tmp_path):
        db_path = str(tmp_path / "index.db")
        registry.register_node(ALICE, "Node A")
        sm = await _open(db_path)
        assert await EventIndexer(host, sm).sync() == 1
        await sm.close()

        registry.register_node(BOB, "Node B")
        sm = await _open(db_path)
        try:
            assert await EventIndexer(host, sm).sync() == 1
            assert await sm.nodes.count() == 2
        finally:
            await sm.close()

    async def test_untagged_cursor_rebuilds_index(self, host, registry, storage):
        registry.register_node(ALICE, "Node A")
        await storage.cursors.set(CURSOR_NAME, 5)
        indexer = EventIndexer(host, storage)
        assert await indexer.sync() == 1
        assert indexer.cursor == 1
        assert await storage.nodes.count() == 1
