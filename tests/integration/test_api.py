"""
test_api.py - REST API end to end over the in-process server

Covers:
 - Node registry / participation endpoints and reward claims
 - Node rights lifecycle: mint, upgrade, performance slashing, bridge
 - Asset ownership endpoints (transfer, approve, operators)
 - Error mapping: rejection code in ``error``, HTTP status per rejection
 - DPN token endpoints
 - Admin endpoints (node type config, oracles, time travel, reindex)
 - Index queries (amounts as decimal strings)
 - JSON-RPC relay (unconfigured / forwarded / upstream failure)
 - Shutdown waits for the background indexer loop
"""

import asyncio

import pytest
import requests

from depin.access import UptimePolicy
from depin.server import DePINServer

from api_helpers import ADMIN, ALICE, BOB, DPN, ETH, JWT_SECRET

pytestmark = pytest.mark.asyncio


async def _mint(client, headers, node_type="STORAGE", value=3 * ETH // 2, token_stake=1000 * DPN):
    resp = await client.post("/api/rights", json={
        "node_type": node_type, "token_stake": token_stake, "metadata": "node", "value": value,
    }, headers=headers)
    assert resp.status_code == 200, resp.text
    return resp.json()["token_id"]


# ── Service info ──────────────────────────────────────────────────────────

class TestServiceInfo:

    async def test_root(self, client):
        body = (await client.get("/")).json()
        assert body["service"] == "DePIN Node Rights Simulator"
        assert body["uptime_policy"] == "open"

    async def test_status(self, client):
        body = (await client.get("/api/status")).json()
        assert body["host"]["admin"] == ADMIN
        assert body["rights_supply"] == 0
        assert body["token_supply"] == str(1_000_000 * DPN)
        assert set(body["contracts"]) == {"registry", "participation", "rights", "token"}


# ── Participation ─────────────────────────────────────────────────────────

class TestNodes:

    async def test_register_report_claim(self, client, wallet_headers):
        alice = wallet_headers(ALICE)
        resp = await client.post("/api/nodes", json={"metadata": "Node A"}, headers=alice)
        assert resp.status_code == 200
        node_id = resp.json()["node_id"]
        assert node_id == 0
        assert resp.json()["receipt"]["from"] == ALICE

        resp = await client.post(f"/api/nodes/{node_id}/uptime", json={"minutes_up": 15}, headers=alice)
        assert resp.json()["stats"]["earned"] == 15

        resp = await client.post(f"/api/nodes/{node_id}/claim", headers=alice)
        assert resp.json()["amount"] == "15"

        node = (await client.get(f"/api/nodes/{node_id}")).json()
        assert node["owner"] == ALICE
        assert node["stats"]["uptime"] == 15
        assert node["stats"]["earned"] == 0

    async def test_non_owner_claim_forbidden(self, client, wallet_headers):
        await client.post("/api/nodes", json={"metadata": "Node A"}, headers=wallet_headers(ALICE))
        resp = await client.post("/api/nodes/0/claim", headers=wallet_headers(BOB))
        assert resp.status_code == 403
        assert resp.json()["error"] == "Unauthorized"

    async def test_unknown_node(self, client, wallet_headers):
        resp = await client.post("/api/nodes/9/uptime", json={"minutes_up": 1}, headers=wallet_headers(ALICE))
        assert resp.status_code == 404
        assert resp.json()["error"] == "NotFound"
        assert (await client.get("/api/nodes/9")).status_code == 404

    async def test_negative_uptime(self, client, wallet_headers):
        await client.post("/api/nodes", json={}, headers=wallet_headers(ALICE))
        resp = await client.post("/api/nodes/0/uptime", json={"minutes_up": -5}, headers=wallet_headers(ALICE))
        assert resp.status_code == 400
        assert resp.json()["error"] == "InvalidAmount"

    async def test_stake(self, server, client, wallet_headers):
        await client.post("/api/nodes", json={}, headers=wallet_headers(ALICE))
        resp = await client.post("/api/nodes/0/stake", json={"value": 2 * ETH}, headers=wallet_headers(BOB))
        assert resp.json()["total_stake"] == str(2 * ETH)
        assert resp.json()["receipt"]["value"] == str(2 * ETH)
        assert server.host.balance_of(server.ledger.address) == 2 * ETH

    async def test_owner_uptime_policy(self, server, client, wallet_headers):
        server.policy.uptime_policy = UptimePolicy.OWNER
        await client.post("/api/nodes", json={}, headers=wallet_headers(ALICE))
        resp = await client.post("/api/nodes/0/uptime", json={"minutes_up": 5}, headers=wallet_headers(BOB))
        assert resp.status_code == 403

    async def test_list_nodes(self, client, wallet_headers):
        for i in range(3):
            await client.post("/api/nodes", json={"metadata": f"n{i}"}, headers=wallet_headers(ALICE))
        body = (await client.get("/api/nodes")).json()
        assert body["total"] == 3
        assert [n["metadata"] for n in body["items"]] == ["n0", "n1", "n2"]


# ── Node rights ───────────────────────────────────────────────────────────

class TestRights:

    async def test_mint_and_details(self, server, client, wallet_headers):
        token_id = await _mint(client, wallet_headers(ALICE))
        details = (await client.get(f"/api/rights/{token_id}")).json()
        assert details["owner"] == ALICE
        assert details["node"]["node_type"] == "STORAGE"
        assert details["node"]["status"] == "ACTIVE"
        assert details["node"]["staked_native"] == str(3 * ETH // 2)
        assert details["node"]["performance_score"] == 10000
        assert details["config"]["min_native_stake"] == str(ETH)
        assert details["approved"] == "0x" + "00" * 20
        assert details["bridge_destination"] == ""
        assert server.host.balance_of(server.rights.address) == 3 * ETH // 2

    async def test_mint_by_type_number(self, client, wallet_headers):
        token_id = await _mint(client, wallet_headers(ALICE), node_type=1, value=2 * ETH, token_stake=2000 * DPN)
        assert (await client.get(f"/api/rights/{token_id}")).json()["node"]["node_type"] == "COMPUTE"

    async def test_insufficient_native_stake(self, server, client, wallet_headers):
        before = server.host.event_count
        resp = await client.post("/api/rights", json={
            "node_type": "STORAGE", "token_stake": 1000 * DPN, "value": ETH // 2,
        }, headers=wallet_headers(ALICE))
        assert resp.status_code == 400
        assert resp.json() == {"error": "InsufficientNativeStake", "detail": "Insufficient ETH stake"}
        assert server.host.event_count == before
        assert server.rights.total_supply() == 0

    async def test_unknown_node_type(self, client, wallet_headers):
        resp = await client.post("/api/rights", json={
            "node_type": "QUANTUM", "token_stake": 0, "value": ETH,
        }, headers=wallet_headers(ALICE))
        assert resp.status_code == 422

    async def test_upgrade(self, client, wallet_headers):
        token_id = await _mint(client, wallet_headers(ALICE), value=ETH)
        resp = await client.post(f"/api/rights/{token_id}/upgrade", json={
            "additional_token_stake": 500 * DPN, "value": ETH // 2,
        }, headers=wallet_headers(ALICE))
        assert resp.json()["performance_score"] == 10033

    async def test_non_owner_upgrade(self, client, wallet_headers):
        token_id = await _mint(client, wallet_headers(ALICE))
        resp = await client.post(f"/api/rights/{token_id}/upgrade", json={"value": ETH},
                                 headers=wallet_headers(BOB))
        assert resp.status_code == 403
        assert resp.json() == {"error": "NotOwner", "detail": "Not node owner"}
        details = (await client.get(f"/api/rights/{token_id}")).json()
        assert details["node"]["staked_native"] == str(3 * ETH // 2)
        assert details["node"]["is_upgraded"] is False

    async def test_performance_slashing(self, client, wallet_headers, admin_headers):
        token_id = await _mint(client, wallet_headers(ALICE))
        resp = await client.post(f"/api/rights/{token_id}/performance",
                                 json={"uptime_seconds": 3600, "score": 7000}, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json()["status"] == "SLASHED_MINOR"
        assert resp.json()["staked_token"] == str(950 * DPN)

        resp = await client.post(f"/api/rights/{token_id}/performance",
                                 json={"score": 1000}, headers=admin_headers)
        assert resp.json()["status"] == "TERMINATED"
        assert resp.json()["staked_token"] == "0"

        resp = await client.post(f"/api/rights/{token_id}/performance",
                                 json={"score": 10000}, headers=admin_headers)
        assert resp.status_code == 400
        assert resp.json()["error"] == "AlreadyTerminated"

    async def test_owner_cannot_report_performance(self, client, wallet_headers):
        token_id = await _mint(client, wallet_headers(ALICE))
        resp = await client.post(f"/api/rights/{token_id}/performance",
                                 json={"score": 12000}, headers=wallet_headers(ALICE))
        assert resp.status_code == 403
        assert resp.json()["error"] == "Unauthorized"

    async def test_pending_reward_after_time_travel(self, client, wallet_headers, admin_headers):
        token_id = await _mint(client, wallet_headers(ALICE), value=ETH)
        await client.post("/api/admin/time-travel", json={"seconds": 100}, headers=admin_headers)
        body = (await client.get(f"/api/rights/{token_id}/pending-reward")).json()
        pending = int(body["pending_rewards"])
        # wall clock may tick between requests; reward is rate * elapsed at 1x
        assert pending >= 1157407407407400
        assert pending % 11574074074074 == 0

    async def test_bridge(self, client, wallet_headers):
        token_id = await _mint(client, wallet_headers(ALICE))
        resp = await client.post(f"/api/rights/{token_id}/bridge",
                                 json={"destination_chain": "polygon"}, headers=wallet_headers(ALICE))
        assert resp.status_code == 200
        details = (await client.get(f"/api/rights/{token_id}")).json()
        assert details["bridge_destination"] == "polygon"

    async def test_summary_and_type_stats(self, client, wallet_headers):
        await _mint(client, wallet_headers(ALICE))
        await _mint(client, wallet_headers(BOB), value=ETH)
        summary = (await client.get("/api/rights")).json()
        assert summary["symbol"] == "DPNR"
        assert summary["total_supply"] == 2
        assert summary["native_balance"] == str(5 * ETH // 2)

        stats = (await client.get("/api/node-types/storage/stats")).json()
        assert stats == {
            "node_type": "STORAGE", "total_nodes": 2, "active_nodes": 2,
            "total_staked_native": str(5 * ETH // 2), "average_performance": 10000,
        }

    async def test_node_types(self, client):
        body = (await client.get("/api/node-types")).json()
        assert set(body) == {"STORAGE", "COMPUTE", "BANDWIDTH"}
        assert body["BANDWIDTH"]["min_native_stake"] == str(ETH // 2)
        assert body["COMPUTE"]["max_capacity"] == 500


# ── Asset ownership ───────────────────────────────────────────────────────

class TestOwnership:

    async def test_transfer(self, client, wallet_headers):
        token_id = await _mint(client, wallet_headers(ALICE))
        resp = await client.post(f"/api/rights/{token_id}/transfer", json={"to": BOB},
                                 headers=wallet_headers(ALICE))
        assert resp.status_code == 200
        assert resp.json()["from"] == ALICE

        bob = (await client.get(f"/api/owners/{BOB}/rights")).json()
        alice = (await client.get(f"/api/owners/{ALICE}/rights")).json()
        assert bob == {"owner": BOB, "token_ids": [token_id], "balance": 1}
        assert alice["token_ids"] == []

    async def test_approve_then_transfer(self, client, wallet_headers):
        token_id = await _mint(client, wallet_headers(ALICE))
        await client.post(f"/api/rights/{token_id}/approve", json={"approved": BOB},
                          headers=wallet_headers(ALICE))
        assert (await client.get(f"/api/rights/{token_id}")).json()["approved"] == BOB

        resp = await client.post(f"/api/rights/{token_id}/transfer",
                                 json={"to": BOB, "from_address": ALICE}, headers=wallet_headers(BOB))
        assert resp.status_code == 200
        details = (await client.get(f"/api/rights/{token_id}")).json()
        assert details["owner"] == BOB
        assert details["approved"] == "0x" + "00" * 20

    async def test_operator(self, client, wallet_headers):
        token_id = await _mint(client, wallet_headers(ALICE))
        resp = await client.post("/api/rights/operators", json={"operator": BOB},
                                 headers=wallet_headers(ALICE))
        assert resp.json()["approved"] is True
        resp = await client.post(f"/api/rights/{token_id}/transfer", json={"to": ADMIN},
                                 headers=wallet_headers(BOB))
        assert resp.status_code == 200

    async def test_stranger_transfer_forbidden(self, client, wallet_headers):
        token_id = await _mint(client, wallet_headers(ALICE))
        resp = await client.post(f"/api/rights/{token_id}/transfer", json={"to": BOB},
                                 headers=wallet_headers(BOB))
        assert resp.status_code == 403
        assert resp.json()["error"] == "NotOwner"

    async def test_malformed_address(self, client, wallet_headers):
        token_id = await _mint(client, wallet_headers(ALICE))
        resp = await client.post(f"/api/rights/{token_id}/transfer", json={"to": "bob"},
                                 headers=wallet_headers(ALICE))
        assert resp.status_code == 422

    async def test_malformed_owner_path(self, client):
        resp = await client.get("/api/owners/nobody/rights")
        assert resp.status_code == 400
        assert resp.json()["error"] == "InvalidArgument"


# ── Token ─────────────────────────────────────────────────────────────────

class TestToken:

    async def test_info(self, client):
        body = (await client.get("/api/token")).json()
        assert body["symbol"] == "DPN"
        assert body["decimals"] == 18

    async def test_transfer_and_allowance(self, client, admin_headers, wallet_headers):
        resp = await client.post("/api/token/transfer", json={"to": ALICE, "amount": 100 * DPN},
                                 headers=admin_headers)
        assert resp.status_code == 200
        body = (await client.get(f"/api/token/balance/{ALICE}")).json()
        assert body["balance"] == str(100 * DPN)

        await client.post("/api/token/approve", json={"spender": BOB, "amount": 5 * DPN},
                          headers=wallet_headers(ALICE))
        body = (await client.get("/api/token/allowance", params={"owner": ALICE, "spender": BOB})).json()
        assert body["allowance"] == str(5 * DPN)

    async def test_overdraft(self, client, wallet_headers):
        resp = await client.post("/api/token/transfer", json={"to": BOB, "amount": 1},
                                 headers=wallet_headers(ALICE))
        assert resp.status_code == 400
        assert resp.json()["error"] == "InsufficientBalance"


# ── Admin ─────────────────────────────────────────────────────────────────

class TestAdmin:

    async def test_deactivate_node_type(self, client, admin_headers, wallet_headers):
        resp = await client.post("/api/admin/node-types/STORAGE", json={
            "min_native_stake": ETH, "min_token_stake": 0,
            "base_reward_rate_per_second": 1, "is_active": False,
        }, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json()["config"]["is_active"] is False

        resp = await client.post("/api/rights", json={
            "node_type": "STORAGE", "token_stake": 0, "value": ETH,
        }, headers=wallet_headers(ALICE))
        assert resp.status_code == 400
        assert resp.json()["error"] == "InactiveNodeType"

    async def test_config_update_requires_admin(self, client, wallet_headers):
        resp = await client.post("/api/admin/node-types/0", json={
            "min_native_stake": 0, "min_token_stake": 0, "base_reward_rate_per_second": 0,
        }, headers=wallet_headers(ALICE))
        assert resp.status_code == 403

    async def test_unknown_node_type_path(self, client, admin_headers):
        resp = await client.post("/api/admin/node-types/9", json={
            "min_native_stake": 0, "min_token_stake": 0, "base_reward_rate_per_second": 0,
        }, headers=admin_headers)
        assert resp.status_code == 400

    async def test_oracles(self, server, client, admin_headers, wallet_headers):
        server.policy.uptime_policy = UptimePolicy.ORACLE
        await client.post("/api/nodes", json={}, headers=wallet_headers(ALICE))

        resp = await client.post("/api/nodes/0/uptime", json={"minutes_up": 5}, headers=wallet_headers(BOB))
        assert resp.status_code == 403

        resp = await client.post("/api/admin/oracles", json={"address": BOB}, headers=admin_headers)
        assert resp.json()["oracles"] == [BOB]
        resp = await client.post("/api/nodes/0/uptime", json={"minutes_up": 5}, headers=wallet_headers(BOB))
        assert resp.status_code == 200

        resp = await client.delete(f"/api/admin/oracles/{BOB}", headers=admin_headers)
        assert resp.json()["oracles"] == []
        listed = (await client.get("/api/admin/oracles", headers=admin_headers)).json()
        assert listed == {"uptime_policy": "oracle", "oracles": []}

    async def test_participation_contract_reporter(self, client, admin_headers, wallet_headers):
        token_id = await _mint(client, wallet_headers(ALICE))
        resp = await client.post("/api/admin/participation-contract", json={"address": BOB},
                                 headers=admin_headers)
        assert resp.status_code == 200
        resp = await client.post(f"/api/rights/{token_id}/performance",
                                 json={"score": 9500}, headers=wallet_headers(BOB))
        assert resp.status_code == 200
        assert resp.json()["performance_score"] == 9500

    async def test_time_travel(self, server, client, admin_headers):
        before = server.host.now()
        resp = await client.post("/api/admin/time-travel", json={"seconds": 3600}, headers=admin_headers)
        assert resp.json()["now"] >= before + 3600


# ── Index ─────────────────────────────────────────────────────────────────

class TestIndex:

    async def test_projections(self, client, wallet_headers):
        alice = wallet_headers(ALICE)
        await client.post("/api/nodes", json={"metadata": "Node A"}, headers=alice)
        await client.post("/api/nodes/0/uptime", json={"minutes_up": 15}, headers=alice)
        await client.post("/api/nodes/0/stake", json={"value": 3 * ETH}, headers=wallet_headers(BOB))
        await client.post("/api/nodes/0/claim", headers=alice)

        nodes = (await client.get("/api/index/nodes", params={"owner": ALICE})).json()
        assert [n["node_id"] for n in nodes] == [0]
        uptimes = (await client.get("/api/index/uptimes", params={"node_id": 0})).json()
        assert [u["minutes_up"] for u in uptimes] == ["15"]
        stakes = (await client.get("/api/index/stakes")).json()
        assert stakes[0]["amount"] == str(3 * ETH)
        rewards = (await client.get("/api/index/rewards")).json()
        assert rewards[0]["amount"] == "15"

    async def test_events_filter(self, client, wallet_headers):
        await _mint(client, wallet_headers(ALICE))
        body = (await client.get("/api/index/events", params={"event": "NodeRightsMinted"})).json()
        assert body["total"] == 1
        (minted,) = body["items"]
        assert minted["args"]["ethStaked"] == str(3 * ETH // 2)

    async def test_status_and_reindex(self, server, client, admin_headers, wallet_headers):
        await client.post("/api/nodes", json={}, headers=wallet_headers(ALICE))
        await client.get("/api/index/events")
        status = (await client.get("/api/index/status")).json()
        assert status["lag"] == 0
        assert status["indexed_events"] == server.host.event_count

        resp = await client.post("/api/admin/reindex", headers=admin_headers)
        assert resp.json() == {"ingested": server.host.event_count, "cursor": server.host.event_count}
        status = (await client.get("/api/index/status")).json()
        assert status["indexed_events"] == server.host.event_count


# ── RPC relay ─────────────────────────────────────────────────────────────

class TestRelay:

    async def test_unconfigured(self, client):
        resp = await client.post("/rpc", json={"jsonrpc": "2.0", "id": 1, "method": "eth_blockNumber"})
        assert resp.status_code == 503
        assert resp.json() == {"error": "RPC relay not configured"}

    async def test_forwarded(self, server, client, monkeypatch):
        server.rpc_upstream = "http://upstream.test:8545"
        seen = {}

        def fake_forward(url, body):
            seen["url"] = url
            return {"jsonrpc": "2.0", "id": body["id"], "result": "0x10"}

        monkeypatch.setattr("depin.routers.relay._forward", fake_forward)
        resp = await client.post("/rpc", json={"jsonrpc": "2.0", "id": 7, "method": "eth_blockNumber"})
        assert resp.status_code == 200
        assert resp.json() == {"jsonrpc": "2.0", "id": 7, "result": "0x10"}
        assert seen["url"] == "http://upstream.test:8545"

    async def test_upstream_failure(self, server, client, monkeypatch):
        server.rpc_upstream = "http://upstream.test:8545"

        def failing_forward(url, body):
            raise requests.ConnectionError("connection refused")

        monkeypatch.setattr("depin.routers.relay._forward", failing_forward)
        resp = await client.post("/rpc", json={"jsonrpc": "2.0", "id": 1, "method": "eth_chainId"})
        assert resp.status_code == 500
        assert resp.json() == {"error": "connection refused"}


# ── Shutdown ──────────────────────────────────────────────────────────────

class TestShutdown:

    async def test_close_waits_for_indexer_loop(self):
        srv = DePINServer(db_path=":memory:", admin_address=ADMIN, jwt_secret=JWT_SECRET,
                          index_interval=0.01)
        await srv.init_services()
        task = srv.start_indexer()
        await asyncio.sleep(0.05)
        assert not task.done()

        await srv.close_services()
        assert task.done()
        assert task.cancelled()
        assert srv.storage._db is None

        await srv.close_services()
