#!/usr/bin/env python3
"""
mock_network.py - Standalone node operator simulator.

Creates N wallets, signs each one in through the wallet auth flow, then drives
a running simulator server over REST: registers nodes, mints node rights,
reports uptime and (as admin) performance, and claims rewards. Some nodes
degrade over time so the slashing path shows up in the event index.

Usage:
    python scripts/mock_network.py --operators 5 --api http://localhost:8080 --rounds 20
"""

import argparse
import logging
import random
import time
from dataclasses import dataclass, field
from typing import List

import requests
from eth_account import Account
from eth_account.messages import encode_defunct

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(name)-10s] %(levelname)-5s %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("network")

ETH = 10**18
DPN = 10**18

NODE_PROFILES = [
    {"node_type": "STORAGE", "value": 3 * ETH // 2, "token_stake": 1000 * DPN},
    {"node_type": "COMPUTE", "value": 2 * ETH, "token_stake": 2000 * DPN},
    {"node_type": "BANDWIDTH", "value": 7 * ETH // 10, "token_stake": 600 * DPN},
]


@dataclass
class Operator:
    account: object
    token: str = ""
    node_ids: List[int] = field(default_factory=list)
    rights_ids: List[int] = field(default_factory=list)
    reliability: float = 1.0

    @property
    def address(self) -> str:
        return self.account.address

    @property
    def headers(self) -> dict:
        return {"Authorization": f"Bearer {self.token}"}


class NetworkSimulator:
    def __init__(self, api: str, operators: int, admin_key: str):
        self.api = api.rstrip("/")
        self.admin_headers = {"X-API-Key": admin_key}
        self.operators = [
            Operator(Account.create(), reliability=random.uniform(0.3, 1.0))
            for _ in range(operators)
        ]
        self.session = requests.Session()

    def _post(self, path: str, body: dict = None, headers: dict = None) -> dict:
        resp = self.session.post(self.api + path, json=body or {}, headers=headers or {}, timeout=10)
        if resp.status_code >= 400:
            logger.warning("POST %s -> %d %s", path, resp.status_code, resp.text)
            return {}
        return resp.json()

    def sign_in(self, op: Operator):
        resp = self.session.get(self.api + "/api/auth/nonce", params={"address": op.address}, timeout=10)
        resp.raise_for_status()
        challenge = resp.json()
        signed = op.account.sign_message(encode_defunct(text=challenge["message"]))
        verified = self._post("/api/auth/verify", {
            "address": op.address,
            "signature": "0x" + bytes(signed.signature).hex(),
            "nonce": challenge["nonce"],
        })
        op.token = verified["token"]
        logger.info("Operator %s signed in", op.address)

    def onboard(self, op: Operator):
        profile = random.choice(NODE_PROFILES)
        registered = self._post("/api/nodes", {"metadata": f"ipfs://node/{op.address[-6:]}"}, op.headers)
        if registered:
            op.node_ids.append(registered["node_id"])
        minted = self._post("/api/rights", {
            "node_type": profile["node_type"],
            "token_stake": profile["token_stake"],
            "metadata": f"{profile['node_type'].lower()} node",
            "value": profile["value"],
        }, op.headers)
        if minted:
            op.rights_ids.append(minted["token_id"])

    def run_round(self, round_no: int):
        for op in self.operators:
            for node_id in op.node_ids:
                self._post(f"/api/nodes/{node_id}/uptime",
                           {"minutes_up": random.randint(30, 60)}, op.headers)
            for token_id in op.rights_ids:
                decay = (1.0 - op.reliability) * round_no * 600
                score = max(int(10000 - decay + random.randint(-300, 300)), 0)
                self._post(f"/api/rights/{token_id}/performance",
                           {"uptime_seconds": 3600, "score": score}, self.admin_headers)
            if round_no % 5 == 4:
                for node_id in op.node_ids:
                    self._post(f"/api/nodes/{node_id}/claim", headers=op.headers)

    def run(self, rounds: int, interval: float):
        for op in self.operators:
            self.sign_in(op)
            self.onboard(op)
        for round_no in range(rounds):
            self.run_round(round_no)
            self._post("/api/admin/time-travel", {"seconds": 3600}, self.admin_headers)
            logger.info("Round %d/%d complete", round_no + 1, rounds)
            time.sleep(interval)

        status = self.session.get(self.api + "/api/status", timeout=10).json()
        logger.info("Blocks: %d, events: %d, rights minted: %d",
                    status["host"]["block_number"], status["host"]["events"], status["rights_supply"])
        for node_type in ("STORAGE", "COMPUTE", "BANDWIDTH"):
            stats = self.session.get(self.api + f"/api/node-types/{node_type}/stats", timeout=10).json()
            logger.info("%-9s total=%d active=%d avg_score=%d",
                        node_type, stats["total_nodes"], stats["active_nodes"], stats["average_performance"])


def main():
    parser = argparse.ArgumentParser(description="Mock DePIN node operator simulator")
    parser.add_argument("--operators", type=int, default=5, help="Number of simulated operators")
    parser.add_argument("--api", default="http://localhost:8080", help="Simulator server base URL")
    parser.add_argument("--admin-key", default="admin-test-key-do-not-use-in-production",
                        help="Admin API key (performance reports, time travel)")
    parser.add_argument("--rounds", type=int, default=20, help="Reporting rounds to run")
    parser.add_argument("--interval", type=float, default=0.5, help="Seconds between rounds")
    args = parser.parse_args()

    sim = NetworkSimulator(args.api, args.operators, args.admin_key)
    logger.info("Starting network: %d operators -> %s", args.operators, args.api)
    try:
        sim.run(args.rounds, args.interval)
    except KeyboardInterrupt:
        logger.info("Shutting down network...")


if __name__ == "__main__":
    main()
