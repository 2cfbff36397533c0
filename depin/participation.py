"""
participation.py - Participation ledger.

Per-node uptime accumulation, unclaimed rewards at a fixed rate of one reward
unit per reported minute, and a simple native-coin stake accumulator.

Stats are created lazily (zero-valued) on the first uptime report. Earned
rewards reset to zero only when the node owner claims; the stake accumulator
only grows (no withdrawal path).
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional

from depin.access import AccessPolicy
from depin.errors import InvalidAmount, Unauthorized
from depin.host import ExecutionHost, contract_address
from depin.registry import NodeRegistry
from depin.token import TokenSink

logger = logging.getLogger("participation")

REWARD_UNITS_PER_MINUTE = 1


@dataclass
class ParticipationStats:
    uptime_total: int = 0
    last_update: int = 0
    earned_unclaimed: int = 0

    def to_dict(self) -> dict:
        return {
            "uptime": self.uptime_total,
            "last_update": self.last_update,
            "earned": self.earned_unclaimed,
        }


class ParticipationLedger:
    """Uptime, earned rewards and node stakes, keyed by registry node id."""

    def __init__(
        self,
        host: ExecutionHost,
        registry: NodeRegistry,
        policy: AccessPolicy,
        token_sink: Optional[TokenSink] = None,
    ):
        self._host = host
        self._registry = registry
        self._policy = policy
        self.token_sink = token_sink
        self.address = contract_address("Participation")
        self._stats: Dict[int, ParticipationStats] = {}
        self._stakes: Dict[int, int] = {}

    def record_uptime(self, caller: str, node_id: int, minutes_up: int):
        if minutes_up < 0:
            raise InvalidAmount("minutes_up must be non-negative")
        with self._host.transaction(caller) as tx:
            node = self._registry.get_node(node_id)
            self._policy.check_uptime_reporter(tx.caller, node.owner)

            stats = self._stats.setdefault(node_id, ParticipationStats())
            stats.uptime_total += minutes_up
            stats.earned_unclaimed += minutes_up * REWARD_UNITS_PER_MINUTE
            stats.last_update = tx.timestamp
            tx.emit(self.address, "UptimeRecorded",
                    nodeId=node_id, minutesUp=minutes_up, timestamp=tx.timestamp)
        logger.info("Node #%d uptime +%d min (total=%d)", node_id, minutes_up, stats.uptime_total)

    def claim_reward(self, caller: str, node_id: int) -> int:
        with self._host.transaction(caller) as tx:
            if not self._registry.exists(node_id) or self._registry.owner_of(node_id) != tx.caller:
                raise Unauthorized("Only the node owner may claim rewards")

            stats = self._stats.get(node_id)
            amount = stats.earned_unclaimed if stats else 0
            if self.token_sink is not None and amount:
                self.token_sink.mint(tx.caller, amount)
            if stats is not None:
                stats.earned_unclaimed = 0
            tx.emit(self.address, "RewardClaimed",
                    nodeId=node_id, owner=tx.caller, amount=amount, timestamp=tx.timestamp)
        logger.info("Node #%d rewards claimed by %s: %d", node_id, tx.caller, amount)
        return amount

    def stake_to_node(self, caller: str, node_id: int, value: int):
        if value <= 0:
            raise InvalidAmount("Stake must be greater than zero")
        with self._host.transaction(caller, value=value, payable=True) as tx:
            self._registry.get_node(node_id)
            tx.receive(self.address)
            self._stakes[node_id] = self._stakes.get(node_id, 0) + value
            tx.emit(self.address, "StakeUpdated",
                    nodeId=node_id, staker=tx.caller, amount=value, timestamp=tx.timestamp)
        logger.info("Node #%d staked %d wei by %s", node_id, value, tx.caller)

    # -------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------

    def get_stats(self, node_id: int) -> ParticipationStats:
        with self._host.lock:
            stats = self._stats.get(node_id)
            if stats is None:
                return ParticipationStats()
            return ParticipationStats(stats.uptime_total, stats.last_update, stats.earned_unclaimed)

    def get_stake(self, node_id: int) -> int:
        with self._host.lock:
            return self._stakes.get(node_id, 0)
