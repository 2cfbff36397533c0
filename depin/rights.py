"""
rights.py - Node rights engine.

Tokenized node rights: each minted token is a single-owner, transferable
asset carrying typed configuration (storage / compute / bandwidth), native and
DPN stake, a performance score and a status derived from it.

Performance score is in basis points (10000 = 100%). Status is a pure function
of the latest reported score:

    score >= 9000        ACTIVE
    5000 <= score < 9000 SLASHED_MINOR   (5% of staked DPN)
    2000 <= score < 5000 SLASHED_MAJOR   (15% of staked DPN)
    score < 2000         TERMINATED      (100% of staked DPN, node becomes inert)

A penalty is charged every time a report moves the node into a different
penalty tier. Native stake is never slashed. Upgrading adds stake and a score
bonus of ``added_native * 100 // total_native`` points, capped at 12000.

All amounts are integers (wei / DPN base units).
"""

import enum
import logging
from dataclasses import asdict, dataclass
from typing import Dict, List, Optional, Set

from depin.access import AccessPolicy
from depin.errors import (
    AlreadyTerminated,
    CapacityReached,
    InactiveNodeType,
    InsufficientNativeStake,
    InsufficientTokenStake,
    InvalidAmount,
    NodeNotActive,
    NotFound,
    NotOwner,
    Unauthorized,
)
from depin.host import ZERO_ADDRESS, ExecutionHost, contract_address, to_address
from depin.token import TokenSink

logger = logging.getLogger("rights")

ETH = 10**18
DPN = 10**18

# ---------------------------------------------------------------------------
# Scoring constants
# ---------------------------------------------------------------------------

INITIAL_PERFORMANCE_SCORE = 10000
MAX_PERFORMANCE_SCORE = 12000     # only reachable through upgrade bonuses
SCORE_DENOMINATOR = 10000

ACTIVE_THRESHOLD = 9000
MINOR_SLASH_THRESHOLD = 5000
MAJOR_SLASH_THRESHOLD = 2000


class NodeType(enum.IntEnum):
    STORAGE = 0
    COMPUTE = 1
    BANDWIDTH = 2


class NodeStatus(enum.IntEnum):
    ACTIVE = 0
    SLASHED_MINOR = 1
    SLASHED_MAJOR = 2
    TERMINATED = 3


SLASH_PERCENT: Dict[NodeStatus, int] = {
    NodeStatus.SLASHED_MINOR: 5,
    NodeStatus.SLASHED_MAJOR: 15,
    NodeStatus.TERMINATED: 100,
}

SLASH_REASONS: Dict[NodeStatus, str] = {
    NodeStatus.SLASHED_MINOR: "Minor performance degradation",
    NodeStatus.SLASHED_MAJOR: "Major performance failure",
    NodeStatus.TERMINATED: "Critical failure - node terminated",
}


def status_for_score(score: int) -> NodeStatus:
    if score >= ACTIVE_THRESHOLD:
        return NodeStatus.ACTIVE
    if score >= MINOR_SLASH_THRESHOLD:
        return NodeStatus.SLASHED_MINOR
    if score >= MAJOR_SLASH_THRESHOLD:
        return NodeStatus.SLASHED_MAJOR
    return NodeStatus.TERMINATED


# ---------------------------------------------------------------------------
# Data types
# ---------------------------------------------------------------------------


@dataclass
class NodeTypeConfig:
    min_native_stake: int
    min_token_stake: int
    base_reward_rate_per_second: int
    max_capacity: int
    is_active: bool = True

    def to_dict(self) -> dict:
        return {
            "min_native_stake": str(self.min_native_stake),
            "min_token_stake": str(self.min_token_stake),
            "base_reward_rate_per_second": str(self.base_reward_rate_per_second),
            "max_capacity": self.max_capacity,
            "is_active": self.is_active,
        }


# Reward rates: DPN base units per second (1 DPN/day = 11574074074074)
DEFAULT_NODE_TYPE_CONFIGS: Dict[NodeType, NodeTypeConfig] = {
    NodeType.STORAGE: NodeTypeConfig(1 * ETH, 1000 * DPN, 11574074074074, 1000),
    NodeType.COMPUTE: NodeTypeConfig(2 * ETH, 2000 * DPN, 23148148148148, 500),
    NodeType.BANDWIDTH: NodeTypeConfig(ETH // 2, 500 * DPN, 5787037037037, 2000),
}


@dataclass
class NodeRights:
    node_type: NodeType
    staked_native: int
    staked_token: int
    minted_at: int
    last_reward_claim: int
    status: NodeStatus = NodeStatus.ACTIVE
    total_uptime: int = 0
    performance_score: int = INITIAL_PERFORMANCE_SCORE
    metadata: str = ""
    is_upgraded: bool = False
    last_performance_update: int = 0

    def copy(self) -> "NodeRights":
        return NodeRights(**asdict(self))

    def to_dict(self) -> dict:
        return {
            "node_type": self.node_type.name,
            "staked_native": str(self.staked_native),
            "staked_token": str(self.staked_token),
            "minted_at": self.minted_at,
            "last_reward_claim": self.last_reward_claim,
            "status": self.status.name,
            "total_uptime": self.total_uptime,
            "performance_score": self.performance_score,
            "metadata": self.metadata,
            "is_upgraded": self.is_upgraded,
            "last_performance_update": self.last_performance_update,
        }


@dataclass
class NodeTypeStats:
    total_nodes: int = 0
    active_nodes: int = 0
    total_staked_native: int = 0
    average_performance: int = 0

    def to_dict(self) -> dict:
        return {
            "total_nodes": self.total_nodes,
            "active_nodes": self.active_nodes,
            "total_staked_native": str(self.total_staked_native),
            "average_performance": self.average_performance,
        }


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class NodeRightsEngine:
    """Mint / upgrade / performance / slashing / rewards for node rights tokens."""

    name = "DePIN Node Rights"
    symbol = "DPNR"

    def __init__(
        self,
        host: ExecutionHost,
        policy: AccessPolicy,
        token_sink: Optional[TokenSink] = None,
        configs: Optional[Dict[NodeType, NodeTypeConfig]] = None,
    ):
        self._host = host
        self._policy = policy
        self.token_sink = token_sink
        self.address = contract_address("NodeRightsNFT")

        source = configs or DEFAULT_NODE_TYPE_CONFIGS
        self._configs: Dict[NodeType, NodeTypeConfig] = {
            t: NodeTypeConfig(**asdict(c)) for t, c in source.items()
        }
        self._nodes: Dict[int, NodeRights] = {}
        self._owners: Dict[int, str] = {}
        self._owned: Dict[str, List[int]] = {}
        self._approvals: Dict[int, str] = {}
        self._operators: Dict[str, Set[str]] = {}
        self._bridges: Dict[int, str] = {}
        self._minted_per_type: Dict[NodeType, int] = {t: 0 for t in NodeType}
        self._next_token_id = 0
        self._participation_contract: Optional[str] = None

    @property
    def admin(self) -> str:
        return self._policy.admin

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------

    def mint_node_rights(
        self,
        caller: str,
        node_type: NodeType,
        token_stake_amount: int,
        metadata: str,
        value: int = 0,
    ) -> int:
        node_type = NodeType(node_type)
        if token_stake_amount < 0:
            raise InvalidAmount("Token stake must be non-negative")

        with self._host.transaction(caller, value=value, payable=True) as tx:
            config = self._config(node_type)
            if not config.is_active:
                raise InactiveNodeType(f"Node type {node_type.name} is not active")
            if tx.value < config.min_native_stake:
                raise InsufficientNativeStake("Insufficient ETH stake")
            if token_stake_amount < config.min_token_stake:
                raise InsufficientTokenStake("Insufficient DPN stake")
            if self._minted_per_type[node_type] >= config.max_capacity:
                raise CapacityReached(f"{node_type.name} capacity of {config.max_capacity} reached")

            if self.token_sink is not None:
                self.token_sink.collect(tx.caller, token_stake_amount)
            if tx.value:
                tx.receive(self.address)

            token_id = self._next_token_id
            self._nodes[token_id] = NodeRights(
                node_type=node_type,
                staked_native=tx.value,
                staked_token=token_stake_amount,
                minted_at=tx.timestamp,
                last_reward_claim=tx.timestamp,
                metadata=metadata,
                last_performance_update=tx.timestamp,
            )
            self._next_token_id += 1
            self._minted_per_type[node_type] += 1
            self._set_owner(token_id, tx.caller)

            tx.emit(self.address, "Transfer", **{"from": ZERO_ADDRESS, "to": tx.caller, "tokenId": token_id})
            tx.emit(self.address, "NodeRightsMinted",
                    tokenId=token_id, owner=tx.caller, nodeType=int(node_type),
                    ethStaked=tx.value, dpnStaked=token_stake_amount)

        logger.info(
            "Node rights #%d minted: type=%s owner=%s native=%d token=%d",
            token_id, node_type.name, tx.caller, tx.value, token_stake_amount,
        )
        return token_id

    def upgrade_node(self, caller: str, token_id: int, additional_token_stake: int, value: int = 0) -> int:
        if additional_token_stake < 0:
            raise InvalidAmount("Token stake must be non-negative")

        with self._host.transaction(caller, value=value, payable=True) as tx:
            node = self._require(token_id)
            if self._owners[token_id] != tx.caller:
                raise NotOwner("Not node owner")
            if node.status is not NodeStatus.ACTIVE:
                raise NodeNotActive("Node not active")

            if self.token_sink is not None:
                self.token_sink.collect(tx.caller, additional_token_stake)
            if tx.value:
                tx.receive(self.address)

            node.staked_native += tx.value
            node.staked_token += additional_token_stake
            node.is_upgraded = True
            boost = (tx.value * 100) // node.staked_native if node.staked_native else 0
            node.performance_score = min(node.performance_score + boost, MAX_PERFORMANCE_SCORE)

            tx.emit(self.address, "NodeUpgraded",
                    tokenId=token_id, additionalETH=tx.value,
                    additionalDPN=additional_token_stake,
                    newPerformanceScore=node.performance_score)

        logger.info(
            "Node rights #%d upgraded: +%d native +%d token, score=%d",
            token_id, tx.value, additional_token_stake, node.performance_score,
        )
        return node.performance_score

    def update_performance(
        self, caller: str, token_id: int, uptime_seconds_delta: int, new_performance_score: int,
    ) -> NodeStatus:
        if uptime_seconds_delta < 0 or new_performance_score < 0:
            raise InvalidAmount("Uptime and score must be non-negative")

        with self._host.transaction(caller) as tx:
            node = self._require(token_id)
            self._policy.check_performance_reporter(tx.caller)
            if node.status is NodeStatus.TERMINATED:
                raise AlreadyTerminated(f"Node {token_id} is terminated")

            node.total_uptime += uptime_seconds_delta
            node.performance_score = min(new_performance_score, MAX_PERFORMANCE_SCORE)
            node.last_performance_update = tx.timestamp

            new_status = status_for_score(node.performance_score)
            if new_status is not node.status:
                self._apply_status_change(tx, token_id, node, new_status)

            tx.emit(self.address, "PerformanceUpdated",
                    tokenId=token_id, newScore=node.performance_score,
                    uptimeAdded=uptime_seconds_delta, status=int(node.status))

        logger.info(
            "Node rights #%d performance: score=%d uptime+=%d status=%s",
            token_id, node.performance_score, uptime_seconds_delta, node.status.name,
        )
        return node.status

    def _apply_status_change(self, tx, token_id: int, node: NodeRights, new_status: NodeStatus):
        percent = SLASH_PERCENT.get(new_status)
        node.status = new_status
        if percent is None:
            return
        penalty = node.staked_token * percent // 100
        node.staked_token -= penalty
        tx.emit(self.address, "NodeSlashed",
                tokenId=token_id, newStatus=int(new_status),
                penaltyAmount=penalty, reason=SLASH_REASONS[new_status])
        logger.warning(
            "Node rights #%d slashed: status=%s penalty=%d remaining=%d",
            token_id, new_status.name, penalty, node.staked_token,
        )

    def bridge_to_chain(self, caller: str, token_id: int, destination_chain: str):
        with self._host.transaction(caller) as tx:
            self._require(token_id)
            if self._owners[token_id] != tx.caller:
                raise NotOwner("Not node owner")
            self._bridges[token_id] = destination_chain
            tx.emit(self.address, "CrossChainBridge",
                    tokenId=token_id, destinationChain=destination_chain, operator=tx.caller)
        logger.info("Node rights #%d bridged to %s", token_id, destination_chain)

    # -------------------------------------------------------------------
    # Asset ownership
    # -------------------------------------------------------------------

    def owner_of(self, token_id: int) -> str:
        with self._host.lock:
            self._require(token_id)
            return self._owners[token_id]

    def balance_of(self, owner: str) -> int:
        with self._host.lock:
            return len(self._owned.get(to_address(owner), []))

    def approve(self, caller: str, approved: str, token_id: int):
        approved = to_address(approved)
        with self._host.transaction(caller) as tx:
            self._require(token_id)
            owner = self._owners[token_id]
            if tx.caller != owner and tx.caller not in self._operators.get(owner, set()):
                raise NotOwner("Caller is not owner nor approved for all")
            self._approvals[token_id] = approved
            tx.emit(self.address, "Approval", owner=owner, approved=approved, tokenId=token_id)

    def get_approved(self, token_id: int) -> str:
        with self._host.lock:
            self._require(token_id)
            return self._approvals.get(token_id, ZERO_ADDRESS)

    def set_approval_for_all(self, caller: str, operator: str, approved: bool):
        operator = to_address(operator)
        with self._host.transaction(caller) as tx:
            if operator == tx.caller:
                raise InvalidAmount("Cannot approve self as operator")
            operators = self._operators.setdefault(tx.caller, set())
            if approved:
                operators.add(operator)
            else:
                operators.discard(operator)
            tx.emit(self.address, "ApprovalForAll", owner=tx.caller, operator=operator, approved=approved)

    def is_approved_for_all(self, owner: str, operator: str) -> bool:
        with self._host.lock:
            return to_address(operator) in self._operators.get(to_address(owner), set())

    def transfer_from(self, caller: str, from_address: str, to: str, token_id: int):
        from_address = to_address(from_address)
        to = to_address(to)
        with self._host.transaction(caller) as tx:
            self._require(token_id)
            owner = self._owners[token_id]
            if owner != from_address:
                raise NotOwner("Transfer from incorrect owner")
            if (
                tx.caller != owner
                and self._approvals.get(token_id) != tx.caller
                and tx.caller not in self._operators.get(owner, set())
            ):
                raise NotOwner("Caller is not token owner or approved")
            if to == ZERO_ADDRESS:
                raise InvalidAmount("Transfer to the zero address")

            self._approvals.pop(token_id, None)
            self._owned[owner].remove(token_id)
            self._set_owner(token_id, to)
            tx.emit(self.address, "Transfer", **{"from": owner, "to": to, "tokenId": token_id})
        logger.info("Node rights #%d transferred %s -> %s", token_id, from_address, to)

    def _set_owner(self, token_id: int, owner: str):
        self._owners[token_id] = owner
        self._owned.setdefault(owner, []).append(token_id)

    # -------------------------------------------------------------------
    # Rewards / analytics (read-only)
    # -------------------------------------------------------------------

    def estimate_pending_reward(self, token_id: int) -> int:
        with self._host.lock:
            node = self._require(token_id)
            if node.status is not NodeStatus.ACTIVE:
                return 0
            config = self._config(node.node_type)
            elapsed = max(self._host.now() - node.last_reward_claim, 0)
            base = (
                config.base_reward_rate_per_second * elapsed * node.performance_score
                // SCORE_DENOMINATOR
            )
            minimum = config.min_native_stake
            if minimum == 0:
                return base
            excess = max(node.staked_native - minimum, 0)
            return base * (minimum + excess) // minimum

    def get_node(self, token_id: int) -> NodeRights:
        with self._host.lock:
            return self._require(token_id).copy()

    def get_node_details(self, token_id: int) -> dict:
        with self._host.lock:
            node = self._require(token_id)
            config = self._config(node.node_type)
            return {
                "token_id": token_id,
                "owner": self._owners[token_id],
                "node": node.copy(),
                "config": NodeTypeConfig(**asdict(config)),
                "pending_rewards": self.estimate_pending_reward(token_id),
                "time_staked": self._host.now() - node.minted_at,
            }

    def get_owner_nodes(self, owner: str) -> List[int]:
        with self._host.lock:
            return list(self._owned.get(to_address(owner), []))

    def get_node_type_stats(self, node_type: NodeType) -> NodeTypeStats:
        node_type = NodeType(node_type)
        stats = NodeTypeStats()
        score_sum = 0
        with self._host.lock:
            for node in self._nodes.values():
                if node.node_type is not node_type:
                    continue
                stats.total_nodes += 1
                if node.status is NodeStatus.ACTIVE:
                    stats.active_nodes += 1
                stats.total_staked_native += node.staked_native
                score_sum += node.performance_score
        if stats.total_nodes:
            stats.average_performance = score_sum // stats.total_nodes
        return stats

    def total_supply(self) -> int:
        with self._host.lock:
            return self._next_token_id

    def get_bridge_destination(self, token_id: int) -> str:
        with self._host.lock:
            return self._bridges.get(token_id, "")

    def get_node_type_config(self, node_type: NodeType) -> NodeTypeConfig:
        with self._host.lock:
            return NodeTypeConfig(**asdict(self._config(NodeType(node_type))))

    # -------------------------------------------------------------------
    # Admin
    # -------------------------------------------------------------------

    def update_node_type_config(
        self,
        caller: str,
        node_type: NodeType,
        min_native_stake: int,
        min_token_stake: int,
        base_reward_rate_per_second: int,
        is_active: bool,
        max_capacity: Optional[int] = None,
    ):
        node_type = NodeType(node_type)
        if min(min_native_stake, min_token_stake, base_reward_rate_per_second) < 0:
            raise InvalidAmount("Config values must be non-negative")
        if max_capacity is not None and max_capacity < 0:
            raise InvalidAmount("max_capacity must be non-negative")

        with self._host.transaction(caller) as tx:
            if tx.caller != self.admin:
                raise Unauthorized("Only the administrator may update node type config")
            config = self._config(node_type)
            config.min_native_stake = min_native_stake
            config.min_token_stake = min_token_stake
            config.base_reward_rate_per_second = base_reward_rate_per_second
            config.is_active = is_active
            if max_capacity is not None:
                config.max_capacity = max_capacity
            tx.emit(self.address, "NodeTypeConfigUpdated",
                    nodeType=int(node_type), minETHStake=min_native_stake,
                    minDPNStake=min_token_stake, baseRewardRate=base_reward_rate_per_second,
                    isActive=is_active)
        logger.info("Node type %s config updated: %s", node_type.name, config)

    def set_participation_contract(self, caller: str, address: str):
        address = to_address(address)
        with self._host.transaction(caller) as tx:
            if tx.caller != self.admin:
                raise Unauthorized("Only the administrator may set the participation contract")
            self._policy.set_performance_reporter(address, previous=self._participation_contract)
            self._participation_contract = address
        logger.info("Participation contract set to %s", address)

    @property
    def participation_contract(self) -> Optional[str]:
        return self._participation_contract

    # -------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------

    def _require(self, token_id: int) -> NodeRights:
        node = self._nodes.get(token_id)
        if node is None:
            raise NotFound(f"Node rights {token_id} not minted")
        return node

    def _config(self, node_type: NodeType) -> NodeTypeConfig:
        return self._configs[node_type]
