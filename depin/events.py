"""
events.py - Event contract consumed by the indexer.

Every mutating operation emits one or more events. The field names below are
the wire names indexers rely on; ``Transaction.emit`` refuses anything that
does not match this table exactly.

Record identity: ``tx_hash`` + 4-byte little-endian ``log_index``, hex encoded
(the layout subgraph mappings produce with ``concatI32``).
That key is globally unique and stable, so replaying the same log into a
store is idempotent.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Tuple

# ---------------------------------------------------------------------------
# Event schemas
# ---------------------------------------------------------------------------

EVENT_FIELDS: Dict[str, Tuple[str, ...]] = {
    # Node registry / participation ledger
    "NodeRegistered": ("nodeId", "owner", "timestamp"),
    "UptimeRecorded": ("nodeId", "minutesUp", "timestamp"),
    "RewardClaimed": ("nodeId", "owner", "amount", "timestamp"),
    "StakeUpdated": ("nodeId", "staker", "amount", "timestamp"),
    # Node rights engine
    "NodeRightsMinted": ("tokenId", "owner", "nodeType", "ethStaked", "dpnStaked"),
    "NodeUpgraded": ("tokenId", "additionalETH", "additionalDPN", "newPerformanceScore"),
    "PerformanceUpdated": ("tokenId", "newScore", "uptimeAdded", "status"),
    "NodeSlashed": ("tokenId", "newStatus", "penaltyAmount", "reason"),
    "CrossChainBridge": ("tokenId", "destinationChain", "operator"),
    "NodeTypeConfigUpdated": (
        "nodeType", "minETHStake", "minDPNStake", "baseRewardRate", "isActive",
    ),
    # Asset events (rights use tokenId, the fungible token uses value)
    "Transfer": ("from", "to", "tokenId"),
    "Approval": ("owner", "approved", "tokenId"),
    "ApprovalForAll": ("owner", "operator", "approved"),
    "TokenTransfer": ("from", "to", "value"),
    "TokenApproval": ("owner", "spender", "value"),
}


def record_key(tx_hash: str, log_index: int) -> str:
    """Globally unique record id: tx hash bytes followed by the log index as i32 LE."""
    raw = tx_hash[2:] if tx_hash.startswith("0x") else tx_hash
    return "0x" + raw + log_index.to_bytes(4, "little", signed=True).hex()


@dataclass(frozen=True)
class EventRecord:
    event: str
    args: Dict[str, Any]
    address: str
    tx_hash: str
    log_index: int
    block_number: int
    timestamp: int
    sequence: int = field(default=0, compare=False)

    @property
    def key(self) -> str:
        return record_key(self.tx_hash, self.log_index)

    def to_dict(self) -> dict:
        return {
            "id": self.key,
            "event": self.event,
            "address": self.address,
            "args": dict(self.args),
            "tx_hash": self.tx_hash,
            "log_index": self.log_index,
            "block_number": self.block_number,
            "timestamp": self.timestamp,
        }


def validate_args(event: str, args: Dict[str, Any]):
    """Raise ValueError unless ``args`` carries exactly the schema's fields."""
    expected = EVENT_FIELDS.get(event)
    if expected is None:
        raise ValueError(f"Unknown event: {event}")
    if set(args) != set(expected):
        raise ValueError(
            f"{event} expects fields {sorted(expected)}, got {sorted(args)}"
        )
