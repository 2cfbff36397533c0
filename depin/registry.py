"""
registry.py - Node registry.

Assigns identity to newly registered nodes: sequential id (from 0), owner,
metadata and registration time. Identities are immutable and never removed.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List

from depin.errors import NotFound
from depin.host import ExecutionHost, contract_address

logger = logging.getLogger("registry")


@dataclass(frozen=True)
class NodeIdentity:
    id: int
    owner: str
    metadata: str
    registered_at: int

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "owner": self.owner,
            "metadata": self.metadata,
            "registered_at": self.registered_at,
        }


class NodeRegistry:
    """Sequential node identities."""

    def __init__(self, host: ExecutionHost):
        self._host = host
        self.address = contract_address("NodeRegistry")
        self._nodes: Dict[int, NodeIdentity] = {}
        self._next_node_id = 0

    def register_node(self, caller: str, metadata: str) -> int:
        with self._host.transaction(caller) as tx:
            node_id = self._next_node_id
            self._nodes[node_id] = NodeIdentity(
                id=node_id, owner=tx.caller, metadata=metadata, registered_at=tx.timestamp,
            )
            self._next_node_id += 1
            tx.emit(self.address, "NodeRegistered",
                    nodeId=node_id, owner=tx.caller, timestamp=tx.timestamp)
        logger.info("Node #%d registered by %s", node_id, tx.caller)
        return node_id

    def get_node(self, node_id: int) -> NodeIdentity:
        with self._host.lock:
            node = self._nodes.get(node_id)
        if node is None:
            raise NotFound(f"Node {node_id} not registered")
        return node

    def exists(self, node_id: int) -> bool:
        with self._host.lock:
            return node_id in self._nodes

    def owner_of(self, node_id: int) -> str:
        return self.get_node(node_id).owner

    def node_count(self) -> int:
        with self._host.lock:
            return self._next_node_id

    def list_nodes(self) -> List[NodeIdentity]:
        with self._host.lock:
            return [self._nodes[i] for i in sorted(self._nodes)]
