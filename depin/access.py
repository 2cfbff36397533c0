"""
access.py - Configurable capability checks.

Two reporting paths have different trust levels:
 - uptime reports on the participation ledger (open to anyone by default)
 - performance reports on the rights engine (admin or the registered
   participation integration only)

The uptime mode is a deployment choice, so it is a policy value rather than
a hard-coded rule:

    open    any caller may report uptime for any node
    owner   only the node's registered owner may report
    oracle  only addresses added as oracles (or the admin) may report
"""

import enum
import logging
from typing import Iterable, Optional, Set

from depin.errors import Unauthorized
from depin.host import to_address

logger = logging.getLogger("access")


class UptimePolicy(str, enum.Enum):
    OPEN = "open"
    OWNER = "owner"
    ORACLE = "oracle"


class AccessPolicy:
    def __init__(
        self,
        admin: str,
        uptime_policy: UptimePolicy = UptimePolicy.OPEN,
        oracles: Optional[Iterable[str]] = None,
    ):
        self.admin = to_address(admin)
        self.uptime_policy = UptimePolicy(uptime_policy)
        self._oracles: Set[str] = {to_address(a) for a in (oracles or [])}
        self._performance_reporters: Set[str] = set()

    # -------------------------------------------------------------------
    # Uptime reporting
    # -------------------------------------------------------------------

    def check_uptime_reporter(self, caller: str, node_owner: str):
        if self.uptime_policy is UptimePolicy.OPEN:
            return
        if self.uptime_policy is UptimePolicy.OWNER:
            if caller != node_owner:
                raise Unauthorized("Only the node owner may report uptime")
            return
        if caller != self.admin and caller not in self._oracles:
            raise Unauthorized("Caller is not an uptime oracle")

    def add_oracle(self, address: str):
        self._oracles.add(to_address(address))
        logger.info("Uptime oracle added: %s", address)

    def remove_oracle(self, address: str):
        self._oracles.discard(to_address(address))

    @property
    def oracles(self) -> Set[str]:
        return set(self._oracles)

    # -------------------------------------------------------------------
    # Performance reporting
    # -------------------------------------------------------------------

    def is_performance_reporter(self, caller: str) -> bool:
        return caller == self.admin or caller in self._performance_reporters

    def check_performance_reporter(self, caller: str):
        if not self.is_performance_reporter(caller):
            raise Unauthorized("Caller may not report node performance")

    def set_performance_reporter(self, address: str, previous: Optional[str] = None):
        if previous:
            self._performance_reporters.discard(previous)
        self._performance_reporters.add(to_address(address))
