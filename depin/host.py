"""
host.py - In-process execution host (chain simulator).

Stands in for the deterministic chain the core logic runs on:
 - serializes every mutating operation under one re-entrant lock
 - one transaction per block, block timestamps never decrease
 - transaction hashes derived from (genesis id, caller, nonce, block)
 - append-only event log; events are committed only if the transaction
   body finishes without raising, otherwise they are discarded
 - native coin may only be attached to payable operations; it is checked
   before the body runs and credited to the receiving component on commit
 - every host run gets a random ``genesis_id`` so consumers can tell a
   restarted (empty) host from the one they last read

Usage:
    host = ExecutionHost(admin="0x...")
    with host.transaction(caller, value=10**18, payable=True) as tx:
        ...
        tx.emit(contract_address, "NodeRegistered", nodeId=0, owner=caller, timestamp=tx.timestamp)
"""

import hashlib
import logging
import re
import secrets
import threading
import time
from contextlib import contextmanager
from typing import Callable, Dict, Iterator, List, Optional, Tuple

from depin.errors import InvalidAmount
from depin.events import EventRecord, validate_args

logger = logging.getLogger("host")

ZERO_ADDRESS = "0x" + "00" * 20
DEFAULT_ADMIN_ADDRESS = "0x" + "ad" * 20

_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")


def to_address(value: str) -> str:
    """Validate a 0x-prefixed 20-byte hex address and return it lower-cased."""
    if not isinstance(value, str) or not _ADDRESS_RE.match(value):
        raise ValueError(f"Invalid address: {value!r}")
    return value.lower()


def contract_address(label: str) -> str:
    """Deterministic pseudo contract address for an in-process component."""
    return "0x" + hashlib.sha3_256(label.encode("utf-8")).hexdigest()[-40:]


class Transaction:
    """One atomic operation: caller, attached value, block context, pending events."""

    def __init__(self, caller: str, value: int, block_number: int, timestamp: int, tx_hash: str):
        self.caller = caller
        self.value = value
        self.block_number = block_number
        self.timestamp = timestamp
        self.tx_hash = tx_hash
        self.recipient: Optional[str] = None
        self._pending: List[Tuple[str, str, dict]] = []

    def emit(self, address: str, event: str, **args):
        validate_args(event, args)
        self._pending.append((address, event, args))

    def receive(self, address: str):
        """Mark ``address`` as the component that keeps the attached native value."""
        self.recipient = address

    @property
    def pending_events(self) -> List[Tuple[str, str, dict]]:
        return list(self._pending)

    def receipt(self) -> dict:
        return {
            "tx_hash": self.tx_hash,
            "block_number": self.block_number,
            "timestamp": self.timestamp,
            "from": self.caller,
            "value": str(self.value),
        }


class ExecutionHost:
    """Serializing, event-logging transaction host."""

    def __init__(
        self,
        admin: str = DEFAULT_ADMIN_ADDRESS,
        clock: Callable[[], float] = time.time,
    ):
        self.admin = to_address(admin)
        self._clock = clock
        self._time_offset = 0
        self.genesis_id = secrets.token_hex(16)
        self._lock = threading.RLock()
        self._current: Optional[Transaction] = None

        self._block_number = 0
        self._last_timestamp = 0
        self._nonces: Dict[str, int] = {}
        self._balances: Dict[str, int] = {}
        self._log: List[EventRecord] = []

        logger.info("Execution host initialized (admin=%s, genesis=%s)", self.admin, self.genesis_id[:12])

    # -------------------------------------------------------------------
    # Time / block context
    # -------------------------------------------------------------------

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    @property
    def current_transaction(self) -> Optional[Transaction]:
        return self._current

    @property
    def block_number(self) -> int:
        return self._block_number

    def now(self) -> int:
        """Timestamp the next block would carry, without mining it."""
        with self._lock:
            return max(int(self._clock()) + self._time_offset, self._last_timestamp)

    def increase_time(self, seconds: int):
        """Shift the host clock forward (simulated time travel)."""
        if seconds < 0:
            raise InvalidAmount("Cannot move time backwards")
        with self._lock:
            self._time_offset += seconds
        logger.info("Host time advanced by %ds", seconds)

    # -------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------

    @contextmanager
    def transaction(self, caller: str, value: int = 0, payable: bool = False) -> Iterator[Transaction]:
        """Run one atomic operation.

        Re-entrant: a nested call from the same caller joins the open
        transaction instead of starting a new block. Native value is
        rejected up front unless every participant is ``payable``.
        """
        caller = to_address(caller)
        if value < 0:
            raise InvalidAmount("Attached value must be non-negative")

        with self._lock:
            if self._current is not None:
                tx = self._current
                if tx.caller != caller or (value and value != tx.value):
                    raise RuntimeError(
                        "Nested transaction must share caller and value with the open one"
                    )
                if tx.value and not payable:
                    raise InvalidAmount("Operation does not accept native value")
                yield tx
                return

            if value and not payable:
                raise InvalidAmount("Operation does not accept native value")
            tx = self._begin(caller, value)
            self._current = tx
            try:
                yield tx
            except Exception as e:
                logger.debug("Transaction %s reverted: %s", tx.tx_hash[:18], e)
                raise
            else:
                self._commit(tx)
            finally:
                self._current = None

    def _begin(self, caller: str, value: int) -> Transaction:
        timestamp = self.now()
        nonce = self._nonces.get(caller, 0)
        block_number = self._block_number + 1
        digest = hashlib.sha3_256(f"{self.genesis_id}:{caller}:{nonce}:{block_number}:{timestamp}".encode("utf-8"))
        return Transaction(caller, value, block_number, timestamp, "0x" + digest.hexdigest())

    def _commit(self, tx: Transaction):
        if tx.value and tx.recipient is None:
            raise InvalidAmount("Operation does not accept native value")
        self._block_number = tx.block_number
        self._last_timestamp = tx.timestamp
        self._nonces[tx.caller] = self._nonces.get(tx.caller, 0) + 1
        if tx.value:
            self._balances[tx.recipient] = self._balances.get(tx.recipient, 0) + tx.value
        for log_index, (address, event, args) in enumerate(tx.pending_events):
            self._log.append(EventRecord(
                event=event,
                args=args,
                address=address,
                tx_hash=tx.tx_hash,
                log_index=log_index,
                block_number=tx.block_number,
                timestamp=tx.timestamp,
                sequence=len(self._log) + 1,
            ))
        logger.debug(
            "Block #%d committed: tx=%s events=%d",
            tx.block_number, tx.tx_hash[:18], len(tx.pending_events),
        )

    # -------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------

    def balance_of(self, address: str) -> int:
        """Native coin held by an address (components receive attached value)."""
        with self._lock:
            return self._balances.get(to_address(address), 0)

    def events_since(self, cursor: int = 0, limit: Optional[int] = None) -> List[EventRecord]:
        """Committed events with sequence > ``cursor``, oldest first."""
        with self._lock:
            items = self._log[cursor:]
        if limit is not None:
            items = items[:limit]
        return items

    @property
    def event_count(self) -> int:
        return len(self._log)

    def get_stats(self) -> dict:
        with self._lock:
            return {
                "block_number": self._block_number,
                "last_timestamp": self._last_timestamp,
                "events": len(self._log),
                "admin": self.admin,
                "genesis_id": self.genesis_id,
                "accounts": len(self._nonces),
            }
