"""
token.py - DPN reward token (fungible) and the TokenSink capability.

The core never moves token balances itself. Components that need to pull a
token stake or pay out a reward are handed a ``TokenSink``:

    collect(payer, amount)  pull ``amount`` from ``payer`` into the sink owner
    mint(payee, amount)     create ``amount`` new tokens for ``payee``

``DPNToken.sink_for(spender)`` binds the token to one component address: a
collect is a ``transfer_from`` with that component as the spender, so the
payer must have approved it beforehand.
"""

import logging
from typing import Dict, Optional, Protocol, Tuple

from depin.errors import InsufficientBalance, InvalidAmount, Unauthorized
from depin.host import ZERO_ADDRESS, ExecutionHost, contract_address, to_address

logger = logging.getLogger("token")

TOKEN_NAME = "DePIN Token"
TOKEN_SYMBOL = "DPN"
TOKEN_DECIMALS = 18
DEFAULT_INITIAL_SUPPLY = 1_000_000 * 10**TOKEN_DECIMALS


class TokenSink(Protocol):
    def collect(self, payer: str, amount: int) -> None: ...

    def mint(self, payee: str, amount: int) -> None: ...


class DPNToken:
    """Fungible token ledger with allowances and privileged minters."""

    def __init__(self, host: ExecutionHost, initial_supply: int = DEFAULT_INITIAL_SUPPLY):
        self._host = host
        self.address = contract_address("DPNToken")
        self._balances: Dict[str, int] = {}
        self._allowances: Dict[Tuple[str, str], int] = {}
        self._minters = {host.admin}
        self._total_supply = 0

        if initial_supply:
            with host.transaction(host.admin) as tx:
                self._mint(tx, host.admin, initial_supply)
        logger.info("DPN token deployed at %s (supply=%d)", self.address, initial_supply)

    # -------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------

    def total_supply(self) -> int:
        with self._host.lock:
            return self._total_supply

    def balance_of(self, account: str) -> int:
        with self._host.lock:
            return self._balances.get(to_address(account), 0)

    def allowance(self, owner: str, spender: str) -> int:
        with self._host.lock:
            return self._allowances.get((to_address(owner), to_address(spender)), 0)

    # -------------------------------------------------------------------
    # Mutators
    # -------------------------------------------------------------------

    def transfer(self, caller: str, to: str, amount: int) -> bool:
        with self._host.transaction(caller) as tx:
            self._move(tx, tx.caller, to_address(to), amount)
        return True

    def approve(self, caller: str, spender: str, amount: int) -> bool:
        if amount < 0:
            raise InvalidAmount("Allowance must be non-negative")
        spender = to_address(spender)
        with self._host.transaction(caller) as tx:
            self._allowances[(tx.caller, spender)] = amount
            tx.emit(self.address, "TokenApproval", owner=tx.caller, spender=spender, value=amount)
        return True

    def transfer_from(self, caller: str, owner: str, to: str, amount: int) -> bool:
        owner = to_address(owner)
        with self._host.transaction(caller) as tx:
            self._spend_allowance(owner, tx.caller, amount)
            self._move(tx, owner, to_address(to), amount)
        return True

    def mint(self, caller: str, to: str, amount: int):
        with self._host.transaction(caller) as tx:
            if tx.caller not in self._minters:
                raise Unauthorized("Caller is not a DPN minter")
            self._mint(tx, to_address(to), amount)

    def add_minter(self, caller: str, minter: str):
        with self._host.transaction(caller) as tx:
            if tx.caller != self._host.admin:
                raise Unauthorized("Only the token owner can add minters")
            self._minters.add(to_address(minter))

    # -------------------------------------------------------------------
    # Capability binding
    # -------------------------------------------------------------------

    def sink_for(self, spender: str) -> "BoundTokenSink":
        """Bind a TokenSink to a component address (adds it as a minter)."""
        spender = to_address(spender)
        with self._host.lock:
            self._minters.add(spender)
        return BoundTokenSink(self, spender)

    # -------------------------------------------------------------------
    # Internal (caller must hold an open transaction)
    # -------------------------------------------------------------------

    def _spend_allowance(self, owner: str, spender: str, amount: int):
        if owner == spender:
            return
        allowed = self._allowances.get((owner, spender), 0)
        if allowed < amount:
            raise InsufficientBalance(
                f"Allowance too low: {spender} may spend {allowed} of {owner}, needs {amount}"
            )

    def _move(self, tx, source: str, dest: str, amount: int):
        if amount < 0:
            raise InvalidAmount("Transfer amount must be non-negative")
        have = self._balances.get(source, 0)
        if have < amount:
            raise InsufficientBalance(f"Insufficient DPN balance: have {have}, need {amount}")
        spender = tx.caller
        if source != spender and (source, spender) in self._allowances:
            self._allowances[(source, spender)] -= amount
        self._balances[source] = have - amount
        self._balances[dest] = self._balances.get(dest, 0) + amount
        tx.emit(self.address, "TokenTransfer", **{"from": source, "to": dest, "value": amount})

    def _mint(self, tx, to: str, amount: int):
        if amount <= 0:
            raise InvalidAmount("Mint amount must be positive")
        self._balances[to] = self._balances.get(to, 0) + amount
        self._total_supply += amount
        tx.emit(self.address, "TokenTransfer", **{"from": ZERO_ADDRESS, "to": to, "value": amount})


class BoundTokenSink:
    """TokenSink that acts on behalf of one component inside its open transaction."""

    def __init__(self, token: DPNToken, spender: str):
        self._token = token
        self.spender = spender

    def collect(self, payer: str, amount: int):
        if amount == 0:
            return
        payer = to_address(payer)
        tx = self._open_tx()
        self._token._spend_allowance(payer, self.spender, amount)
        have = self._token._balances.get(payer, 0)
        if have < amount:
            raise InsufficientBalance(f"Insufficient DPN balance: have {have}, need {amount}")
        # Allowance is charged to the component, not to the transaction caller
        if payer != self.spender:
            self._token._allowances[(payer, self.spender)] -= amount
        self._token._balances[payer] = have - amount
        self._token._balances[self.spender] = self._token._balances.get(self.spender, 0) + amount
        tx.emit(self._token.address, "TokenTransfer",
                **{"from": payer, "to": self.spender, "value": amount})

    def mint(self, payee: str, amount: int):
        if amount == 0:
            return
        self._token._mint(self._open_tx(), to_address(payee), amount)

    def _open_tx(self):
        tx = self._token._host.current_transaction
        if tx is None:
            raise RuntimeError("TokenSink used outside of a host transaction")
        return tx
