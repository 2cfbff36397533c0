"""Shared fixtures for the DePIN core test suite."""

import pytest

from depin.access import AccessPolicy
from depin.host import ExecutionHost
from depin.participation import ParticipationLedger
from depin.registry import NodeRegistry
from depin.rights import NodeRightsEngine
from depin.token import DPNToken

from sim_constants import ADMIN, ALICE, DPN, ETH, START_TIME


# ── Fixtures ────────────────────────────────────────────────────────────────

@pytest.fixture
def host():
    """Execution host with a frozen wall clock (time moves only via increase_time)."""
    return ExecutionHost(admin=ADMIN, clock=lambda: START_TIME)


@pytest.fixture
def policy(host):
    return AccessPolicy(host.admin)


@pytest.fixture
def registry(host):
    return NodeRegistry(host)


@pytest.fixture
def ledger(host, registry, policy):
    return ParticipationLedger(host, registry, policy)


@pytest.fixture
def engine(host, policy):
    return NodeRightsEngine(host, policy)


@pytest.fixture
def token(host):
    return DPNToken(host)


@pytest.fixture
def minted_storage(engine):
    """A STORAGE node minted by ALICE with 1.5 ETH / 1000 DPN stake (token id 0)."""
    return engine.mint_node_rights(ALICE, 0, 1000 * DPN, "storage node", value=3 * ETH // 2)
