"""
Shared fixtures for DePIN API integration tests.

Provides:
 - A DePINServer backed by in-memory SQLite (services initialized)
 - An httpx AsyncClient bound to the app through ASGITransport
 - Auth header factories for wallet sessions and the admin key
"""

import httpx
import pytest
import pytest_asyncio

from depin.auth import DEFAULT_ADMIN_KEY
from depin.server import DePINServer

from api_helpers import ADMIN, JWT_SECRET


# ── Fixtures ──────────────────────────────────────────────────────────────

@pytest_asyncio.fixture
async def server():
    srv = DePINServer(db_path=":memory:", admin_address=ADMIN, jwt_secret=JWT_SECRET)
    await srv.init_services()
    yield srv
    await srv.close_services()


@pytest_asyncio.fixture
async def client(server):
    transport = httpx.ASGITransport(app=server.app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.fixture
def admin_headers():
    return {"X-API-Key": DEFAULT_ADMIN_KEY}


@pytest.fixture
def wallet_headers(server):
    """Factory: Authorization headers for a wallet session as ``address``."""
    def _headers(address: str) -> dict:
        return {"Authorization": f"Bearer {server.auth.issue_jwt(address)}"}
    return _headers
