"""
server.py - DePIN node rights simulator entry point.

Single-process server combining:
 - In-process execution host with the DPN token, node registry,
   participation ledger and node rights engine
 - SQLite event index via StorageManager + EventIndexer
 - REST control API (FastAPI on uvicorn, port 8080)
 - Optional JSON-RPC relay to an upstream node

Usage:
    python -m depin.server [--api-port 8080] [--db-path data/depin.db] [--uptime-policy open]
"""

import argparse
import asyncio
import logging
import os
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.responses import JSONResponse
from starlette.requests import Request

from depin.access import AccessPolicy, UptimePolicy
from depin.auth import DEFAULT_ADMIN_KEY, AuthService
from depin.errors import DePINError
from depin.host import DEFAULT_ADMIN_ADDRESS, ExecutionHost
from depin.indexer import DEFAULT_INTERVAL, EventIndexer
from depin.participation import ParticipationLedger
from depin.registry import NodeRegistry
from depin.rights import NodeRightsEngine
from depin.routers import register_all_routers
from depin.storage import StorageManager
from depin.token import DEFAULT_INITIAL_SUPPLY, DPNToken

logger = logging.getLogger("server")


class DePINServer:
    """Wires the core components, the index store and the REST API together."""

    def __init__(
        self,
        api_port: int = 8080,
        db_path: str = "data/depin.db",
        admin_address: str = DEFAULT_ADMIN_ADDRESS,
        admin_key: str = DEFAULT_ADMIN_KEY,
        jwt_secret: str = "",
        uptime_policy: UptimePolicy = UptimePolicy.OPEN,
        rpc_upstream: str = "",
        initial_supply: int = DEFAULT_INITIAL_SUPPLY,
        wire_token: bool = False,
        index_interval: float = DEFAULT_INTERVAL,
    ):
        self.api_port = api_port
        self.db_path = db_path
        self.rpc_upstream = rpc_upstream
        self.index_interval = index_interval

        # Core (synchronous, in-memory)
        self.host = ExecutionHost(admin=admin_address)
        self.policy = AccessPolicy(self.host.admin, uptime_policy=uptime_policy)
        self.token = DPNToken(self.host, initial_supply=initial_supply)
        self.registry = NodeRegistry(self.host)
        self.ledger = ParticipationLedger(self.host, self.registry, self.policy)
        self.rights = NodeRightsEngine(self.host, self.policy)
        self.rights.set_participation_contract(self.host.admin, self.ledger.address)
        if wire_token:
            self.ledger.token_sink = self.token.sink_for(self.ledger.address)
            self.rights.token_sink = self.token.sink_for(self.rights.address)
            logger.info("DPN token wired: stakes collected, rewards minted")

        self.auth = AuthService(self.host.admin, admin_key=admin_key, jwt_secret=jwt_secret)

        # Storage + indexer are initialized async in init_services()
        self.storage: Optional[StorageManager] = None
        self.indexer: Optional[EventIndexer] = None
        self._indexer_task: Optional[asyncio.Task] = None
        self._uvicorn_server: Optional[uvicorn.Server] = None

        # FastAPI app
        self.app = FastAPI(title="DePIN Node Rights Simulator", version="0.1.0")
        self.app.state.server = self
        self.app.add_exception_handler(DePINError, _depin_error_handler)
        self.app.add_exception_handler(ValueError, _value_error_handler)
        register_all_routers(self.app)

    async def init_services(self):
        """Open storage and build the indexer (must be called in async context)."""
        db_dir = os.path.dirname(self.db_path)
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)

        self.storage = StorageManager(self.db_path)
        await self.storage.initialize()
        self.indexer = EventIndexer(self.host, self.storage)
        await self.indexer.sync()

        logger.info("Services initialized (db=%s)", self.db_path)

    def start_indexer(self) -> asyncio.Task:
        """Launch the background indexer loop."""
        self._indexer_task = asyncio.create_task(self.indexer.run(self.index_interval))
        return self._indexer_task

    async def close_services(self):
        if self._indexer_task:
            task, self._indexer_task = self._indexer_task, None
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        if self.storage:
            await self.storage.close()

    # -------------------------------------------------------------------
    # Run
    # -------------------------------------------------------------------

    async def start(self):
        """Start storage, the indexer loop and the API server."""
        await self.init_services()
        self.start_indexer()

        config = uvicorn.Config(
            self.app,
            host="0.0.0.0",
            port=self.api_port,
            log_level="info",
        )
        self._uvicorn_server = uvicorn.Server(config)
        logger.info("REST API starting on port %d", self.api_port)
        try:
            await self._uvicorn_server.serve()
        finally:
            await self.close_services()

    async def stop(self):
        if self._uvicorn_server:
            self._uvicorn_server.should_exit = True
        await self.close_services()


async def _depin_error_handler(request: Request, exc: DePINError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.code, "detail": exc.message},
    )


async def _value_error_handler(request: Request, exc: ValueError):
    return JSONResponse(status_code=400, content={"error": "InvalidArgument", "detail": str(exc)})


def main():
    """CLI entry point for the simulator server."""
    parser = argparse.ArgumentParser(description="DePIN Node Rights Simulator")
    parser.add_argument("--api-port", type=int, default=8080, help="REST API port (default: 8080)")
    parser.add_argument("--db-path", default="data/depin.db", help="SQLite index path (default: data/depin.db)")
    parser.add_argument("--admin-address", default=DEFAULT_ADMIN_ADDRESS, help="Administrator address")
    parser.add_argument("--admin-key", default=DEFAULT_ADMIN_KEY, help="Admin API key (X-API-Key)")
    parser.add_argument("--jwt-secret", default="", help="HS256 secret for wallet session tokens")
    parser.add_argument("--uptime-policy", choices=[p.value for p in UptimePolicy], default="open",
                        help="Who may report uptime (default: open)")
    parser.add_argument("--rpc-upstream", default="", help="Upstream JSON-RPC URL for POST /rpc")
    parser.add_argument("--initial-supply", type=int, default=DEFAULT_INITIAL_SUPPLY,
                        help="DPN minted to the administrator at startup (base units)")
    parser.add_argument("--wire-token", action="store_true",
                        help="Collect DPN stakes and mint DPN rewards through the token")
    parser.add_argument("--index-interval", type=float, default=DEFAULT_INTERVAL,
                        help="Indexer poll interval in seconds (default: 1.0)")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s [%(name)-10s] %(levelname)-5s %(message)s",
        datefmt="%H:%M:%S",
    )

    server = DePINServer(
        api_port=args.api_port,
        db_path=args.db_path,
        admin_address=args.admin_address,
        admin_key=args.admin_key,
        jwt_secret=args.jwt_secret,
        uptime_policy=UptimePolicy(args.uptime_policy),
        rpc_upstream=args.rpc_upstream,
        initial_supply=args.initial_supply,
        wire_token=args.wire_token,
        index_interval=args.index_interval,
    )

    logger.info("=" * 60)
    logger.info("  DePIN Node Rights Simulator")
    logger.info("  REST API:      http://localhost:%d", args.api_port)
    logger.info("  Database:      %s", args.db_path)
    logger.info("  Admin:         %s", server.host.admin)
    logger.info("  Uptime policy: %s", args.uptime_policy)
    logger.info("  RPC relay:     %s", args.rpc_upstream or "disabled")
    logger.info("  DPN token:     %s", "wired" if args.wire_token else "unwired")
    logger.info("=" * 60)

    try:
        asyncio.run(server.start())
    except KeyboardInterrupt:
        logger.info("Shutting down...")


if __name__ == "__main__":
    main()
