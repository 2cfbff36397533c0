"""Index router: queries over the indexed event projections (/api/index/*)."""

from typing import Optional

from fastapi import APIRouter, Query
from starlette.requests import Request

from depin.deps import get_server

router = APIRouter()


async def _synced(request: Request):
    srv = get_server(request)
    await srv.indexer.sync()
    return srv


@router.get("/api/index/status")
async def index_status(request: Request):
    srv = get_server(request)
    return await srv.indexer.get_stats()


@router.get("/api/index/events")
async def list_events(
    request: Request,
    event: Optional[str] = None,
    limit: int = Query(default=100, le=1000),
    offset: int = 0,
):
    srv = await _synced(request)
    items = await srv.storage.events.list(event=event, limit=limit, offset=offset)
    total = await srv.storage.events.count(event=event)
    return {"items": items, "total": total, "limit": limit, "offset": offset}


@router.get("/api/index/nodes")
async def list_indexed_nodes(request: Request, owner: Optional[str] = None, limit: int = 100, offset: int = 0):
    srv = await _synced(request)
    return await srv.storage.nodes.list(owner=owner, limit=limit, offset=offset)


@router.get("/api/index/uptimes")
async def list_uptimes(request: Request, node_id: Optional[int] = None, limit: int = 100, offset: int = 0):
    srv = await _synced(request)
    return await srv.storage.uptimes.list(node_id=node_id, limit=limit, offset=offset)


@router.get("/api/index/stakes")
async def list_stakes(request: Request, node_id: Optional[int] = None, limit: int = 100, offset: int = 0):
    srv = await _synced(request)
    return await srv.storage.stakes.list(node_id=node_id, limit=limit, offset=offset)


@router.get("/api/index/rewards")
async def list_rewards(request: Request, node_id: Optional[int] = None, limit: int = 100, offset: int = 0):
    srv = await _synced(request)
    return await srv.storage.rewards.list(node_id=node_id, limit=limit, offset=offset)
