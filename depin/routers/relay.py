"""RPC relay router: POST /rpc forwards JSON-RPC bodies to the configured upstream node."""

import asyncio
import logging

import requests
from fastapi import APIRouter
from fastapi.responses import JSONResponse
from starlette.requests import Request

from depin.deps import get_server

logger = logging.getLogger("relay")

router = APIRouter()

RELAY_TIMEOUT = 30


def _forward(url: str, body) -> dict:
    resp = requests.post(url, json=body, timeout=RELAY_TIMEOUT)
    resp.raise_for_status()
    return resp.json()


@router.post("/rpc")
async def relay_rpc(request: Request):
    srv = get_server(request)
    if not srv.rpc_upstream:
        return JSONResponse(status_code=503, content={"error": "RPC relay not configured"})
    try:
        body = await request.json()
        result = await asyncio.to_thread(_forward, srv.rpc_upstream, body)
    except (requests.RequestException, ValueError) as e:
        logger.warning("RPC relay to %s failed: %s", srv.rpc_upstream, e)
        return JSONResponse(status_code=500, content={"error": str(e)})
    return result
