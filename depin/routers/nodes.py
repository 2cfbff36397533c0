"""Nodes router: registry and participation ledger (/api/nodes/*)."""

from fastapi import APIRouter, Depends
from starlette.requests import Request

from depin.deps import current_caller, get_server, transact
from depin.models import RegisterNodeRequest, StakeRequest, UptimeRequest

router = APIRouter()


@router.post("/api/nodes")
async def register_node(request: Request, req: RegisterNodeRequest, caller: str = Depends(current_caller)):
    srv = get_server(request)
    node_id, receipt = transact(srv.host, caller, 0, srv.registry.register_node, req.metadata)
    return {"node_id": node_id, "owner": caller, "receipt": receipt}


@router.get("/api/nodes")
async def list_nodes(request: Request):
    srv = get_server(request)
    nodes = srv.registry.list_nodes()
    return {"items": [n.to_dict() for n in nodes], "total": len(nodes)}


@router.get("/api/nodes/{node_id}")
async def get_node(request: Request, node_id: int):
    srv = get_server(request)
    node = srv.registry.get_node(node_id)
    return {
        **node.to_dict(),
        "stats": srv.ledger.get_stats(node_id).to_dict(),
        "stake": str(srv.ledger.get_stake(node_id)),
    }


@router.post("/api/nodes/{node_id}/uptime")
async def record_uptime(request: Request, node_id: int, req: UptimeRequest, caller: str = Depends(current_caller)):
    srv = get_server(request)
    _, receipt = transact(srv.host, caller, 0, srv.ledger.record_uptime, node_id, req.minutes_up)
    return {
        "node_id": node_id,
        "stats": srv.ledger.get_stats(node_id).to_dict(),
        "receipt": receipt,
    }


@router.post("/api/nodes/{node_id}/claim")
async def claim_reward(request: Request, node_id: int, caller: str = Depends(current_caller)):
    srv = get_server(request)
    amount, receipt = transact(srv.host, caller, 0, srv.ledger.claim_reward, node_id)
    return {"node_id": node_id, "amount": str(amount), "receipt": receipt}


@router.post("/api/nodes/{node_id}/stake")
async def stake_to_node(request: Request, node_id: int, req: StakeRequest, caller: str = Depends(current_caller)):
    srv = get_server(request)
    _, receipt = transact(srv.host, caller, req.value, srv.ledger.stake_to_node, node_id, req.value)
    return {
        "node_id": node_id,
        "total_stake": str(srv.ledger.get_stake(node_id)),
        "receipt": receipt,
    }
