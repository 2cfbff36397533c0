"""Rights router: node rights lifecycle, asset ops and analytics (/api/rights/*, /api/node-types/*)."""

from fastapi import APIRouter, Depends
from starlette.requests import Request

from depin.deps import current_caller, get_server, transact
from depin.host import to_address
from depin.models import (
    ApproveRightsRequest,
    BridgeRequest,
    MintRightsRequest,
    OperatorRequest,
    PerformanceRequest,
    TransferRightsRequest,
    UpgradeRequest,
    parse_node_type,
)
from depin.rights import NodeType

router = APIRouter()


def _details(srv, token_id: int) -> dict:
    details = srv.rights.get_node_details(token_id)
    return {
        "token_id": token_id,
        "owner": details["owner"],
        "node": details["node"].to_dict(),
        "config": details["config"].to_dict(),
        "pending_rewards": str(details["pending_rewards"]),
        "time_staked": details["time_staked"],
        "approved": srv.rights.get_approved(token_id),
        "bridge_destination": srv.rights.get_bridge_destination(token_id),
    }


# ── Lifecycle ─────────────────────────────────────────────────────────────

@router.post("/api/rights")
async def mint_node_rights(request: Request, req: MintRightsRequest, caller: str = Depends(current_caller)):
    srv = get_server(request)
    token_id, receipt = transact(
        srv.host, caller, req.value, srv.rights.mint_node_rights,
        req.node_type, req.token_stake, req.metadata, value=req.value,
    )
    return {"token_id": token_id, "owner": caller, "receipt": receipt}


@router.post("/api/rights/{token_id}/upgrade")
async def upgrade_node(request: Request, token_id: int, req: UpgradeRequest, caller: str = Depends(current_caller)):
    srv = get_server(request)
    score, receipt = transact(
        srv.host, caller, req.value, srv.rights.upgrade_node,
        token_id, req.additional_token_stake, value=req.value,
    )
    return {"token_id": token_id, "performance_score": score, "receipt": receipt}


@router.post("/api/rights/{token_id}/performance")
async def update_performance(
    request: Request, token_id: int, req: PerformanceRequest, caller: str = Depends(current_caller),
):
    srv = get_server(request)
    status, receipt = transact(
        srv.host, caller, 0, srv.rights.update_performance,
        token_id, req.uptime_seconds, req.score,
    )
    node = srv.rights.get_node(token_id)
    return {
        "token_id": token_id,
        "status": status.name,
        "performance_score": node.performance_score,
        "staked_token": str(node.staked_token),
        "receipt": receipt,
    }


@router.post("/api/rights/{token_id}/bridge")
async def bridge_to_chain(request: Request, token_id: int, req: BridgeRequest, caller: str = Depends(current_caller)):
    srv = get_server(request)
    _, receipt = transact(srv.host, caller, 0, srv.rights.bridge_to_chain, token_id, req.destination_chain)
    return {"token_id": token_id, "destination_chain": req.destination_chain, "receipt": receipt}


# ── Asset ownership ───────────────────────────────────────────────────────

@router.post("/api/rights/{token_id}/transfer")
async def transfer_rights(
    request: Request, token_id: int, req: TransferRightsRequest, caller: str = Depends(current_caller),
):
    srv = get_server(request)
    source = req.from_address or srv.rights.owner_of(token_id)
    _, receipt = transact(srv.host, caller, 0, srv.rights.transfer_from, source, req.to, token_id)
    return {"token_id": token_id, "from": source, "to": req.to, "receipt": receipt}


@router.post("/api/rights/{token_id}/approve")
async def approve_rights(
    request: Request, token_id: int, req: ApproveRightsRequest, caller: str = Depends(current_caller),
):
    srv = get_server(request)
    _, receipt = transact(srv.host, caller, 0, srv.rights.approve, req.approved, token_id)
    return {"token_id": token_id, "approved": req.approved, "receipt": receipt}


@router.post("/api/rights/operators")
async def set_operator(request: Request, req: OperatorRequest, caller: str = Depends(current_caller)):
    srv = get_server(request)
    _, receipt = transact(srv.host, caller, 0, srv.rights.set_approval_for_all, req.operator, req.approved)
    return {"owner": caller, "operator": req.operator, "approved": req.approved, "receipt": receipt}


# ── Reads ─────────────────────────────────────────────────────────────────

@router.get("/api/rights")
async def rights_summary(request: Request):
    srv = get_server(request)
    return {
        "name": srv.rights.name,
        "symbol": srv.rights.symbol,
        "address": srv.rights.address,
        "total_supply": srv.rights.total_supply(),
        "native_balance": str(srv.host.balance_of(srv.rights.address)),
    }


@router.get("/api/rights/{token_id}")
async def get_node_details(request: Request, token_id: int):
    return _details(get_server(request), token_id)


@router.get("/api/rights/{token_id}/pending-reward")
async def pending_reward(request: Request, token_id: int):
    srv = get_server(request)
    return {"token_id": token_id, "pending_rewards": str(srv.rights.estimate_pending_reward(token_id))}


@router.get("/api/owners/{address}/rights")
async def owner_nodes(request: Request, address: str):
    srv = get_server(request)
    owner = to_address(address)
    return {
        "owner": owner,
        "token_ids": srv.rights.get_owner_nodes(owner),
        "balance": srv.rights.balance_of(owner),
    }


@router.get("/api/node-types")
async def list_node_types(request: Request):
    srv = get_server(request)
    return {
        t.name: srv.rights.get_node_type_config(t).to_dict()
        for t in NodeType
    }


@router.get("/api/node-types/{node_type}/stats")
async def node_type_stats(request: Request, node_type: str):
    srv = get_server(request)
    parsed = parse_node_type(node_type)
    return {
        "node_type": parsed.name,
        **srv.rights.get_node_type_stats(parsed).to_dict(),
    }
