"""Admin router: /, /api/status and /api/admin/* (node type config, oracles, time travel)."""

from fastapi import APIRouter, Depends
from starlette.requests import Request

from depin.deps import admin_caller, get_server, transact
from depin.models import AddressRequest, NodeTypeConfigRequest, TimeTravelRequest, parse_node_type

router = APIRouter()


@router.get("/")
async def root(request: Request):
    srv = get_server(request)
    return {
        "service": "DePIN Node Rights Simulator",
        "api_port": srv.api_port,
        "block_number": srv.host.block_number,
        "uptime_policy": srv.policy.uptime_policy.value,
    }


@router.get("/api/status")
async def server_status(request: Request):
    srv = get_server(request)
    return {
        "host": srv.host.get_stats(),
        "registered_nodes": srv.registry.node_count(),
        "rights_supply": srv.rights.total_supply(),
        "token_supply": str(srv.token.total_supply()),
        "indexer": await srv.indexer.get_stats(),
        "contracts": {
            "registry": srv.registry.address,
            "participation": srv.ledger.address,
            "rights": srv.rights.address,
            "token": srv.token.address,
        },
    }


@router.post("/api/admin/node-types/{node_type}")
async def update_node_type_config(
    request: Request, node_type: str, req: NodeTypeConfigRequest, caller: str = Depends(admin_caller),
):
    srv = get_server(request)
    parsed = parse_node_type(node_type)
    _, receipt = transact(
        srv.host, caller, 0, srv.rights.update_node_type_config,
        parsed, req.min_native_stake, req.min_token_stake,
        req.base_reward_rate_per_second, req.is_active, max_capacity=req.max_capacity,
    )
    return {
        "node_type": parsed.name,
        "config": srv.rights.get_node_type_config(parsed).to_dict(),
        "receipt": receipt,
    }


@router.post("/api/admin/participation-contract")
async def set_participation_contract(
    request: Request, req: AddressRequest, caller: str = Depends(admin_caller),
):
    srv = get_server(request)
    _, receipt = transact(srv.host, caller, 0, srv.rights.set_participation_contract, req.address)
    return {"participation_contract": req.address, "receipt": receipt}


@router.get("/api/admin/oracles")
async def list_oracles(request: Request, caller: str = Depends(admin_caller)):
    srv = get_server(request)
    return {"uptime_policy": srv.policy.uptime_policy.value, "oracles": sorted(srv.policy.oracles)}


@router.post("/api/admin/oracles")
async def add_oracle(request: Request, req: AddressRequest, caller: str = Depends(admin_caller)):
    srv = get_server(request)
    srv.policy.add_oracle(req.address)
    return {"oracles": sorted(srv.policy.oracles)}


@router.delete("/api/admin/oracles/{address}")
async def remove_oracle(request: Request, address: str, caller: str = Depends(admin_caller)):
    srv = get_server(request)
    srv.policy.remove_oracle(address)
    return {"oracles": sorted(srv.policy.oracles)}


@router.post("/api/admin/time-travel")
async def time_travel(request: Request, req: TimeTravelRequest, caller: str = Depends(admin_caller)):
    srv = get_server(request)
    srv.host.increase_time(req.seconds)
    return {"now": srv.host.now()}


@router.post("/api/admin/reindex")
async def reindex(request: Request, caller: str = Depends(admin_caller)):
    srv = get_server(request)
    ingested = await srv.indexer.reindex()
    return {"ingested": ingested, "cursor": srv.indexer.cursor}
