"""Token router: DPN balances, transfers and allowances (/api/token/*)."""

from fastapi import APIRouter, Depends, Query
from starlette.requests import Request

from depin.deps import current_caller, get_server, transact
from depin.models import TokenApproveRequest, TokenTransferRequest
from depin.token import TOKEN_DECIMALS, TOKEN_NAME, TOKEN_SYMBOL

router = APIRouter()


@router.get("/api/token")
async def token_info(request: Request):
    srv = get_server(request)
    return {
        "name": TOKEN_NAME,
        "symbol": TOKEN_SYMBOL,
        "decimals": TOKEN_DECIMALS,
        "address": srv.token.address,
        "total_supply": str(srv.token.total_supply()),
    }


@router.get("/api/token/balance/{address}")
async def token_balance(request: Request, address: str):
    srv = get_server(request)
    return {"address": address.lower(), "balance": str(srv.token.balance_of(address))}


@router.get("/api/token/allowance")
async def token_allowance(request: Request, owner: str = Query(...), spender: str = Query(...)):
    srv = get_server(request)
    return {
        "owner": owner.lower(),
        "spender": spender.lower(),
        "allowance": str(srv.token.allowance(owner, spender)),
    }


@router.post("/api/token/transfer")
async def token_transfer(request: Request, req: TokenTransferRequest, caller: str = Depends(current_caller)):
    srv = get_server(request)
    _, receipt = transact(srv.host, caller, 0, srv.token.transfer, req.to, req.amount)
    return {"from": caller, "to": req.to, "amount": str(req.amount), "receipt": receipt}


@router.post("/api/token/approve")
async def token_approve(request: Request, req: TokenApproveRequest, caller: str = Depends(current_caller)):
    srv = get_server(request)
    _, receipt = transact(srv.host, caller, 0, srv.token.approve, req.spender, req.amount)
    return {"owner": caller, "spender": req.spender, "amount": str(req.amount), "receipt": receipt}
