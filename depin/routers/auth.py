"""Auth router: /api/auth/* wallet sign-in endpoints."""

from fastapi import APIRouter, Depends, HTTPException, Query
from starlette.requests import Request

from depin.auth import SIGN_MESSAGE_TEMPLATE
from depin.deps import current_caller, get_server
from depin.models import WalletVerifyRequest

router = APIRouter()


@router.get("/api/auth/nonce")
async def auth_nonce(request: Request, address: str = Query(...)):
    srv = get_server(request)
    if not address.startswith("0x") or len(address) != 42:
        raise HTTPException(status_code=400, detail="Invalid Ethereum address")
    nonce = srv.auth.generate_nonce(address)
    return {
        "nonce": nonce,
        "message": SIGN_MESSAGE_TEMPLATE.format(nonce=nonce),
    }


@router.post("/api/auth/verify")
async def auth_verify(request: Request, req: WalletVerifyRequest):
    srv = get_server(request)
    if not srv.auth.verify_signature(req.address, req.signature, req.nonce):
        raise HTTPException(status_code=401, detail="Invalid signature or expired nonce")
    return {
        "token": srv.auth.issue_jwt(req.address),
        "address": req.address.lower(),
    }


@router.get("/api/auth/me")
async def auth_me(request: Request, caller: str = Depends(current_caller)):
    srv = get_server(request)
    return {
        "address": caller,
        "is_admin": caller == srv.auth.admin_address,
        "native_balance": str(srv.host.balance_of(caller)),
        "token_balance": str(srv.token.balance_of(caller)),
    }
