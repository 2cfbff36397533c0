"""Dependency helpers for router modules."""

from fastapi import Header
from starlette.requests import Request


def get_server(request: Request):
    return request.app.state.server


async def current_caller(
    request: Request,
    x_api_key: str = Header(default=""),
    authorization: str = Header(default=""),
) -> str:
    return await get_server(request).auth.get_caller(x_api_key, authorization)


async def admin_caller(
    request: Request,
    x_api_key: str = Header(default=""),
    authorization: str = Header(default=""),
) -> str:
    return await get_server(request).auth.require_admin(x_api_key, authorization)


def transact(host, caller: str, attached: int, op, *args, **kwargs):
    """Run ``op`` inside one host transaction and return ``(result, receipt)``.

    The wrapper accepts value on behalf of ``op``; a non-payable ``op`` still
    rejects it when it joins the transaction.
    """
    with host.transaction(caller, value=attached, payable=True) as tx:
        result = op(caller, *args, **kwargs)
    return result, tx.receipt()
