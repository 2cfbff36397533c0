"""
auth.py - Wallet-based (EIP-191) + admin API key authentication.

Supports two auth flows:
  1. Wallet: GET /api/auth/nonce → sign → POST /api/auth/verify → JWT
  2. Admin: X-API-Key header carrying the admin key

The authenticated identity is always an address: the JWT ``sub`` for wallet
sessions, the host administrator address for the admin key. That address is
the ``caller`` every core operation runs as.
"""

import logging
import secrets
import time
from typing import Dict, Optional, Tuple

import jwt as pyjwt
from eth_account import Account as EthAccount
from eth_account.messages import encode_defunct
from fastapi import Header, HTTPException

from depin.host import to_address

logger = logging.getLogger("auth")

DEFAULT_ADMIN_KEY = "admin-test-key-do-not-use-in-production"
NONCE_TTL = 300  # 5 minutes
JWT_TTL = 86400  # 24 hours
SIGN_MESSAGE_TEMPLATE = (
    "Sign this message to authenticate with the DePIN node network.\n\nNonce: {nonce}"
)


class AuthService:
    """Resolves request credentials to a caller address."""

    def __init__(
        self,
        admin_address: str,
        admin_key: str = DEFAULT_ADMIN_KEY,
        jwt_secret: str = "",
    ):
        self.admin_address = to_address(admin_address)
        self._admin_key = admin_key
        self._jwt_secret = jwt_secret or secrets.token_hex(32)
        if not jwt_secret:
            logger.warning(
                "No --jwt-secret provided; generated ephemeral secret "
                "(JWTs will invalidate on restart)"
            )
        # address -> (nonce, expiry_timestamp)
        self._nonces: Dict[str, Tuple[str, float]] = {}

    # -------------------------------------------------------------------
    # Nonce / Wallet auth
    # -------------------------------------------------------------------

    def generate_nonce(self, address: str) -> str:
        nonce = secrets.token_hex(16)
        self._nonces[address.lower()] = (nonce, time.time() + NONCE_TTL)
        return nonce

    def verify_signature(self, address: str, signature: str, nonce: str) -> bool:
        addr_lower = address.lower()
        stored = self._nonces.get(addr_lower)
        if stored is None or stored[0] != nonce:
            return False
        if time.time() > stored[1]:
            self._nonces.pop(addr_lower, None)
            return False

        msg = encode_defunct(text=SIGN_MESSAGE_TEMPLATE.format(nonce=nonce))
        try:
            recovered = EthAccount.recover_message(msg, signature=signature)
        except Exception:
            logger.debug("Signature recovery failed for %s", addr_lower)
            return False

        if recovered.lower() != addr_lower:
            return False

        # Consume nonce
        self._nonces.pop(addr_lower, None)
        return True

    def issue_jwt(self, address: str) -> str:
        now = int(time.time())
        payload = {
            "sub": address.lower(),
            "iat": now,
            "exp": now + JWT_TTL,
        }
        return pyjwt.encode(payload, self._jwt_secret, algorithm="HS256")

    def decode_jwt(self, token: str) -> Optional[dict]:
        try:
            return pyjwt.decode(token, self._jwt_secret, algorithms=["HS256"])
        except pyjwt.ExpiredSignatureError:
            return None
        except pyjwt.InvalidTokenError:
            return None

    # -------------------------------------------------------------------
    # FastAPI dependencies
    # -------------------------------------------------------------------

    async def resolve_caller(
        self,
        x_api_key: str = Header(default=""),
        authorization: str = Header(default=""),
    ) -> Optional[str]:
        """Resolve JWT or admin key to a caller address. Returns None if no credentials."""
        if authorization.startswith("Bearer "):
            claims = self.decode_jwt(authorization[7:])
            if claims and claims.get("sub"):
                return claims["sub"]

        if x_api_key and secrets.compare_digest(x_api_key, self._admin_key):
            return self.admin_address
        return None

    async def get_caller(
        self,
        x_api_key: str = Header(default=""),
        authorization: str = Header(default=""),
    ) -> str:
        caller = await self.resolve_caller(x_api_key, authorization)
        if caller is None:
            raise HTTPException(
                status_code=401,
                detail="Missing or invalid credentials. Pass Authorization: Bearer <jwt> or X-API-Key header.",
            )
        return caller

    async def require_admin(
        self,
        x_api_key: str = Header(default=""),
        authorization: str = Header(default=""),
    ) -> str:
        caller = await self.get_caller(x_api_key, authorization)
        if caller != self.admin_address:
            raise HTTPException(status_code=403, detail="Admin access required")
        return caller
