"""
JWT Token Utilities

This module handles JSON Web Token (JWT) creation and verification for wallet authentication.
After a user proves control of their Stellar wallet, this module creates the session token
that business endpoints accept as "Authorization: Bearer <token>".

Flow:
1. Authenticator verifies the wallet proof -> create_access_token() mints the JWT
2. Business services receive the JWT -> verify_token() validates it

The JWT contains:
- walletAddress: The authenticated Stellar wallet address
- userId: Identity id resolved for the wallet
- iat: Issued at timestamp
- exp: Expiration timestamp (ACCESS_TOKEN_EXPIRE_SECONDS after iat)
- jti: Random token id, so two tokens minted in the same second differ
"""

import uuid
from typing import Any, Dict, Optional

import jwt

from app.core.config import settings


if not settings.ENCODE_KEY:
    raise RuntimeError("ENCODE_KEY is not configured")


def create_access_token(
    wallet_address: str,
    user_id: str,
    issued_at: int,
    expires_in: Optional[int] = None,
    extra_claims: Optional[Dict[str, Any]] = None,
) -> str:
    """
    Create a JWT access token for an authenticated wallet address.

    Args:
        wallet_address: The Stellar wallet address that was verified
        user_id: Identity id to embed in the token
        issued_at: Epoch seconds the token is issued at
        expires_in: Lifetime in seconds (default: ACCESS_TOKEN_EXPIRE_SECONDS)
        extra_claims: Optional additional claims to include in the JWT payload

    Returns:
        A JWT token string that can be used in Authorization: Bearer <token> header

    Raises:
        ValueError: If wallet_address or user_id is empty
    """
    if not wallet_address:
        raise ValueError("wallet_address is required")
    if not user_id:
        raise ValueError("user_id is required")

    if expires_in is None:
        expires_in = settings.ACCESS_TOKEN_EXPIRE_SECONDS

    payload: Dict[str, Any] = {
        "walletAddress": wallet_address,
        "userId": user_id,
        "iat": issued_at,
        "exp": issued_at + expires_in,
        "jti": uuid.uuid4().hex,
    }
    if extra_claims:
        payload.update(extra_claims)

    return jwt.encode(payload, settings.ENCODE_KEY, algorithm=settings.ENCODE_ALGORITHM)


def verify_token(token: str) -> Dict[str, Any]:
    """
    Verify and decode a JWT token.

    Checks token signature, expiration, and required payload fields.

    Raises:
        jwt.ExpiredSignatureError: If the embedded expiry has passed
        jwt.InvalidTokenError: If the token is invalid or misses walletAddress / userId
    """
    payload = jwt.decode(token, settings.ENCODE_KEY, algorithms=[settings.ENCODE_ALGORITHM])

    if "walletAddress" not in payload or "userId" not in payload:
        raise jwt.InvalidTokenError("Invalid token payload")

    return payload


def format_expires_in(seconds: int) -> str:
    """
    Render a lifetime the way older clients expect it ("7d", "12h", "90s").
    """
    if seconds % 86400 == 0:
        return f"{seconds // 86400}d"
    if seconds % 3600 == 0:
        return f"{seconds // 3600}h"
    return f"{seconds}s"
