"""
FastAPI Authentication Dependencies
This module provides FastAPI dependency functions that business routes inject to
accept the session tokens minted by /api/auth/verify and /api/auth/wallet-login.
Usage in endpoints:
    @router.get("/protected")
    def protected_route(wallet_address: str = Depends(get_current_wallet)):
        # wallet_address is automatically extracted from JWT token
        return {"user": wallet_address}
Flow:
1. Client sends request with Authorization: Bearer <token> header
2. FastAPI calls get_current_session() dependency
3. _extract_token() extracts the token from the header
4. verify_token() validates the JWT (from jwt_utils.py)
5. Returns the token claims (or just the wallet address) to the route handler
"""

import logging
from typing import Any, Dict, Optional

import jwt
from fastapi import Depends, Header, HTTPException, status

from app.core.jwt_utils import verify_token

logger = logging.getLogger(__name__)


def _extract_token(authorization: Optional[str]) -> str:
    """
    Extract JWT token from Authorization header.
    Supports both "Bearer <token>" and plain token formats.
    Raises:
        HTTPException 401: If Authorization header is missing or empty
    """
    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header required",
        )

    parts = authorization.split()
    if parts and parts[0].lower() == "bearer":
        token = parts[1] if len(parts) == 2 else ""
    else:
        token = authorization.strip()
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authorization header",
        )
    return token


def get_current_session(
    authorization: Optional[str] = Header(None, alias="Authorization"),
) -> Dict[str, Any]:
    """
    Return the verified token claims (walletAddress, userId, iat, exp, jti).
    """
    token = _extract_token(authorization)
    try:
        return verify_token(token)
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token expired")
    except jwt.InvalidTokenError as e:
        logger.info("rejected bearer token: %s", e)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")


def get_current_wallet(session: Dict[str, Any] = Depends(get_current_session)) -> str:
    """
    returning wallet address.
    """
    return session["walletAddress"]
