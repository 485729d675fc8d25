import logging
from enum import Enum
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import AuthError
from app.core.stellar_auth import EnvelopeVerifier, classify_proof
from app.db.session import get_db
import app.schemas.auth as schemas
from app.services.authenticator import AuthResult, Authenticator, verify_response, wallet_login_response
from app.services.challenge_store import SqlChallengeStore
from app.services.identity import SqlIdentityResolver
from app.services.session_store import SqlSessionStore

logger = logging.getLogger(__name__)

router = APIRouter()
group_tags: List[str | Enum] = ["Auth"]


def get_authenticator(db: Session = Depends(get_db)) -> Authenticator:
    """Build an Authenticator bound to the request's DB session."""
    return Authenticator(
        challenges=SqlChallengeStore(db),
        sessions=SqlSessionStore(db),
        identities=SqlIdentityResolver(db),
        verifier=EnvelopeVerifier(
            settings.STELLAR_NETWORK_PASSPHRASE,
            require_signature=settings.REQUIRE_ENVELOPE_SIGNATURE,
        ),
        challenge_ttl=settings.CHALLENGE_EXPIRY_SECONDS,
        session_ttl=settings.ACCESS_TOKEN_EXPIRE_SECONDS,
        allow_legacy=settings.ALLOW_LEGACY_SIGNATURES,
    )


def _authenticate(
    body: schemas.VerifyRequest, db: Session, authenticator: Authenticator, server_error: str
) -> AuthResult:
    """Shared body of /verify and /wallet-login; commits on success, rolls back on any failure."""
    try:
        proof = classify_proof(body.signature or "", body.signatureType)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    try:
        result = authenticator.verify(body.walletAddress, proof, body.challenge)
        db.commit()
    except AuthError as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("wallet authentication failed for %s", body.walletAddress)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=server_error)
    return result


@router.post(
    "/challenge",
    tags=group_tags,
    response_model=schemas.ChallengeResponse,
    status_code=status.HTTP_200_OK,
)
def request_challenge(
    body: schemas.ChallengeRequest,
    db: Session = Depends(get_db),
    authenticator: Authenticator = Depends(get_authenticator),
) -> schemas.ChallengeResponse:
    """Generate and store a challenge for a wallet address."""
    try:
        challenge = authenticator.issue_challenge(body.walletAddress)
        db.commit()
    except AuthError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("challenge generation failed for %s", body.walletAddress)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to generate challenge"
        )

    return schemas.ChallengeResponse(challenge=challenge)


@router.post(
    "/verify",
    tags=group_tags,
    response_model=schemas.VerifyResponse,
    responses={401: {"model": schemas.ErrorResponse}, 400: {"model": schemas.ErrorResponse}},
)
def verify_wallet(
    body: schemas.VerifyRequest,
    db: Session = Depends(get_db),
    authenticator: Authenticator = Depends(get_authenticator),
) -> schemas.VerifyResponse:
    """Verify a signed challenge and return a session token."""
    result = _authenticate(body, db, authenticator, "Failed to verify signature")
    return schemas.VerifyResponse(**verify_response(result))


@router.post(
    "/wallet-login",
    tags=group_tags,
    response_model=schemas.WalletLoginResponse,
    responses={401: {"model": schemas.ErrorResponse}, 400: {"model": schemas.ErrorResponse}},
)
def wallet_login(
    body: schemas.VerifyRequest,
    db: Session = Depends(get_db),
    authenticator: Authenticator = Depends(get_authenticator),
) -> schemas.WalletLoginResponse:
    """Same as /verify, answered in the shape older wallet clients expect."""
    result = _authenticate(body, db, authenticator, "Failed to authenticate wallet")
    return schemas.WalletLoginResponse(**wallet_login_response(result))
