"""
Wallet challenge-response authentication.

Authenticator ties the stores, the envelope verifier and token minting together.
It has a single verify() path; the HTTP layer reshapes its AuthResult for the two
client populations (/verify and /wallet-login) with the *_response adapters below.

Known gaps, kept on purpose because closing them changes client-visible behaviour:
- a failed proof does not burn the challenge, so a client may retry until expiry
- legacy proofs are accepted without any cryptographic check while allow_legacy is on
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict

from app.core.clock import Clock, epoch_seconds
from app.core.exceptions import (
    ChallengeNotFoundOrExpired,
    InvalidSignature,
    InvalidWalletAddress,
    MissingField,
)
from app.core.jwt_utils import create_access_token, format_expires_in
from app.core.stellar_auth import EnvelopeProof, EnvelopeVerifier, LegacyProof, Proof, is_valid_wallet_address
from app.services.challenge_store import ChallengeStore
from app.services.identity import Identity, IdentityResolver
from app.services.session_store import SessionStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthResult:
    token: str
    expires_in: int
    expires_at: int
    user: Identity


class Authenticator:
    def __init__(
        self,
        challenges: ChallengeStore,
        sessions: SessionStore,
        identities: IdentityResolver,
        verifier: EnvelopeVerifier,
        challenge_ttl: int,
        session_ttl: int,
        allow_legacy: bool = True,
        clock: Clock = epoch_seconds,
    ):
        self.challenges = challenges
        self.sessions = sessions
        self.identities = identities
        self.verifier = verifier
        self.challenge_ttl = challenge_ttl
        self.session_ttl = session_ttl
        self.allow_legacy = allow_legacy
        self.clock = clock

    def issue_challenge(self, wallet_address: str) -> str:
        """Create a challenge for wallet_address and return its value."""
        wallet_address = (wallet_address or "").strip()
        if not wallet_address:
            raise MissingField("walletAddress")
        if not is_valid_wallet_address(wallet_address):
            raise InvalidWalletAddress(f"malformed address {wallet_address[:80]!r}")

        challenge = self.challenges.create(wallet_address, self.challenge_ttl)
        logger.info("challenge issued for %s, expires at %s", wallet_address, challenge.expires_at)
        return challenge.value

    def _check_proof(self, wallet_address: str, proof: Proof, challenge_value: str) -> bool:
        if isinstance(proof, EnvelopeProof):
            return self.verifier.verify(wallet_address, proof.xdr, challenge_value)
        if isinstance(proof, LegacyProof):
            if not self.allow_legacy:
                logger.info("legacy proof rejected for %s: legacy signatures disabled", wallet_address)
                return False
            logger.warning("accepting unchecked legacy signature for %s", wallet_address)
            return True
        raise TypeError(f"unsupported proof type: {type(proof).__name__}")

    def verify(self, wallet_address: str, proof: Proof, challenge_value: str) -> AuthResult:
        """
        Exchange a proof for a session token.

        Raises:
            MissingField: If the address, proof or challenge is empty
            InvalidWalletAddress: If wallet_address is not a Stellar account id
            ChallengeNotFoundOrExpired: If the challenge is unknown, expired or already used
            InvalidSignature: If the proof does not show control of wallet_address
        """
        wallet_address = (wallet_address or "").strip()
        challenge_value = (challenge_value or "").strip()
        proof_value = proof.xdr if isinstance(proof, EnvelopeProof) else proof.signature
        if not wallet_address or not proof_value or not challenge_value:
            raise MissingField("walletAddress", "signature", "challenge")
        if not is_valid_wallet_address(wallet_address):
            raise InvalidWalletAddress(f"malformed address {wallet_address[:80]!r}")

        # 1. challenge must be live
        challenge = self.challenges.lookup(challenge_value)
        if challenge is None:
            logger.info("verify for %s: challenge not found or expired", wallet_address)
            raise ChallengeNotFoundOrExpired("challenge not found or expired")

        # 2. challenge must belong to the claimed wallet
        if challenge.wallet_address != wallet_address:
            logger.info(
                "verify for %s: challenge was issued for %s", wallet_address, challenge.wallet_address
            )
            raise InvalidSignature("challenge issued for a different wallet")

        # 3. proof
        if not self._check_proof(wallet_address, proof, challenge.value):
            raise InvalidSignature(f"{proof.kind} proof rejected")

        # 4. single use: only one concurrent caller gets past this point
        if not self.challenges.consume(challenge.value):
            logger.info("verify for %s: challenge consumed by a concurrent request", wallet_address)
            raise ChallengeNotFoundOrExpired("challenge already consumed")

        # 5. identity, token, session
        user = self.identities.resolve(wallet_address)
        issued_at = self.clock()
        token = create_access_token(wallet_address, user.id, issued_at=issued_at, expires_in=self.session_ttl)
        expires_at = issued_at + self.session_ttl
        self.sessions.create(wallet_address, token, expires_at)

        logger.info("wallet %s authenticated as user %s via %s proof", wallet_address, user.id, proof.kind)
        return AuthResult(token=token, expires_in=self.session_ttl, expires_at=expires_at, user=user)


def _user_payload(user: Identity) -> Dict[str, Any]:
    return {"id": user.id, "walletAddress": user.wallet_address}


def verify_response(result: AuthResult) -> Dict[str, Any]:
    """Response shape for /api/auth/verify clients (expiresIn in seconds, as a string)."""
    return {
        "success": True,
        "token": result.token,
        "expiresIn": str(result.expires_in),
        "user": _user_payload(result.user),
    }


def wallet_login_response(result: AuthResult) -> Dict[str, Any]:
    """Response shape for /api/auth/wallet-login clients (access_token, expiresIn like "7d")."""
    return {
        "success": True,
        "access_token": result.token,
        "expiresIn": format_expires_in(result.expires_in),
        "user": _user_payload(result.user),
    }
