"""
Stellar Wallet Authentication Utilities

This module handles the Stellar-specific parts of wallet authentication.
The wallet never signs the challenge directly: the client wraps it in a transaction
with a single manage_data operation, the wallet (e.g. Freighter) signs that
transaction, and the signed envelope (base64 XDR) is sent back as the proof.

Authentication Flow:
1. Backend generates a random challenge -> generate_challenge()
2. Frontend builds a transaction whose source is the wallet and whose
   manage_data entry "auth_challenge" holds the (truncated) challenge
3. Wallet signs the transaction, frontend sends: walletAddress, signature (XDR), challenge
4. Backend classifies the proof -> classify_proof()
5. Backend verifies the envelope -> EnvelopeVerifier.verify()
   - Decodes the envelope with stellar_sdk (fee-bump envelopes are unwrapped)
   - Finds the auth_challenge manage_data value
   - Checks the value is a prefix of the stored challenge
   - Checks the transaction source is the claimed wallet

Decoding, hashing and signature checks are delegated to stellar_sdk.
"""

import logging
import secrets
import time
from dataclasses import dataclass
from typing import Optional, Union

from stellar_sdk import (
    FeeBumpTransactionEnvelope,
    Keypair,
    ManageData,
    StrKey,
    TransactionBuilder,
    TransactionEnvelope,
)
from stellar_sdk.exceptions import BadSignatureError, Ed25519PublicKeyInvalidError

from app.core.exceptions import InvalidSignature, MalformedEnvelope

logger = logging.getLogger(__name__)


AUTH_CHALLENGE_DATA_NAME = "auth_challenge"
# Stellar caps a manage_data value at 64 bytes; wallets in the field truncate further.
MANAGE_DATA_VALUE_MAX_BYTES = 64
CLIENT_CHALLENGE_TRUNCATION_BYTES = 28

CHALLENGE_RANDOM_BYTES = 21  # 21 bytes = 28 url-safe characters
CHALLENGE_PREFIX_SEPARATOR = "_"

# Proof classification heuristic for clients that do not send signatureType
ENVELOPE_XDR_PREFIX = "AAAA"
ENVELOPE_XDR_MIN_LENGTH = 100

PROOF_KIND_ENVELOPE = "envelope"
PROOF_KIND_LEGACY = "legacy"


def generate_challenge(now_ms: Optional[int] = None) -> str:
    """
    Generate an unguessable, unique challenge string.

    The random part comes first so that the first CLIENT_CHALLENGE_TRUNCATION_BYTES
    characters, which are all a truncating wallet puts on chain, carry the full
    168 bits of entropy. The millisecond timestamp suffix keeps values unique and
    sortable for debugging.

    Returns:
        e.g. "q0fJ3u1mB1o8m9gJ2xYtq7cVZ4kA_1718000000000"
    """
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"{secrets.token_urlsafe(CHALLENGE_RANDOM_BYTES)}{CHALLENGE_PREFIX_SEPARATOR}{now_ms}"


def is_valid_wallet_address(address: str) -> bool:
    """True for a well-formed account id (G...) or muxed account (M...)."""
    return StrKey.is_valid_ed25519_public_key(address) or StrKey.is_valid_med25519_public_key(address)


@dataclass(frozen=True)
class EnvelopeProof:
    """Signed transaction envelope, base64 XDR."""

    xdr: str
    kind: str = PROOF_KIND_ENVELOPE


@dataclass(frozen=True)
class LegacyProof:
    """Bare signature string from older clients. Not cryptographically checked."""

    signature: str
    kind: str = PROOF_KIND_LEGACY


Proof = Union[EnvelopeProof, LegacyProof]


def classify_proof(signature: str, kind: Optional[str] = None) -> Proof:
    """
    Decide whether the submitted "signature" is a transaction envelope or a legacy signature.

    This is the only place the shape of the value is sniffed. An explicit kind from
    the client always wins; a blank kind counts as omitted.

    Raises:
        ValueError: If kind is not one of "envelope" / "legacy"
    """
    signature = signature.strip()
    kind = (kind or "").strip().lower()
    if kind:
        if kind == PROOF_KIND_ENVELOPE:
            return EnvelopeProof(signature)
        if kind == PROOF_KIND_LEGACY:
            return LegacyProof(signature)
        raise ValueError(f"Unknown proof kind: {kind}")

    if signature.startswith(ENVELOPE_XDR_PREFIX) and len(signature) > ENVELOPE_XDR_MIN_LENGTH:
        return EnvelopeProof(signature)
    return LegacyProof(signature)


def _decode_envelope(envelope_xdr: str, network_passphrase: str) -> TransactionEnvelope:
    """
    Helper: Decode XDR and return the envelope whose transaction carries the proof.

    For fee-bump envelopes this is the inner transaction envelope.
    """
    try:
        envelope = TransactionBuilder.from_xdr(envelope_xdr, network_passphrase)
    except Exception as e:
        raise MalformedEnvelope(f"cannot decode envelope: {type(e).__name__}: {e}")

    if isinstance(envelope, FeeBumpTransactionEnvelope):
        return envelope.transaction.inner_transaction_envelope
    return envelope


def _find_challenge_value(envelope: TransactionEnvelope) -> bytes:
    """Helper: Return the value of the first auth_challenge manage_data operation."""
    for operation in envelope.transaction.operations:
        if isinstance(operation, ManageData) and operation.data_name == AUTH_CHALLENGE_DATA_NAME:
            if not operation.data_value:
                raise InvalidSignature("auth_challenge operation has no value")
            return operation.data_value
    raise InvalidSignature("no auth_challenge manage_data operation in transaction")


def _has_valid_signature(envelope: TransactionEnvelope, wallet_address: str) -> bool:
    """Helper: True if any decorated signature verifies against the wallet key."""
    try:
        keypair = Keypair.from_public_key(wallet_address)
    except Ed25519PublicKeyInvalidError:
        return False

    tx_hash = envelope.hash()
    for decorated in envelope.signatures:
        if decorated.signature_hint != keypair.signature_hint():
            continue
        try:
            keypair.verify(tx_hash, decorated.signature)
            return True
        except BadSignatureError:
            continue
    return False


class EnvelopeVerifier:
    """Decides whether a signed envelope proves control of a wallet for a challenge."""

    def __init__(self, network_passphrase: str, require_signature: bool = False):
        self.network_passphrase = network_passphrase
        self.require_signature = require_signature

    def check(self, wallet_address: str, envelope_xdr: str, challenge: str) -> None:
        """
        Run every check and raise on the first failure.

        Raises:
            MalformedEnvelope: If the XDR cannot be decoded
            InvalidSignature: If any structural or ownership check fails
        """
        envelope = _decode_envelope(envelope_xdr, self.network_passphrase)

        embedded = _find_challenge_value(envelope)
        if not challenge.encode().startswith(embedded):
            raise InvalidSignature(
                f"challenge mismatch: embedded {len(embedded)} bytes are not a prefix of the stored challenge"
            )

        source = envelope.transaction.source.universal_account_id
        if source != wallet_address:
            raise InvalidSignature(f"source account {source} does not match wallet {wallet_address}")

        if self.require_signature and not _has_valid_signature(envelope, wallet_address):
            raise InvalidSignature("no signature from the wallet key over the transaction hash")

    def verify(self, wallet_address: str, envelope_xdr: str, challenge: str) -> bool:
        """
        Verify a signed envelope and return a plain valid/invalid answer.

        Args:
            wallet_address: Stellar account claiming ownership (G... or M...)
            envelope_xdr: Signed transaction envelope, base64 XDR
            challenge: The full stored challenge value

        Returns:
            True if the envelope is valid proof, False otherwise
        """
        try:
            self.check(wallet_address, envelope_xdr, challenge)
        except InvalidSignature as e:
            logger.info("envelope rejected for %s: %s", wallet_address, e.reason)
            return False
        return True
