"""
Authentication error taxonomy.

Every error raised by the authentication flow derives from AuthError and carries the
HTTP status code and the public message the endpoints return. The public message
never says *why* a proof was rejected; the reason is only written to the server log.
"""

from fastapi import status

AUTH_FAILED_DETAIL = "Authentication failed, request a new challenge"


class AuthError(Exception):
    """Base class for authentication failures."""

    status_code: int = status.HTTP_401_UNAUTHORIZED
    detail: str = AUTH_FAILED_DETAIL

    def __init__(self, reason: str = "") -> None:
        # reason is for logs only
        super().__init__(reason or self.detail)
        self.reason = reason or self.detail


class MissingField(AuthError):
    """Request omits a required field."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, *fields: str) -> None:
        self.fields = fields
        names = [_human_name(f) for f in fields]
        if len(names) == 1:
            detail = f"{names[0]} is required"
        elif len(names) == 2:
            detail = f"{names[0]} and {names[1].lower()} are required"
        else:
            detail = ", ".join(names[:-1]) + f", and {names[-1].lower()} are required"
        self.detail = detail[0].upper() + detail[1:]
        super().__init__(self.detail)


class ChallengeNotFoundOrExpired(AuthError):
    """Challenge is unknown, already consumed or past its expiry."""


class InvalidSignature(AuthError):
    """Proof failed the structural or ownership checks."""


class MalformedEnvelope(InvalidSignature):
    """Envelope could not be decoded. Reported to clients exactly like InvalidSignature."""


class InvalidWalletAddress(AuthError):
    """Address is not a Stellar account id (G...) or muxed account (M...)."""

    status_code = status.HTTP_400_BAD_REQUEST
    detail = "Invalid wallet address"


def _human_name(field: str) -> str:
    return {
        "walletAddress": "Wallet address",
        "signature": "signature",
        "challenge": "challenge",
    }.get(field, field)
