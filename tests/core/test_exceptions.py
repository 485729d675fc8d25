import pytest

from app.core.exceptions import (
    AUTH_FAILED_DETAIL,
    ChallengeNotFoundOrExpired,
    InvalidWalletAddress,
    MalformedEnvelope,
    MissingField,
)


@pytest.mark.parametrize(
    "fields, detail",
    [
        (("walletAddress",), "Wallet address is required"),
        (("walletAddress", "signature"), "Wallet address and signature are required"),
        (("signature", "challenge"), "Signature and challenge are required"),
        (
            ("walletAddress", "signature", "challenge"),
            "Wallet address, signature, and challenge are required",
        ),
    ],
)
def test_missing_field_detail(fields, detail):
    error = MissingField(*fields)
    assert error.detail == detail
    assert error.status_code == 400


def test_reason_stays_out_of_public_detail():
    error = MalformedEnvelope("cannot decode envelope: XdrError")
    assert error.reason == "cannot decode envelope: XdrError"
    assert error.detail == AUTH_FAILED_DETAIL == ChallengeNotFoundOrExpired().detail
    assert error.status_code == 401


def test_invalid_wallet_address_is_a_client_error():
    error = InvalidWalletAddress("malformed address 'x'")
    assert error.status_code == 400
    assert error.detail == "Invalid wallet address"
