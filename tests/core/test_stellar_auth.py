import pytest
from stellar_sdk import MuxedAccount, Network

from app.core.exceptions import InvalidSignature, MalformedEnvelope
from app.core.stellar_auth import (
    CLIENT_CHALLENGE_TRUNCATION_BYTES,
    EnvelopeProof,
    EnvelopeVerifier,
    LegacyProof,
    classify_proof,
    generate_challenge,
    is_valid_wallet_address,
)


@pytest.fixture
def verifier() -> EnvelopeVerifier:
    return EnvelopeVerifier(Network.TESTNET_NETWORK_PASSPHRASE)


@pytest.fixture
def challenge() -> str:
    return generate_challenge()


class TestGenerateChallenge:
    def test_values_are_unique(self):
        values = {generate_challenge() for _ in range(1000)}
        assert len(values) == 1000

    def test_random_part_fills_the_truncation_window(self):
        value = generate_challenge(now_ms=1718000000000)
        random_part, timestamp = value.rsplit("_", 1)
        assert timestamp == "1718000000000"
        assert len(random_part) >= CLIENT_CHALLENGE_TRUNCATION_BYTES

    def test_fits_in_a_manage_data_value(self):
        assert len(generate_challenge().encode()) <= 64


class TestClassifyProof:
    def test_explicit_kind_wins(self, wallet, envelope_for):
        xdr = envelope_for(wallet.public_key, "abc")
        assert classify_proof(xdr, "legacy") == LegacyProof(xdr)
        assert classify_proof("short", "envelope") == EnvelopeProof("short")

    def test_kind_is_case_insensitive(self):
        assert isinstance(classify_proof("sig", " Legacy "), LegacyProof)

    @pytest.mark.parametrize("kind", ["", "   "])
    def test_blank_kind_counts_as_omitted(self, wallet, envelope_for, kind):
        xdr = envelope_for(wallet.public_key, "abc")
        assert classify_proof(xdr, kind) == EnvelopeProof(xdr)
        assert classify_proof("deadbeef", kind) == LegacyProof("deadbeef")

    def test_unknown_kind_raises(self):
        with pytest.raises(ValueError):
            classify_proof("sig", "ed25519")

    def test_envelope_xdr_is_detected(self, wallet, envelope_for):
        xdr = envelope_for(wallet.public_key, "abc")
        assert classify_proof(xdr) == EnvelopeProof(xdr)

    def test_short_values_are_legacy(self):
        assert classify_proof("deadbeef") == LegacyProof("deadbeef")
        assert classify_proof("AAAA" + "x" * 10) == LegacyProof("AAAA" + "x" * 10)

    def test_long_values_without_xdr_prefix_are_legacy(self):
        assert isinstance(classify_proof("B" * 200), LegacyProof)


class TestEnvelopeVerifier:
    def test_full_challenge_embedded(self, verifier, wallet, challenge, envelope_for):
        xdr = envelope_for(wallet.public_key, challenge)
        assert verifier.verify(wallet.public_key, xdr, challenge) is True

    def test_truncated_challenge_embedded(self, verifier, wallet, challenge, envelope_for):
        xdr = envelope_for(wallet.public_key, challenge[:CLIENT_CHALLENGE_TRUNCATION_BYTES])
        assert verifier.verify(wallet.public_key, xdr, challenge) is True

    def test_different_challenge_is_rejected(self, verifier, wallet, challenge, envelope_for):
        other = generate_challenge()
        xdr = envelope_for(wallet.public_key, other[:CLIENT_CHALLENGE_TRUNCATION_BYTES])
        assert verifier.verify(wallet.public_key, xdr, challenge) is False

    def test_value_longer_than_challenge_is_rejected(self, verifier, wallet, challenge, envelope_for):
        xdr = envelope_for(wallet.public_key, challenge + "x")
        assert verifier.verify(wallet.public_key, xdr, challenge) is False

    def test_source_account_must_be_the_wallet(self, verifier, wallet, other_wallet, challenge, envelope_for):
        xdr = envelope_for(other_wallet.public_key, challenge)
        assert verifier.verify(wallet.public_key, xdr, challenge) is False

    def test_missing_auth_challenge_operation(self, verifier, wallet, challenge, envelope_for):
        xdr = envelope_for(wallet.public_key, challenge, data_name="something_else")
        with pytest.raises(InvalidSignature):
            verifier.check(wallet.public_key, xdr, challenge)
        assert verifier.verify(wallet.public_key, xdr, challenge) is False

    def test_empty_auth_challenge_value(self, verifier, wallet, challenge, envelope_for):
        xdr = envelope_for(wallet.public_key, None)
        assert verifier.verify(wallet.public_key, xdr, challenge) is False

    def test_malformed_xdr(self, verifier, wallet, challenge):
        with pytest.raises(MalformedEnvelope):
            verifier.check(wallet.public_key, "AAAA" + "not-xdr" * 20, challenge)
        assert verifier.verify(wallet.public_key, "garbage", challenge) is False

    def test_fee_bump_envelope_uses_inner_transaction(
        self, verifier, wallet, other_wallet, challenge, envelope_for
    ):
        xdr = envelope_for(wallet.public_key, challenge, signers=[wallet], fee_bump_with=other_wallet)
        assert verifier.verify(wallet.public_key, xdr, challenge) is True
        # the fee payer does not become the authenticated account
        assert verifier.verify(other_wallet.public_key, xdr, challenge) is False

    def test_signature_not_required_by_default(self, verifier, wallet, challenge, envelope_for):
        xdr = envelope_for(wallet.public_key, challenge)
        assert verifier.verify(wallet.public_key, xdr, challenge) is True


class TestRequiredSignature:
    @pytest.fixture
    def strict(self) -> EnvelopeVerifier:
        return EnvelopeVerifier(Network.TESTNET_NETWORK_PASSPHRASE, require_signature=True)

    def test_unsigned_envelope_is_rejected(self, strict, wallet, challenge, envelope_for):
        xdr = envelope_for(wallet.public_key, challenge)
        assert strict.verify(wallet.public_key, xdr, challenge) is False

    def test_signed_by_wallet(self, strict, wallet, challenge, envelope_for):
        xdr = envelope_for(wallet.public_key, challenge, signers=[wallet])
        assert strict.verify(wallet.public_key, xdr, challenge) is True

    def test_signed_by_another_key(self, strict, wallet, other_wallet, challenge, envelope_for):
        xdr = envelope_for(wallet.public_key, challenge, signers=[other_wallet])
        assert strict.verify(wallet.public_key, xdr, challenge) is False

    def test_signed_for_another_network(self, strict, wallet, challenge, envelope_for):
        public = EnvelopeVerifier(Network.PUBLIC_NETWORK_PASSPHRASE, require_signature=True)
        xdr = envelope_for(wallet.public_key, challenge, signers=[wallet])
        assert public.verify(wallet.public_key, xdr, challenge) is False

    def test_fee_bump_checks_inner_signatures(self, strict, wallet, other_wallet, challenge, envelope_for):
        xdr = envelope_for(wallet.public_key, challenge, signers=[wallet], fee_bump_with=other_wallet)
        assert strict.verify(wallet.public_key, xdr, challenge) is True

    def test_invalid_wallet_address(self, strict, wallet, challenge, envelope_for):
        xdr = envelope_for(wallet.public_key, challenge, signers=[wallet])
        assert strict.verify("not-an-address", xdr, challenge) is False



class TestWalletAddress:
    def test_account_and_muxed_ids(self, wallet):
        muxed = MuxedAccount(wallet.public_key, 42).account_muxed
        assert is_valid_wallet_address(wallet.public_key)
        assert is_valid_wallet_address(muxed)

    @pytest.mark.parametrize(
        "address",
        ["G", "not-an-address", "G" * 56, "G" * 200, "SBRPYHIL2CI3FNQ4BXLFMNDLFJUNPU2HY3ZMFSHONUCEOASW7QC7OX2H"],
    )
    def test_rejects_malformed(self, address):
        assert not is_valid_wallet_address(address)
