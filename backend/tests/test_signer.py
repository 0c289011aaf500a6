"""Tests for the redemption authorization signed with the card key."""
import pytest
from eth_account import Account
from web3 import Web3

from conftest import CARD_ID, CARD_PRIVATE_KEY, RECIPIENT
from redeem_base.exceptions import InvalidSecretError, MalformedCardKeyError
from redeem_base.services.signer import (
    authorize_redemption,
    recover_signer,
    redemption_message_hash,
)


class TestMessageHash:
    def test_matches_abi_encode_packed(self):
        """keccak256 over the tightly packed strings followed by the 20 address bytes."""
        packed = b"Redeem card:" + CARD_ID.encode() + b"to:" + bytes.fromhex(RECIPIENT[2:])
        assert redemption_message_hash(CARD_ID, RECIPIENT) == bytes(Web3.keccak(packed))

    def test_address_case_does_not_matter(self):
        assert redemption_message_hash(CARD_ID, RECIPIENT) == redemption_message_hash(
            CARD_ID, Web3.to_checksum_address(RECIPIENT)
        )

    def test_bound_to_card_and_recipient(self):
        other = "0x" + "22" * 20
        assert redemption_message_hash(CARD_ID, RECIPIENT) != redemption_message_hash("7654321", RECIPIENT)
        assert redemption_message_hash(CARD_ID, RECIPIENT) != redemption_message_hash(CARD_ID, other)


class TestAuthorize:
    def test_signature_recovers_card_address(self):
        auth = authorize_redemption(CARD_PRIVATE_KEY, CARD_ID, RECIPIENT)
        card_address = Account.from_key(CARD_PRIVATE_KEY).address

        assert auth.signer == card_address
        assert len(auth.signature) == 65
        assert recover_signer(CARD_ID, RECIPIENT, auth.signature) == card_address
        assert auth.signature_hex.startswith("0x")

    def test_recipient_is_checksummed(self):
        auth = authorize_redemption(CARD_PRIVATE_KEY, CARD_ID, RECIPIENT)
        assert auth.recipient == Web3.to_checksum_address(RECIPIENT)

    def test_deterministic(self):
        first = authorize_redemption(CARD_PRIVATE_KEY, CARD_ID, RECIPIENT)
        second = authorize_redemption(CARD_PRIVATE_KEY, CARD_ID, RECIPIENT)
        assert first.signature == second.signature

    def test_signature_does_not_cover_other_recipient(self):
        auth = authorize_redemption(CARD_PRIVATE_KEY, CARD_ID, RECIPIENT)
        other = "0x" + "22" * 20
        assert recover_signer(CARD_ID, other, auth.signature) != auth.signer

    @pytest.mark.parametrize("bad_key", ["", "not-a-key", "0x1234"])
    def test_malformed_key(self, bad_key):
        with pytest.raises(MalformedCardKeyError) as exc_info:
            authorize_redemption(bad_key, CARD_ID, RECIPIENT)
        assert isinstance(exc_info.value, InvalidSecretError)
        assert exc_info.value.detail == "Invalid card secret"
