"""Tests for settings validation."""
import pytest
from pydantic import ValidationError
from web3 import Web3

from redeem_base.config import Settings
from redeem_base.services.executor import RedemptionExecutor

PARTNER = "0x00000000000000000000000000000000000000aa"


class TestPartnerAddress:
    def test_empty_by_default(self):
        assert Settings(partner_address="").partner_address == ""

    def test_checksummed(self):
        config = Settings(partner_address=f"  {PARTNER}  ")
        assert config.partner_address == Web3.to_checksum_address(PARTNER)

    def test_malformed_address_rejected(self):
        with pytest.raises(ValidationError):
            Settings(partner_address="0xnot-an-address", charge_partner_fee=True)

    def test_malformed_address_rejected_from_env(self, monkeypatch):
        monkeypatch.setenv("PARTNER_ADDRESS", "0x1234")
        with pytest.raises(ValidationError):
            Settings()

    def test_fee_recipient_uses_validated_address(self):
        executor = RedemptionExecutor(Settings(partner_address=PARTNER, charge_partner_fee=True))
        assert executor.fee_recipient == Web3.to_checksum_address(PARTNER)
