"""
Shared fixtures for the Redeem Base test suite.

  - settings: test configuration with a throwaway operator key
  - envelope / card_record: a card sealed under CARD_SECRET (built once;
    PBKDF2 with 310k iterations is deliberately slow)
  - registry / executor: in-memory stand-ins injected through FastAPI's
    dependency overrides, so no test touches the network
  - client: TestClient wired to those stand-ins
"""
from typing import Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

from redeem_base.chains import NATIVE_TOKEN_ADDRESS
from redeem_base.config import Settings
from redeem_base.exceptions import CardNotFoundError
from redeem_base.main import app, get_executor, get_registry
from redeem_base.models import Card
from redeem_base.services.crypto import encrypt_private_key
from redeem_base.services.executor import RedemptionResult
from redeem_base.services.registry import CardRegistryClient

CARD_ID = "1234567"
CARD_SECRET = "AAAAA-BBBBB-CCCCC-DDDDD"
# Well-known throwaway test key
CARD_PRIVATE_KEY = "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"
OPERATOR_KEY = "0x" + "11" * 32
RECIPIENT = "0x1234567890abcdef1234567890abcdef12345678"
TX_HASH = "0x" + "ab" * 32


@pytest.fixture(scope="session")
def settings() -> Settings:
    return Settings(
        alchemy_key="test-key",
        service_private_key=OPERATOR_KEY,
        univoucher_api_url="https://registry.test/v1",
        gas_price_backoff=0.0,
    )


@pytest.fixture(scope="session")
def envelope():
    return encrypt_private_key(CARD_PRIVATE_KEY, CARD_SECRET)


def make_card_record(envelope, **overrides) -> Dict:
    record = {
        "cardId": CARD_ID,
        "slotId": "0x000000000000000000000000000000000000dEaD",
        "chainId": 1,
        "active": True,
        "status": "active",
        "tokenAddress": NATIVE_TOKEN_ADDRESS,
        "tokenAmount": str(10 ** 18),
        "creator": "0x00000000000000000000000000000000000000c1",
        "message": "Happy Birthday!",
        "encryptedPrivateKey": envelope.to_json(),
        "createdAt": "2025-01-01T00:00:00.000Z",
    }
    record.update(overrides)
    return record


@pytest.fixture
def card_record(envelope) -> Dict:
    return make_card_record(envelope)


class FakeRegistry(CardRegistryClient):
    """Serves cards from memory and records every lookup."""

    def __init__(self, settings: Settings, cards: Dict[str, Dict]):
        super().__init__(settings, web3_factory=self._no_rpc)
        self.cards = cards
        self.calls: List[str] = []
        self.fail_with: Optional[Exception] = None

    @staticmethod
    def _no_rpc(chain_id):
        raise AssertionError(f"unexpected RPC connection to chain {chain_id}")

    def fetch_card(self, card_id: str) -> Card:
        self.calls.append(card_id)
        if self.fail_with is not None:
            raise self.fail_with
        if card_id not in self.cards:
            raise CardNotFoundError(card_id)
        return Card.model_validate(self.cards[card_id])


class FakeExecutor:
    """Records redemptions instead of sending transactions."""

    def __init__(self):
        self.calls = []
        self.fail_with: Optional[Exception] = None

    def execute(self, card, authorization) -> RedemptionResult:
        self.calls.append((card, authorization))
        if self.fail_with is not None:
            raise self.fail_with
        return RedemptionResult(tx_hash=TX_HASH, block_number=100, gas_used=90_000, fee_recipient=None)


@pytest.fixture
def registry(settings, card_record) -> FakeRegistry:
    return FakeRegistry(settings, {CARD_ID: card_record})


@pytest.fixture
def executor() -> FakeExecutor:
    return FakeExecutor()


@pytest.fixture
def client(registry, executor):
    app.dependency_overrides[get_registry] = lambda: registry
    app.dependency_overrides[get_executor] = lambda: executor
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()

