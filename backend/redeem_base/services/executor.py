"""Gasless redemption: the operator wallet submits the card's signed authorization."""
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from eth_account import Account
from web3 import Web3

from ..chains import ZERO_ADDRESS, get_chain
from ..config import Settings
from ..exceptions import AlreadyRedeemedError, ExecutionError
from ..models import Card
from . import rpc
from .signer import RedemptionAuthorization, recover_signer

logger = logging.getLogger(__name__)

GAS_BUFFER_PERCENT = 120

# ─────────────────────────────────────────────
# ABI (minimal - only what we use)
# ─────────────────────────────────────────────

UNIVOUCHER_ABI = [
    {
        "inputs": [
            {"name": "cardId",    "type": "string"},
            {"name": "to",        "type": "address"},
            {"name": "signature", "type": "bytes"},
            {"name": "partner",   "type": "address"},
        ],
        "name": "redeemCard",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "inputs": [{"name": "cardId", "type": "string"}],
        "name": "isCardActive",
        "outputs": [{"name": "", "type": "bool"}],
        "stateMutability": "view",
        "type": "function",
    },
]


@dataclass(frozen=True)
class RedemptionResult:
    tx_hash: str
    block_number: int
    gas_used: int
    fee_recipient: Optional[str]  # None when no partner fee is charged


class RedemptionExecutor:
    """
    Submits redeemCard transactions from the operator wallet.

    The operator only pays gas; the card's one-time key has already signed
    the authorization. Exactly one transaction is broadcast per call and a
    submitted transaction is never resent.
    """

    def __init__(
        self,
        settings: Settings,
        web3_factory: Optional[Callable[[int], Web3]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.settings = settings
        self.web3_factory = web3_factory or (lambda chain_id: rpc.connect(chain_id, settings))
        self._sleep = sleep

        self.operator = None
        if settings.service_private_key:
            try:
                self.operator = Account.from_key(settings.service_private_key)
                logger.info(f"Redemption executor ready. Operator: {self.operator.address}")
            except Exception as exc:
                logger.error(f"Failed to load operator key: {exc}")
        else:
            logger.warning("SERVICE_PRIVATE_KEY not set - redemptions disabled")

    @property
    def fee_recipient(self) -> str:
        """Partner argument for redeemCard; the zero address charges no fee."""
        if self.settings.charge_partner_fee and self.settings.partner_address:
            return self.settings.partner_address
        return ZERO_ADDRESS

    # ------------------------------------------------------------------
    # Redemption
    # ------------------------------------------------------------------

    def execute(self, card: Card, authorization: RedemptionAuthorization) -> RedemptionResult:
        """
        PRE-CHECK -> GAS-ESTIMATE -> GAS-PRICE -> SUBMIT -> CONFIRMED.

        Raises:
            AlreadyRedeemedError: card inactive (checked before any RPC call)
            ExecutionError:       authorization mismatch, RPC failure, revert or timeout
        """
        if not card.active:
            raise AlreadyRedeemedError(card.card_id)
        if self.operator is None:
            raise ExecutionError("Operator account not configured (SERVICE_PRIVATE_KEY)")

        # The contract only accepts signatures recovering to the card's one-time address
        try:
            signer = recover_signer(card.card_id, authorization.recipient, authorization.signature)
        except Exception as exc:
            raise ExecutionError(f"Unreadable authorization for card {card.card_id}: {exc}") from exc
        if signer != authorization.signer:
            raise ExecutionError(
                f"Authorization for card {card.card_id} recovers to {signer}, expected {authorization.signer}"
            )
        logger.info(
            f"Card {card.card_id} authorized by {signer}: "
            f"recipient={authorization.recipient}, signature={authorization.signature_hex}"
        )

        chain = get_chain(card.chain_id)
        w3 = self.web3_factory(card.chain_id)
        contract = w3.eth.contract(
            address=Web3.to_checksum_address(self.settings.univoucher_contract),
            abi=UNIVOUCHER_ABI,
        )

        try:
            still_active = contract.functions.isCardActive(card.card_id).call()
        except Exception as exc:
            raise ExecutionError(f"isCardActive({card.card_id}) failed: {exc}") from exc
        if not still_active:
            raise AlreadyRedeemedError(card.card_id)

        fee_recipient = self.fee_recipient
        redeem_call = contract.functions.redeemCard(
            card.card_id,
            authorization.recipient,
            authorization.signature,
            fee_recipient,
        )

        try:
            estimate = redeem_call.estimate_gas({"from": self.operator.address})
        except Exception as exc:
            raise ExecutionError(f"Gas estimation failed for card {card.card_id}: {exc}") from exc
        gas_limit = estimate * GAS_BUFFER_PERCENT // 100

        gas_price = self._gas_price(w3)
        logger.info(
            f"Redeeming card {card.card_id} on {chain.name}: "
            f"gas={gas_limit} (estimate {estimate}), gasPrice={gas_price}"
        )

        try:
            nonce = w3.eth.get_transaction_count(self.operator.address, "pending")
            tx = redeem_call.build_transaction(
                {
                    "chainId":  chain.chain_id,
                    "from":     self.operator.address,
                    "gas":      gas_limit,
                    "gasPrice": gas_price,
                    "nonce":    nonce,
                }
            )
            signed = self.operator.sign_transaction(tx)
            tx_hash = Web3.to_hex(w3.eth.send_raw_transaction(signed.raw_transaction))
        except Exception as exc:
            raise ExecutionError(f"Submitting redemption of card {card.card_id} failed: {exc}") from exc

        logger.info(f"Redemption submitted: card={card.card_id}, tx={tx_hash}")

        try:
            receipt = w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self.settings.tx_timeout)
        except Exception as exc:
            raise ExecutionError(f"Redemption tx {tx_hash} not confirmed: {exc}") from exc

        if receipt["status"] != 1:
            raise ExecutionError(f"Redemption transaction reverted: {tx_hash}")

        logger.info(f"Redemption confirmed: card={card.card_id}, block={receipt['blockNumber']}")
        return RedemptionResult(
            tx_hash=tx_hash,
            block_number=receipt["blockNumber"],
            gas_used=receipt["gasUsed"],
            fee_recipient=None if fee_recipient == ZERO_ADDRESS else fee_recipient,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _gas_price(self, w3: Web3) -> int:
        """Current gas price, retried with exponential backoff."""
        attempts = max(1, self.settings.gas_price_attempts)
        for attempt in range(1, attempts + 1):
            try:
                return w3.eth.gas_price
            except Exception as exc:
                if attempt == attempts:
                    raise ExecutionError(f"Gas price lookup failed: {exc}") from exc
                delay = self.settings.gas_price_backoff * 2 ** (attempt - 1)
                logger.warning(f"Gas price lookup failed (attempt {attempt}/{attempts}): {exc}")
                self._sleep(delay)

    def is_configured(self) -> bool:
        return self.operator is not None
