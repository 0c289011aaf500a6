"""UniVoucher registry API client and token amount formatting."""
import logging
from decimal import ROUND_HALF_UP, Decimal, localcontext
from typing import Callable, Optional

import requests
from web3 import Web3

from ..chains import get_chain
from ..config import Settings
from ..exceptions import CardNotFoundError, UpstreamError
from ..models import Card, TokenInfo
from . import rpc

logger = logging.getLogger(__name__)

FALLBACK_TOKEN = TokenInfo(symbol="TOKEN", decimals=18)
MAX_FRACTION_DIGITS = 6

ERC20_METADATA_ABI = [
    {
        "inputs": [],
        "name": "symbol",
        "outputs": [{"name": "", "type": "string"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "decimals",
        "outputs": [{"name": "", "type": "uint8"}],
        "stateMutability": "view",
        "type": "function",
    },
]


def format_token_amount(amount: int, decimals: int) -> str:
    """
    Render a smallest-unit amount for display.

    1_000_000_000_000_000_000 @ 18 -> "1"
    1_500_000_000_000_000_000 @ 18 -> "1.5"
    Non-integers are rounded to 6 fractional digits, trailing zeros trimmed.
    """
    with localcontext() as ctx:
        ctx.prec = 100  # uint256 has 78 digits
        value = Decimal(int(amount)).scaleb(-int(decimals))
        if value == value.to_integral_value():
            return str(int(value))
        rounded = value.quantize(Decimal(1).scaleb(-MAX_FRACTION_DIGITS), rounding=ROUND_HALF_UP)
    text = format(rounded, "f")
    return text.rstrip("0").rstrip(".") if "." in text else text


class CardRegistryClient:
    """
    Reads cards from the UniVoucher API and token metadata from chain.

    Responsibilities:
    - Fetch card metadata by id (404 -> CardNotFoundError)
    - Resolve symbol/decimals for the card's token
    """

    def __init__(
        self,
        settings: Settings,
        session: Optional[requests.Session] = None,
        web3_factory: Optional[Callable[[int], Web3]] = None,
    ) -> None:
        self.settings = settings
        self.base_url = settings.univoucher_api_url.rstrip("/")
        self.session = session or requests.Session()
        self.web3_factory = web3_factory or (lambda chain_id: rpc.connect(chain_id, settings))

    # ------------------------------------------------------------------
    # Cards
    # ------------------------------------------------------------------

    def fetch_card(self, card_id: str) -> Card:
        """
        Fetch a fresh copy of ``card_id`` from the registry.

        Raises:
            CardNotFoundError: registry answered 404
            UpstreamError:     any other failure (status, transport, payload)
        """
        url = f"{self.base_url}/cards/single"
        try:
            response = self.session.get(
                url,
                params={"id": card_id},
                timeout=self.settings.registry_timeout,
            )
        except requests.RequestException as exc:
            raise UpstreamError(f"Registry request failed: {exc}") from exc

        if response.status_code == 404:
            raise CardNotFoundError(card_id)
        if not response.ok:
            raise UpstreamError(f"Registry API error: {response.status_code}")

        try:
            card = Card.model_validate(response.json())
        except ValueError as exc:  # bad JSON or pydantic ValidationError
            raise UpstreamError(f"Malformed registry response for card {card_id}: {exc}") from exc

        logger.info(f"Card {card.card_id} fetched: chain={card.chain_id}, active={card.active}")
        return card

    # ------------------------------------------------------------------
    # Token metadata
    # ------------------------------------------------------------------

    def token_info(self, card: Card, w3: Optional[Web3] = None) -> TokenInfo:
        """
        Symbol and decimals of the card's token.

        Native-asset cards use the chain's native symbol. ERC20 lookups that
        fail fall back to TOKEN / 18 instead of failing the request.
        """
        chain = get_chain(card.chain_id)
        if card.is_native:
            return TokenInfo(symbol=chain.symbol, decimals=chain.decimals)

        try:
            w3 = w3 or self.web3_factory(card.chain_id)
            token = w3.eth.contract(
                address=Web3.to_checksum_address(card.token_address),
                abi=ERC20_METADATA_ABI,
            )
            return TokenInfo(
                symbol=token.functions.symbol().call(),
                decimals=token.functions.decimals().call(),
            )
        except Exception as exc:
            logger.warning(f"Token metadata lookup failed for {card.token_address}: {exc}")
            return FALLBACK_TOKEN

    def describe_amount(self, card: Card, w3: Optional[Web3] = None) -> str:
        """e.g. "1.5 ETH" """
        info = self.token_info(card, w3)
        return f"{format_token_amount(card.token_amount, info.decimals)} {info.symbol}"
