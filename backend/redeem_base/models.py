"""Card records as returned by the UniVoucher registry API."""
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from .chains import NATIVE_TOKEN_ADDRESS


class Card(BaseModel):
    """
    Read-only view of a UniVoucher card.

    The registry is authoritative for ``active``; callers re-fetch the card
    before acting on it instead of caching it.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    card_id: str = Field(alias="cardId")
    slot_id: Optional[str] = Field(default=None, alias="slotId")
    chain_id: int = Field(alias="chainId")
    active: bool
    status: Optional[str] = None

    token_address: str = Field(default=NATIVE_TOKEN_ADDRESS, alias="tokenAddress")
    # Smallest unit (wei for native assets)
    token_amount: int = Field(alias="tokenAmount")

    # Envelope JSON: {"salt", "iv", "ciphertext"}
    encrypted_private_key: Union[str, Dict[str, Any]] = Field(alias="encryptedPrivateKey")

    # Display metadata, passed through unmodified
    creator: Optional[str] = None
    message: Optional[str] = ""
    created_at: Any = Field(default=None, alias="createdAt")

    @property
    def is_native(self) -> bool:
        return self.token_address.lower() == NATIVE_TOKEN_ADDRESS


class TokenInfo(BaseModel):
    symbol: str
    decimals: int
