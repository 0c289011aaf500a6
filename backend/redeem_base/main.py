"""
Redeem Base API - gasless UniVoucher gift card redemption.

Redemption flow:
  1. POST /api/card-info      → card metadata + formatted amount
  2. POST /api/verify-secret  → checks the secret opens the card's encrypted key
  3. POST /api/redeem         → signs the redemption with the card key and
                                submits it from the operator wallet (user pays no gas)

Running locally:
    uvicorn redeem_base.main:app --reload
"""
import logging
import os
from contextlib import asynccontextmanager
from functools import lru_cache
from typing import Any, Dict, Optional

import uvicorn
from fastapi import Depends, FastAPI, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel, ConfigDict, Field
from web3 import Web3

from .chains import CHAINS, chain_name, explorer_tx_url
from .config import Settings, settings
from .exceptions import (
    AlreadyRedeemedError,
    ExecutionError,
    InvalidInputError,
    UpstreamError,
    register_exception_handlers,
)
from .services.crypto import decrypt_private_key
from .services.executor import RedemptionExecutor
from .services.registry import CardRegistryClient
from .services.signer import authorize_redemption

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# ─────────────────────────────────────────────
# Dependencies
# ─────────────────────────────────────────────


def get_settings() -> Settings:
    return settings


def get_registry(config: Settings = Depends(get_settings)) -> CardRegistryClient:
    # One client (and HTTP session) per request
    return CardRegistryClient(config)


@lru_cache(maxsize=1)
def get_executor() -> RedemptionExecutor:
    # The operator key is loaded once and never mutated
    return RedemptionExecutor(get_settings())


# ─────────────────────────────────────────────
# Pydantic schemas
# ─────────────────────────────────────────────


class _CamelRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)


class CardInfoRequest(_CamelRequest):
    card_id: Optional[str] = Field(None, alias="cardId")


class VerifySecretRequest(_CamelRequest):
    card_id: Optional[str] = Field(None, alias="cardId")
    card_secret: Optional[str] = Field(None, alias="cardSecret")


class RedeemRequest(_CamelRequest):
    card_id: Optional[str] = Field(None, alias="cardId")
    card_secret: Optional[str] = Field(None, alias="cardSecret")
    recipient_address: Optional[str] = Field(None, alias="recipientAddress")


# ─────────────────────────────────────────────
# App
# ─────────────────────────────────────────────


@asynccontextmanager
async def lifespan(app: FastAPI):
    if not settings.alchemy_key:
        logger.warning("ALCHEMY_KEY not set - RPC calls will fail")
    executor = get_executor()
    logger.info(
        f"Redeem Base started - chains: {sorted(CHAINS)}, "
        f"contract: {settings.univoucher_contract}, "
        f"operator: {executor.operator.address if executor.is_configured() else 'NOT SET'}, "
        f"fee recipient: {executor.fee_recipient}"
    )
    yield


app = FastAPI(
    title="Redeem Base API",
    description="Gasless UniVoucher gift card redemption",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

static_path = os.path.join(os.path.dirname(os.path.dirname(__file__)), "static")
if os.path.exists(static_path):
    app.mount("/static", StaticFiles(directory=static_path), name="static")


@app.get("/", include_in_schema=False)
def root():
    p = os.path.join(static_path, "index.html")
    return FileResponse(p) if os.path.exists(p) else {"message": "Redeem Base API", "docs": "/docs"}


# ─────────────────────────────────────────────
# Health
# ─────────────────────────────────────────────


@app.get("/api/health", tags=["Health"])
def health_check() -> Dict[str, str]:
    return {"status": "ok", "service": "Redeem Base API"}


# ─────────────────────────────────────────────
# Card info
# ─────────────────────────────────────────────


@app.post("/api/card-info", tags=["Cards"])
def card_info(
    req: CardInfoRequest,
    registry: CardRegistryClient = Depends(get_registry),
) -> Dict[str, Any]:
    """Card metadata from the registry, with the amount formatted for display."""
    if not req.card_id:
        raise InvalidInputError("Card ID required")

    try:
        card = registry.fetch_card(req.card_id)
        formatted_amount = registry.describe_amount(card)
    except UpstreamError as exc:
        logger.error(f"Card info for {req.card_id} failed: {exc.detail}")
        raise HTTPException(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get card information",
        ) from exc

    return {
        "cardId":              card.card_id,
        "slotId":              card.slot_id,
        "chainId":             card.chain_id,
        "chainName":           chain_name(card.chain_id),
        "active":              card.active,
        "status":              card.status,
        "tokenAddress":        card.token_address,
        "tokenAmount":         str(card.token_amount),  # string - safe for JS BigInt
        "formattedAmount":     formatted_amount,
        "creator":             card.creator,
        "message":             card.message or "",
        "encryptedPrivateKey": card.encrypted_private_key,
        "createdAt":           card.created_at,
    }


# ─────────────────────────────────────────────
# Secret verification
# ─────────────────────────────────────────────


@app.post("/api/verify-secret", tags=["Cards"])
def verify_secret(
    req: VerifySecretRequest,
    registry: CardRegistryClient = Depends(get_registry),
) -> Dict[str, bool]:
    """
    Check a card secret without revealing anything about it.

    The secret is valid exactly when it decrypts the card's private key.
    """
    if not req.card_id or not req.card_secret:
        raise InvalidInputError("Card ID and secret required")

    try:
        card = registry.fetch_card(req.card_id)
    except UpstreamError as exc:
        logger.error(f"Secret verification for {req.card_id} failed: {exc.detail}")
        raise HTTPException(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to verify card secret",
        ) from exc

    if not card.active:
        raise AlreadyRedeemedError(card.card_id)

    decrypt_private_key(card.encrypted_private_key, req.card_secret)
    return {"valid": True}


# ─────────────────────────────────────────────
# Redemption
# ─────────────────────────────────────────────


@app.post("/api/redeem", tags=["Cards"])
def redeem(
    req: RedeemRequest,
    registry: CardRegistryClient = Depends(get_registry),
    executor: RedemptionExecutor = Depends(get_executor),
) -> Dict[str, Any]:
    """
    Redeem a card to ``recipientAddress``; the operator wallet pays gas.

    1. Validates input (address format is checked before any network call).
    2. Re-fetches the card and refuses inactive ones.
    3. Decrypts the card key with the secret and signs the redemption.
    4. Submits redeemCard from the operator wallet and waits for 1 confirmation.
    """
    if not req.card_id or not req.card_secret or not req.recipient_address:
        raise InvalidInputError("Card ID, secret, and recipient address required")
    if not Web3.is_address(req.recipient_address):
        raise InvalidInputError("Invalid recipient address")

    try:
        card = registry.fetch_card(req.card_id)
        if not card.active:
            raise AlreadyRedeemedError(card.card_id)

        private_key = decrypt_private_key(card.encrypted_private_key, req.card_secret)
        authorization = authorize_redemption(private_key, card.card_id, req.recipient_address)
        result = executor.execute(card, authorization)
        amount = registry.describe_amount(card)
    except (UpstreamError, ExecutionError) as exc:
        logger.error(f"Redemption of card {req.card_id} failed: {exc.detail}")
        raise HTTPException(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to redeem card",
        ) from exc

    logger.info(f"Card {card.card_id} redeemed to {req.recipient_address}: {result.tx_hash}")

    return {
        "success":          True,
        "txHash":           result.tx_hash,
        "recipientAddress": req.recipient_address,
        "partnerAddress":   result.fee_recipient,
        "amount":           amount,
        "explorerUrl":      explorer_tx_url(card.chain_id, result.tx_hash),
    }


def run() -> None:
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
