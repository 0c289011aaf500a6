"""
Domain exceptions and their FastAPI handlers.

Services raise these without knowing anything about HTTP; the handlers
registered here turn them into ``{"error": "..."}`` responses.

Exception hierarchy:
    RedeemAPIError (base)
    ├── InvalidInputError       400 - missing / malformed request fields
    ├── AlreadyRedeemedError    400 - card is no longer active
    ├── InvalidSecretError      400 - decryption failed (any reason)
    │   └── MalformedCardKeyError
    ├── CardNotFoundError       404 - registry does not know the card id
    ├── UpstreamError           500 - registry or RPC failure
    │   └── UnsupportedChainError
    └── ExecutionError          500 - gas estimation / submission failure
"""
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

logger = logging.getLogger(__name__)


class RedeemAPIError(Exception):
    """Base exception for all Redeem Base domain errors."""

    status_code = 500

    def __init__(self, detail: str = "An error occurred"):
        self.detail = detail
        super().__init__(self.detail)


class InvalidInputError(RedeemAPIError):
    status_code = 400


class AlreadyRedeemedError(RedeemAPIError):
    """Raised when a card has already been redeemed or cancelled."""

    status_code = 400

    def __init__(self, card_id: str = ""):
        self.card_id = card_id
        super().__init__("This card has already been redeemed or cancelled")


class InvalidSecretError(RedeemAPIError):
    """
    Raised when an envelope cannot be opened with the supplied secret.

    Every decryption failure (wrong secret, bad salt, tag mismatch, malformed
    envelope) is reported with the same message so callers cannot tell them
    apart.
    """

    status_code = 400

    def __init__(self):
        super().__init__("Invalid card secret")


class MalformedCardKeyError(InvalidSecretError):
    """Decryption produced bytes that are not a usable private key."""


class CardNotFoundError(RedeemAPIError):
    status_code = 404

    def __init__(self, card_id: str):
        self.card_id = card_id
        super().__init__("Card not found")


class UpstreamError(RedeemAPIError):
    """Registry API or chain RPC failure. ``detail`` carries the upstream message."""


class UnsupportedChainError(UpstreamError):
    def __init__(self, chain_id):
        self.chain_id = chain_id
        super().__init__(f"Unsupported chain: {chain_id}")


class ExecutionError(RedeemAPIError):
    """Gas estimation, submission or confirmation of a redemption failed."""


# ─────────────────────────────────────────────
# FastAPI handlers
# ─────────────────────────────────────────────


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def register_exception_handlers(app: FastAPI) -> None:
    """Map domain errors, HTTPException and validation errors to ``{"error": ...}``."""

    @app.exception_handler(RedeemAPIError)
    async def redeem_error_handler(request: Request, exc: RedeemAPIError) -> JSONResponse:
        if exc.status_code >= 500:
            # Upstream detail stays in the logs.
            logger.error(f"{request.url.path} failed: {exc.detail}")
            return _error(exc.status_code, "Internal server error")
        return _error(exc.status_code, exc.detail)

    @app.exception_handler(HTTPException)
    async def http_error_handler(request: Request, exc: HTTPException) -> JSONResponse:
        return _error(exc.status_code, str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return _error(400, "Invalid request body")

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(f"Unhandled error on {request.url.path}: {exc}", exc_info=True)
        return _error(500, "Internal server error")
