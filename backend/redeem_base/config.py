"""Application configuration using Pydantic Settings."""
from typing import List

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from web3 import Web3


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # RPC provider (Alchemy) access key, shared by every supported chain
    alchemy_key: str = ""

    # Operator wallet private key (hex, with or without 0x) - pays gas for redemptions
    service_private_key: str = ""

    # Partner fee recipient. Only used when charge_partner_fee is enabled.
    partner_address: str = ""
    charge_partner_fee: bool = False

    # UniVoucher registry
    univoucher_api_url: str = "https://api.univoucher.com/v1"
    univoucher_contract: str = "0x51553818203e38ce0E78e4dA05C07ac779ec5b58"

    # Timeouts (seconds)
    registry_timeout: float = 10.0
    rpc_timeout: float = 30.0
    tx_timeout: float = 180.0

    # Gas price lookup
    gas_price_attempts: int = 2
    gas_price_backoff: float = 0.5

    # Server
    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "INFO"
    cors_origins: List[str] = ["*"]

    @field_validator("partner_address")
    @classmethod
    def _checksum_partner_address(cls, value: str) -> str:
        value = value.strip()
        if not value:
            return value
        if not Web3.is_address(value):
            raise ValueError(f"PARTNER_ADDRESS is not a valid address: {value!r}")
        return Web3.to_checksum_address(value)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )


settings = Settings()
