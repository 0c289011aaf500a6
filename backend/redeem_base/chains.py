"""Supported networks and their static parameters."""
from dataclasses import dataclass
from typing import Dict

from .exceptions import UnsupportedChainError

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

# Cards holding the chain's native asset use the zero address as token address
NATIVE_TOKEN_ADDRESS = ZERO_ADDRESS

DEFAULT_EXPLORER = "https://etherscan.io"


@dataclass(frozen=True)
class ChainConfig:
    chain_id: int
    name: str
    rpc: str  # Alchemy subdomain, e.g. "eth-mainnet"
    symbol: str
    decimals: int
    explorer: str
    poa: bool = False  # needs ExtraDataToPOAMiddleware

    def rpc_url(self, api_key: str) -> str:
        return f"https://{self.rpc}.g.alchemy.com/v2/{api_key}"


CHAINS: Dict[int, ChainConfig] = {
    1:     ChainConfig(1,     "Ethereum",  "eth-mainnet",     "ETH",  18, "https://etherscan.io"),
    56:    ChainConfig(56,    "BNB Chain", "bnb-mainnet",     "BNB",  18, "https://bscscan.com", poa=True),
    137:   ChainConfig(137,   "Polygon",   "polygon-mainnet", "POL",  18, "https://polygonscan.com", poa=True),
    10:    ChainConfig(10,    "Optimism",  "opt-mainnet",     "ETH",  18, "https://optimistic.etherscan.io"),
    42161: ChainConfig(42161, "Arbitrum",  "arb-mainnet",     "ETH",  18, "https://arbiscan.io"),
    8453:  ChainConfig(8453,  "Base",      "base-mainnet",    "ETH",  18, "https://basescan.org"),
    43114: ChainConfig(43114, "Avalanche", "avax-mainnet",    "AVAX", 18, "https://snowtrace.io"),
}


def get_chain(chain_id: int) -> ChainConfig:
    chain = CHAINS.get(chain_id)
    if chain is None:
        raise UnsupportedChainError(chain_id)
    return chain


def chain_name(chain_id: int) -> str:
    chain = CHAINS.get(chain_id)
    return chain.name if chain else "Unknown"


def explorer_tx_url(chain_id: int, tx_hash: str) -> str:
    chain = CHAINS.get(chain_id)
    base = chain.explorer if chain else DEFAULT_EXPLORER
    return f"{base}/tx/{tx_hash}"
