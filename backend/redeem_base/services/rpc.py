"""JSON-RPC connections to the supported chains."""
import logging

from web3 import Web3
from web3.middleware import ExtraDataToPOAMiddleware

from ..chains import get_chain
from ..config import Settings

logger = logging.getLogger(__name__)


def connect(chain_id: int, settings: Settings) -> Web3:
    """
    Build a Web3 client for ``chain_id``.

    A new provider is created per call; nothing is cached between requests.
    Raises UnsupportedChainError for chains outside the registry.
    """
    chain = get_chain(chain_id)
    w3 = Web3(
        Web3.HTTPProvider(
            chain.rpc_url(settings.alchemy_key),
            request_kwargs={"timeout": settings.rpc_timeout},
        )
    )
    if chain.poa:
        w3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)
    logger.debug(f"RPC client ready for {chain.name} ({chain_id})")
    return w3
