"""Tests for the chain registry and RPC connection setup."""
import pytest
from web3.middleware import ExtraDataToPOAMiddleware

from redeem_base.chains import CHAINS, chain_name, explorer_tx_url, get_chain
from redeem_base.exceptions import UnsupportedChainError
from redeem_base.services.rpc import connect


def test_supported_chains():
    assert set(CHAINS) == {1, 56, 137, 10, 42161, 8453, 43114}
    assert all(chain.decimals == 18 for chain in CHAINS.values())


def test_get_chain():
    base = get_chain(8453)
    assert base.name == "Base"
    assert base.symbol == "ETH"
    assert base.rpc_url("KEY") == "https://base-mainnet.g.alchemy.com/v2/KEY"


def test_unknown_chain():
    with pytest.raises(UnsupportedChainError):
        get_chain(999)
    assert chain_name(999) == "Unknown"


def test_explorer_url():
    assert explorer_tx_url(137, "0xabc") == "https://polygonscan.com/tx/0xabc"
    assert explorer_tx_url(999, "0xabc") == "https://etherscan.io/tx/0xabc"


def test_connect_injects_poa_middleware_only_where_needed(settings):
    bnb = connect(56, settings)
    eth = connect(1, settings)

    assert ExtraDataToPOAMiddleware in bnb.middleware_onion
    assert ExtraDataToPOAMiddleware not in eth.middleware_onion
    assert eth.provider.endpoint_uri == "https://eth-mainnet.g.alchemy.com/v2/test-key"
