"""Redemption authorization signed with the card's one-time key."""
from dataclasses import dataclass

from eth_account import Account
from eth_account.messages import encode_defunct
from web3 import Web3

from ..exceptions import MalformedCardKeyError

# Order and types must match the contract's verifier.
REDEEM_MESSAGE_TYPES = ["string", "string", "string", "address"]


@dataclass(frozen=True)
class RedemptionAuthorization:
    card_id: str
    recipient: str
    signer: str          # the card's one-time address
    message_hash: bytes
    signature: bytes     # 65 bytes, r || s || v

    @property
    def signature_hex(self) -> str:
        return Web3.to_hex(self.signature)


def redemption_message_hash(card_id: str, recipient: str) -> bytes:
    """keccak256(abi.encodePacked("Redeem card:", cardId, "to:", recipient))"""
    return bytes(
        Web3.solidity_keccak(
            REDEEM_MESSAGE_TYPES,
            ["Redeem card:", card_id, "to:", Web3.to_checksum_address(recipient)],
        )
    )


def authorize_redemption(private_key: str, card_id: str, recipient: str) -> RedemptionAuthorization:
    """
    Sign the redemption of ``card_id`` to ``recipient``.

    The hash is signed as an EIP-191 personal message over its 32 raw bytes,
    which is what the contract recovers on chain.
    """
    try:
        account = Account.from_key(private_key.strip())
    except Exception as exc:  # eth_keys raises its own ValidationError too
        raise MalformedCardKeyError() from exc

    message_hash = redemption_message_hash(card_id, recipient)
    signed = account.sign_message(encode_defunct(primitive=message_hash))
    return RedemptionAuthorization(
        card_id=card_id,
        recipient=Web3.to_checksum_address(recipient),
        signer=account.address,
        message_hash=message_hash,
        signature=bytes(signed.signature),
    )


def recover_signer(card_id: str, recipient: str, signature: bytes) -> str:
    message_hash = redemption_message_hash(card_id, recipient)
    return Account.recover_message(encode_defunct(primitive=message_hash), signature=signature)
