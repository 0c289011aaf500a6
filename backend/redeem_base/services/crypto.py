"""
Card secret verification.

Each card stores its one-time private key in an encrypted envelope:

    {"salt": "<hex>", "iv": "<hex>", "ciphertext": "<base64, GCM tag appended>"}

The AES-256-GCM key is derived from the card secret with PBKDF2-SHA256
(310,000 iterations). A secret is "valid" exactly when the envelope opens.
"""
import base64
import os
import re
from typing import Optional, Union

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from pydantic import BaseModel

from ..exceptions import InvalidSecretError

PBKDF2_ITERATIONS = 310_000
KEY_LENGTH = 32
AUTH_TAG_LENGTH = 16
SALT_LENGTH = 16
IV_LENGTH = 12

_NON_BASE64 = re.compile(r"[^A-Za-z0-9+/]")


class EncryptedEnvelope(BaseModel):
    salt: str
    iv: str
    ciphertext: str

    @classmethod
    def from_json(cls, raw: Union[str, dict]) -> "EncryptedEnvelope":
        if isinstance(raw, dict):
            return cls.model_validate(raw)
        return cls.model_validate_json(raw)

    def to_json(self) -> str:
        return self.model_dump_json()


def normalize_secret(secret: str) -> str:
    """'abcde-FGHIJ-...' -> 'ABCDEFGHIJ...'"""
    return secret.strip().replace("-", "").upper()


def decode_base64(text: str) -> bytes:
    """
    Decode base64 the way issuing clients accept it.

    URL-safe alphabet and missing padding are both accepted; any other
    character (whitespace, stray '=') is skipped.
    """
    cleaned = _NON_BASE64.sub("", text.replace("-", "+").replace("_", "/"))
    return base64.b64decode(cleaned + "=" * (-len(cleaned) % 4))


def derive_key(secret: str, salt: bytes, iterations: int = PBKDF2_ITERATIONS) -> bytes:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=salt,
        iterations=iterations,
    )
    return kdf.derive(normalize_secret(secret).encode("utf-8"))


def decrypt_private_key(envelope: Union[EncryptedEnvelope, str, dict], secret: str) -> str:
    """
    Open ``envelope`` with ``secret`` and return the card's private key.

    Raises InvalidSecretError for every failure: malformed envelope, short
    ciphertext, wrong secret, tag mismatch or undecodable plaintext.
    """
    try:
        if not isinstance(envelope, EncryptedEnvelope):
            envelope = EncryptedEnvelope.from_json(envelope)

        salt = bytes.fromhex(envelope.salt)
        iv = bytes.fromhex(envelope.iv)
        ciphertext = decode_base64(envelope.ciphertext)
        if len(ciphertext) < AUTH_TAG_LENGTH:
            raise ValueError("ciphertext shorter than auth tag")

        # AESGCM expects the tag appended to the encrypted content, which is
        # exactly how the envelope stores it.
        key = derive_key(secret, salt)
        plaintext = AESGCM(key).decrypt(iv, ciphertext, None)
        return plaintext.decode("utf-8")
    except (ValueError, TypeError, AttributeError, InvalidTag):
        raise InvalidSecretError() from None


def encrypt_private_key(
    private_key: str,
    secret: str,
    *,
    salt: Optional[bytes] = None,
    iv: Optional[bytes] = None,
) -> EncryptedEnvelope:
    """Seal ``private_key`` under ``secret`` in the same envelope format."""
    salt = salt if salt is not None else os.urandom(SALT_LENGTH)
    iv = iv if iv is not None else os.urandom(IV_LENGTH)
    key = derive_key(secret, salt)
    ciphertext = AESGCM(key).encrypt(iv, private_key.encode("utf-8"), None)
    return EncryptedEnvelope(
        salt=salt.hex(),
        iv=iv.hex(),
        ciphertext=base64.b64encode(ciphertext).decode("ascii"),
    )
