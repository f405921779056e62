"""Decryption of wallet secret material.

Secrets are stored as AES-256-GCM bundles ``{iv, data, tag}``, each field
hex-encoded, under a single 32-byte key from configuration. Plaintexts are
returned to the caller and never logged.
"""

import logging
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from venuebridge.errors import AdapterError
from venuebridge.ledger.models import EncryptedSecret

logger = logging.getLogger(__name__)

IV_SIZE = 12  # GCM recommended nonce size
TAG_SIZE = 16


def generate_encryption_key() -> str:
    """Generate a new hex-encoded 32-byte key."""
    return AESGCM.generate_key(bit_length=256).hex()


class KeyVault:
    """Encrypts and decrypts wallet secrets.

    Usage:
        vault = KeyVault(settings.encryption_key)
        bundle = vault.encrypt("base58-secret")
        secret = vault.decrypt(bundle)
    """

    def __init__(self, encryption_key: str):
        """Initialize with the master key.

        Args:
            encryption_key: Hex-encoded 32-byte AES key
        """
        if not encryption_key:
            raise ValueError("ENCRYPTION_KEY is required to decrypt wallet secrets")
        key = bytes.fromhex(encryption_key)
        if len(key) != 32:
            raise ValueError("ENCRYPTION_KEY must be 32 bytes (64 hex characters)")
        self._cipher = AESGCM(key)

    def encrypt(self, plaintext: str) -> EncryptedSecret:
        """Encrypt a secret into an {iv, data, tag} bundle."""
        iv = os.urandom(IV_SIZE)
        sealed = self._cipher.encrypt(iv, plaintext.encode("utf-8"), None)
        return EncryptedSecret(
            iv=iv.hex(),
            data=sealed[:-TAG_SIZE].hex(),
            tag=sealed[-TAG_SIZE:].hex(),
        )

    def decrypt(self, secret: EncryptedSecret) -> str:
        """Decrypt an {iv, data, tag} bundle.

        Raises:
            AdapterError: If the bundle is malformed or fails authentication
        """
        try:
            iv = bytes.fromhex(secret.iv)
            sealed = bytes.fromhex(secret.data) + bytes.fromhex(secret.tag)
            return self._cipher.decrypt(iv, sealed, None).decode("utf-8")
        except (InvalidTag, ValueError) as e:
            logger.error(f"Failed to decrypt wallet secret: {type(e).__name__}")
            raise AdapterError("keyvault", "failed to decrypt wallet secret") from e
