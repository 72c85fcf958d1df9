"""Symmetric encryption of clinical note text."""

from typing import Optional
from cryptography.fernet import Fernet, InvalidToken

from app.config import settings
from app.core.logging import logger
from app.shared.exceptions import CipherError


class CipherService:
    """
    Encrypts and decrypts note text with Fernet.

    Fernet tokens embed a random IV and a timestamp, so encrypting the same
    plaintext twice yields different ciphertexts.
    """

    def __init__(self, key: Optional[str] = None):
        key = key if key is not None else settings.ENCRYPTION_KEY
        try:
            self._fernet = Fernet(key.encode("utf-8") if isinstance(key, str) else key)
        except (ValueError, TypeError) as e:
            raise CipherError("Invalid encryption key", e) from e

    @staticmethod
    def generate_key() -> str:
        """Generate a new key suitable for ENCRYPTION_KEY."""
        return Fernet.generate_key().decode("utf-8")

    def encrypt(self, plaintext: str) -> str:
        try:
            return self._fernet.encrypt(plaintext.encode("utf-8")).decode("utf-8")
        except (TypeError, AttributeError) as e:
            logger.error(f"Failed to encrypt note text: {e}")
            raise CipherError("Failed to encrypt note", e) from e

    def decrypt(self, ciphertext: str) -> str:
        try:
            return self._fernet.decrypt(ciphertext.encode("utf-8")).decode("utf-8")
        except (InvalidToken, TypeError, AttributeError, UnicodeDecodeError) as e:
            logger.error(f"Failed to decrypt note text: {type(e).__name__}")
            raise CipherError("Failed to decrypt note", e) from e
