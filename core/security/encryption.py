"""
Fernet encryption for third-party credentials stored at rest (page access tokens).
"""

import base64
import hashlib

from cryptography.fernet import Fernet, InvalidToken


class CredentialDecryptionError(ValueError):
    """Stored credential could not be decrypted with the current secret key."""


class CredentialCipher:
    """Symmetric cipher keyed from the application secret."""

    def __init__(self, secret_key: str):
        # Fernet needs a 32-byte urlsafe base64 key; derive one from the secret
        key_bytes = hashlib.sha256(secret_key.encode()).digest()
        self._fernet = Fernet(base64.urlsafe_b64encode(key_bytes))

    def encrypt(self, value: str) -> str:
        if not value:
            return ""
        return self._fernet.encrypt(value.encode()).decode()

    def decrypt(self, encrypted_value: str) -> str:
        if not encrypted_value:
            return ""
        try:
            return self._fernet.decrypt(encrypted_value.encode()).decode()
        except InvalidToken as e:
            raise CredentialDecryptionError("Failed to decrypt credential") from e


def encrypt_credential(value: str, secret_key: str) -> str:
    """Encrypt a credential value with a key derived from *secret_key*."""
    return CredentialCipher(secret_key).encrypt(value)


def decrypt_credential(encrypted_value: str, secret_key: str) -> str:
    """
    Decrypt a credential value.

    Raises:
        CredentialDecryptionError: If the value was encrypted with another key
    """
    return CredentialCipher(secret_key).decrypt(encrypted_value)
