"""
Token encryption — OAuth tokens are stored as Fernet ciphertext.

The key comes from ``config.token_encryption_key`` (env var
``TOKEN_ENCRYPTION_KEY``).  Without a key, tokens are stored as plaintext
and a warning is logged once.  Generate a key with::

    python -c "from cryptography.fernet import Fernet; print(Fernet.generate_key().decode())"
"""

from __future__ import annotations

import logging
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken

from config.settings import config

logger = logging.getLogger(__name__)


class TokenCipher:
    """Encrypts/decrypts token strings; a no-op when no key is given."""

    def __init__(self, key: Optional[str]) -> None:
        self._fernet: Optional[Fernet] = None
        if not key:
            logger.warning(
                "TOKEN_ENCRYPTION_KEY not set; OAuth tokens will be stored as plaintext"
            )
            return
        try:
            self._fernet = Fernet(key.encode())
            logger.info("Token encryption enabled (Fernet)")
        except ValueError as exc:
            logger.error("Invalid TOKEN_ENCRYPTION_KEY, storing plaintext: %s", exc)

    @property
    def enabled(self) -> bool:
        return self._fernet is not None

    def encrypt(self, plaintext: str) -> str:
        if self._fernet is None:
            return plaintext
        return self._fernet.encrypt(plaintext.encode()).decode()

    def decrypt(self, ciphertext: str) -> str:
        """
        Rows written before encryption was switched on are not valid Fernet
        tokens and are returned unchanged.
        """
        if self._fernet is None:
            return ciphertext
        try:
            return self._fernet.decrypt(ciphertext.encode()).decode()
        except InvalidToken:
            return ciphertext


_cipher: Optional[TokenCipher] = None


def get_cipher() -> TokenCipher:
    """Lazy-initialise the process-wide cipher once."""
    global _cipher
    if _cipher is None:
        _cipher = TokenCipher(config.token_encryption_key)
    return _cipher


def encrypt_token(plaintext: Optional[str]) -> Optional[str]:
    if plaintext is None:
        return None
    return get_cipher().encrypt(plaintext)


def decrypt_token(ciphertext: Optional[str]) -> Optional[str]:
    if ciphertext is None:
        return None
    return get_cipher().decrypt(ciphertext)
