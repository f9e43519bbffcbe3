# creator_match/infrastructure/crypto.py
from typing import Optional

import structlog
from cryptography.fernet import Fernet, InvalidToken

logger = structlog.get_logger(__name__)


class TokenCipher:
    """Encrypts provider access tokens before they are written to the store."""

    def __init__(self, key: Optional[str] = None):
        if not key:
            # dev fallback (not for production): tokens become unreadable after restart
            logger.warning("oauth_token_key_missing_using_ephemeral_key")
            key = Fernet.generate_key().decode()
        self.fernet = Fernet(key.encode())

    def encrypt(self, plaintext: Optional[str]) -> Optional[str]:
        if plaintext is None:
            return None
        return self.fernet.encrypt(plaintext.encode()).decode()

    def decrypt(self, ciphertext: Optional[str]) -> Optional[str]:
        if not ciphertext:
            return None
        try:
            return self.fernet.decrypt(ciphertext.encode()).decode()
        except InvalidToken:
            logger.warning("oauth_token_decrypt_failed")
            return None
