# social_publisher/infrastructure/security.py
from typing import Any, Dict, Optional

import structlog
from cryptography.fernet import Fernet, InvalidToken
from jose import jwt, JWTError

from social_publisher.config import Settings

logger = structlog.get_logger(__name__)


# --- OAuth token encryption ---
class TokenCipher:
    """Fernet wrapper for platform tokens stored at rest."""

    def __init__(self, key: Optional[str] = None):
        if not key:
            # dev fallback (not for production): tokens won't survive a restart
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


# --- JWT verification (tokens are issued by the auth service) ---
def decode_token(token: str, settings: Settings) -> Dict[str, Any]:
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError as e:
        logger.warning("token_decode_failed", error=str(e))
        raise
