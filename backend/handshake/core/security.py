"""
Security helpers: state token generation, secrets at rest, access token decoding
"""
from typing import Optional, Dict, Any
import hashlib
import logging
import secrets

import jwt
from cryptography.fernet import Fernet, InvalidToken

from handshake.core.config import settings

logger = logging.getLogger(__name__)


def random_state(n: int) -> str:
    """
    Return a random state parameter: the sha256 hex digest of ``n`` random bytes.

    The digest is always 64 lowercase hex characters whatever ``n`` is, so
    callers can reject malformed state by length alone.
    """
    data = secrets.token_bytes(n)
    return hashlib.sha256(data).hexdigest()


class SecretCipher:
    """
    Encrypts secrets for storage with Fernet. Built once at startup from
    ``SECRETS_ENCRYPTION_KEY``; without a key values are stored as-is.
    """

    def __init__(self, key: Optional[str] = None):
        # Fernet raises ValueError on a malformed key
        self._fernet = Fernet(key.encode("utf-8")) if key else None

    @property
    def enabled(self) -> bool:
        return self._fernet is not None

    def encrypt(self, value: Optional[str]) -> Optional[str]:
        if value is None or self._fernet is None:
            return value
        return self._fernet.encrypt(value.encode("utf-8")).decode("utf-8")

    def decrypt(self, value: Optional[str]) -> Optional[str]:
        if value is None or self._fernet is None:
            return value
        try:
            return self._fernet.decrypt(value.encode("utf-8")).decode("utf-8")
        except InvalidToken as e:
            raise ValueError("Stored secret could not be decrypted with SECRETS_ENCRYPTION_KEY") from e


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """Decode and verify an access token. Returns None when it is invalid."""
    if not settings.JWT_SECRET_KEY:
        logger.warning("JWT_SECRET_KEY is not set; rejecting access token")
        return None
    try:
        return jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except jwt.PyJWTError as e:
        logger.debug(f"Access token rejected: {e}")
        return None
