# JUAKALI/backend/juakali/encryption.py : encryption of bank account numbers at rest

import base64
import hashlib
import logging
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken
from sqlalchemy import String
from sqlalchemy.types import TypeDecorator

from juakali.config import ENCRYPTION_KEY, SECRET_KEY

logger = logging.getLogger(__name__)


def _fernet_key(secret: str) -> bytes:
    # Fernet takes 32 url-safe base64 bytes; any secret is stretched to that
    return base64.urlsafe_b64encode(hashlib.sha256(secret.encode()).digest())


class AccountCipher:
    """Symmetric encryption of account numbers, keyed by ENCRYPTION_KEY."""

    def __init__(self, secret: Optional[str] = None):
        if not secret:
            secret = ENCRYPTION_KEY
        if not secret:
            logger.warning("⚠️ ENCRYPTION_KEY not configured, falling back to SECRET_KEY")
            secret = SECRET_KEY
        self._fernet = Fernet(_fernet_key(secret))

    def encrypt(self, value: str) -> str:
        return self._fernet.encrypt(value.encode()).decode()

    def decrypt(self, token: str) -> Optional[str]:
        try:
            return self._fernet.decrypt(token.encode()).decode()
        except InvalidToken:
            logger.error("❌ Could not decrypt an account number (wrong ENCRYPTION_KEY?)")
            return None


account_cipher = AccountCipher()


class EncryptedString(TypeDecorator):
    """String column stored encrypted and read back in clear."""

    impl = String
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return account_cipher.encrypt(value)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return account_cipher.decrypt(value)


def mask_account(account_number: Optional[str]) -> Optional[str]:
    if not account_number:
        return account_number
    return "*" * max(len(account_number) - 4, 0) + account_number[-4:]
