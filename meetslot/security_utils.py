"""
Security Utilities
Token encryption for stored OAuth credentials and signed, time-limited tokens
"""

import base64
import hashlib
import logging
import secrets
from typing import Any, Optional

from cryptography.fernet import Fernet
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from .config import SECRET_KEY

logger = logging.getLogger(__name__)


# ============================================================================
# TOKEN ENCRYPTION
# ============================================================================


def get_cipher() -> Fernet:
    """Fernet cipher keyed from SECRET_KEY (any length secret is accepted)"""
    key = base64.urlsafe_b64encode(hashlib.sha256(SECRET_KEY.encode()).digest())
    return Fernet(key)


def encrypt_token(value: str) -> str:
    return get_cipher().encrypt(value.encode()).decode()


def decrypt_token(value: str) -> str:
    return get_cipher().decrypt(value.encode()).decode()


# ============================================================================
# TOKEN GENERATION
# ============================================================================


def generate_secure_token(length: int = 32) -> str:
    """Generate a cryptographically secure random token"""
    return secrets.token_urlsafe(length)


def generate_timed_token(data: dict[str, Any], salt: str = "security-token") -> str:
    """
    Generate a signed token using itsdangerous.
    Used as the OAuth ``state`` parameter so callbacks can't be forged.
    """
    serializer = URLSafeTimedSerializer(SECRET_KEY)
    return serializer.dumps(data, salt=salt)


def verify_timed_token(
    token: str, max_age: int = 3600, salt: str = "security-token"
) -> Optional[dict[str, Any]]:
    """
    Verify and decode a timed token

    Returns:
        Decoded data if valid, None if invalid or expired
    """
    serializer = URLSafeTimedSerializer(SECRET_KEY)
    try:
        return serializer.loads(token, salt=salt, max_age=max_age)
    except SignatureExpired:
        logger.warning("Token expired")
        return None
    except BadSignature:
        logger.warning("Invalid token signature")
        return None

