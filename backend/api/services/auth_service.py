"""Session token signing and password hashing"""

import base64
import hashlib
import logging
import secrets
from datetime import UTC, datetime, timedelta

import jwt

logger = logging.getLogger(__name__)

_PBKDF2_ITERATIONS = 200_000
_SALT_BYTES = 16
_KEY_BYTES = 32


def hash_password(password: str) -> str:
    """Return a salted PBKDF2-SHA256 hash as base64(salt + key)."""
    salt = secrets.token_bytes(_SALT_BYTES)
    dk = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, _PBKDF2_ITERATIONS)
    return base64.b64encode(salt + dk).decode("ascii")


def verify_password(password: str, stored: str) -> bool:
    try:
        raw = base64.b64decode(stored.encode("ascii"), validate=True)
    except (ValueError, UnicodeEncodeError):
        return False
    if len(raw) != _SALT_BYTES + _KEY_BYTES:
        return False
    salt, stored_key = raw[:_SALT_BYTES], raw[_SALT_BYTES:]
    new_key = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, _PBKDF2_ITERATIONS)
    return secrets.compare_digest(new_key, stored_key)


class AuthService:
    """Handle session cookie token creation and validation.

    The token only proves which session the browser holds; whether that
    session is still alive is decided by ``SessionStore``.
    """

    def __init__(self, secret_key: str, algorithm: str = "HS256", ttl_seconds: int = 86400):
        if not secret_key:
            raise ValueError("Session secret key cannot be empty")

        self.secret_key = secret_key
        self.algorithm = algorithm
        self.ttl_seconds = ttl_seconds

    def create_session_token(self, account_id: int, session_id: str) -> str:
        """Create a signed token binding *session_id* to *account_id*"""
        now = datetime.now(UTC)

        payload = {
            "sub": str(account_id),
            "sid": session_id,
            "exp": now + timedelta(seconds=self.ttl_seconds),
            "iat": now,
        }

        token = jwt.encode(payload, self.secret_key, algorithm=self.algorithm)
        logger.debug(f"Session token created for account: {account_id}")

        return token

    def verify_token(self, token: str) -> dict | None:
        """Verify a session token and return the payload if valid"""
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError:
            logger.warning("Session token expired")
            return None
        except jwt.InvalidTokenError as e:
            logger.warning(f"Invalid session token: {e}")
            return None

        if payload.get("sub") is None or payload.get("sid") is None:
            logger.warning("Session token missing sub/sid")
            return None

        return payload
