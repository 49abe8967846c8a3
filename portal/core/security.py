"""
Security utilities for password hashing, JWT session tokens and one-time tokens.

Default hashing uses ``pbkdf2_sha256``; ``bcrypt`` verification is still
supported for hashes imported from older deployments.
"""

import hashlib
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt
from passlib.context import CryptContext

from portal.core.config import settings

pwd_context = CryptContext(schemes=["pbkdf2_sha256", "bcrypt"], deprecated="auto")


def create_access_token(
    subject: str | Any,
    session_id: int,
    token_id: str,
    expires_delta: timedelta | None = None,
) -> str:
    """
    Create a JWT access token bound to a stored auth session.

    Args:
        subject: The subject (user ID) to encode in the token
        session_id: ID of the AuthSession row backing this token
        token_id: Random token identifier; only its hash is persisted
        expires_delta: Optional custom expiration time

    Returns:
        Encoded JWT token string
    """
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode = {"exp": expire, "sub": str(subject), "sid": session_id, "jti": token_id}
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> dict[str, Any] | None:
    """Decode and verify a JWT. Returns None when the signature or expiry is invalid."""
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None


def generate_token() -> str:
    """Generate a URL-safe random token (used for reset links and JWT ids)."""
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """SHA-256 hex digest of an opaque token; only digests are stored."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def verify_password(plain_password: str, hashed_password: str | None) -> bool:
    """
    Verify a plain password against a hashed password.

    Identities linked to an external provider have no local hash and never
    match.
    """
    if not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """Hash a password using the configured default scheme."""
    return pwd_context.hash(password)
