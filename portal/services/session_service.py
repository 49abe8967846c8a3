"""
Auth session lifecycle: issuing, resolving and revoking signed-in sessions.

A login stores an ``AuthSession`` row holding the SHA-256 of a random token
id and returns a JWT carrying the user id, the session id and that token id.
Resolving a credential checks the signature, the stored hash, expiry,
revocation and the state of the user account. Any failure resolves to
``None``; callers decide whether that means 401 or a redirect.
"""

from datetime import datetime, timedelta
from typing import Optional

from fastapi import Request
from sqlmodel import Session, select

from portal.core.config import settings
from portal.core.logging import get_logger
from portal.core.security import create_access_token, decode_access_token, generate_token, hash_token
from portal.models.base import as_utc, utcnow
from portal.models.user import AuthSession, User

logger = get_logger(__name__)


def extract_token(request: Request) -> Optional[str]:
    """Read the session credential from the cookie, falling back to a Bearer header."""
    token = request.cookies.get(settings.SESSION_COOKIE_NAME)
    if token:
        return token
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        return None
    if auth_header.lower().startswith("bearer "):
        return auth_header[7:].strip() or None
    return None


def client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real = request.headers.get("x-real-ip")
    if real:
        return real
    return request.client.host if request.client else None


class SessionService:
    """Service class for auth session operations."""

    @staticmethod
    def issue(
        session: Session,
        user: User,
        user_agent: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> str:
        """
        Create an auth session for ``user`` and return its JWT.

        The row is flushed, not committed; the caller commits.
        """
        token_id = generate_token()
        expires_at = utcnow() + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
        auth_session = AuthSession(
            user_id=user.id,  # type: ignore[arg-type]
            token_hash=hash_token(token_id),
            expires_at=expires_at,
            user_agent=(user_agent or "")[:512] or None,
            ip_address=ip_address,
        )
        session.add(auth_session)
        session.flush()
        return create_access_token(
            subject=user.id,
            session_id=auth_session.id,  # type: ignore[arg-type]
            token_id=token_id,
            expires_delta=expires_at - utcnow(),
        )

    @staticmethod
    def load(session: Session, token: Optional[str]) -> Optional[AuthSession]:
        """Return the live AuthSession behind ``token``, or None."""
        if not token:
            return None

        payload = decode_access_token(token)
        if payload is None:
            logger.warning("Session token failed signature or expiry validation")
            return None

        try:
            session_id = int(payload["sid"])
            user_id = int(payload["sub"])
            token_id = str(payload["jti"])
        except (KeyError, TypeError, ValueError):
            logger.warning("Session token is missing required claims")
            return None

        auth_session = session.get(AuthSession, session_id)
        if auth_session is None or auth_session.user_id != user_id:
            logger.warning(f"Session {session_id} not found for user {user_id}")
            return None
        if auth_session.token_hash != hash_token(token_id):
            logger.warning(f"Session {session_id} token hash mismatch")
            return None
        if auth_session.revoked_at is not None:
            return None
        if as_utc(auth_session.expires_at) <= utcnow():  # type: ignore[operator]
            return None
        return auth_session

    @staticmethod
    def resolve(session: Session, token: Optional[str]) -> Optional[User]:
        """
        Resolve request credentials to an identity.

        Args:
            session: Database session
            token: Raw credential (JWT) from cookie or header

        Returns:
            The signed-in user, or None for any missing, malformed, expired
            or revoked credential, or a deleted or inactive account
        """
        auth_session = SessionService.load(session, token)
        if auth_session is None:
            return None

        user = session.get(User, auth_session.user_id)
        if user is None or user.deleted_at is not None or not user.is_active:
            return None
        return user

    @staticmethod
    def revoke(session: Session, auth_session: AuthSession, when: Optional[datetime] = None) -> None:
        auth_session.revoked_at = when or utcnow()
        session.add(auth_session)

    @staticmethod
    def revoke_all_for_user(session: Session, user_id: int) -> int:
        """Revoke every live session of a user. Returns how many were revoked."""
        now = utcnow()
        live = session.exec(
            select(AuthSession).where(
                AuthSession.user_id == user_id,
                AuthSession.revoked_at.is_(None),  # type: ignore[union-attr]
            )
        ).all()
        for auth_session in live:
            SessionService.revoke(session, auth_session, now)
        return len(live)
