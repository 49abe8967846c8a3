"""
Sign-in, sign-out and password recovery.
"""

from datetime import timedelta
from typing import Optional

from sqlalchemy import update
from sqlmodel import Session, select

from portal.core.config import settings
from portal.core.errors import NotAuthenticated, PermissionDenied, ValidationFailed
from portal.core.logging import get_logger
from portal.core.security import generate_token, get_password_hash, hash_token
from portal.models.audit import AuditAction
from portal.models.base import utcnow
from portal.models.user import AuthSession, PasswordResetToken, User
from portal.services.audit_service import AuditService
from portal.services.license_service import LicenseService
from portal.services.session_service import SessionService
from portal.services.user_service import MIN_STRONG_PASSWORD_LENGTH, UserService
from portal.workers.queue import enqueue_task
from portal.workers.tasks import send_password_reset_email_task

logger = get_logger(__name__)

FORGOT_PASSWORD_MESSAGE = "If the email is registered, a password reset link has been sent"
INVALID_RESET_TOKEN_MESSAGE = "Token is invalid or has expired"


class AuthService:
    @staticmethod
    def login(
        session: Session,
        email: str,
        password: str,
        user_agent: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> tuple[User, str]:
        """
        Check credentials and open an auth session.

        Returns:
            ``(user, access_token)``

        Raises:
            NotAuthenticated: wrong credentials, deleted or inactive account
            PermissionDenied: the role may not sign in without an active license
        """
        user = UserService.authenticate(session, email=email, password=password)
        if not user:
            logger.warning(f"Failed login attempt for email: {email}")
            raise NotAuthenticated("Incorrect email or password")

        if not LicenseService.is_role_allowed_to_login(session, user.role):
            logger.warning(f"Login refused for {email}: no active license")
            raise PermissionDenied("No active license. Only the super admin can sign in.")

        token = SessionService.issue(session, user, user_agent=user_agent, ip_address=ip_address)
        AuditService.record(session, AuditAction.LOGIN, "USER", user.id, user_id=user.id, ip_address=ip_address)
        session.commit()
        logger.info(f"User logged in: {user.email} (ID: {user.id})")
        return user, token

    @staticmethod
    def logout(session: Session, token: Optional[str]) -> None:
        auth_session: Optional[AuthSession] = SessionService.load(session, token)
        if auth_session is None:
            return
        SessionService.revoke(session, auth_session)
        AuditService.record(session, AuditAction.LOGOUT, "USER", auth_session.user_id, user_id=auth_session.user_id)
        session.commit()

    @staticmethod
    def request_password_reset(session: Session, email: Optional[str]) -> None:
        """
        Issue a reset token and queue the email.

        The outcome is identical whether or not the address belongs to an
        account, so the endpoint cannot be used to probe for users.
        """
        if not email:
            raise ValidationFailed("Email is required")

        user = UserService.get_by_email(session, email)
        if user is None or not user.is_active:
            logger.info("Password reset requested for unknown or inactive email")
            return

        token = generate_token()
        session.add(
            PasswordResetToken(
                user_id=user.id,  # type: ignore[arg-type]
                token_hash=hash_token(token),
                expires_at=utcnow() + timedelta(minutes=settings.PASSWORD_RESET_EXPIRE_MINUTES),
            )
        )
        session.commit()

        enqueue_task(send_password_reset_email_task, to=user.email, token=token)
        logger.info(f"Password reset token issued for user {user.id}")

    @staticmethod
    def reset_password(session: Session, token: Optional[str], password: Optional[str]) -> User:
        """
        Consume a reset token and set a new password.

        The password update, token consumption and revocation of the user's
        open sessions commit as one transaction.

        Raises:
            ValidationFailed: missing fields, short password, or an unknown,
                expired or already consumed token
        """
        if not token or not password:
            raise ValidationFailed("Token and password are required")
        if len(password) < MIN_STRONG_PASSWORD_LENGTH:
            raise ValidationFailed(f"Password must be at least {MIN_STRONG_PASSWORD_LENGTH} characters")

        now = utcnow()
        reset = session.exec(
            select(PasswordResetToken).where(
                PasswordResetToken.token_hash == hash_token(token),
                PasswordResetToken.consumed_at.is_(None),  # type: ignore[union-attr]
                PasswordResetToken.expires_at > now,
            )
        ).first()
        if reset is None:
            raise ValidationFailed(INVALID_RESET_TOKEN_MESSAGE)

        user = UserService.get_by_id(session, reset.user_id)
        if user is None:
            raise ValidationFailed(INVALID_RESET_TOKEN_MESSAGE)

        try:
            # claims the token only while it is still unconsumed
            claimed = session.connection().execute(
                update(PasswordResetToken)
                .where(
                    PasswordResetToken.id == reset.id,
                    PasswordResetToken.consumed_at.is_(None),  # type: ignore[union-attr]
                )
                .values(consumed_at=now)
            )
            if claimed.rowcount != 1:
                raise ValidationFailed(INVALID_RESET_TOKEN_MESSAGE)

            user.hashed_password = get_password_hash(password)
            user.updated_at = now
            session.add(user)
            SessionService.revoke_all_for_user(session, user.id)  # type: ignore[arg-type]
            AuditService.record(session, AuditAction.PASSWORD_RESET, "USER", user.id, user_id=user.id)
            session.commit()
        except Exception:
            session.rollback()
            raise

        logger.info(f"Password reset completed for user {user.id}")
        return user
