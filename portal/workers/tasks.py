"""
Background tasks executed by the RQ worker.

Run a worker with ``rq worker emails``.
"""

import smtplib
from email.message import EmailMessage
from typing import Any

from portal.core.config import settings
from portal.core.logging import get_logger

logger = get_logger(__name__)


def send_email_task(to: str, subject: str, body: str) -> dict[str, Any]:
    """
    Deliver a plain-text email over SMTP.

    Without SMTP_HOST configured the message is only logged, which keeps
    local development free of mail infrastructure.

    Args:
        to: Recipient email address
        subject: Email subject
        body: Email body

    Returns:
        Task result dictionary
    """
    if not settings.SMTP_HOST:
        logger.info(f"SMTP not configured; email to {to} not sent: {subject}")
        return {"to": to, "subject": subject, "status": "skipped"}

    message = EmailMessage()
    message["From"] = settings.EMAIL_FROM
    message["To"] = to
    message["Subject"] = subject
    message.set_content(body)

    with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=30) as smtp:
        if settings.SMTP_USE_TLS:
            smtp.starttls()
        if settings.SMTP_USER and settings.SMTP_PASSWORD:
            smtp.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
        smtp.send_message(message)

    logger.info(f"Email sent to {to}: {subject}")
    return {"to": to, "subject": subject, "status": "sent"}


def send_password_reset_email_task(to: str, token: str) -> dict[str, Any]:
    """Send the password reset link for ``token``."""
    reset_url = f"{settings.APP_URL.rstrip('/')}/reset-password?token={token}"
    body = (
        "We received a request to reset the password for your client portal account.\n\n"
        f"Open this link to choose a new password:\n{reset_url}\n\n"
        f"The link expires in {settings.PASSWORD_RESET_EXPIRE_MINUTES} minutes. "
        "If you did not ask for a reset you can ignore this email."
    )
    return send_email_task(to=to, subject="Reset your password", body=body)
