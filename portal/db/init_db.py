"""
Schema creation and first-run bootstrap.
"""

from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, select

# Importing the model modules registers every table on SQLModel.metadata.
from portal.models import appointment, audit, chat, content, document, invoice, license, user  # noqa: F401
from portal.core.config import settings
from portal.core.logging import get_logger
from portal.models.user import User, UserRole

logger = get_logger(__name__)


def create_db_and_tables(engine: Engine) -> None:
    SQLModel.metadata.create_all(engine)


def bootstrap_superuser(engine: Engine) -> None:
    """
    Create the configured SUPER_ADMIN when no live one exists.

    Deployments that prefer the interactive ``/setup`` flow set
    ``DISABLE_BOOTSTRAP_USERS=true``.
    """
    from portal.services.user_service import UserService

    with Session(engine) as session:
        existing = session.exec(
            select(User).where(User.role == UserRole.SUPER_ADMIN, User.deleted_at.is_(None))  # type: ignore[union-attr]
        ).first()
        if existing:
            return

        if UserService.get_by_email(session, settings.FIRST_SUPERUSER_EMAIL, include_deleted=True):
            logger.warning(
                f"Bootstrap email {settings.FIRST_SUPERUSER_EMAIL} is taken by a non-super-admin account; skipping"
            )
            return

        logger.info("Creating first superuser...")
        UserService.create(
            session,
            email=settings.FIRST_SUPERUSER_EMAIL,
            password=settings.FIRST_SUPERUSER_PASSWORD,
            full_name="Super Admin",
            role=UserRole.SUPER_ADMIN,
        )
        session.commit()
        logger.info(f"Superuser created: {settings.FIRST_SUPERUSER_EMAIL}")
