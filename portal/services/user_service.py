"""
User service layer implementing business logic for identity operations.
Separates business logic from API routes and database operations.

Methods that only stage changes (``create``, ``soft_delete``) flush without
committing so callers can bundle them with audit entries in one
transaction. Methods named after an API operation commit.
"""

import math
import time
from typing import Optional

from sqlalchemy import func, or_
from sqlmodel import Session, select

from portal.core.access import ADMINS
from portal.core.errors import NotFound, PermissionDenied, ValidationFailed
from portal.core.logging import get_logger
from portal.core.security import get_password_hash, verify_password
from portal.models.audit import AuditAction
from portal.models.base import utcnow
from portal.models.user import ClientProfile, User, UserRole
from portal.schemas.user import AdminUserCreate, AdminUserUpdate, ProfileUpdate
from portal.services.audit_service import AuditService
from portal.services.session_service import SessionService

logger = get_logger(__name__)

MIN_REGISTER_PASSWORD_LENGTH = 6
MIN_STRONG_PASSWORD_LENGTH = 8


class UserService:
    """Service class for user-related operations."""

    @staticmethod
    def get_by_email(session: Session, email: str, include_deleted: bool = False) -> Optional[User]:
        """
        Retrieve a user by email address.

        Args:
            session: Database session
            email: Email address to search for
            include_deleted: Also return soft-deleted accounts

        Returns:
            User if found, None otherwise
        """
        statement = select(User).where(func.lower(User.email) == email.lower())
        if not include_deleted:
            statement = statement.where(User.deleted_at.is_(None))  # type: ignore[union-attr]
        return session.exec(statement).first()

    @staticmethod
    def get_by_id(session: Session, user_id: int) -> Optional[User]:
        """Retrieve a live (not soft-deleted) user by ID."""
        user = session.get(User, user_id)
        if user is None or user.deleted_at is not None:
            return None
        return user

    @staticmethod
    def get_client_profile(session: Session, user_id: int) -> Optional[ClientProfile]:
        return session.exec(select(ClientProfile).where(ClientProfile.user_id == user_id)).first()

    @staticmethod
    def next_client_number(session: Session) -> str:
        candidate = int(time.time() * 1000)
        while session.exec(
            select(ClientProfile.id).where(ClientProfile.client_number == f"CLT{candidate}")
        ).first():
            candidate += 1
        return f"CLT{candidate}"

    @staticmethod
    def create(
        session: Session,
        email: str,
        password: Optional[str],
        full_name: str,
        role: UserRole = UserRole.CLIENT,
        phone: Optional[str] = None,
        branch_id: Optional[int] = None,
        company_name: Optional[str] = None,
        address: Optional[str] = None,
    ) -> User:
        """
        Stage a new user with hashed password.
        CLIENT users also get a linked client profile.

        Returns:
            Created user instance (flushed, not committed)
        """
        db_user = User(
            email=email,
            hashed_password=get_password_hash(password) if password else None,
            full_name=full_name,
            role=role,
            phone=phone,
            branch_id=branch_id if role == UserRole.STAFF else None,
            email_verified_at=utcnow(),
        )
        session.add(db_user)
        session.flush()

        if role == UserRole.CLIENT:
            session.add(
                ClientProfile(
                    user_id=db_user.id,  # type: ignore[arg-type]
                    client_number=UserService.next_client_number(session),
                    company_name=company_name,
                    address=address,
                )
            )
            session.flush()
        return db_user

    @staticmethod
    def register(session: Session, name: Optional[str], email: Optional[str], password: Optional[str]) -> User:
        """
        Self-service registration. Always creates a CLIENT.

        Raises:
            ValidationFailed: on missing fields, short password or duplicate email
        """
        if not name or not email or not password:
            raise ValidationFailed("Name, email and password are required")
        if len(password) < MIN_REGISTER_PASSWORD_LENGTH:
            raise ValidationFailed(f"Password must be at least {MIN_REGISTER_PASSWORD_LENGTH} characters")
        if UserService.get_by_email(session, email, include_deleted=True):
            raise ValidationFailed("Email already registered")

        user = UserService.create(session, email=email, password=password, full_name=name, role=UserRole.CLIENT)
        AuditService.record(
            session,
            AuditAction.REGISTER,
            "USER",
            user.id,
            user_id=user.id,
            details={"email": email, "name": name, "role": UserRole.CLIENT.value},
        )
        session.commit()
        session.refresh(user)
        logger.info(f"New user registered: {user.email} (ID: {user.id})")
        return user

    @staticmethod
    def authenticate(session: Session, email: str, password: str) -> Optional[User]:
        """
        Authenticate a user by email and password.

        Returns:
            User if authentication successful, None otherwise
        """
        user = UserService.get_by_email(session, email)
        if not user:
            return None
        if not verify_password(password, user.hashed_password):
            return None
        if not user.is_active:
            return None
        return user

    @staticmethod
    def is_admin(user: User) -> bool:
        return user.role in ADMINS

    @staticmethod
    def super_admin_exists(session: Session) -> bool:
        return (
            session.exec(
                select(User.id).where(
                    User.role == UserRole.SUPER_ADMIN,
                    User.deleted_at.is_(None),  # type: ignore[union-attr]
                )
            ).first()
            is not None
        )

    @staticmethod
    def setup_super_admin(
        session: Session,
        name: Optional[str],
        email: Optional[str],
        password: Optional[str],
        phone: Optional[str] = None,
    ) -> User:
        """First-run creation of the SUPER_ADMIN account."""
        if UserService.super_admin_exists(session):
            raise ValidationFailed("Setup already completed. A super admin exists.")
        if not name or not email or not password:
            raise ValidationFailed("Name, email and password are required")
        if len(password) < MIN_STRONG_PASSWORD_LENGTH:
            raise ValidationFailed(f"Password must be at least {MIN_STRONG_PASSWORD_LENGTH} characters")
        if UserService.get_by_email(session, email, include_deleted=True):
            raise ValidationFailed("Email already registered")

        user = UserService.create(
            session, email=email, password=password, full_name=name, role=UserRole.SUPER_ADMIN, phone=phone
        )
        AuditService.record(
            session,
            AuditAction.SETUP,
            "USER",
            user.id,
            user_id=user.id,
            details={"email": email, "name": name, "role": UserRole.SUPER_ADMIN.value},
        )
        session.commit()
        session.refresh(user)
        logger.info(f"Super admin created through setup: {user.email}")
        return user

    @staticmethod
    def change_password(session: Session, user: User, current_password: Optional[str], new_password: Optional[str]) -> None:
        if not current_password or not new_password:
            raise ValidationFailed("Current and new password are required")
        if len(new_password) < MIN_STRONG_PASSWORD_LENGTH:
            raise ValidationFailed(f"Password must be at least {MIN_STRONG_PASSWORD_LENGTH} characters")
        if not verify_password(current_password, user.hashed_password):
            raise ValidationFailed("Current password is incorrect")

        user.hashed_password = get_password_hash(new_password)
        user.updated_at = utcnow()
        session.add(user)
        AuditService.record(session, AuditAction.PASSWORD_CHANGE, "USER", user.id, user_id=user.id)
        session.commit()

    @staticmethod
    def update_profile(session: Session, user: User, data: ProfileUpdate) -> User:
        """
        Apply a self-service profile edit.

        A CLIENT without a client profile gets one created, so the client
        fields always land somewhere.
        """
        changes = data.model_dump(exclude_unset=True)
        if "name" in changes:
            user.full_name = changes["name"]
        for field in ("phone", "avatar_url"):
            if field in changes:
                setattr(user, field, changes[field])
        if user.role == UserRole.STAFF and "position" in changes:
            user.position = changes["position"]
        user.updated_at = utcnow()
        session.add(user)

        if user.role == UserRole.CLIENT:
            profile = UserService.get_client_profile(session, user.id)  # type: ignore[arg-type]
            if profile is None:
                profile = ClientProfile(user_id=user.id, client_number=UserService.next_client_number(session))  # type: ignore[arg-type]
            for field in ("company_name", "address", "id_number"):
                if field in changes:
                    setattr(profile, field, changes[field])
            session.add(profile)

        AuditService.record(
            session,
            AuditAction.UPDATE_PROFILE,
            "USER",
            user.id,
            user_id=user.id,
            details=data.model_dump(mode="json", exclude_unset=True),
        )
        session.commit()
        session.refresh(user)
        return user

    # ---- admin panel ----

    @staticmethod
    def list_users(
        session: Session,
        actor: User,
        page: int = 1,
        limit: int = 10,
        search: Optional[str] = None,
        role: Optional[UserRole] = None,
    ) -> tuple[list[User], int, int]:
        """
        Paginated user list for the admin panel. ADMINs never see SUPER_ADMINs.

        Returns:
            ``(users, total, total_pages)``
        """
        conditions = [User.deleted_at.is_(None)]  # type: ignore[union-attr]
        if search:
            pattern = f"%{search.lower()}%"
            conditions.append(or_(func.lower(User.full_name).like(pattern), func.lower(User.email).like(pattern)))
        if role is not None:
            conditions.append(User.role == role)
        if actor.role == UserRole.ADMIN:
            conditions.append(User.role != UserRole.SUPER_ADMIN)

        statement = (
            select(User)
            .where(*conditions)
            .order_by(User.created_at.desc(), User.id.desc())  # type: ignore[union-attr]
            .offset((page - 1) * limit)
            .limit(limit)
        )
        users = list(session.exec(statement).all())
        total = int(session.exec(select(func.count()).select_from(User).where(*conditions)).one())
        return users, total, math.ceil(total / limit) if limit else 0

    @staticmethod
    def get_visible(session: Session, actor: User, user_id: int) -> User:
        user = UserService.get_by_id(session, user_id)
        if user is None or (actor.role == UserRole.ADMIN and user.role == UserRole.SUPER_ADMIN):
            raise NotFound("User not found")
        return user

    @staticmethod
    def admin_create(session: Session, actor: User, data: AdminUserCreate) -> User:
        if not data.email or not data.name or not data.password or not data.role:
            raise ValidationFailed("Email, name, password and role are required")
        if actor.role == UserRole.ADMIN and data.role == UserRole.SUPER_ADMIN:
            raise PermissionDenied("Cannot create SUPER_ADMIN")
        if len(data.password) < MIN_REGISTER_PASSWORD_LENGTH:
            raise ValidationFailed(f"Password must be at least {MIN_REGISTER_PASSWORD_LENGTH} characters")
        if UserService.get_by_email(session, data.email, include_deleted=True):
            raise ValidationFailed("Email already exists")

        user = UserService.create(
            session,
            email=data.email,
            password=data.password,
            full_name=data.name,
            role=data.role,
            phone=data.phone,
            branch_id=data.branch_id,
            company_name=data.company_name,
            address=data.address,
        )
        AuditService.record(
            session,
            AuditAction.CREATE,
            "USER",
            user.id,
            user_id=actor.id,
            details={"email": data.email, "name": data.name, "role": data.role.value},
        )
        session.commit()
        session.refresh(user)
        logger.info(f"User {user.id} created by {actor.id} with role {user.role.value}")
        return user

    @staticmethod
    def active_super_admin_count(session: Session) -> int:
        return int(
            session.exec(
                select(func.count())
                .select_from(User)
                .where(
                    User.role == UserRole.SUPER_ADMIN,
                    User.is_active.is_(True),  # type: ignore[attr-defined]
                    User.deleted_at.is_(None),  # type: ignore[union-attr]
                )
            ).one()
        )

    @staticmethod
    def _guard_last_super_admin(session: Session, target: User, message: str) -> None:
        if target.role == UserRole.SUPER_ADMIN and target.is_active and UserService.active_super_admin_count(session) <= 1:
            raise PermissionDenied(message)

    @staticmethod
    def admin_update(session: Session, actor: User, user_id: int, data: AdminUserUpdate) -> User:
        """
        Admin edit of another account.

        Nobody deactivates themselves, and the last active SUPER_ADMIN can be
        neither deactivated nor demoted.
        """
        target = UserService.get_visible(session, actor, user_id)

        if data.role is not None and target.id == actor.id and data.role != actor.role:
            raise PermissionDenied("Cannot change your own role")
        if actor.role == UserRole.ADMIN and (
            target.role == UserRole.SUPER_ADMIN or data.role == UserRole.SUPER_ADMIN
        ):
            raise PermissionDenied("Cannot modify SUPER_ADMIN")
        if data.is_active is False and target.id == actor.id:
            raise PermissionDenied("Cannot deactivate your own account")
        if data.is_active is False or (data.role is not None and data.role != UserRole.SUPER_ADMIN):
            UserService._guard_last_super_admin(session, target, "Cannot deactivate or demote the last SUPER_ADMIN")
        if data.email and data.email.lower() != target.email.lower():
            if UserService.get_by_email(session, data.email, include_deleted=True):
                raise ValidationFailed("Email already exists")
            target.email = data.email
        if data.password is not None:
            if len(data.password) < MIN_REGISTER_PASSWORD_LENGTH:
                raise ValidationFailed(f"Password must be at least {MIN_REGISTER_PASSWORD_LENGTH} characters")
            target.hashed_password = get_password_hash(data.password)

        previous_role = target.role
        if data.name:
            target.full_name = data.name
        if data.phone is not None:
            target.phone = data.phone
        if data.is_active is not None:
            target.is_active = data.is_active
        if data.role is not None:
            target.role = data.role
        if data.branch_id is not None or data.role is not None:
            target.branch_id = (data.branch_id or target.branch_id) if target.role == UserRole.STAFF else None
        target.updated_at = utcnow()
        session.add(target)

        if target.role == UserRole.CLIENT:
            profile = UserService.get_client_profile(session, target.id)  # type: ignore[arg-type]
            if profile is None:
                profile = ClientProfile(user_id=target.id, client_number=UserService.next_client_number(session))  # type: ignore[arg-type]
            if data.company_name is not None:
                profile.company_name = data.company_name
            if data.address is not None:
                profile.address = data.address
            session.add(profile)

        if data.is_active is False:
            SessionService.revoke_all_for_user(session, target.id)  # type: ignore[arg-type]

        AuditService.record(
            session,
            AuditAction.UPDATE,
            "USER",
            target.id,
            user_id=actor.id,
            details={
                "name": data.name,
                "email": data.email,
                "role": target.role.value,
                "previous_role": previous_role.value,
            },
        )
        session.commit()
        session.refresh(target)
        return target

    @staticmethod
    def soft_delete(session: Session, actor: User, user_id: int) -> None:
        target = UserService.get_visible(session, actor, user_id)
        UserService._guard_last_super_admin(session, target, "Cannot delete the last SUPER_ADMIN")

        target.deleted_at = utcnow()
        target.is_active = False
        session.add(target)
        SessionService.revoke_all_for_user(session, target.id)  # type: ignore[arg-type]
        AuditService.record(session, AuditAction.DELETE, "USER", target.id, user_id=actor.id)
        session.commit()
        logger.info(f"User {target.id} soft-deleted by {actor.id}")
