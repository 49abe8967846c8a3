"""
Identity models with role-based access control.

Auth sessions and password reset tokens live in separate tables with
separate lifecycles: a session is revoked on logout, a reset token is
consumed once.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from sqlmodel import Field, SQLModel

from portal.models.base import SoftDeleteModel, utcnow


class UserRole(str, Enum):
    """User role enumeration for RBAC."""

    SUPER_ADMIN = "SUPER_ADMIN"
    ADMIN = "ADMIN"
    STAFF = "STAFF"
    CLIENT = "CLIENT"


class User(SoftDeleteModel, table=True):
    """
    Authenticated principal.

    Attributes:
        id: Primary key
        email: Unique email address (used for login)
        full_name: Display name
        phone: Optional phone number
        avatar_url: Profile picture URL
        position: Job title shown for STAFF members
        role: One of SUPER_ADMIN, ADMIN, STAFF, CLIENT
        hashed_password: Local credential hash, empty for provider-linked accounts
        oauth_provider: External identity provider link (e.g. "google")
        branch_id: Branch a STAFF member is assigned to
        is_active: Whether the account may sign in
        email_verified_at: When the email address was verified
        deleted_at: Soft-delete marker
    """

    __tablename__ = "users"  # type: ignore

    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(unique=True, index=True, max_length=255)
    full_name: str = Field(max_length=255)
    phone: Optional[str] = Field(default=None, max_length=50)
    avatar_url: Optional[str] = Field(default=None, max_length=500)
    position: Optional[str] = Field(default=None, max_length=255)
    role: UserRole = Field(default=UserRole.CLIENT, index=True)
    hashed_password: Optional[str] = None
    oauth_provider: Optional[str] = Field(default=None, max_length=50)
    branch_id: Optional[int] = Field(default=None, foreign_key="branches.id")
    is_active: bool = Field(default=True)
    email_verified_at: Optional[datetime] = None


class ClientProfile(SQLModel, table=True):
    """Client record linked one-to-one to a CLIENT identity."""

    __tablename__ = "clients"  # type: ignore

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", unique=True, index=True)
    client_number: str = Field(unique=True, max_length=50)
    company_name: Optional[str] = Field(default=None, max_length=255)
    address: Optional[str] = None
    id_number: Optional[str] = Field(default=None, max_length=50)
    created_at: datetime = Field(default_factory=utcnow)


class AuthSession(SQLModel, table=True):
    """A signed-in browser or API client."""

    __tablename__ = "auth_sessions"  # type: ignore

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    token_hash: str = Field(index=True, max_length=64)
    created_at: datetime = Field(default_factory=utcnow)
    expires_at: datetime
    revoked_at: Optional[datetime] = None
    user_agent: Optional[str] = Field(default=None, max_length=512)
    ip_address: Optional[str] = Field(default=None, max_length=64)


class PasswordResetToken(SQLModel, table=True):
    """One-time password reset token. Only the SHA-256 digest is stored."""

    __tablename__ = "password_reset_tokens"  # type: ignore

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    token_hash: str = Field(unique=True, index=True, max_length=64)
    created_at: datetime = Field(default_factory=utcnow)
    expires_at: datetime
    consumed_at: Optional[datetime] = None
