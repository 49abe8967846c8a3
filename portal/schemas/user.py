"""
User schemas for API request/response validation.
Separates internal models from API contracts using Pydantic.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from portal.models.user import UserRole
from portal.schemas.content import reject_null


class UserSummary(BaseModel):
    """Minimal identity returned by registration."""

    id: int
    name: str
    email: EmailStr
    role: UserRole


class UserResponse(BaseModel):
    """
    Schema for user data in API responses.
    Excludes sensitive information like hashed_password.
    """

    id: int
    email: EmailStr
    full_name: str
    phone: Optional[str] = None
    avatar_url: Optional[str] = None
    position: Optional[str] = None
    role: UserRole
    branch_id: Optional[int] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ClientProfileResponse(BaseModel):
    id: int
    client_number: str
    company_name: Optional[str] = None
    address: Optional[str] = None
    id_number: Optional[str] = None

    model_config = {"from_attributes": True}


class UserDetailResponse(UserResponse):
    client: Optional[ClientProfileResponse] = None


class AdminUserCreate(BaseModel):
    """Schema for creating users from the admin panel."""

    email: Optional[EmailStr] = None
    name: Optional[str] = None
    password: Optional[str] = None
    role: Optional[UserRole] = None
    phone: Optional[str] = None
    branch_id: Optional[int] = None
    company_name: Optional[str] = None
    address: Optional[str] = None


class AdminUserUpdate(BaseModel):
    email: Optional[EmailStr] = None
    name: Optional[str] = None
    password: Optional[str] = None
    role: Optional[UserRole] = None
    phone: Optional[str] = None
    branch_id: Optional[int] = None
    is_active: Optional[bool] = None
    company_name: Optional[str] = None
    address: Optional[str] = None


class UserListResponse(BaseModel):
    users: list[UserResponse]
    total: int
    page: int
    limit: int
    total_pages: int


class PasswordChange(BaseModel):
    current_password: Optional[str] = None
    new_password: Optional[str] = None


class ProfileUpdate(BaseModel):
    """
    Self-service profile edit. Client fields apply to CLIENT accounts and
    ``position`` to STAFF; anything else the caller's role has no use for
    is ignored.
    """

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    phone: Optional[str] = Field(default=None, max_length=50)
    avatar_url: Optional[str] = Field(default=None, max_length=500)
    position: Optional[str] = Field(default=None, max_length=255)
    company_name: Optional[str] = Field(default=None, max_length=255)
    address: Optional[str] = None
    id_number: Optional[str] = Field(default=None, max_length=50)

    no_nulls = field_validator("name", mode="before")(reject_null)
