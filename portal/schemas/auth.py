"""
Schemas for registration, login, password recovery and first-run setup.

Fields are optional at the schema level so that missing values produce the
same ``{"error": ...}`` messages as other business-rule failures.
"""

from typing import Optional

from pydantic import BaseModel, EmailStr

from portal.schemas.user import UserSummary


class Token(BaseModel):
    """Schema for access token response."""

    access_token: str
    token_type: str = "bearer"


class RegisterRequest(BaseModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    password: Optional[str] = None


class RegisterResponse(BaseModel):
    success: bool = True
    message: str
    user: UserSummary


class ForgotPasswordRequest(BaseModel):
    email: Optional[EmailStr] = None


class ResetPasswordRequest(BaseModel):
    token: Optional[str] = None
    password: Optional[str] = None


class MessageResponse(BaseModel):
    message: str


class SetupRequest(BaseModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    password: Optional[str] = None


class SetupStatus(BaseModel):
    needs_setup: bool
