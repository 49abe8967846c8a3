"""Pydantic schemas for request/response validation."""

from portal.schemas.auth import RegisterRequest, RegisterResponse, Token
from portal.schemas.user import UserDetailResponse, UserResponse, UserSummary

__all__ = ["RegisterRequest", "RegisterResponse", "Token", "UserDetailResponse", "UserResponse", "UserSummary"]
