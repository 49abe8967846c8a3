"""
Audit trail of security-relevant and administrative actions.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from sqlmodel import JSON, Column, Field, SQLModel

from portal.models.base import utcnow


class AuditAction(str, Enum):
    SETUP = "SETUP"
    REGISTER = "REGISTER"
    LOGIN = "LOGIN"
    LOGOUT = "LOGOUT"
    PASSWORD_RESET = "PASSWORD_RESET"
    PASSWORD_CHANGE = "PASSWORD_CHANGE"
    UPDATE_PROFILE = "UPDATE_PROFILE"
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    STATUS_CHANGE = "STATUS_CHANGE"
    PAYMENT = "PAYMENT"
    LICENSE_ACTIVATE = "LICENSE_ACTIVATE"
    LICENSE_DEACTIVATE = "LICENSE_DEACTIVATE"


class AuditLog(SQLModel, table=True):
    __tablename__ = "audit_logs"  # type: ignore

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: Optional[int] = Field(default=None, foreign_key="users.id", index=True)
    action: AuditAction = Field(index=True)
    resource_type: str = Field(max_length=50, index=True)
    resource_id: Optional[str] = Field(default=None, max_length=64)
    details: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON))
    ip_address: Optional[str] = Field(default=None, max_length=64)
    created_at: datetime = Field(default_factory=utcnow, index=True)
