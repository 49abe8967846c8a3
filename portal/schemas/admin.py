"""
Schemas for audit logs and license management.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel

from portal.models.audit import AuditAction


class AuditLogResponse(BaseModel):
    id: int
    user_id: Optional[int] = None
    user_name: Optional[str] = None
    action: AuditAction
    resource_type: str
    resource_id: Optional[str] = None
    details: Optional[dict[str, Any]] = None
    ip_address: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class AuditLogListResponse(BaseModel):
    logs: list[AuditLogResponse]
    total: int
    page: int
    limit: int
    total_pages: int


class LicenseActivateRequest(BaseModel):
    license_key: Optional[str] = None


class LicenseInfo(BaseModel):
    license_key: str
    package_type: str
    domain: str
    holder_name: str
    office_name: Optional[str] = None
    activated_at: datetime
    expires_at: Optional[datetime] = None
    last_verified: Optional[datetime] = None
    is_active: bool


class LicenseResponse(BaseModel):
    license: Optional[LicenseInfo] = None


class LicenseStatusResponse(BaseModel):
    has_active_license: bool
    package_type: Optional[str] = None
    expires_at: Optional[datetime] = None
    is_expired: bool


class LicenseVerifyResponse(BaseModel):
    valid: bool
    package_type: Optional[str] = None
    expires_at: Optional[datetime] = None
    last_verified: Optional[datetime] = None
    error: Optional[str] = None
