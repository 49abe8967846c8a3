"""
Audit log viewer for administrators.
"""

import math
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query
from sqlmodel import select

from portal.api.deps import SessionDep, require_roles
from portal.core.access import ADMINS
from portal.models.audit import AuditAction
from portal.models.user import User
from portal.schemas.admin import AuditLogListResponse, AuditLogResponse
from portal.services.audit_service import AuditService

router = APIRouter(prefix="/admin/audit-logs", tags=["admin"])


@router.get("", response_model=AuditLogListResponse)
def list_audit_logs(
    session: SessionDep,
    actor: Annotated[User, Depends(require_roles(*ADMINS))],
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    action: Optional[AuditAction] = None,
    resource_type: Optional[str] = None,
    user_id: Optional[int] = None,
) -> AuditLogListResponse:
    entries, total = AuditService.list(
        session, page=page, limit=limit, action=action, resource_type=resource_type, user_id=user_id
    )
    user_ids = {entry.user_id for entry in entries if entry.user_id is not None}
    names = dict(session.exec(select(User.id, User.full_name).where(User.id.in_(user_ids))).all()) if user_ids else {}  # type: ignore[union-attr]

    logs = []
    for entry in entries:
        log = AuditLogResponse.model_validate(entry)
        log.user_name = names.get(entry.user_id)
        logs.append(log)
    return AuditLogListResponse(
        logs=logs, total=total, page=page, limit=limit, total_pages=math.ceil(total / limit)
    )
