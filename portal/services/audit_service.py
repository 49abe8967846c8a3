"""
Audit log writer and reader.

Entries are added to the caller's session and committed together with the
change they describe, so an action and its audit record succeed or fail as
one unit.
"""

from __future__ import annotations

from typing import Any, Optional

from sqlalchemy import func
from sqlmodel import Session, select

from portal.models.audit import AuditAction, AuditLog


class AuditService:
    @staticmethod
    def record(
        session: Session,
        action: AuditAction,
        resource_type: str,
        resource_id: Any = None,
        user_id: Optional[int] = None,
        details: Optional[dict[str, Any]] = None,
        ip_address: Optional[str] = None,
    ) -> AuditLog:
        entry = AuditLog(
            user_id=user_id,
            action=action,
            resource_type=resource_type,
            resource_id=str(resource_id) if resource_id is not None else None,
            details=details,
            ip_address=ip_address,
        )
        session.add(entry)
        return entry

    @staticmethod
    def list(
        session: Session,
        page: int = 1,
        limit: int = 20,
        action: Optional[AuditAction] = None,
        resource_type: Optional[str] = None,
        user_id: Optional[int] = None,
    ) -> tuple[list[AuditLog], int]:
        """Newest first, paginated. Returns ``(entries, total)``."""
        statement = select(AuditLog)
        count_statement = select(func.count()).select_from(AuditLog)
        if action is not None:
            statement = statement.where(AuditLog.action == action)
            count_statement = count_statement.where(AuditLog.action == action)
        if resource_type:
            statement = statement.where(AuditLog.resource_type == resource_type)
            count_statement = count_statement.where(AuditLog.resource_type == resource_type)
        if user_id is not None:
            statement = statement.where(AuditLog.user_id == user_id)
            count_statement = count_statement.where(AuditLog.user_id == user_id)

        statement = (
            statement.order_by(AuditLog.created_at.desc(), AuditLog.id.desc())  # type: ignore[union-attr]
            .offset((page - 1) * limit)
            .limit(limit)
        )
        entries = list(session.exec(statement).all())
        total = session.exec(count_statement).one()
        return entries, int(total)
