"""
Weekly staff availability.

Anyone signed in may read a staff member's slots when booking. STAFF manage
their own slots; admins manage anyone's by naming ``staff_id``.
"""

from __future__ import annotations

from typing import Optional

from sqlmodel import Session, select

from portal.core.access import STAFF_AND_ADMINS, ensure_role
from portal.core.errors import NotFound, PermissionDenied
from portal.core.logging import get_logger
from portal.models.appointment import StaffAvailability
from portal.models.audit import AuditAction
from portal.models.user import User, UserRole
from portal.schemas.appointment import AvailabilityCreate, AvailabilityReplace
from portal.services.audit_service import AuditService
from portal.services.user_service import UserService

logger = get_logger(__name__)


class AvailabilityService:
    @staticmethod
    def _target_staff(session: Session, user: User, staff_id: Optional[int], writing: bool = False) -> int:
        if staff_id is None:
            if user.role != UserRole.STAFF:
                raise NotFound("Staff not found")
            return user.id  # type: ignore[return-value]
        if writing and user.role == UserRole.STAFF and staff_id != user.id:
            raise PermissionDenied("Staff may only manage their own availability")
        staff = UserService.get_by_id(session, staff_id)
        if staff is None or staff.role not in STAFF_AND_ADMINS:
            raise NotFound("Staff not found")
        return staff_id

    @staticmethod
    def _slots(session: Session, staff_id: int) -> list[StaffAvailability]:
        statement = (
            select(StaffAvailability)
            .where(StaffAvailability.staff_id == staff_id)
            .order_by(StaffAvailability.day_of_week, StaffAvailability.start_time)
        )
        return list(session.exec(statement).all())

    @staticmethod
    def list(session: Session, user: User, staff_id: Optional[int] = None) -> list[StaffAvailability]:
        return AvailabilityService._slots(session, AvailabilityService._target_staff(session, user, staff_id))

    @staticmethod
    def add(session: Session, user: User, data: AvailabilityCreate) -> StaffAvailability:
        ensure_role(user, STAFF_AND_ADMINS)
        staff_id = AvailabilityService._target_staff(session, user, data.staff_id, writing=True)
        slot = StaffAvailability(staff_id=staff_id, **data.model_dump(exclude={"staff_id"}))
        session.add(slot)
        session.flush()
        AuditService.record(
            session,
            AuditAction.CREATE,
            "STAFF_AVAILABILITY",
            slot.id,
            user_id=user.id,
            details=data.model_dump(mode="json"),
        )
        session.commit()
        session.refresh(slot)
        return slot

    @staticmethod
    def replace(session: Session, user: User, data: AvailabilityReplace) -> list[StaffAvailability]:
        """Swap the whole weekly schedule in one transaction."""
        ensure_role(user, STAFF_AND_ADMINS)
        staff_id = AvailabilityService._target_staff(session, user, data.staff_id, writing=True)
        for slot in AvailabilityService._slots(session, staff_id):
            session.delete(slot)
        session.flush()
        for entry in data.availabilities:
            session.add(StaffAvailability(staff_id=staff_id, **entry.model_dump()))
        AuditService.record(
            session,
            AuditAction.UPDATE,
            "STAFF_AVAILABILITY",
            staff_id,
            user_id=user.id,
            details={"slots": len(data.availabilities)},
        )
        session.commit()
        logger.info(f"Availability for staff {staff_id} replaced by user {user.id}")
        return AvailabilityService._slots(session, staff_id)
