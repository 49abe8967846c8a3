"""
Appointment booking and scheduling.

Visibility by role:
    CLIENT       own appointments
    STAFF        appointments assigned to them, plus unassigned ones
    ADMIN/SUPER  everything

Cancelled appointments are excluded from lists.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import or_
from sqlmodel import Session, select

from portal.core.access import ADMINS
from portal.core.errors import NotFound, PermissionDenied, ValidationFailed
from portal.core.logging import get_logger
from portal.models.appointment import Appointment, AppointmentStatus
from portal.models.audit import AuditAction
from portal.models.base import utcnow
from portal.models.content import Service
from portal.models.user import ClientProfile, User, UserRole
from portal.schemas.appointment import AppointmentCreate, AppointmentUpdate
from portal.services.audit_service import AuditService
from portal.services.user_service import UserService

logger = get_logger(__name__)

DEFAULT_DURATION_MINUTES = 30


class AppointmentService:
    @staticmethod
    def _client_profile_for(session: Session, user: User) -> ClientProfile:
        profile = UserService.get_client_profile(session, user.id)  # type: ignore[arg-type]
        if profile is None:
            raise ValidationFailed("Client profile not found")
        return profile

    @staticmethod
    def _assert_can_access(session: Session, user: User, appointment: Appointment) -> None:
        if user.role == UserRole.CLIENT:
            profile = UserService.get_client_profile(session, user.id)  # type: ignore[arg-type]
            if profile is None or appointment.client_id != profile.id:
                raise PermissionDenied("Access denied")
        elif user.role == UserRole.STAFF:
            if appointment.staff_id not in (None, user.id):
                raise PermissionDenied("Access denied")

    @staticmethod
    def _validate_staff(session: Session, staff_id: Optional[int]) -> None:
        if staff_id is None:
            return
        staff = UserService.get_by_id(session, staff_id)
        if staff is None or staff.role not in (UserRole.STAFF, *ADMINS):
            raise ValidationFailed("Assigned staff member not found")

    @staticmethod
    def list(session: Session, user: User, status: Optional[AppointmentStatus] = None) -> list[Appointment]:
        statement = select(Appointment).where(Appointment.cancelled_at.is_(None))  # type: ignore[union-attr]
        if user.role == UserRole.CLIENT:
            profile = UserService.get_client_profile(session, user.id)  # type: ignore[arg-type]
            if profile is None:
                return []
            statement = statement.where(Appointment.client_id == profile.id)
        elif user.role == UserRole.STAFF:
            statement = statement.where(
                or_(Appointment.staff_id == user.id, Appointment.staff_id.is_(None))  # type: ignore[union-attr]
            )
        if status is not None:
            statement = statement.where(Appointment.status == status)
        return list(session.exec(statement.order_by(Appointment.scheduled_at)).all())

    @staticmethod
    def get(session: Session, user: User, appointment_id: int) -> Appointment:
        appointment = session.get(Appointment, appointment_id)
        if appointment is None:
            raise NotFound("Appointment not found")
        AppointmentService._assert_can_access(session, user, appointment)
        return appointment

    @staticmethod
    def create(session: Session, user: User, data: AppointmentCreate) -> Appointment:
        """
        Book an appointment.

        Clients always book for themselves; any ``client_id`` they send is
        ignored. Staff and admins must name the client.
        """
        if user.role == UserRole.CLIENT:
            client_id = AppointmentService._client_profile_for(session, user).id
        else:
            if data.client_id is None:
                raise ValidationFailed("Client ID is required")
            if session.get(ClientProfile, data.client_id) is None:
                raise ValidationFailed("Client not found")
            client_id = data.client_id

        duration = data.duration_minutes
        if data.service_id is not None:
            service = session.get(Service, data.service_id)
            if service is None or service.deleted_at is not None or not service.is_active:
                raise ValidationFailed("Service not found")
            duration = duration or service.duration_minutes

        AppointmentService._validate_staff(session, data.staff_id)

        appointment = Appointment(
            client_id=client_id,  # type: ignore[arg-type]
            service_id=data.service_id,
            staff_id=data.staff_id,
            scheduled_at=data.scheduled_at,
            duration_minutes=duration or DEFAULT_DURATION_MINUTES,
            status=AppointmentStatus.PENDING,
            notes=data.notes,
        )
        session.add(appointment)
        session.flush()
        AuditService.record(
            session,
            AuditAction.CREATE,
            "APPOINTMENT",
            appointment.id,
            user_id=user.id,
            details={"client_id": client_id, "scheduled_at": data.scheduled_at.isoformat()},
        )
        session.commit()
        session.refresh(appointment)
        logger.info(f"Appointment {appointment.id} booked by user {user.id}")
        return appointment

    @staticmethod
    def update(session: Session, user: User, appointment_id: int, data: AppointmentUpdate) -> Appointment:
        """
        Apply the fields the caller's role may change.

        Admins may change everything, staff the status and notes, clients the
        date and notes. Clients sending a different status get 403.
        """
        appointment = AppointmentService.get(session, user, appointment_id)
        if appointment.cancelled_at is not None:
            raise ValidationFailed("Appointment is cancelled")

        previous_status = appointment.status
        if user.role in ADMINS:
            if data.scheduled_at is not None:
                appointment.scheduled_at = data.scheduled_at
            if data.duration_minutes is not None:
                appointment.duration_minutes = data.duration_minutes
            if data.status is not None:
                appointment.status = data.status
            if data.staff_id is not None:
                AppointmentService._validate_staff(session, data.staff_id)
                appointment.staff_id = data.staff_id
        elif user.role == UserRole.STAFF:
            if data.status is not None:
                appointment.status = data.status
        else:
            if data.status is not None and data.status != appointment.status:
                raise PermissionDenied("Clients cannot change appointment status")
            if data.scheduled_at is not None:
                appointment.scheduled_at = data.scheduled_at

        if data.notes is not None:
            appointment.notes = data.notes
        if appointment.status == AppointmentStatus.CANCELLED:
            appointment.cancelled_at = utcnow()
        appointment.updated_at = utcnow()
        session.add(appointment)

        action = AuditAction.STATUS_CHANGE if appointment.status != previous_status else AuditAction.UPDATE
        AuditService.record(
            session,
            action,
            "APPOINTMENT",
            appointment.id,
            user_id=user.id,
            details={"status": appointment.status.value, "previous_status": previous_status.value},
        )
        session.commit()
        session.refresh(appointment)
        return appointment

    @staticmethod
    def cancel(session: Session, user: User, appointment_id: int) -> None:
        appointment = AppointmentService.get(session, user, appointment_id)
        appointment.status = AppointmentStatus.CANCELLED
        appointment.cancelled_at = utcnow()
        appointment.updated_at = utcnow()
        session.add(appointment)
        AuditService.record(
            session,
            AuditAction.STATUS_CHANGE,
            "APPOINTMENT",
            appointment.id,
            user_id=user.id,
            details={"status": AppointmentStatus.CANCELLED.value},
        )
        session.commit()
        logger.info(f"Appointment {appointment_id} cancelled by user {user.id}")
