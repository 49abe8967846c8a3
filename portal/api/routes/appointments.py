"""
Appointment routes. Visibility and editable fields depend on the caller's
role; see ``AppointmentService``.
"""

from typing import Optional

from fastapi import APIRouter

from portal.api.deps import CurrentUser, SessionDep
from portal.models.appointment import AppointmentStatus
from portal.schemas.appointment import (
    AppointmentCreate,
    AppointmentListResponse,
    AppointmentResponse,
    AppointmentUpdate,
)
from portal.schemas.auth import MessageResponse
from portal.services.appointment_service import AppointmentService

router = APIRouter(prefix="/appointments", tags=["appointments"])


@router.get("", response_model=AppointmentListResponse)
def list_appointments(
    session: SessionDep, current_user: CurrentUser, status: Optional[AppointmentStatus] = None
) -> AppointmentListResponse:
    appointments = AppointmentService.list(session, current_user, status=status)
    return AppointmentListResponse(data=[AppointmentResponse.model_validate(a) for a in appointments])


@router.post("", response_model=AppointmentResponse)
def create_appointment(payload: AppointmentCreate, session: SessionDep, current_user: CurrentUser) -> AppointmentResponse:
    return AppointmentResponse.model_validate(AppointmentService.create(session, current_user, payload))


@router.get("/{appointment_id}", response_model=AppointmentResponse)
def get_appointment(appointment_id: int, session: SessionDep, current_user: CurrentUser) -> AppointmentResponse:
    return AppointmentResponse.model_validate(AppointmentService.get(session, current_user, appointment_id))


@router.patch("/{appointment_id}", response_model=AppointmentResponse)
def update_appointment(
    appointment_id: int, payload: AppointmentUpdate, session: SessionDep, current_user: CurrentUser
) -> AppointmentResponse:
    appointment = AppointmentService.update(session, current_user, appointment_id, payload)
    return AppointmentResponse.model_validate(appointment)


@router.delete("/{appointment_id}", response_model=MessageResponse)
def cancel_appointment(appointment_id: int, session: SessionDep, current_user: CurrentUser) -> MessageResponse:
    AppointmentService.cancel(session, current_user, appointment_id)
    return MessageResponse(message="Appointment cancelled")
