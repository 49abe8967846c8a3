"""
Staff scheduling routes.
"""

from typing import Optional

from fastapi import APIRouter

from portal.api.deps import CurrentUser, SessionDep
from portal.schemas.appointment import (
    AvailabilityCreate,
    AvailabilityListResponse,
    AvailabilityReplace,
    AvailabilityResponse,
)
from portal.services.availability_service import AvailabilityService

router = APIRouter(prefix="/staff", tags=["staff"])


@router.get("/availability", response_model=AvailabilityListResponse)
def get_availability(
    session: SessionDep, current_user: CurrentUser, staff_id: Optional[int] = None
) -> AvailabilityListResponse:
    slots = AvailabilityService.list(session, current_user, staff_id)
    return AvailabilityListResponse(availability=[AvailabilityResponse.model_validate(s) for s in slots])


@router.post("/availability", response_model=AvailabilityResponse)
def add_availability(payload: AvailabilityCreate, session: SessionDep, current_user: CurrentUser) -> AvailabilityResponse:
    return AvailabilityResponse.model_validate(AvailabilityService.add(session, current_user, payload))


@router.put("/availability", response_model=AvailabilityListResponse)
def replace_availability(
    payload: AvailabilityReplace, session: SessionDep, current_user: CurrentUser
) -> AvailabilityListResponse:
    slots = AvailabilityService.replace(session, current_user, payload)
    return AvailabilityListResponse(availability=[AvailabilityResponse.model_validate(s) for s in slots])
