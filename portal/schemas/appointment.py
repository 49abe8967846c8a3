"""
Appointment schemas.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from portal.models.appointment import AppointmentStatus


class AppointmentCreate(BaseModel):
    scheduled_at: datetime
    service_id: Optional[int] = None
    client_id: Optional[int] = None
    staff_id: Optional[int] = None
    duration_minutes: Optional[int] = Field(default=None, gt=0)
    notes: Optional[str] = None


class AppointmentUpdate(BaseModel):
    scheduled_at: Optional[datetime] = None
    duration_minutes: Optional[int] = Field(default=None, gt=0)
    status: Optional[AppointmentStatus] = None
    staff_id: Optional[int] = None
    notes: Optional[str] = None


class AppointmentResponse(BaseModel):
    id: int
    client_id: int
    service_id: Optional[int] = None
    staff_id: Optional[int] = None
    scheduled_at: datetime
    duration_minutes: int
    status: AppointmentStatus
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    cancelled_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class AppointmentListResponse(BaseModel):
    data: list[AppointmentResponse]


# ---- staff availability ----

TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


class AvailabilitySlot(BaseModel):
    day_of_week: int = Field(ge=0, le=6)
    start_time: str = Field(pattern=TIME_PATTERN)
    end_time: str = Field(pattern=TIME_PATTERN)
    is_available: bool = True

    @model_validator(mode="after")
    def end_after_start(self) -> "AvailabilitySlot":
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class AvailabilityCreate(AvailabilitySlot):
    staff_id: Optional[int] = None


class AvailabilityReplace(BaseModel):
    staff_id: Optional[int] = None
    availabilities: list[AvailabilitySlot] = Field(default_factory=list)


class AvailabilityResponse(BaseModel):
    id: int
    staff_id: int
    day_of_week: int
    start_time: str
    end_time: str
    is_available: bool

    model_config = {"from_attributes": True}


class AvailabilityListResponse(BaseModel):
    availability: list[AvailabilityResponse]
