"""
Appointment models: client visits to the notary office and the weekly
slots staff members take them in.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from sqlmodel import Field, SQLModel

from portal.models.base import TimestampedModel, utcnow


class AppointmentStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class Appointment(TimestampedModel, table=True):
    """
    A booked visit. Cancelling sets ``cancelled_at``; cancelled
    appointments drop out of list views.
    """

    __tablename__ = "appointments"  # type: ignore

    id: Optional[int] = Field(default=None, primary_key=True)
    client_id: int = Field(foreign_key="clients.id", index=True)
    service_id: Optional[int] = Field(default=None, foreign_key="services.id")
    staff_id: Optional[int] = Field(default=None, foreign_key="users.id", index=True)
    scheduled_at: datetime = Field(index=True)
    duration_minutes: int = Field(default=30)
    status: AppointmentStatus = Field(default=AppointmentStatus.PENDING)
    notes: Optional[str] = None
    cancelled_at: Optional[datetime] = None


class StaffAvailability(SQLModel, table=True):
    """
    A weekly slot when a staff member takes appointments. ``day_of_week``
    runs from 0 (Sunday) to 6; times are ``HH:MM`` in office local time.
    """

    __tablename__ = "staff_availability"  # type: ignore

    id: Optional[int] = Field(default=None, primary_key=True)
    staff_id: int = Field(foreign_key="users.id", index=True)
    day_of_week: int = Field(ge=0, le=6)
    start_time: str = Field(max_length=5)
    end_time: str = Field(max_length=5)
    is_available: bool = Field(default=True)
    created_at: datetime = Field(default_factory=utcnow)
