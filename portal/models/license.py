"""
Locally stored license activation.
"""

from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel

from portal.models.base import utcnow


class License(SQLModel, table=True):
    """
    A license key activated against the license server.

    At most one row is active at a time; activating a new key deactivates
    the previous one.
    """

    __tablename__ = "licenses"  # type: ignore

    id: Optional[int] = Field(default=None, primary_key=True)
    license_key: str = Field(unique=True, index=True, max_length=64)
    package_type: str = Field(max_length=50)
    domain: str = Field(max_length=255)
    holder_name: str = Field(max_length=255)
    office_name: Optional[str] = Field(default=None, max_length=255)
    server_hash: str = Field(max_length=64)
    activated_at: datetime = Field(default_factory=utcnow)
    expires_at: Optional[datetime] = None
    last_verified: Optional[datetime] = None
    is_active: bool = Field(default=True, index=True)
