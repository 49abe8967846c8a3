"""
Office content managed from the admin panel and shown on the public site.
"""

from decimal import Decimal
from typing import Optional

from sqlmodel import Field

from portal.models.base import SoftDeleteModel


class Branch(SoftDeleteModel, table=True):
    __tablename__ = "branches"  # type: ignore

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(max_length=255)
    address: Optional[str] = None
    phone: Optional[str] = Field(default=None, max_length=50)
    email: Optional[str] = Field(default=None, max_length=255)
    is_active: bool = Field(default=True)


class Faq(SoftDeleteModel, table=True):
    __tablename__ = "faqs"  # type: ignore

    id: Optional[int] = Field(default=None, primary_key=True)
    question: str
    answer: str
    category: Optional[str] = Field(default=None, max_length=100)
    order: int = Field(default=0)
    is_active: bool = Field(default=True)


class Service(SoftDeleteModel, table=True):
    """A notarial service offered by the office; bookable as an appointment."""

    __tablename__ = "services"  # type: ignore

    id: Optional[int] = Field(default=None, primary_key=True)
    title: str = Field(max_length=255)
    description: Optional[str] = None
    icon: Optional[str] = Field(default=None, max_length=100)
    price: Optional[Decimal] = Field(default=None, max_digits=14, decimal_places=2)
    duration_minutes: int = Field(default=30)
    order: int = Field(default=0)
    is_active: bool = Field(default=True)


class TeamMember(SoftDeleteModel, table=True):
    __tablename__ = "team_members"  # type: ignore

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(max_length=255)
    position: str = Field(max_length=255)
    bio: Optional[str] = None
    photo: Optional[str] = None
    email: Optional[str] = Field(default=None, max_length=255)
    phone: Optional[str] = Field(default=None, max_length=50)
    order: int = Field(default=0)
    is_active: bool = Field(default=True)


class Testimonial(SoftDeleteModel, table=True):
    __tablename__ = "testimonials"  # type: ignore

    id: Optional[int] = Field(default=None, primary_key=True)
    client_name: str = Field(max_length=255)
    client_title: Optional[str] = Field(default=None, max_length=255)
    content: str
    rating: int = Field(default=5, ge=1, le=5)
    is_featured: bool = Field(default=False)
    order: int = Field(default=0)
    is_active: bool = Field(default=True)


class GalleryItem(SoftDeleteModel, table=True):
    __tablename__ = "gallery_items"  # type: ignore

    id: Optional[int] = Field(default=None, primary_key=True)
    title: Optional[str] = Field(default=None, max_length=255)
    image_url: str
    category: Optional[str] = Field(default=None, max_length=100)
    order: int = Field(default=0)
    is_active: bool = Field(default=True)


class ServiceFee(SoftDeleteModel, table=True):
    """Tariff for a notarial service, used by staff when drawing up invoices."""

    __tablename__ = "service_fees"  # type: ignore

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(max_length=255)
    category: str = Field(default="notary", max_length=100, index=True)
    base_fee: Decimal = Field(max_digits=14, decimal_places=2)
    description: Optional[str] = None
    is_active: bool = Field(default=True)
