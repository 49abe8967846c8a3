"""
Schemas for admin-managed office content.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator


def reject_null(value):
    """Partial updates may omit a NOT NULL column but never send it as null."""
    if value is None:
        raise ValueError("may not be null")
    return value


class ContentResponse(BaseModel):
    id: int
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


# ---- branches ----

class BranchCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[EmailStr] = None


class BranchUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[EmailStr] = None
    is_active: Optional[bool] = None

    no_nulls = field_validator("name", "is_active", mode="before")(reject_null)


class BranchStaffMember(BaseModel):
    id: int
    full_name: str
    email: str

    model_config = {"from_attributes": True}


class BranchResponse(ContentResponse):
    name: str
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    is_active: bool
    staff_count: int = 0


class BranchDetailResponse(BranchResponse):
    staff: list[BranchStaffMember] = []


# ---- FAQ ----

class FaqCreate(BaseModel):
    question: str = Field(min_length=1)
    answer: str = Field(min_length=1)
    category: Optional[str] = None
    order: int = 0
    is_active: bool = True


class FaqUpdate(BaseModel):
    question: Optional[str] = Field(default=None, min_length=1)
    answer: Optional[str] = Field(default=None, min_length=1)
    category: Optional[str] = None
    order: Optional[int] = None
    is_active: Optional[bool] = None

    no_nulls = field_validator("question", "answer", "order", "is_active", mode="before")(reject_null)


class FaqResponse(ContentResponse):
    question: str
    answer: str
    category: Optional[str] = None
    order: int
    is_active: bool


# ---- services ----

class ServiceCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    icon: Optional[str] = None
    price: Optional[Decimal] = Field(default=None, ge=0)
    duration_minutes: int = Field(default=30, gt=0)
    order: int = 0
    is_active: bool = True


class ServiceUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    icon: Optional[str] = None
    price: Optional[Decimal] = Field(default=None, ge=0)
    duration_minutes: Optional[int] = Field(default=None, gt=0)
    order: Optional[int] = None
    is_active: Optional[bool] = None

    no_nulls = field_validator("title", "duration_minutes", "order", "is_active", mode="before")(reject_null)


class ServiceResponse(ContentResponse):
    title: str
    description: Optional[str] = None
    icon: Optional[str] = None
    price: Optional[Decimal] = None
    duration_minutes: int
    order: int
    is_active: bool


# ---- team ----

class TeamMemberCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    position: str = Field(min_length=1, max_length=255)
    bio: Optional[str] = None
    photo: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    order: int = 0
    is_active: bool = True


class TeamMemberUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    position: Optional[str] = Field(default=None, min_length=1, max_length=255)
    bio: Optional[str] = None
    photo: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    order: Optional[int] = None
    is_active: Optional[bool] = None

    no_nulls = field_validator("name", "position", "order", "is_active", mode="before")(reject_null)


class TeamMemberResponse(ContentResponse):
    name: str
    position: str
    bio: Optional[str] = None
    photo: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    order: int
    is_active: bool


# ---- testimonials ----

class TestimonialCreate(BaseModel):
    client_name: str = Field(min_length=1, max_length=255)
    client_title: Optional[str] = None
    content: str = Field(min_length=1)
    rating: int = Field(default=5, ge=1, le=5)
    is_featured: bool = False
    order: int = 0
    is_active: bool = True


class TestimonialUpdate(BaseModel):
    client_name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    client_title: Optional[str] = None
    content: Optional[str] = Field(default=None, min_length=1)
    rating: Optional[int] = Field(default=None, ge=1, le=5)
    is_featured: Optional[bool] = None
    order: Optional[int] = None
    is_active: Optional[bool] = None

    no_nulls = field_validator("client_name", "content", "rating", "is_featured", "order", "is_active", mode="before")(reject_null)


class TestimonialResponse(ContentResponse):
    client_name: str
    client_title: Optional[str] = None
    content: str
    rating: int
    is_featured: bool
    order: int
    is_active: bool


# ---- gallery ----

class GalleryItemCreate(BaseModel):
    title: Optional[str] = None
    image_url: str = Field(min_length=1)
    category: Optional[str] = None
    order: int = 0
    is_active: bool = True


class GalleryItemUpdate(BaseModel):
    title: Optional[str] = None
    image_url: Optional[str] = Field(default=None, min_length=1)
    category: Optional[str] = None
    order: Optional[int] = None
    is_active: Optional[bool] = None

    no_nulls = field_validator("image_url", "order", "is_active", mode="before")(reject_null)


class GalleryItemResponse(ContentResponse):
    title: Optional[str] = None
    image_url: str
    category: Optional[str] = None
    order: int
    is_active: bool


class PublicContentResponse(BaseModel):
    faqs: list[FaqResponse]
    services: list[ServiceResponse]
    team_members: list[TeamMemberResponse]
    testimonials: list[TestimonialResponse]
    gallery: list[GalleryItemResponse]


# ---- service fees ----

class ServiceFeeCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    category: str = Field(default="notary", min_length=1, max_length=100)
    base_fee: Decimal = Field(gt=0)
    description: Optional[str] = None
    is_active: bool = True


class ServiceFeeUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    category: Optional[str] = Field(default=None, min_length=1, max_length=100)
    base_fee: Optional[Decimal] = Field(default=None, gt=0)
    description: Optional[str] = None
    is_active: Optional[bool] = None

    no_nulls = field_validator("name", "category", "base_fee", "is_active", mode="before")(reject_null)


class ServiceFeeResponse(ContentResponse):
    name: str
    category: str
    base_fee: Decimal
    description: Optional[str] = None
    is_active: bool
