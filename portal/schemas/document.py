"""
Document, document type and checklist schemas.
"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from portal.models.document import DocumentPriority, DocumentStatus
from portal.schemas.content import reject_null


# ---- document types ----

class DocumentTypeCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    estimated_duration_days: int = Field(default=7, gt=0)
    required_documents: list[str] = Field(default_factory=list)


class DocumentTypeUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    estimated_duration_days: Optional[int] = Field(default=None, gt=0)
    required_documents: Optional[list[str]] = None
    is_active: Optional[bool] = None

    no_nulls = field_validator(
        "name", "estimated_duration_days", "required_documents", "is_active", mode="before"
    )(reject_null)


class DocumentTypeResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    estimated_duration_days: int
    required_documents: list[str]
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


# ---- documents ----

class DocumentCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    document_type_id: int
    description: Optional[str] = None
    client_id: Optional[int] = None
    staff_id: Optional[int] = None
    priority: DocumentPriority = DocumentPriority.NORMAL
    due_date: Optional[date] = None


class DocumentUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    status: Optional[DocumentStatus] = None
    status_notes: Optional[str] = None
    priority: Optional[DocumentPriority] = None
    due_date: Optional[date] = None
    staff_id: Optional[int] = None

    no_nulls = field_validator("title", "status", "priority", mode="before")(reject_null)


class ChecklistItemResponse(BaseModel):
    id: int
    label: str
    is_required: bool
    is_completed: bool
    completed_at: Optional[datetime] = None
    verified_by_id: Optional[int] = None
    verified_at: Optional[datetime] = None
    notes: Optional[str] = None
    order: int

    model_config = {"from_attributes": True}


class TimelineEntryResponse(BaseModel):
    id: int
    status: DocumentStatus
    notes: Optional[str] = None
    changed_by_id: Optional[int] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class DocumentResponse(BaseModel):
    id: int
    document_number: str
    title: str
    description: Optional[str] = None
    status: DocumentStatus
    priority: DocumentPriority
    due_date: Optional[date] = None
    client_id: int
    document_type_id: int
    staff_id: Optional[int] = None
    completed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class DocumentDetailResponse(DocumentResponse):
    checklist: list[ChecklistItemResponse] = []
    timeline: list[TimelineEntryResponse] = []


class DocumentListResponse(BaseModel):
    documents: list[DocumentResponse]
    total: int
    page: int
    limit: int


# ---- checklist ----

class ChecklistItemInput(BaseModel):
    label: str = Field(min_length=1, max_length=255)
    is_required: bool = True
    notes: Optional[str] = None


class ChecklistCreate(BaseModel):
    items: list[ChecklistItemInput] = Field(min_length=1)


class ChecklistUpdate(BaseModel):
    checklist_id: int
    is_completed: Optional[bool] = None
    verified: Optional[bool] = None


class ChecklistResponse(BaseModel):
    checklist: list[ChecklistItemResponse]
