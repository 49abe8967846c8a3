"""
Notarial document tracking: document types, the documents prepared for a
client, their requirement checklists and status history.
"""

from datetime import date, datetime
from enum import Enum
from typing import List, Optional

from sqlmodel import JSON, Column, Field, Relationship, SQLModel

from portal.models.base import SoftDeleteModel, TimestampedModel, utcnow


class DocumentStatus(str, Enum):
    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    IN_REVIEW = "IN_REVIEW"
    WAITING_SIGNATURE = "WAITING_SIGNATURE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class DocumentPriority(str, Enum):
    LOW = "LOW"
    NORMAL = "NORMAL"
    HIGH = "HIGH"
    URGENT = "URGENT"


CLOSED_DOCUMENT_STATUSES = (DocumentStatus.COMPLETED, DocumentStatus.CANCELLED)


class DocumentType(TimestampedModel, table=True):
    """
    Kind of deed or certificate the office prepares. Retired types are
    deactivated rather than deleted so existing documents keep their type.
    """

    __tablename__ = "document_types"  # type: ignore

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(max_length=255, index=True)
    description: Optional[str] = None
    estimated_duration_days: int = Field(default=7)
    required_documents: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    is_active: bool = Field(default=True)


class Document(SoftDeleteModel, table=True):
    __tablename__ = "documents"  # type: ignore

    id: Optional[int] = Field(default=None, primary_key=True)
    document_number: str = Field(unique=True, index=True, max_length=50)
    title: str = Field(max_length=255)
    description: Optional[str] = None
    status: DocumentStatus = Field(default=DocumentStatus.DRAFT, index=True)
    priority: DocumentPriority = Field(default=DocumentPriority.NORMAL)
    due_date: Optional[date] = Field(default=None, index=True)
    client_id: int = Field(foreign_key="clients.id", index=True)
    document_type_id: int = Field(foreign_key="document_types.id", index=True)
    staff_id: Optional[int] = Field(default=None, foreign_key="users.id", index=True)
    completed_at: Optional[datetime] = None

    checklist: List["DocumentChecklistItem"] = Relationship(
        back_populates="document",
        sa_relationship_kwargs={"order_by": "DocumentChecklistItem.order"},
    )
    timeline: List["DocumentTimelineEntry"] = Relationship(
        back_populates="document",
        sa_relationship_kwargs={"order_by": "DocumentTimelineEntry.id.desc()"},
    )


class DocumentChecklistItem(SQLModel, table=True):
    """A requirement the client must supply before the deed can be signed."""

    __tablename__ = "document_checklist_items"  # type: ignore

    id: Optional[int] = Field(default=None, primary_key=True)
    document_id: int = Field(foreign_key="documents.id", index=True)
    label: str = Field(max_length=255)
    is_required: bool = Field(default=True)
    is_completed: bool = Field(default=False)
    completed_at: Optional[datetime] = None
    verified_by_id: Optional[int] = Field(default=None, foreign_key="users.id")
    verified_at: Optional[datetime] = None
    notes: Optional[str] = None
    order: int = Field(default=0)
    created_at: datetime = Field(default_factory=utcnow)

    document: Optional[Document] = Relationship(back_populates="checklist")


class DocumentTimelineEntry(SQLModel, table=True):
    __tablename__ = "document_timeline"  # type: ignore

    id: Optional[int] = Field(default=None, primary_key=True)
    document_id: int = Field(foreign_key="documents.id", index=True)
    status: DocumentStatus
    notes: Optional[str] = None
    changed_by_id: Optional[int] = Field(default=None, foreign_key="users.id")
    created_at: datetime = Field(default_factory=utcnow)

    document: Optional[Document] = Relationship(back_populates="timeline")
