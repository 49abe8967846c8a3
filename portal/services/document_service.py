"""
Notarial document tracking.

Visibility by role:
    CLIENT       documents prepared for them
    STAFF        documents assigned to them
    ADMIN/SUPER  everything

Soft-deleted documents are excluded from lists and lookups. Every status
change appends a timeline entry in the same transaction as the change.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Optional

from sqlalchemy import func, or_
from sqlmodel import Session, select

from portal.core.access import ADMINS, STAFF_AND_ADMINS, ensure_role
from portal.core.errors import NotFound, PermissionDenied, ValidationFailed
from portal.core.logging import get_logger
from portal.models.audit import AuditAction
from portal.models.base import utcnow
from portal.models.document import (
    CLOSED_DOCUMENT_STATUSES,
    Document,
    DocumentChecklistItem,
    DocumentStatus,
    DocumentTimelineEntry,
    DocumentType,
)
from portal.models.user import ClientProfile, User, UserRole
from portal.schemas.document import (
    ChecklistCreate,
    ChecklistUpdate,
    DocumentCreate,
    DocumentTypeCreate,
    DocumentTypeUpdate,
    DocumentUpdate,
)
from portal.services.audit_service import AuditService
from portal.services.user_service import UserService

logger = get_logger(__name__)

CLIENT_EDITABLE_STATUSES = (DocumentStatus.DRAFT, DocumentStatus.SUBMITTED)


def type_code(type_name: str) -> str:
    letters = "".join(ch for ch in type_name.upper() if ch.isalnum())
    return letters[:3] or "DOC"


def next_document_number(session: Session, type_name: str, now: Optional[datetime] = None) -> str:
    """``DOC-<TYPE>-YYYY-NNNN``, sequential per type code within the calendar year."""
    year = (now or utcnow()).year
    prefix = f"DOC-{type_code(type_name)}-{year}-"
    last = session.exec(
        select(Document.document_number)
        .where(Document.document_number.startswith(prefix))  # type: ignore[attr-defined]
        .order_by(Document.document_number.desc())  # type: ignore[attr-defined]
    ).first()
    sequence = int(last.rsplit("-", 1)[-1]) + 1 if last else 1
    return f"{prefix}{sequence:04d}"


class DocumentTypeService:
    @staticmethod
    def list(session: Session, include_inactive: bool = False) -> list[DocumentType]:
        statement = select(DocumentType)
        if not include_inactive:
            statement = statement.where(DocumentType.is_active.is_(True))  # type: ignore[attr-defined]
        return list(session.exec(statement.order_by(DocumentType.name)).all())

    @staticmethod
    def get(session: Session, type_id: int) -> DocumentType:
        document_type = session.get(DocumentType, type_id)
        if document_type is None:
            raise NotFound("Document type not found")
        return document_type

    @staticmethod
    def create(session: Session, actor: User, data: DocumentTypeCreate) -> DocumentType:
        document_type = DocumentType(**data.model_dump())
        session.add(document_type)
        session.flush()
        AuditService.record(
            session, AuditAction.CREATE, "DOCUMENT_TYPE", document_type.id, user_id=actor.id, details={"name": data.name}
        )
        session.commit()
        session.refresh(document_type)
        return document_type

    @staticmethod
    def update(session: Session, actor: User, type_id: int, data: DocumentTypeUpdate) -> DocumentType:
        document_type = DocumentTypeService.get(session, type_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(document_type, field, value)
        document_type.updated_at = utcnow()
        session.add(document_type)
        AuditService.record(
            session,
            AuditAction.UPDATE,
            "DOCUMENT_TYPE",
            type_id,
            user_id=actor.id,
            details=data.model_dump(mode="json", exclude_unset=True),
        )
        session.commit()
        session.refresh(document_type)
        return document_type

    @staticmethod
    def deactivate(session: Session, actor: User, type_id: int) -> None:
        """
        Retire a document type.

        Raises:
            ValidationFailed: while live documents still use the type
        """
        document_type = DocumentTypeService.get(session, type_id)
        in_use = session.exec(
            select(func.count())
            .select_from(Document)
            .where(Document.document_type_id == type_id, Document.deleted_at.is_(None))  # type: ignore[union-attr]
        ).one()
        if in_use:
            raise ValidationFailed("Cannot delete document type that is in use")
        document_type.is_active = False
        document_type.updated_at = utcnow()
        session.add(document_type)
        AuditService.record(session, AuditAction.DELETE, "DOCUMENT_TYPE", type_id, user_id=actor.id)
        session.commit()
        logger.info(f"Document type {type_id} deactivated by user {actor.id}")


class DocumentService:
    @staticmethod
    def _assert_can_access(session: Session, user: User, document: Document) -> None:
        if user.role == UserRole.CLIENT:
            profile = UserService.get_client_profile(session, user.id)  # type: ignore[arg-type]
            if profile is None or document.client_id != profile.id:
                raise PermissionDenied("Access denied")
        elif user.role == UserRole.STAFF:
            if document.staff_id != user.id:
                raise PermissionDenied("Access denied")

    @staticmethod
    def _validate_staff(session: Session, staff_id: Optional[int]) -> None:
        if staff_id is None:
            return
        staff = UserService.get_by_id(session, staff_id)
        if staff is None or staff.role not in STAFF_AND_ADMINS:
            raise ValidationFailed("Assigned staff member not found")

    @staticmethod
    def _add_timeline(
        session: Session, document: Document, user: User, status: DocumentStatus, notes: Optional[str]
    ) -> None:
        session.add(
            DocumentTimelineEntry(
                document_id=document.id,  # type: ignore[arg-type]
                status=status,
                notes=notes,
                changed_by_id=user.id,
            )
        )

    @staticmethod
    def list(
        session: Session,
        user: User,
        search: Optional[str] = None,
        status: Optional[DocumentStatus] = None,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[Document], int]:
        conditions = [Document.deleted_at.is_(None)]  # type: ignore[union-attr]
        if user.role == UserRole.CLIENT:
            profile = UserService.get_client_profile(session, user.id)  # type: ignore[arg-type]
            conditions.append(Document.client_id == (profile.id if profile else -1))
        elif user.role == UserRole.STAFF:
            conditions.append(Document.staff_id == user.id)
        if search:
            pattern = f"%{search.lower()}%"
            conditions.append(
                or_(
                    func.lower(Document.title).like(pattern),
                    func.lower(Document.document_number).like(pattern),
                )
            )
        if status is not None:
            conditions.append(Document.status == status)

        statement = (
            select(Document)
            .where(*conditions)
            .order_by(Document.created_at.desc(), Document.id.desc())  # type: ignore[union-attr]
            .offset((page - 1) * limit)
            .limit(limit)
        )
        documents = list(session.exec(statement).all())
        total = int(session.exec(select(func.count()).select_from(Document).where(*conditions)).one())
        return documents, total

    @staticmethod
    def get(session: Session, user: User, document_id: int) -> Document:
        document = session.get(Document, document_id)
        if document is None or document.deleted_at is not None:
            raise NotFound("Document not found")
        DocumentService._assert_can_access(session, user, document)
        return document

    @staticmethod
    def create(session: Session, user: User, data: DocumentCreate) -> Document:
        """
        Open a document for a client.

        Clients always file for themselves and cannot assign staff. Staff
        filing without naming someone are assigned the document. Without a
        due date, the type's estimated duration sets one.
        """
        if user.role == UserRole.CLIENT:
            profile = UserService.get_client_profile(session, user.id)  # type: ignore[arg-type]
            if profile is None:
                raise ValidationFailed("Client profile not found")
            client_id = profile.id
            staff_id = None
        else:
            if data.client_id is None:
                raise ValidationFailed("Client ID is required")
            if session.get(ClientProfile, data.client_id) is None:
                raise ValidationFailed("Client not found")
            client_id = data.client_id
            staff_id = data.staff_id
            if staff_id is None and user.role == UserRole.STAFF:
                staff_id = user.id
            DocumentService._validate_staff(session, staff_id)

        document_type = session.get(DocumentType, data.document_type_id)
        if document_type is None or not document_type.is_active:
            raise ValidationFailed("Document type not found")

        now = utcnow()
        due_date = data.due_date or (now + timedelta(days=document_type.estimated_duration_days)).date()
        document = Document(
            document_number=next_document_number(session, document_type.name, now),
            title=data.title,
            description=data.description,
            status=DocumentStatus.DRAFT,
            priority=data.priority,
            due_date=due_date,
            client_id=client_id,  # type: ignore[arg-type]
            document_type_id=document_type.id,  # type: ignore[arg-type]
            staff_id=staff_id,
        )
        session.add(document)
        session.flush()
        DocumentService._add_timeline(session, document, user, DocumentStatus.DRAFT, "Document created")
        AuditService.record(
            session,
            AuditAction.CREATE,
            "DOCUMENT",
            document.id,
            user_id=user.id,
            details={"document_number": document.document_number, "client_id": client_id},
        )
        session.commit()
        session.refresh(document)
        logger.info(f"Document {document.document_number} opened by user {user.id}")
        return document

    @staticmethod
    def update(session: Session, user: User, document_id: int, data: DocumentUpdate) -> Document:
        """
        Apply the fields the caller's role may change.

        Clients may edit the title and description while the document is a
        draft or just submitted, and may submit a draft. Staff and admins
        change everything; only admins reassign staff.
        """
        document = DocumentService.get(session, user, document_id)
        previous_status = document.status

        if user.role == UserRole.CLIENT:
            if document.status not in CLIENT_EDITABLE_STATUSES:
                raise PermissionDenied("Document can no longer be edited")
            if data.status is not None and data.status not in (document.status, DocumentStatus.SUBMITTED):
                raise PermissionDenied("Clients may only submit a document")
            if data.priority is not None or data.due_date is not None or data.staff_id is not None:
                raise PermissionDenied("Clients cannot change scheduling fields")
        elif data.staff_id is not None and data.staff_id != document.staff_id:
            ensure_role(user, ADMINS, "Only admins can reassign documents")
            DocumentService._validate_staff(session, data.staff_id)
            document.staff_id = data.staff_id

        if data.title is not None:
            document.title = data.title
        if "description" in data.model_fields_set:
            document.description = data.description
        if data.priority is not None:
            document.priority = data.priority
        if data.due_date is not None:
            document.due_date = data.due_date
        if data.status is not None:
            document.status = data.status

        if document.status != previous_status:
            document.completed_at = utcnow() if document.status == DocumentStatus.COMPLETED else None
            DocumentService._add_timeline(
                session,
                document,
                user,
                document.status,
                data.status_notes or f"Status changed to {document.status.value}",
            )
        document.updated_at = utcnow()
        session.add(document)

        action = AuditAction.STATUS_CHANGE if document.status != previous_status else AuditAction.UPDATE
        AuditService.record(
            session,
            action,
            "DOCUMENT",
            document.id,
            user_id=user.id,
            details={"status": document.status.value, "previous_status": previous_status.value},
        )
        session.commit()
        session.refresh(document)
        return document

    @staticmethod
    def soft_delete(session: Session, user: User, document_id: int) -> None:
        ensure_role(user, ADMINS)
        document = DocumentService.get(session, user, document_id)
        document.deleted_at = utcnow()
        session.add(document)
        AuditService.record(session, AuditAction.DELETE, "DOCUMENT", document_id, user_id=user.id)
        session.commit()
        logger.info(f"Document {document_id} soft-deleted by user {user.id}")

    @staticmethod
    def upcoming_deadlines(session: Session, today: date, limit: int = 5) -> list[Document]:
        statement = (
            select(Document)
            .where(
                Document.deleted_at.is_(None),  # type: ignore[union-attr]
                Document.status.notin_(CLOSED_DOCUMENT_STATUSES),  # type: ignore[attr-defined]
                Document.due_date >= today,  # type: ignore[operator]
            )
            .order_by(Document.due_date, Document.id)
            .limit(limit)
        )
        return list(session.exec(statement).all())

    # ---- checklist ----

    @staticmethod
    def checklist(session: Session, user: User, document_id: int) -> list[DocumentChecklistItem]:
        document = DocumentService.get(session, user, document_id)
        return list(document.checklist)

    @staticmethod
    def add_checklist_items(
        session: Session, user: User, document_id: int, data: ChecklistCreate
    ) -> list[DocumentChecklistItem]:
        ensure_role(user, STAFF_AND_ADMINS)
        document = DocumentService.get(session, user, document_id)
        start = len(document.checklist)
        for offset, item in enumerate(data.items):
            session.add(
                DocumentChecklistItem(
                    document_id=document_id,
                    label=item.label,
                    is_required=item.is_required,
                    notes=item.notes,
                    order=start + offset,
                )
            )
        AuditService.record(
            session,
            AuditAction.UPDATE,
            "DOCUMENT",
            document_id,
            user_id=user.id,
            details={"checklist_added": [item.label for item in data.items]},
        )
        session.commit()
        session.refresh(document)
        return list(document.checklist)

    @staticmethod
    def update_checklist_item(
        session: Session, user: User, document_id: int, data: ChecklistUpdate
    ) -> DocumentChecklistItem:
        """
        Tick an item off or verify it.

        Anyone who can see the document may toggle completion; only staff
        and admins verify.
        """
        DocumentService.get(session, user, document_id)
        item = session.get(DocumentChecklistItem, data.checklist_id)
        if item is None or item.document_id != document_id:
            raise NotFound("Checklist item not found")

        now = utcnow()
        if data.is_completed is not None:
            item.is_completed = data.is_completed
            item.completed_at = now if data.is_completed else None
        if data.verified is not None:
            ensure_role(user, STAFF_AND_ADMINS, "Only staff can verify checklist items")
            item.verified_by_id = user.id if data.verified else None
            item.verified_at = now if data.verified else None
        session.add(item)
        session.commit()
        session.refresh(item)
        return item
