"""
Document routes: tracking notarial documents and their requirement
checklists. Visibility and editable fields depend on the caller's role;
see ``DocumentService``.
"""

from typing import Optional

from fastapi import APIRouter, Query

from portal.api.deps import CurrentUser, SessionDep
from portal.models.document import DocumentStatus
from portal.schemas.auth import MessageResponse
from portal.schemas.document import (
    ChecklistCreate,
    ChecklistItemResponse,
    ChecklistResponse,
    ChecklistUpdate,
    DocumentCreate,
    DocumentDetailResponse,
    DocumentListResponse,
    DocumentResponse,
    DocumentUpdate,
)
from portal.services.document_service import DocumentService

router = APIRouter(prefix="/documents", tags=["documents"])


@router.get("", response_model=DocumentListResponse)
def list_documents(
    session: SessionDep,
    current_user: CurrentUser,
    search: Optional[str] = None,
    status: Optional[DocumentStatus] = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
) -> DocumentListResponse:
    documents, total = DocumentService.list(
        session, current_user, search=search, status=status, page=page, limit=limit
    )
    return DocumentListResponse(
        documents=[DocumentResponse.model_validate(d) for d in documents], total=total, page=page, limit=limit
    )


@router.post("", response_model=DocumentDetailResponse)
def create_document(payload: DocumentCreate, session: SessionDep, current_user: CurrentUser) -> DocumentDetailResponse:
    return DocumentDetailResponse.model_validate(DocumentService.create(session, current_user, payload))


@router.get("/{document_id}", response_model=DocumentDetailResponse)
def get_document(document_id: int, session: SessionDep, current_user: CurrentUser) -> DocumentDetailResponse:
    return DocumentDetailResponse.model_validate(DocumentService.get(session, current_user, document_id))


@router.put("/{document_id}", response_model=DocumentDetailResponse)
def update_document(
    document_id: int, payload: DocumentUpdate, session: SessionDep, current_user: CurrentUser
) -> DocumentDetailResponse:
    document = DocumentService.update(session, current_user, document_id, payload)
    return DocumentDetailResponse.model_validate(document)


@router.delete("/{document_id}", response_model=MessageResponse)
def delete_document(document_id: int, session: SessionDep, current_user: CurrentUser) -> MessageResponse:
    DocumentService.soft_delete(session, current_user, document_id)
    return MessageResponse(message="Document deleted")


# ---- checklist ----

@router.get("/{document_id}/checklist", response_model=ChecklistResponse)
def get_checklist(document_id: int, session: SessionDep, current_user: CurrentUser) -> ChecklistResponse:
    items = DocumentService.checklist(session, current_user, document_id)
    return ChecklistResponse(checklist=[ChecklistItemResponse.model_validate(i) for i in items])


@router.post("/{document_id}/checklist", response_model=ChecklistResponse)
def add_checklist_items(
    document_id: int, payload: ChecklistCreate, session: SessionDep, current_user: CurrentUser
) -> ChecklistResponse:
    items = DocumentService.add_checklist_items(session, current_user, document_id, payload)
    return ChecklistResponse(checklist=[ChecklistItemResponse.model_validate(i) for i in items])


@router.patch("/{document_id}/checklist", response_model=ChecklistItemResponse)
def update_checklist_item(
    document_id: int, payload: ChecklistUpdate, session: SessionDep, current_user: CurrentUser
) -> ChecklistItemResponse:
    item = DocumentService.update_checklist_item(session, current_user, document_id, payload)
    return ChecklistItemResponse.model_validate(item)
