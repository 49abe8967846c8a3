"""
Admin management of document types. Deleting a type deactivates it and is
refused while live documents use it.
"""

from typing import Annotated

from fastapi import APIRouter, Depends

from portal.api.deps import SessionDep, require_roles
from portal.core.access import ADMINS
from portal.models.user import User
from portal.schemas.auth import MessageResponse
from portal.schemas.document import DocumentTypeCreate, DocumentTypeResponse, DocumentTypeUpdate
from portal.services.document_service import DocumentTypeService

router = APIRouter(prefix="/admin/document-types", tags=["admin"])

AdminUser = Annotated[User, Depends(require_roles(*ADMINS))]


@router.get("", response_model=list[DocumentTypeResponse])
def list_document_types(
    session: SessionDep, actor: AdminUser, include_inactive: bool = False
) -> list[DocumentTypeResponse]:
    types = DocumentTypeService.list(session, include_inactive=include_inactive)
    return [DocumentTypeResponse.model_validate(t) for t in types]


@router.post("", response_model=DocumentTypeResponse)
def create_document_type(payload: DocumentTypeCreate, session: SessionDep, actor: AdminUser) -> DocumentTypeResponse:
    return DocumentTypeResponse.model_validate(DocumentTypeService.create(session, actor, payload))


@router.get("/{type_id}", response_model=DocumentTypeResponse)
def get_document_type(type_id: int, session: SessionDep, actor: AdminUser) -> DocumentTypeResponse:
    return DocumentTypeResponse.model_validate(DocumentTypeService.get(session, type_id))


@router.patch("/{type_id}", response_model=DocumentTypeResponse)
def update_document_type(
    type_id: int, payload: DocumentTypeUpdate, session: SessionDep, actor: AdminUser
) -> DocumentTypeResponse:
    return DocumentTypeResponse.model_validate(DocumentTypeService.update(session, actor, type_id, payload))


@router.delete("/{type_id}", response_model=MessageResponse)
def delete_document_type(type_id: int, session: SessionDep, actor: AdminUser) -> MessageResponse:
    DocumentTypeService.deactivate(session, actor, type_id)
    return MessageResponse(message="Document type deactivated")
