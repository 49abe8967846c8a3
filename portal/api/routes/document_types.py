"""
Document types offered to signed-in users when opening a document.
"""

from fastapi import APIRouter

from portal.api.deps import CurrentUser, SessionDep
from portal.schemas.document import DocumentTypeResponse
from portal.services.document_service import DocumentTypeService

router = APIRouter(prefix="/document-types", tags=["documents"])


@router.get("", response_model=list[DocumentTypeResponse])
def list_document_types(session: SessionDep, current_user: CurrentUser) -> list[DocumentTypeResponse]:
    return [DocumentTypeResponse.model_validate(t) for t in DocumentTypeService.list(session)]
