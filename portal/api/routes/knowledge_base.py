"""
Chatbot knowledge base management (SUPER_ADMIN).
"""

from typing import Annotated

from fastapi import APIRouter, Depends

from portal.api.deps import SessionDep, require_roles
from portal.core.access import SUPER_ADMIN_ONLY
from portal.models.chat import KnowledgeBase
from portal.models.user import User
from portal.schemas.auth import MessageResponse
from portal.schemas.chat import (
    KnowledgeBaseCreate,
    KnowledgeBaseListResponse,
    KnowledgeBaseResponse,
    KnowledgeBaseUpdate,
)
from portal.services.knowledge_service import KnowledgeService

router = APIRouter(prefix="/admin/knowledge-base", tags=["admin"])

SuperAdmin = Annotated[User, Depends(require_roles(*SUPER_ADMIN_ONLY))]


def _response(article: KnowledgeBase, chunk_count: int) -> KnowledgeBaseResponse:
    response = KnowledgeBaseResponse.model_validate(article)
    response.chunk_count = chunk_count
    return response


@router.get("", response_model=KnowledgeBaseListResponse)
def list_articles(session: SessionDep, actor: SuperAdmin) -> KnowledgeBaseListResponse:
    articles = KnowledgeService.list(session)
    counts = KnowledgeService.chunk_counts(session, [a.id for a in articles])  # type: ignore[misc]
    return KnowledgeBaseListResponse(items=[_response(a, counts.get(a.id, 0)) for a in articles])  # type: ignore[arg-type]


@router.post("", response_model=KnowledgeBaseResponse)
def create_article(payload: KnowledgeBaseCreate, session: SessionDep, actor: SuperAdmin) -> KnowledgeBaseResponse:
    article, chunk_count = KnowledgeService.create(session, actor, payload)
    return _response(article, chunk_count)


@router.get("/{article_id}", response_model=KnowledgeBaseResponse)
def get_article(article_id: int, session: SessionDep, actor: SuperAdmin) -> KnowledgeBaseResponse:
    article = KnowledgeService.get(session, article_id)
    return _response(article, KnowledgeService.chunk_counts(session, [article_id]).get(article_id, 0))


@router.put("/{article_id}", response_model=KnowledgeBaseResponse)
def update_article(
    article_id: int, payload: KnowledgeBaseUpdate, session: SessionDep, actor: SuperAdmin
) -> KnowledgeBaseResponse:
    article, chunk_count = KnowledgeService.update(session, actor, article_id, payload)
    return _response(article, chunk_count)


@router.delete("/{article_id}", response_model=MessageResponse)
def delete_article(article_id: int, session: SessionDep, actor: SuperAdmin) -> MessageResponse:
    KnowledgeService.soft_delete(session, actor, article_id)
    return MessageResponse(message="Knowledge base item deleted")
