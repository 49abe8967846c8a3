"""
Chatbot routes. Chatting works without signing in; history requires an
account.
"""

import math

from fastapi import APIRouter, Query

from portal.api.deps import CurrentUser, OptionalUser, SessionDep
from portal.schemas.auth import MessageResponse
from portal.schemas.chat import (
    ChatHistoryResponse,
    ChatMessageResponse,
    ChatReply,
    ChatRequest,
    ChatSessionResponse,
    ChatTranscriptResponse,
    Pagination,
)
from portal.services.chatbot_service import ChatbotService

router = APIRouter(prefix="/chatbot", tags=["chatbot"])


@router.post("", response_model=ChatReply)
def chat(payload: ChatRequest, session: SessionDep, current_user: OptionalUser) -> ChatReply:
    return ChatReply(**ChatbotService.chat(session, payload, current_user))


@router.get("/history", response_model=ChatHistoryResponse)
def chat_history(
    session: SessionDep,
    current_user: CurrentUser,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
) -> ChatHistoryResponse:
    sessions, total = ChatbotService.history(session, current_user, page=page, limit=limit)
    return ChatHistoryResponse(
        sessions=[ChatSessionResponse.model_validate(s) for s in sessions],
        pagination=Pagination(page=page, limit=limit, total=total, total_pages=math.ceil(total / limit)),
    )


@router.get("/history/{session_id}", response_model=ChatTranscriptResponse)
def chat_transcript(session_id: int, session: SessionDep, current_user: CurrentUser) -> ChatTranscriptResponse:
    chat_session, messages = ChatbotService.transcript(session, current_user, session_id)
    return ChatTranscriptResponse(
        session=ChatSessionResponse.model_validate(chat_session),
        messages=[ChatMessageResponse.model_validate(m) for m in messages],
    )


@router.delete("/history/{session_id}", response_model=MessageResponse)
def delete_chat_session(session_id: int, session: SessionDep, current_user: CurrentUser) -> MessageResponse:
    ChatbotService.delete_session(session, current_user, session_id)
    return MessageResponse(message="Session deleted")
