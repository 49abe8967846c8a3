"""
Chatbot and knowledge base schemas.
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

from portal.models.chat import GUEST_ROLE
from portal.models.user import UserRole

ALL_CHAT_ROLES = [GUEST_ROLE, *(role.value for role in UserRole)]


class ChatTurn(BaseModel):
    role: Literal["user", "assistant"]
    content: str = Field(min_length=1, max_length=4000)


class ChatRequest(BaseModel):
    messages: list[ChatTurn] = Field(min_length=1)
    session_token: str = Field(min_length=8, max_length=128)
    session_id: Optional[int] = None


class TokenUsage(BaseModel):
    input: int
    output: int
    total: int


class ChatReply(BaseModel):
    reply: str
    session_id: int
    message_id: int
    tokens: TokenUsage
    rag_sources: list[str]


class ChatSessionResponse(BaseModel):
    id: int
    title: Optional[str] = None
    user_role: str
    model: Optional[str] = None
    total_messages: int
    input_tokens: int
    output_tokens: int
    total_tokens: int
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ChatMessageResponse(BaseModel):
    id: int
    role: str
    content: str
    total_tokens: int
    rag_sources: Optional[list[str]] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class ChatHistoryResponse(BaseModel):
    sessions: list[ChatSessionResponse]
    pagination: Pagination


class ChatTranscriptResponse(BaseModel):
    session: ChatSessionResponse
    messages: list[ChatMessageResponse]


class KnowledgeBaseCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    category: str = Field(min_length=1, max_length=100)
    content: str = Field(min_length=1)
    allowed_roles: list[str] = Field(default_factory=lambda: list(ALL_CHAT_ROLES))
    is_active: bool = True


class KnowledgeBaseUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    category: Optional[str] = Field(default=None, min_length=1, max_length=100)
    content: Optional[str] = Field(default=None, min_length=1)
    allowed_roles: Optional[list[str]] = None
    is_active: Optional[bool] = None


class KnowledgeBaseResponse(BaseModel):
    id: int
    title: str
    category: Optional[str] = None
    content: str
    allowed_roles: list[str]
    is_active: bool
    chunk_count: int = 0
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class KnowledgeBaseListResponse(BaseModel):
    items: list[KnowledgeBaseResponse]
