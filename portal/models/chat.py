"""
Chatbot models: the knowledge base used for retrieval, and conversation logs
with token bookkeeping.
"""

from datetime import datetime
from typing import List, Optional

from sqlmodel import JSON, Column, Field, SQLModel

from portal.models.base import SoftDeleteModel, TimestampedModel, utcnow

GUEST_ROLE = "GUEST"


class KnowledgeBase(SoftDeleteModel, table=True):
    """
    An article the chatbot may quote. ``allowed_roles`` lists the roles
    (including GUEST) that may receive its content.
    """

    __tablename__ = "knowledge_bases"  # type: ignore

    id: Optional[int] = Field(default=None, primary_key=True)
    title: str = Field(max_length=255)
    category: Optional[str] = Field(default=None, max_length=100)
    content: str
    allowed_roles: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    is_active: bool = Field(default=True)


class KnowledgeChunk(SQLModel, table=True):
    __tablename__ = "knowledge_chunks"  # type: ignore

    id: Optional[int] = Field(default=None, primary_key=True)
    knowledge_base_id: int = Field(foreign_key="knowledge_bases.id", index=True)
    chunk_index: int = Field(default=0)
    heading: Optional[str] = Field(default=None, max_length=255)
    content: str


class ChatSession(TimestampedModel, table=True):
    __tablename__ = "chat_sessions"  # type: ignore

    id: Optional[int] = Field(default=None, primary_key=True)
    session_token: str = Field(unique=True, index=True, max_length=128)
    user_id: Optional[int] = Field(default=None, foreign_key="users.id", index=True)
    user_role: str = Field(default=GUEST_ROLE, max_length=20)
    title: Optional[str] = Field(default=None, max_length=100)
    model: Optional[str] = Field(default=None, max_length=100)
    total_messages: int = Field(default=0)
    input_tokens: int = Field(default=0)
    output_tokens: int = Field(default=0)
    total_tokens: int = Field(default=0)


class ChatMessage(SQLModel, table=True):
    __tablename__ = "chat_messages"  # type: ignore

    id: Optional[int] = Field(default=None, primary_key=True)
    session_id: int = Field(foreign_key="chat_sessions.id", index=True)
    role: str = Field(max_length=20)
    content: str
    input_tokens: int = Field(default=0)
    output_tokens: int = Field(default=0)
    total_tokens: int = Field(default=0)
    duration_ms: Optional[int] = None
    rag_sources: Optional[List[str]] = Field(default=None, sa_column=Column(JSON))
    created_at: datetime = Field(default_factory=utcnow)
