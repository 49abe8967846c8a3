"""
Office chatbot with knowledge retrieval.

Flow for one turn:

1. find or create the chat session for ``session_token``
2. rank knowledge chunks the caller's role may see against the last user
   message and keep the best few
3. build a role-specific system prompt with services, FAQ (guests and
   clients only) and the retrieved chunks
4. call an OpenAI-compatible ``/chat/completions`` endpoint
5. store both messages and add their token counts to the session
"""

import math
import time
from dataclasses import dataclass
from typing import Any, Optional

import requests
from fuzzywuzzy import fuzz
from sqlalchemy import func
from sqlmodel import Session, select

from portal.core.access import ADMINS
from portal.core.config import settings
from portal.core.errors import NotFound, ServiceUnavailable, ValidationFailed
from portal.core.logging import get_logger
from portal.models.base import utcnow
from portal.models.chat import GUEST_ROLE, ChatMessage, ChatSession, KnowledgeBase, KnowledgeChunk
from portal.models.content import Faq, Service
from portal.models.user import User, UserRole
from portal.schemas.chat import ChatRequest

logger = get_logger(__name__)

CHARS_PER_TOKEN = 3.5
CONTEXT_ITEM_LIMIT = 15
FALLBACK_REPLY = "Sorry, I can't answer that right now."

BASE_RULES = """
Rules:
- Answer politely and professionally, in the language the user writes in
- Keep answers short, at most 4-5 sentences unless asked for detail
- Write plain text, no markdown
- When a portal page is relevant, point to it as "open [page name] at /url"
- If a question is outside your scope, say you cannot help with it
- Never invent information that is not in the context"""

ROLE_PROMPTS = {
    GUEST_ROLE: """You are the virtual assistant of a notary office, speaking with a prospective client.
Help with: the notarial services offered, document requirements, general procedures,
fees where the context lists them, and how to register or book an appointment.
Do not describe internal features of the portal (admin or staff pages).""",
    UserRole.CLIENT.value: """You are the virtual assistant of a notary office, speaking with a registered client.
Help with: booking and rescheduling appointments, invoices and how to pay them,
finding their way around the client portal, and document requirements.""",
    UserRole.STAFF.value: """You are the assistant for notary office staff.
Help with: managing appointments, creating invoices and recording payments,
and answering client questions about services.""",
    UserRole.ADMIN.value: """You are the assistant for notary office administrators.
Help with everything staff do plus: managing users and roles, branches, services,
landing page content (FAQ, team, testimonials, gallery), reports and audit logs.""",
    UserRole.SUPER_ADMIN.value: """You are the technical assistant for the notary office super admin.
Help with every admin feature plus license management, the chatbot knowledge base,
system configuration and token usage.""",
}


def estimate_tokens(text: str) -> int:
    """Rough token count: about 3.5 characters per token."""
    if not text:
        return 0
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def system_prompt_for_role(role: str) -> str:
    return f"{ROLE_PROMPTS.get(role, ROLE_PROMPTS[GUEST_ROLE])}\n{BASE_RULES}"


@dataclass
class RetrievedChunk:
    chunk_id: int
    title: str
    content: str
    score: int


def search_knowledge(
    session: Session,
    query: str,
    role: str,
    top_k: Optional[int] = None,
    min_score: Optional[int] = None,
) -> list[RetrievedChunk]:
    """
    Rank the chunks visible to ``role`` by fuzzy token-set similarity.

    Articles that are inactive, deleted, or do not list the role are never
    considered.
    """
    top_k = top_k or settings.AI_RAG_TOP_K
    min_score = settings.AI_RAG_MIN_SCORE if min_score is None else min_score
    if not query.strip():
        return []

    rows = session.exec(
        select(KnowledgeChunk, KnowledgeBase)
        .join(KnowledgeBase, KnowledgeBase.id == KnowledgeChunk.knowledge_base_id)
        .where(
            KnowledgeBase.is_active == True,  # noqa: E712
            KnowledgeBase.deleted_at.is_(None),  # type: ignore[union-attr]
        )
    ).all()

    scored = []
    for chunk, article in rows:
        if role not in (article.allowed_roles or []):
            continue
        haystack = f"{article.title} {chunk.heading or ''} {chunk.content}"
        score = fuzz.token_set_ratio(query, haystack)
        if score >= min_score:
            scored.append(RetrievedChunk(chunk_id=chunk.id, title=article.title, content=chunk.content, score=score))  # type: ignore[arg-type]

    scored.sort(key=lambda item: (-item.score, item.chunk_id))
    return scored[:top_k]


def build_rag_context(chunks: list[RetrievedChunk]) -> str:
    if not chunks:
        return ""
    parts = "\n\n".join(f"[Info {i} - {chunk.title}]\n{chunk.content}" for i, chunk in enumerate(chunks, start=1))
    return (
        "\nKNOWLEDGE BASE CONTEXT (use it to answer):\n"
        f"{parts}\n---\n"
        "Answer from the context above when it is relevant. Otherwise answer from general "
        "knowledge as a notary office assistant."
    )


def build_office_context(session: Session, role: str) -> str:
    sections = []
    services = session.exec(
        select(Service)
        .where(Service.is_active == True, Service.deleted_at.is_(None))  # type: ignore[union-attr]  # noqa: E712
        .order_by(Service.order)
        .limit(CONTEXT_ITEM_LIMIT)
    ).all()
    if services:
        lines = "\n".join(
            f"- {s.title}: {s.description or ''} ({s.duration_minutes} minutes)" for s in services
        )
        sections.append(f"SERVICES OFFERED:\n{lines}")

    if role in (GUEST_ROLE, UserRole.CLIENT.value):
        faqs = session.exec(
            select(Faq)
            .where(Faq.is_active == True, Faq.deleted_at.is_(None))  # type: ignore[union-attr]  # noqa: E712
            .order_by(Faq.order)
            .limit(CONTEXT_ITEM_LIMIT)
        ).all()
        if faqs:
            sections.append("FAQ:\n" + "\n\n".join(f"Q: {f.question}\nA: {f.answer}" for f in faqs))
    return "\n\n".join(sections)


class ChatProviderClient:
    """Client for an OpenAI-compatible chat completions API."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.base_url = (base_url or settings.AI_API_BASE_URL or "").rstrip("/")
        self.api_key = api_key or settings.AI_API_KEY
        self.model = model or settings.AI_MODEL
        self.timeout = timeout or settings.AI_TIMEOUT_SECONDS

    @property
    def configured(self) -> bool:
        return bool(self.base_url and self.api_key)

    def complete(self, messages: list[dict[str, str]]) -> dict[str, Any]:
        """
        Request a completion.

        Raises:
            ServiceUnavailable: provider not configured, unreachable, or
                answering with an error status
        """
        if not self.configured:
            raise ServiceUnavailable("The AI assistant is not configured")
        try:
            response = requests.post(
                f"{self.base_url}/chat/completions",
                headers={"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"},
                json={
                    "model": self.model,
                    "messages": messages,
                    "max_tokens": settings.AI_MAX_TOKENS,
                    "temperature": settings.AI_TEMPERATURE,
                },
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"AI provider request failed: {e}")
            raise ServiceUnavailable("Could not reach the AI assistant. Please try again.") from e

        if response.status_code >= 400:
            logger.error(f"AI provider error {response.status_code}: {response.text[:500]}")
            raise ServiceUnavailable("Could not reach the AI assistant. Please try again.")
        try:
            return response.json()
        except ValueError as e:
            logger.error(f"AI provider returned invalid JSON: {e}")
            raise ServiceUnavailable("The AI assistant returned an invalid response") from e


def extract_usage(result: dict[str, Any]) -> tuple[int, int]:
    usage = result.get("usage") or {}
    return int(usage.get("prompt_tokens") or 0), int(usage.get("completion_tokens") or 0)


def extract_reply(result: dict[str, Any]) -> str:
    choices = result.get("choices") or []
    if choices:
        content = (choices[0].get("message") or {}).get("content")
        if content:
            return str(content).strip()
    return FALLBACK_REPLY


class ChatbotService:
    client_factory = ChatProviderClient

    @staticmethod
    def _find_session(session: Session, request: ChatRequest, user: Optional[User]) -> Optional[ChatSession]:
        """The caller's existing session for ``request.session_token``, if any."""
        chat = session.exec(select(ChatSession).where(ChatSession.session_token == request.session_token)).first()
        if chat is None:
            return None
        owner_id = user.id if user else None
        if chat.user_id is not None and chat.user_id != owner_id:
            raise ValidationFailed("Invalid session token")
        if request.session_id is not None and request.session_id != chat.id:
            raise ValidationFailed("Session mismatch")
        return chat

    @staticmethod
    def _create_session(session: Session, request: ChatRequest, user: Optional[User], role: str, model: str) -> ChatSession:
        chat = ChatSession(
            session_token=request.session_token,
            user_id=user.id if user else None,
            user_role=role,
            model=model,
        )
        session.add(chat)
        session.flush()
        return chat

    @staticmethod
    def chat(session: Session, request: ChatRequest, user: Optional[User]) -> dict[str, Any]:
        """
        Answer the latest user message.

        Returns:
            ``{reply, session_id, message_id, tokens, rag_sources}``

        Raises:
            ValidationFailed: the last message is not from the user
            ServiceUnavailable: the AI provider is missing or failing
        """
        started = time.monotonic()
        role = user.role.value if user else GUEST_ROLE
        client = ChatbotService.client_factory()
        if not client.configured:
            raise ServiceUnavailable("The AI assistant is not configured")

        last = request.messages[-1]
        if last.role != "user":
            raise ValidationFailed("The last message must come from the user")
        question = last.content
        existing = ChatbotService._find_session(session, request, user)

        chunks = search_knowledge(session, question, role)
        rag_sources = list(dict.fromkeys(chunk.title for chunk in chunks))
        prompt_parts = [system_prompt_for_role(role)]
        if user is not None:
            prompt_parts.append(f"User name: {user.full_name}")
        office_context = build_office_context(session, role)
        if office_context:
            prompt_parts.append(office_context)
        rag_context = build_rag_context(chunks)
        if rag_context:
            prompt_parts.append(rag_context)
        system_prompt = "\n\n".join(prompt_parts)

        window = request.messages[-settings.AI_HISTORY_WINDOW:]
        api_messages = [{"role": "system", "content": system_prompt}]
        api_messages.extend({"role": turn.role, "content": turn.content} for turn in window)

        result = client.complete(api_messages)
        reply = extract_reply(result)
        input_tokens, output_tokens = extract_usage(result)
        input_tokens = input_tokens or estimate_tokens(" ".join(m["content"] for m in api_messages))
        output_tokens = output_tokens or estimate_tokens(reply)
        total_tokens = input_tokens + output_tokens

        try:
            chat = existing or ChatbotService._create_session(session, request, user, role, client.model)
            question_tokens = estimate_tokens(question)
            session.add(
                ChatMessage(
                    session_id=chat.id,  # type: ignore[arg-type]
                    role="user",
                    content=question,
                    input_tokens=question_tokens,
                    total_tokens=question_tokens,
                )
            )
            answer = ChatMessage(
                session_id=chat.id,  # type: ignore[arg-type]
                role="assistant",
                content=reply,
                input_tokens=input_tokens,
                output_tokens=output_tokens,
                total_tokens=total_tokens,
                duration_ms=int((time.monotonic() - started) * 1000),
                rag_sources=rag_sources,
            )
            session.add(answer)

            chat.total_messages += 2
            chat.input_tokens += input_tokens + question_tokens
            chat.output_tokens += output_tokens
            chat.total_tokens += total_tokens + question_tokens
            if not chat.title:
                chat.title = question[:100]
            chat.updated_at = utcnow()
            session.add(chat)
            session.commit()
        except Exception:
            session.rollback()
            raise

        session.refresh(answer)
        logger.info(
            f"Chat session {chat.id} ({role}): {total_tokens} tokens, {len(chunks)} knowledge chunks"
        )
        return {
            "reply": reply,
            "session_id": chat.id,
            "message_id": answer.id,
            "tokens": {"input": input_tokens, "output": output_tokens, "total": total_tokens},
            "rag_sources": rag_sources,
        }

    @staticmethod
    def history(session: Session, user: User, page: int = 1, limit: int = 20) -> tuple[list[ChatSession], int]:
        statement = select(ChatSession).where(ChatSession.user_id == user.id)
        sessions = list(
            session.exec(
                statement.order_by(ChatSession.updated_at.desc())  # type: ignore[union-attr]
                .offset((page - 1) * limit)
                .limit(limit)
            ).all()
        )
        total = session.exec(select(func.count()).select_from(ChatSession).where(ChatSession.user_id == user.id)).one()
        return sessions, int(total)

    @staticmethod
    def get_session(session: Session, user: User, session_id: int) -> ChatSession:
        """Own sessions only; admins may open any session."""
        chat = session.get(ChatSession, session_id)
        if chat is None or (chat.user_id != user.id and user.role not in ADMINS):
            raise NotFound("Session not found")
        return chat

    @staticmethod
    def transcript(session: Session, user: User, session_id: int) -> tuple[ChatSession, list[ChatMessage]]:
        chat = ChatbotService.get_session(session, user, session_id)
        messages = session.exec(
            select(ChatMessage).where(ChatMessage.session_id == chat.id).order_by(ChatMessage.created_at, ChatMessage.id)
        ).all()
        return chat, list(messages)

    @staticmethod
    def delete_session(session: Session, user: User, session_id: int) -> None:
        chat = session.get(ChatSession, session_id)
        if chat is None or chat.user_id != user.id:
            raise NotFound("Session not found")
        for message in session.exec(select(ChatMessage).where(ChatMessage.session_id == chat.id)).all():
            session.delete(message)
        session.delete(chat)
        session.commit()
        logger.info(f"Chat session {session_id} deleted by user {user.id}")
