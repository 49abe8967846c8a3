"""
Knowledge base articles and the chunker that feeds retrieval.

Articles are split into chunks on save:

1. split on markdown headings (``#`` to ``###``)
2. sections over the size limit are split on blank lines, merging small
   paragraphs
3. paragraphs still over the limit are split on sentence boundaries
4. each chunk after the first is prefixed with the tail of the previous one
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import func
from sqlmodel import Session, select

from portal.core.errors import NotFound, ValidationFailed
from portal.core.logging import get_logger
from portal.models.audit import AuditAction
from portal.models.base import utcnow
from portal.models.chat import KnowledgeBase, KnowledgeChunk
from portal.models.user import User
from portal.schemas.chat import ALL_CHAT_ROLES, KnowledgeBaseCreate, KnowledgeBaseUpdate
from portal.services.audit_service import AuditService

logger = get_logger(__name__)

MAX_CHUNK_SIZE = 1500
CHUNK_OVERLAP = 100

HEADING_RE = re.compile(r"^#{1,3}\s+(.+)$")
PARAGRAPH_RE = re.compile(r"\n\n+")
SENTENCE_RE = re.compile(r"(?<=[.!?])\s+")


@dataclass
class Chunk:
    content: str
    heading: Optional[str]
    index: int


def _split_by_headings(content: str) -> list[tuple[Optional[str], str]]:
    sections: list[tuple[Optional[str], str]] = []
    heading: Optional[str] = None
    lines: list[str] = []
    for line in content.split("\n"):
        match = HEADING_RE.match(line)
        if match:
            if lines:
                sections.append((heading, "\n".join(lines).strip()))
            heading = match.group(1).strip()
            lines = [line]
        else:
            lines.append(line)
    if lines:
        sections.append((heading, "\n".join(lines).strip()))
    return [(h, text) for h, text in sections if text]


def _split_by_sentences(text: str, max_size: int) -> list[str]:
    chunks: list[str] = []
    current = ""
    for sentence in SENTENCE_RE.split(text):
        if current and len(current) + len(sentence) + 1 > max_size:
            chunks.append(current.strip())
            current = sentence
        else:
            current = f"{current} {sentence}" if current else sentence
    if current.strip():
        chunks.append(current.strip())
    return chunks


def _split_by_paragraphs(text: str, max_size: int) -> list[str]:
    chunks: list[str] = []
    current = ""
    for paragraph in PARAGRAPH_RE.split(text):
        if len(paragraph) > max_size:
            if current:
                chunks.append(current.strip())
                current = ""
            chunks.extend(_split_by_sentences(paragraph, max_size))
        elif current and len(current) + len(paragraph) + 2 > max_size:
            chunks.append(current.strip())
            current = paragraph
        else:
            current = f"{current}\n\n{paragraph}" if current else paragraph
    if current.strip():
        chunks.append(current.strip())
    return chunks


def chunk_content(content: str, max_size: int = MAX_CHUNK_SIZE, overlap: int = CHUNK_OVERLAP) -> list[Chunk]:
    """
    Split an article into retrieval chunks.

    Args:
        content: Markdown-ish article text
        max_size: Target upper bound on chunk length before overlap is added
        overlap: Characters carried over from the previous chunk

    Returns:
        Chunks in document order, indexed from 0
    """
    if not content or not content.strip():
        return []
    if len(content) <= max_size:
        return [Chunk(content=content.strip(), heading=None, index=0)]

    pieces: list[tuple[Optional[str], str]] = []
    for heading, section in _split_by_headings(content):
        if len(section) <= max_size:
            pieces.append((heading, section))
        else:
            pieces.extend((heading, part) for part in _split_by_paragraphs(section, max_size))

    texts = [text for _, text in pieces]
    if overlap > 0:
        for i in range(len(texts) - 1, 0, -1):
            tail = texts[i - 1][-overlap:]
            # start the carried-over text on a word boundary
            if " " in tail:
                tail = tail[tail.index(" ") + 1:]
            texts[i] = f"...{tail} {texts[i]}"

    return [Chunk(content=text, heading=heading, index=i) for i, ((heading, _), text) in enumerate(zip(pieces, texts))]


def _validate_roles(roles: list[str]) -> list[str]:
    unknown = sorted(set(roles) - set(ALL_CHAT_ROLES))
    if unknown:
        raise ValidationFailed(f"Unknown roles: {', '.join(unknown)}")
    if not roles:
        raise ValidationFailed("At least one role must be allowed")
    return list(dict.fromkeys(roles))


class KnowledgeService:
    @staticmethod
    def _drop_chunks(session: Session, article_id: int) -> None:
        for chunk in session.exec(select(KnowledgeChunk).where(KnowledgeChunk.knowledge_base_id == article_id)).all():
            session.delete(chunk)
        session.flush()

    @staticmethod
    def _rechunk(session: Session, article: KnowledgeBase) -> int:
        KnowledgeService._drop_chunks(session, article.id)  # type: ignore[arg-type]
        chunks = chunk_content(article.content)
        for chunk in chunks:
            session.add(
                KnowledgeChunk(
                    knowledge_base_id=article.id,  # type: ignore[arg-type]
                    chunk_index=chunk.index,
                    heading=chunk.heading[:255] if chunk.heading else None,
                    content=chunk.content,
                )
            )
        return len(chunks)

    @staticmethod
    def chunk_counts(session: Session, article_ids: list[int]) -> dict[int, int]:
        if not article_ids:
            return {}
        rows = session.exec(
            select(KnowledgeChunk.knowledge_base_id, func.count())
            .where(KnowledgeChunk.knowledge_base_id.in_(article_ids))  # type: ignore[attr-defined]
            .group_by(KnowledgeChunk.knowledge_base_id)
        ).all()
        return {article_id: int(count) for article_id, count in rows}

    @staticmethod
    def list(session: Session) -> list[KnowledgeBase]:
        return list(
            session.exec(
                select(KnowledgeBase)
                .where(KnowledgeBase.deleted_at.is_(None))  # type: ignore[union-attr]
                .order_by(KnowledgeBase.created_at.desc())  # type: ignore[union-attr]
            ).all()
        )

    @staticmethod
    def get(session: Session, article_id: int) -> KnowledgeBase:
        article = session.get(KnowledgeBase, article_id)
        if article is None or article.deleted_at is not None:
            raise NotFound("Knowledge base item not found")
        return article

    @staticmethod
    def create(session: Session, actor: User, data: KnowledgeBaseCreate) -> tuple[KnowledgeBase, int]:
        article = KnowledgeBase(
            title=data.title,
            category=data.category,
            content=data.content,
            allowed_roles=_validate_roles(data.allowed_roles),
            is_active=data.is_active,
        )
        session.add(article)
        session.flush()
        chunk_count = KnowledgeService._rechunk(session, article)
        AuditService.record(
            session,
            AuditAction.CREATE,
            "KNOWLEDGE_BASE",
            article.id,
            user_id=actor.id,
            details={"title": article.title, "chunks": chunk_count},
        )
        session.commit()
        session.refresh(article)
        logger.info(f"Knowledge base item {article.id} created with {chunk_count} chunks")
        return article, chunk_count

    @staticmethod
    def update(session: Session, actor: User, article_id: int, data: KnowledgeBaseUpdate) -> tuple[KnowledgeBase, int]:
        article = KnowledgeService.get(session, article_id)
        if data.title is not None:
            article.title = data.title
        if data.category is not None:
            article.category = data.category
        if data.allowed_roles is not None:
            article.allowed_roles = _validate_roles(data.allowed_roles)
        if data.is_active is not None:
            article.is_active = data.is_active
        content_changed = data.content is not None and data.content != article.content
        if content_changed:
            article.content = data.content  # type: ignore[assignment]
        article.updated_at = utcnow()
        session.add(article)

        if content_changed:
            chunk_count = KnowledgeService._rechunk(session, article)
        else:
            chunk_count = KnowledgeService.chunk_counts(session, [article_id]).get(article_id, 0)

        AuditService.record(
            session,
            AuditAction.UPDATE,
            "KNOWLEDGE_BASE",
            article.id,
            user_id=actor.id,
            details={"title": article.title, "rechunked": content_changed},
        )
        session.commit()
        session.refresh(article)
        return article, chunk_count

    @staticmethod
    def soft_delete(session: Session, actor: User, article_id: int) -> None:
        article = KnowledgeService.get(session, article_id)
        article.deleted_at = utcnow()
        article.is_active = False
        session.add(article)
        KnowledgeService._drop_chunks(session, article_id)
        AuditService.record(session, AuditAction.DELETE, "KNOWLEDGE_BASE", article_id, user_id=actor.id)
        session.commit()
