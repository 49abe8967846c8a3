"""
Engine construction and the per-request session dependency.

SQLite is used for development and tests; an in-memory URL gets a single
shared connection so every session sees the same tables. Any other URL is
treated as a pooled server database.
"""

from typing import Generator

from sqlalchemy.engine import Engine
from sqlmodel import Session, create_engine
from sqlmodel.pool import StaticPool

from portal.core.config import settings

IN_MEMORY_URLS = frozenset({"sqlite://", "sqlite:///:memory:"})


def build_engine(url: str, echo: bool = False) -> Engine:
    if url in IN_MEMORY_URLS:
        return create_engine(url, echo=echo, connect_args={"check_same_thread": False}, poolclass=StaticPool)
    if url.startswith("sqlite"):
        return create_engine(url, echo=echo, connect_args={"check_same_thread": False})
    return create_engine(url, echo=echo, pool_pre_ping=True, pool_size=5, max_overflow=10)


engine = build_engine(settings.SQLALCHEMY_DATABASE_URI, echo=settings.DEBUG)


def get_session() -> Generator[Session, None, None]:
    """
    Yield a session for one request.

    Work a handler leaves uncommitted when it raises is rolled back before
    the connection returns to the pool.
    """
    with Session(engine) as session:
        try:
            yield session
        except Exception:
            session.rollback()
            raise
