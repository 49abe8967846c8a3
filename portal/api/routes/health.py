"""
Liveness and dependency checks. Public, no identity needed.
"""

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from portal.api.deps import SessionDep
from portal.core.config import settings
from portal.core.logging import get_logger
from portal.workers.queue import queue_status

logger = get_logger(__name__)

router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
def health_check() -> dict:
    """Service identity plus which optional integrations are switched on."""
    return {
        "status": "healthy",
        "service": settings.PROJECT_NAME,
        "version": settings.VERSION,
        "chatbot_configured": bool(settings.AI_API_BASE_URL and settings.AI_API_KEY),
        "license_required": settings.LICENSE_REQUIRED_FOR_LOGIN,
    }


@router.get("/db")
def database_health_check(session: SessionDep):
    try:
        session.connection().execute(text("SELECT 1")).scalar()
    except SQLAlchemyError as e:
        logger.error(f"Database health check failed: {e}")
        return JSONResponse(status_code=503, content={"status": "unhealthy", "database": "error"})
    return {"status": "healthy", "database": "ok"}


@router.get("/queue")
def queue_health_check():
    result = queue_status()
    if result["status"] != "healthy":
        return JSONResponse(status_code=503, content=result)
    return result
