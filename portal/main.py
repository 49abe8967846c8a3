"""
Main FastAPI application entry point.
Configures the application, middleware, and routes.
"""

from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from portal.api.routes import (
    admin_content,
    admin_document_types,
    admin_users,
    appointments,
    audit_logs,
    auth,
    chatbot,
    dashboard,
    document_types,
    documents,
    health,
    invoices,
    knowledge_base,
    license,
    public,
    reports,
    service_fees,
    setup,
    staff,
    users,
)
from portal.core.access import DEFAULT_ROUTE_POLICIES, validate_policy_table
from portal.core.config import settings
from portal.core.errors import register_exception_handlers
from portal.core.gate import RequestGateMiddleware
from portal.core.logging import get_logger, setup_logging
from portal.db.init_db import bootstrap_superuser, create_db_and_tables
from portal.db.session import engine
from portal.ui import routes as ui_routes

# Setup logging
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan handler.
    Runs startup and shutdown logic.
    """
    logger.info(f"Starting {settings.PROJECT_NAME} v{settings.VERSION}")

    validate_policy_table(DEFAULT_ROUTE_POLICIES)

    logger.info("Creating database tables...")
    create_db_and_tables(engine)

    if not settings.DISABLE_BOOTSTRAP_USERS:
        bootstrap_superuser(engine)
    else:
        logger.info("User bootstrapping disabled (DISABLE_BOOTSTRAP_USERS=true)")

    logger.info("Application startup complete")

    yield

    logger.info("Shutting down application...")


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    openapi_url=f"{settings.API_PREFIX}/openapi.json",
    docs_url=f"{settings.API_PREFIX}/docs",
    redoc_url=f"{settings.API_PREFIX}/redoc",
    lifespan=lifespan,
)

register_exception_handlers(app)

if settings.BACKEND_CORS_ORIGINS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[str(origin).rstrip("/") for origin in settings.BACKEND_CORS_ORIGINS],
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["authorization", "content-type", "accept"],
    )

app.add_middleware(RequestGateMiddleware, policies=DEFAULT_ROUTE_POLICIES)

# API routers
for module in (
    health,
    auth,
    setup,
    users,
    public,
    appointments,
    staff,
    documents,
    document_types,
    invoices,
    service_fees,
    dashboard,
    reports,
    chatbot,
    admin_users,
    admin_content,
    admin_document_types,
    knowledge_base,
    audit_logs,
    license,
):
    app.include_router(module.router, prefix=settings.API_PREFIX)

# Pages
app.include_router(ui_routes.router, tags=["UI"])

app.mount("/static", StaticFiles(directory=str(Path(__file__).resolve().parent / "static")), name="static")
