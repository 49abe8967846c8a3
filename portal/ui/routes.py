"""
Server-rendered pages.

Access control for these paths is done by ``RequestGateMiddleware`` before
routing; handlers only read the resolved identity from ``request.state``.
Page data is loaded by the browser from the JSON API.
"""

from pathlib import Path
from typing import Any, Optional

from fastapi import APIRouter, Request
from fastapi.responses import FileResponse, HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates

from portal.core.access import ADMINS, STAFF_AND_ADMINS, has_role
from portal.core.config import settings
from portal.core.logging import get_logger
from portal.models.user import User

logger = get_logger(__name__)

router = APIRouter()

PACKAGE_DIR = Path(__file__).resolve().parent.parent

templates = Jinja2Templates(directory=str(PACKAGE_DIR / "templates"))


def get_template_context(request: Request, page: str, **kwargs: Any) -> dict[str, Any]:
    """Common context for every page."""
    user: Optional[User] = getattr(request.state, "identity", None)
    return {
        "page": page,
        "user": user,
        "project_name": settings.PROJECT_NAME,
        "api_prefix": settings.API_PREFIX,
        "is_admin": user is not None and has_role(user, ADMINS),
        "is_staff": user is not None and has_role(user, STAFF_AND_ADMINS),
        **kwargs,
    }


def render(request: Request, template: str, page: str, **kwargs: Any) -> HTMLResponse:
    return templates.TemplateResponse(request, template, get_template_context(request, page, **kwargs))


# ========== Public Pages ==========

@router.get("/", response_class=HTMLResponse)
async def landing_page(request: Request):
    """Landing page with services, team, testimonials and FAQ."""
    return render(request, "index.html", "home")


@router.get("/login", response_class=HTMLResponse)
async def login_page(request: Request, callbackUrl: str = "/dashboard"):
    # only same-site redirects after sign-in
    if not callbackUrl.startswith("/") or callbackUrl.startswith("//"):
        callbackUrl = "/dashboard"
    return render(request, "login.html", "login", callback_url=callbackUrl)


@router.get("/register", response_class=HTMLResponse)
async def register_page(request: Request):
    return render(request, "register.html", "register")


@router.get("/forgot-password", response_class=HTMLResponse)
async def forgot_password_page(request: Request):
    return render(request, "forgot_password.html", "forgot-password")


@router.get("/reset-password", response_class=HTMLResponse)
async def reset_password_page(request: Request, token: str = ""):
    return render(request, "reset_password.html", "reset-password", token=token)


@router.get("/setup", response_class=HTMLResponse)
async def setup_page(request: Request):
    return render(request, "setup.html", "setup")


@router.get("/offline", response_class=HTMLResponse)
async def offline_page(request: Request):
    """Fallback the service worker serves when a navigation fails."""
    return render(request, "offline.html", "offline")


# ========== Signed-in Pages ==========

@router.get("/dashboard", response_class=HTMLResponse)
async def dashboard_page(request: Request):
    user = request.state.identity
    if user is None:
        return RedirectResponse("/login", status_code=307)
    return render(request, "dashboard.html", "dashboard")


@router.get("/billing", response_class=HTMLResponse)
async def billing_page(request: Request):
    return render(request, "billing.html", "billing")


@router.get("/staff", response_class=HTMLResponse)
async def staff_page(request: Request):
    return render(request, "staff.html", "staff")


@router.get("/admin", response_class=HTMLResponse)
async def admin_page(request: Request):
    return render(request, "admin.html", "admin")


@router.get("/admin/license", response_class=HTMLResponse)
async def license_page(request: Request):
    return render(request, "license.html", "license")


@router.get("/admin/knowledge-base", response_class=HTMLResponse)
async def knowledge_base_page(request: Request):
    return render(request, "knowledge_base.html", "knowledge-base")


@router.get("/reports", response_class=HTMLResponse)
async def reports_page(request: Request):
    return render(request, "reports.html", "reports")


@router.get("/sw.js", include_in_schema=False)
async def service_worker():
    """Serve the worker from the root so its scope covers every page."""
    return FileResponse(
        PACKAGE_DIR / "static" / "sw.js",
        media_type="application/javascript",
        headers={"Cache-Control": "no-cache", "Service-Worker-Allowed": "/"},
    )
