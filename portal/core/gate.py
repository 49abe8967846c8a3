"""
Perimeter gate for page requests.

Every request passes through ``RequestGateMiddleware`` before routing. Page
requests are classified and then either allowed or redirected:

    static asset / API path   -> ALLOW
    public path               -> PUBLIC -> ALLOW
    anything else             -> REQUIRES_AUTH
        no identity           -> DENY_REDIRECT (/login?callbackUrl=<path>)
        identity              -> ROLE_CHECK
            first matching policy excludes the role -> DENY_REDIRECT (/dashboard)
            otherwise                               -> ALLOW

API routes are not gated here; each API handler checks its own roles.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence
from urllib.parse import urlencode

from fastapi import Request
from fastapi.responses import RedirectResponse
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response
from starlette.types import ASGIApp

from portal.core.access import DEFAULT_ROUTE_POLICIES, RoutePolicy, match_policy, path_has_prefix, validate_policy_table
from portal.core.config import settings
from portal.core.logging import get_logger
from portal.db.session import get_session
from portal.models.user import User
from portal.services.session_service import SessionService, extract_token

logger = get_logger(__name__)

LOGIN_PATH = "/login"
LANDING_PATH = "/dashboard"
PUBLIC_PATHS = frozenset({"/", "/login", "/register", "/setup", "/forgot-password", "/reset-password", "/offline"})
GUEST_ONLY_PATHS = frozenset({"/login", "/register"})
ASSET_PREFIXES = ("/static",)


class GateState(str, Enum):
    PUBLIC = "PUBLIC"
    REQUIRES_AUTH = "REQUIRES_AUTH"
    ROLE_CHECK = "ROLE_CHECK"
    ALLOW = "ALLOW"
    DENY_REDIRECT = "DENY_REDIRECT"


@dataclass(frozen=True)
class GateDecision:
    state: GateState
    via: GateState
    redirect_to: Optional[str] = None
    policy: Optional[RoutePolicy] = None

    @property
    def allowed(self) -> bool:
        return self.state == GateState.ALLOW


def is_bypassed(path: str) -> bool:
    """Static assets, files with an extension, and the JSON API skip the gate."""
    if path_has_prefix(path, settings.API_PREFIX):
        return True
    if any(path_has_prefix(path, prefix) for prefix in ASSET_PREFIXES):
        return True
    last_segment = path.rsplit("/", 1)[-1]
    return "." in last_segment


def is_public(path: str) -> bool:
    return path in PUBLIC_PATHS or (path != "/" and path.rstrip("/") in PUBLIC_PATHS)


def login_redirect(path: str, query: str = "") -> str:
    target = f"{path}?{query}" if query else path
    return f"{LOGIN_PATH}?{urlencode({'callbackUrl': target})}"


def evaluate(
    path: str,
    identity: Optional[User],
    policies: Sequence[RoutePolicy] = DEFAULT_ROUTE_POLICIES,
    query: str = "",
) -> GateDecision:
    """
    Decide what happens to a page request. Pure function of path, query
    string, identity and policy table; the query only feeds ``callbackUrl``.
    """
    if is_bypassed(path):
        return GateDecision(GateState.ALLOW, via=GateState.ALLOW)

    if is_public(path):
        if identity is not None and path.rstrip("/") in GUEST_ONLY_PATHS:
            return GateDecision(GateState.DENY_REDIRECT, via=GateState.PUBLIC, redirect_to=LANDING_PATH)
        return GateDecision(GateState.ALLOW, via=GateState.PUBLIC)

    if identity is None:
        return GateDecision(GateState.DENY_REDIRECT, via=GateState.REQUIRES_AUTH, redirect_to=login_redirect(path, query))

    policy = match_policy(path, policies)
    if policy is not None and identity.role not in policy.roles:
        return GateDecision(GateState.DENY_REDIRECT, via=GateState.ROLE_CHECK, redirect_to=LANDING_PATH, policy=policy)
    return GateDecision(GateState.ALLOW, via=GateState.ROLE_CHECK, policy=policy)


def resolve_request_identity(request: Request) -> Optional[User]:
    """
    Resolve the caller outside of FastAPI's dependency system.

    Honors ``app.dependency_overrides`` for ``get_session`` so the gate and
    the route handlers read from the same database.
    """
    token = extract_token(request)
    if not token:
        return None

    provider = request.app.dependency_overrides.get(get_session, get_session)
    sessions = provider()
    db = next(sessions)
    try:
        return SessionService.resolve(db, token)
    finally:
        sessions.close()


class RequestGateMiddleware(BaseHTTPMiddleware):
    """Applies ``evaluate`` to every request and stores the identity on ``request.state``."""

    def __init__(self, app: ASGIApp, policies: Sequence[RoutePolicy] = DEFAULT_ROUTE_POLICIES):
        super().__init__(app)
        validate_policy_table(policies)
        self.policies = tuple(policies)

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        path = request.url.path
        request.state.identity = None

        if is_bypassed(path):
            return await call_next(request)

        identity = await run_in_threadpool(resolve_request_identity, request)
        request.state.identity = identity

        decision = evaluate(path, identity, self.policies, query=request.url.query)
        if not decision.allowed:
            logger.info(
                f"Gate redirect {path} -> {decision.redirect_to} "
                f"({decision.via.value}, user={identity.id if identity else None})"
            )
            return RedirectResponse(decision.redirect_to or LOGIN_PATH, status_code=307)
        return await call_next(request)
