"""
API dependencies for FastAPI dependency injection.
Provides reusable dependencies for authentication and authorization.
"""

from typing import Annotated, Callable, Optional

from fastapi import Depends, Request
from sqlmodel import Session

from portal.core.access import ensure_role
from portal.core.errors import NotAuthenticated
from portal.core.logging import get_logger
from portal.db.session import get_session
from portal.models.user import User, UserRole
from portal.services.session_service import SessionService, extract_token

logger = get_logger(__name__)

SessionDep = Annotated[Session, Depends(get_session)]


def get_optional_user(request: Request, session: SessionDep) -> Optional[User]:
    """Resolve the caller's identity; guests resolve to None."""
    return SessionService.resolve(session, extract_token(request))


def get_current_user(user: Annotated[Optional[User], Depends(get_optional_user)]) -> User:
    """
    Dependency to get the current authenticated user.

    Raises:
        NotAuthenticated: If no valid session accompanies the request
    """
    if user is None:
        raise NotAuthenticated()
    return user


def require_roles(*roles: UserRole) -> Callable[[User], User]:
    """
    Build a dependency that admits only the given roles.

    Usage::

        @router.post("/branches")
        def create_branch(user: Annotated[User, Depends(require_roles(*ADMINS))]): ...
    """
    allowed = frozenset(roles)

    def dependency(current_user: Annotated[User, Depends(get_current_user)]) -> User:
        if current_user.role not in allowed:
            logger.warning(f"User {current_user.id} ({current_user.role.value}) denied; requires {sorted(r.value for r in allowed)}")
        return ensure_role(current_user, allowed)

    return dependency


CurrentUser = Annotated[User, Depends(get_current_user)]
OptionalUser = Annotated[Optional[User], Depends(get_optional_user)]
