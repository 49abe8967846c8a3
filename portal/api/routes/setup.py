"""
First-run setup: create the SUPER_ADMIN account on an empty installation.
"""

from fastapi import APIRouter

from portal.api.deps import SessionDep
from portal.schemas.auth import SetupRequest, SetupStatus
from portal.schemas.user import UserSummary
from portal.services.user_service import UserService

router = APIRouter(prefix="/setup", tags=["setup"])


@router.get("/status", response_model=SetupStatus)
def setup_status(session: SessionDep) -> SetupStatus:
    return SetupStatus(needs_setup=not UserService.super_admin_exists(session))


@router.post("", response_model=UserSummary)
def run_setup(payload: SetupRequest, session: SessionDep) -> UserSummary:
    user = UserService.setup_super_admin(
        session, name=payload.name, email=payload.email, password=payload.password, phone=payload.phone
    )
    return UserSummary(id=user.id, name=user.full_name, email=user.email, role=user.role)  # type: ignore[arg-type]
