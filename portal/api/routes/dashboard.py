"""
Dashboard figures for staff and admins.
"""

from typing import Annotated, Any

from fastapi import APIRouter, Depends

from portal.api.deps import SessionDep, require_roles
from portal.core.access import STAFF_AND_ADMINS
from portal.models.user import User
from portal.services.report_service import ReportService

router = APIRouter(prefix="/dashboard", tags=["dashboard"])

StaffUser = Annotated[User, Depends(require_roles(*STAFF_AND_ADMINS))]


@router.get("/stats")
def dashboard_stats(session: SessionDep, current_user: StaffUser) -> dict[str, Any]:
    return ReportService.dashboard_stats(session)
