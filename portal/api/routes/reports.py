"""
Reports for administrators: summary figures and monthly exports.
"""

from datetime import date, datetime, time, timedelta, timezone
from io import BytesIO
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse

from portal.api.deps import SessionDep, require_roles
from portal.core.access import ADMINS
from portal.models.user import User
from portal.services.report_service import ReportService

router = APIRouter(prefix="/reports", tags=["reports"])

AdminUser = Annotated[User, Depends(require_roles(*ADMINS))]


@router.get("/summary")
def report_summary(
    session: SessionDep,
    actor: AdminUser,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> dict:
    """
    Counts and revenue. ``end_date`` is inclusive.
    """
    start = datetime.combine(start_date, time.min, tzinfo=timezone.utc) if start_date else None
    end = datetime.combine(end_date + timedelta(days=1), time.min, tzinfo=timezone.utc) if end_date else None
    return ReportService.summary(session, start=start, end=end)


@router.get("/monthly/export")
def export_monthly_report(
    session: SessionDep,
    actor: AdminUser,
    year: int = Query(...),
    month: int = Query(...),
    format: str = "pdf",
) -> StreamingResponse:
    content, media_type, filename = ReportService.export_monthly(session, year, month, format)
    return StreamingResponse(
        BytesIO(content),
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
