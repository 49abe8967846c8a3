"""
License management.

``/admin/license`` is SUPER_ADMIN only. ``/admin/license/verify`` takes no
credentials so it can be driven by a scheduler, and ``/license-status`` is
public so the login page can explain why a sign-in was refused.
"""

from typing import Annotated, Optional

from fastapi import APIRouter, Depends

from portal.api.deps import SessionDep, require_roles
from portal.core.access import SUPER_ADMIN_ONLY
from portal.models.license import License
from portal.models.user import User
from portal.schemas.admin import (
    LicenseActivateRequest,
    LicenseInfo,
    LicenseResponse,
    LicenseStatusResponse,
    LicenseVerifyResponse,
)
from portal.schemas.auth import MessageResponse
from portal.services.license_service import LicenseService, mask_license_key

router = APIRouter(tags=["license"])

SuperAdmin = Annotated[User, Depends(require_roles(*SUPER_ADMIN_ONLY))]


def _info(license: Optional[License]) -> LicenseResponse:
    if license is None:
        return LicenseResponse(license=None)
    return LicenseResponse(
        license=LicenseInfo(
            license_key=mask_license_key(license.license_key),
            package_type=license.package_type,
            domain=license.domain,
            holder_name=license.holder_name,
            office_name=license.office_name,
            activated_at=license.activated_at,
            expires_at=license.expires_at,
            last_verified=license.last_verified,
            is_active=license.is_active,
        )
    )


@router.get("/admin/license", response_model=LicenseResponse)
def get_license(session: SessionDep, actor: SuperAdmin) -> LicenseResponse:
    return _info(LicenseService.get_active(session))


@router.post("/admin/license", response_model=LicenseResponse)
def activate_license(payload: LicenseActivateRequest, session: SessionDep, actor: SuperAdmin) -> LicenseResponse:
    return _info(LicenseService.activate(session, actor, payload.license_key))


@router.delete("/admin/license", response_model=MessageResponse)
def deactivate_license(session: SessionDep, actor: SuperAdmin) -> MessageResponse:
    LicenseService.deactivate(session, actor)
    return MessageResponse(message="License deactivated")


@router.post("/admin/license/verify", response_model=LicenseVerifyResponse)
def verify_license(session: SessionDep) -> LicenseVerifyResponse:
    return LicenseVerifyResponse(**LicenseService.verify(session))


@router.get("/license-status", response_model=LicenseStatusResponse)
def license_status(session: SessionDep) -> LicenseStatusResponse:
    return LicenseStatusResponse(**LicenseService.get_status(session).to_dict())
