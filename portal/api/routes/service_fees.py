"""
Service fee list. Staff and admins read it when drawing up invoices; only
admins change it.
"""

from typing import Annotated, Optional

from fastapi import APIRouter, Depends

from portal.api.deps import SessionDep, require_roles
from portal.core.access import ADMINS, STAFF_AND_ADMINS
from portal.models.user import User
from portal.schemas.auth import MessageResponse
from portal.schemas.content import ServiceFeeCreate, ServiceFeeResponse, ServiceFeeUpdate
from portal.services.content_service import service_fees

router = APIRouter(prefix="/service-fees", tags=["service-fees"])

StaffUser = Annotated[User, Depends(require_roles(*STAFF_AND_ADMINS))]
AdminUser = Annotated[User, Depends(require_roles(*ADMINS))]


@router.get("", response_model=list[ServiceFeeResponse])
def list_service_fees(
    session: SessionDep, current_user: StaffUser, search: Optional[str] = None, category: Optional[str] = None
) -> list[ServiceFeeResponse]:
    return [ServiceFeeResponse.model_validate(f) for f in service_fees.search(session, search, category)]


@router.get("/{fee_id}", response_model=ServiceFeeResponse)
def get_service_fee(fee_id: int, session: SessionDep, current_user: StaffUser) -> ServiceFeeResponse:
    return ServiceFeeResponse.model_validate(service_fees.get(session, fee_id))


@router.post("", response_model=ServiceFeeResponse)
def create_service_fee(payload: ServiceFeeCreate, session: SessionDep, actor: AdminUser) -> ServiceFeeResponse:
    return ServiceFeeResponse.model_validate(service_fees.create(session, actor, payload))


@router.patch("/{fee_id}", response_model=ServiceFeeResponse)
def update_service_fee(
    fee_id: int, payload: ServiceFeeUpdate, session: SessionDep, actor: AdminUser
) -> ServiceFeeResponse:
    return ServiceFeeResponse.model_validate(service_fees.update(session, actor, fee_id, payload))


@router.delete("/{fee_id}", response_model=MessageResponse)
def delete_service_fee(fee_id: int, session: SessionDep, actor: AdminUser) -> MessageResponse:
    service_fees.soft_delete(session, actor, fee_id)
    return MessageResponse(message="Service fee deleted")
