"""
Invoice routes: listing, issuing, editing, payments and PDF export.

Clients can read their own invoices. Staff and admins issue and edit
invoices and record payments. Only admins delete.
"""

from io import BytesIO
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse

from portal.api.deps import CurrentUser, SessionDep, require_roles
from portal.core.access import ADMINS, STAFF_AND_ADMINS
from portal.models.invoice import InvoiceStatus
from portal.models.user import User
from portal.schemas.auth import MessageResponse
from portal.schemas.invoice import (
    InvoiceCreate,
    InvoiceEnvelope,
    InvoiceListResponse,
    InvoiceResponse,
    InvoiceUpdate,
    PaymentCreate,
    PaymentEnvelope,
    PaymentResponse,
)
from portal.services.invoice_service import InvoiceService
from portal.services.report_service import PDF_MEDIA_TYPE, export_invoice_pdf

router = APIRouter(prefix="/invoices", tags=["invoices"])

StaffUser = Annotated[User, Depends(require_roles(*STAFF_AND_ADMINS))]
AdminUser = Annotated[User, Depends(require_roles(*ADMINS))]


@router.get("", response_model=InvoiceListResponse)
def list_invoices(
    session: SessionDep,
    current_user: CurrentUser,
    status: Optional[InvoiceStatus] = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
) -> InvoiceListResponse:
    invoices, total = InvoiceService.list(session, current_user, status=status, page=page, limit=limit)
    return InvoiceListResponse(
        invoices=[InvoiceResponse.model_validate(i) for i in invoices], total=total, page=page, limit=limit
    )


@router.post("", response_model=InvoiceEnvelope)
def create_invoice(payload: InvoiceCreate, session: SessionDep, current_user: StaffUser) -> InvoiceEnvelope:
    invoice = InvoiceService.create(session, current_user, payload)
    return InvoiceEnvelope(invoice=InvoiceResponse.model_validate(invoice))


@router.get("/{invoice_id}", response_model=InvoiceEnvelope)
def get_invoice(invoice_id: int, session: SessionDep, current_user: CurrentUser) -> InvoiceEnvelope:
    invoice = InvoiceService.get(session, current_user, invoice_id)
    return InvoiceEnvelope(invoice=InvoiceResponse.model_validate(invoice))


@router.patch("/{invoice_id}", response_model=InvoiceEnvelope)
def update_invoice(
    invoice_id: int, payload: InvoiceUpdate, session: SessionDep, current_user: StaffUser
) -> InvoiceEnvelope:
    invoice = InvoiceService.update(session, current_user, invoice_id, payload)
    return InvoiceEnvelope(invoice=InvoiceResponse.model_validate(invoice))


@router.delete("/{invoice_id}", response_model=MessageResponse)
def delete_invoice(invoice_id: int, session: SessionDep, current_user: AdminUser) -> MessageResponse:
    InvoiceService.soft_delete(session, current_user, invoice_id)
    return MessageResponse(message="Invoice deleted")


@router.post("/{invoice_id}/payments", response_model=PaymentEnvelope)
def record_payment(
    invoice_id: int, payload: PaymentCreate, session: SessionDep, current_user: StaffUser
) -> PaymentEnvelope:
    payment = InvoiceService.record_payment(session, current_user, invoice_id, payload)
    invoice = InvoiceService.get(session, current_user, invoice_id)
    return PaymentEnvelope(
        payment=PaymentResponse.model_validate(payment), invoice=InvoiceResponse.model_validate(invoice)
    )


@router.get("/{invoice_id}/export")
def export_invoice(invoice_id: int, session: SessionDep, current_user: CurrentUser) -> StreamingResponse:
    invoice = InvoiceService.get(session, current_user, invoice_id)
    content, filename = export_invoice_pdf(session, invoice)
    return StreamingResponse(
        BytesIO(content),
        media_type=PDF_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
