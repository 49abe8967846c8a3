"""
Invoicing: numbering, totals and payment recording.

Totals::

    amount      = quantity * unit_price           (per item)
    subtotal    = sum(amount)
    tax_amount  = subtotal * tax_percent / 100
    total       = subtotal + tax_amount - discount

All money is ``Decimal`` rounded half-up to cents.
"""

from __future__ import annotations

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from sqlalchemy import func
from sqlmodel import Session, select

from portal.core.access import ADMINS, STAFF_AND_ADMINS, ensure_role
from portal.core.errors import NotFound, PermissionDenied, ValidationFailed
from portal.core.logging import get_logger
from portal.models.audit import AuditAction
from portal.models.base import utcnow
from portal.models.invoice import Invoice, InvoiceItem, InvoiceStatus, Payment
from portal.models.user import ClientProfile, User, UserRole
from portal.schemas.invoice import InvoiceCreate, InvoiceItemInput, InvoiceUpdate, PaymentCreate
from portal.services.audit_service import AuditService
from portal.services.user_service import UserService

logger = get_logger(__name__)

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def money(value: Decimal | int | float | str) -> Decimal:
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def compute_totals(
    items: list[InvoiceItemInput], tax_percent: Decimal, discount: Decimal
) -> tuple[list[InvoiceItem], dict[str, Decimal]]:
    """
    Build line items and the invoice amounts.

    Returns:
        ``(items, amounts)`` where ``amounts`` has subtotal, tax_percent,
        tax_amount, discount and total_amount.
    """
    line_items = [
        InvoiceItem(
            description=item.description,
            quantity=item.quantity,
            unit_price=money(item.unit_price),
            amount=money(item.quantity * item.unit_price),
            order=index,
        )
        for index, item in enumerate(items)
    ]
    subtotal = money(sum((line.amount for line in line_items), ZERO))
    tax_amount = money(subtotal * Decimal(tax_percent) / 100)
    discount = money(discount)
    return line_items, {
        "subtotal": subtotal,
        "tax_percent": money(tax_percent),
        "tax_amount": tax_amount,
        "discount": discount,
        "total_amount": money(subtotal + tax_amount - discount),
    }


PAYMENT_STATUSES = frozenset({InvoiceStatus.PAID, InvoiceStatus.PARTIALLY_PAID})


def settle_status(invoice: Invoice, now: datetime) -> None:
    """
    Derive PAID / PARTIALLY_PAID from the amounts.

    PAID iff something was paid and ``paid_amount >= total_amount``.
    Cancelled invoices and invoices with nothing paid keep their status.
    """
    if invoice.status == InvoiceStatus.CANCELLED or invoice.paid_amount <= ZERO:
        return
    if invoice.paid_amount >= invoice.total_amount:
        invoice.status = InvoiceStatus.PAID
        invoice.paid_at = invoice.paid_at or now
    else:
        invoice.status = InvoiceStatus.PARTIALLY_PAID
        invoice.paid_at = None


def next_invoice_number(session: Session, now: Optional[datetime] = None) -> str:
    """``INV-YYYY-NNNN``, sequential within the calendar year."""
    year = (now or utcnow()).year
    prefix = f"INV-{year}-"
    last = session.exec(
        select(Invoice.invoice_number)
        .where(Invoice.invoice_number.startswith(prefix))  # type: ignore[attr-defined]
        .order_by(Invoice.invoice_number.desc())  # type: ignore[attr-defined]
    ).first()
    sequence = int(last.rsplit("-", 1)[-1]) + 1 if last else 1
    return f"{prefix}{sequence:04d}"


class InvoiceService:
    @staticmethod
    def _client_scope(session: Session, user: User) -> Optional[int]:
        """Client profile id a CLIENT is restricted to; None for staff and admins."""
        if user.role != UserRole.CLIENT:
            return None
        profile = UserService.get_client_profile(session, user.id)  # type: ignore[arg-type]
        return profile.id if profile else -1

    @staticmethod
    def list(
        session: Session,
        user: User,
        status: Optional[InvoiceStatus] = None,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[Invoice], int]:
        conditions = [Invoice.deleted_at.is_(None)]  # type: ignore[union-attr]
        client_id = InvoiceService._client_scope(session, user)
        if client_id is not None:
            conditions.append(Invoice.client_id == client_id)
        if status is not None:
            conditions.append(Invoice.status == status)

        statement = (
            select(Invoice)
            .where(*conditions)
            .order_by(Invoice.created_at.desc(), Invoice.id.desc())  # type: ignore[union-attr]
            .offset((page - 1) * limit)
            .limit(limit)
        )
        invoices = list(session.exec(statement).all())
        total = int(session.exec(select(func.count()).select_from(Invoice).where(*conditions)).one())
        return invoices, total

    @staticmethod
    def get(session: Session, user: User, invoice_id: int) -> Invoice:
        invoice = session.get(Invoice, invoice_id)
        if invoice is None or invoice.deleted_at is not None:
            raise NotFound("Invoice not found")
        client_id = InvoiceService._client_scope(session, user)
        if client_id is not None and invoice.client_id != client_id:
            raise PermissionDenied("Access denied")
        return invoice

    @staticmethod
    def create(session: Session, user: User, data: InvoiceCreate) -> Invoice:
        ensure_role(user, STAFF_AND_ADMINS)
        if session.get(ClientProfile, data.client_id) is None:
            raise ValidationFailed("Client not found")

        line_items, amounts = compute_totals(data.items, data.tax_percent, data.discount)
        invoice = Invoice(
            invoice_number=next_invoice_number(session),
            client_id=data.client_id,
            created_by_id=user.id,
            notes=data.notes,
            due_date=data.due_date,
            items=line_items,
            **amounts,
        )
        session.add(invoice)
        session.flush()
        AuditService.record(
            session,
            AuditAction.CREATE,
            "INVOICE",
            invoice.id,
            user_id=user.id,
            details={"invoice_number": invoice.invoice_number, "total_amount": str(invoice.total_amount)},
        )
        session.commit()
        session.refresh(invoice)
        logger.info(f"Invoice {invoice.invoice_number} created by user {user.id}")
        return invoice

    @staticmethod
    def update(session: Session, user: User, invoice_id: int, data: InvoiceUpdate) -> Invoice:
        ensure_role(user, STAFF_AND_ADMINS)
        invoice = InvoiceService.get(session, user, invoice_id)
        now = utcnow()

        if data.status is not None and data.status != invoice.status:
            if data.status in PAYMENT_STATUSES:
                raise ValidationFailed("Invoices become paid by recording payments")
            invoice.status = data.status
            if data.status == InvoiceStatus.SENT and invoice.sent_at is None:
                invoice.sent_at = now
        if data.notes is not None:
            invoice.notes = data.notes
        if "due_date" in data.model_fields_set:
            invoice.due_date = data.due_date

        if data.items is not None:
            tax_percent = data.tax_percent if data.tax_percent is not None else invoice.tax_percent
            discount = data.discount if data.discount is not None else invoice.discount
            line_items, amounts = compute_totals(data.items, tax_percent, discount)
            invoice.items = line_items
            for field, value in amounts.items():
                setattr(invoice, field, value)
        elif data.tax_percent is not None or data.discount is not None:
            if data.tax_percent is not None:
                invoice.tax_percent = money(data.tax_percent)
            if data.discount is not None:
                invoice.discount = money(data.discount)
            invoice.tax_amount = money(invoice.subtotal * invoice.tax_percent / 100)
            invoice.total_amount = money(invoice.subtotal + invoice.tax_amount - invoice.discount)

        settle_status(invoice, now)

        invoice.updated_at = now
        session.add(invoice)
        AuditService.record(
            session,
            AuditAction.UPDATE,
            "INVOICE",
            invoice.id,
            user_id=user.id,
            details=data.model_dump(mode="json", exclude_unset=True, exclude={"items"}),
        )
        session.commit()
        session.refresh(invoice)
        return invoice

    @staticmethod
    def soft_delete(session: Session, user: User, invoice_id: int) -> None:
        ensure_role(user, ADMINS)
        invoice = InvoiceService.get(session, user, invoice_id)
        invoice.deleted_at = utcnow()
        session.add(invoice)
        AuditService.record(session, AuditAction.DELETE, "INVOICE", invoice.id, user_id=user.id)
        session.commit()
        logger.info(f"Invoice {invoice.invoice_number} deleted by user {user.id}")

    @staticmethod
    def record_payment(session: Session, user: User, invoice_id: int, data: PaymentCreate) -> Payment:
        """
        Add a payment and move the invoice to PAID or PARTIALLY_PAID.

        The payment row and the invoice update commit together.

        Raises:
            ValidationFailed: non-positive amount or a cancelled invoice
        """
        ensure_role(user, STAFF_AND_ADMINS)
        if data.amount is None or data.amount <= 0:
            raise ValidationFailed("Payment amount must be greater than 0")

        invoice = InvoiceService.get(session, user, invoice_id)
        if invoice.status == InvoiceStatus.CANCELLED:
            raise ValidationFailed("Cannot record a payment on a cancelled invoice")

        try:
            payment = Payment(
                invoice_id=invoice.id,  # type: ignore[arg-type]
                amount=money(data.amount),
                method=data.method,
                reference=data.reference,
                notes=data.notes,
                received_by_id=user.id,
            )
            session.add(payment)

            now = utcnow()
            invoice.paid_amount = money(invoice.paid_amount + payment.amount)
            settle_status(invoice, now)
            invoice.updated_at = now
            session.add(invoice)
            session.flush()

            AuditService.record(
                session,
                AuditAction.PAYMENT,
                "INVOICE",
                invoice.id,
                user_id=user.id,
                details={
                    "payment_id": payment.id,
                    "amount": str(payment.amount),
                    "paid_amount": str(invoice.paid_amount),
                    "status": invoice.status.value,
                },
            )
            session.commit()
        except Exception:
            session.rollback()
            raise

        session.refresh(payment)
        session.refresh(invoice)
        logger.info(f"Payment {payment.id} of {payment.amount} recorded on {invoice.invoice_number}")
        return payment
