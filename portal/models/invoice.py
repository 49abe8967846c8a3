"""
Billing models: invoices, their line items, and recorded payments.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from sqlmodel import Field, Relationship, SQLModel

from portal.models.base import SoftDeleteModel, utcnow


class InvoiceStatus(str, Enum):
    DRAFT = "DRAFT"
    SENT = "SENT"
    PARTIALLY_PAID = "PARTIALLY_PAID"
    PAID = "PAID"
    CANCELLED = "CANCELLED"


class PaymentMethod(str, Enum):
    BANK_TRANSFER = "BANK_TRANSFER"
    CASH = "CASH"
    CARD = "CARD"
    OTHER = "OTHER"


class Invoice(SoftDeleteModel, table=True):
    """
    Invoice issued to a client.

    Amounts are stored with two decimal places; ``total_amount`` is
    ``subtotal + tax_amount - discount`` and ``paid_amount`` is the sum of
    recorded payments.
    """

    __tablename__ = "invoices"  # type: ignore

    id: Optional[int] = Field(default=None, primary_key=True)
    invoice_number: str = Field(unique=True, index=True, max_length=20)
    client_id: int = Field(foreign_key="clients.id", index=True)
    created_by_id: Optional[int] = Field(default=None, foreign_key="users.id")
    status: InvoiceStatus = Field(default=InvoiceStatus.DRAFT, index=True)

    subtotal: Decimal = Field(default=Decimal("0.00"), max_digits=14, decimal_places=2)
    tax_percent: Decimal = Field(default=Decimal("0.00"), max_digits=5, decimal_places=2)
    tax_amount: Decimal = Field(default=Decimal("0.00"), max_digits=14, decimal_places=2)
    discount: Decimal = Field(default=Decimal("0.00"), max_digits=14, decimal_places=2)
    total_amount: Decimal = Field(default=Decimal("0.00"), max_digits=14, decimal_places=2)
    paid_amount: Decimal = Field(default=Decimal("0.00"), max_digits=14, decimal_places=2)

    notes: Optional[str] = None
    due_date: Optional[date] = None
    sent_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None

    items: List["InvoiceItem"] = Relationship(
        back_populates="invoice",
        sa_relationship_kwargs={"order_by": "InvoiceItem.order", "cascade": "all, delete-orphan"},
    )
    payments: List["Payment"] = Relationship(
        back_populates="invoice",
        sa_relationship_kwargs={"order_by": "Payment.paid_at.desc()"},
    )


class InvoiceItem(SQLModel, table=True):
    __tablename__ = "invoice_items"  # type: ignore

    id: Optional[int] = Field(default=None, primary_key=True)
    invoice_id: int = Field(foreign_key="invoices.id", index=True)
    description: str
    quantity: int = Field(default=1)
    unit_price: Decimal = Field(max_digits=14, decimal_places=2)
    amount: Decimal = Field(max_digits=14, decimal_places=2)
    order: int = Field(default=0)

    invoice: Optional[Invoice] = Relationship(back_populates="items")


class Payment(SQLModel, table=True):
    __tablename__ = "payments"  # type: ignore

    id: Optional[int] = Field(default=None, primary_key=True)
    invoice_id: int = Field(foreign_key="invoices.id", index=True)
    amount: Decimal = Field(max_digits=14, decimal_places=2)
    method: PaymentMethod = Field(default=PaymentMethod.BANK_TRANSFER)
    reference: Optional[str] = Field(default=None, max_length=255)
    notes: Optional[str] = None
    received_by_id: Optional[int] = Field(default=None, foreign_key="users.id")
    paid_at: datetime = Field(default_factory=utcnow)

    invoice: Optional[Invoice] = Relationship(back_populates="payments")
