"""
Invoice, line item and payment schemas.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from portal.models.invoice import InvoiceStatus, PaymentMethod


class InvoiceItemInput(BaseModel):
    description: str = Field(min_length=1)
    quantity: int = Field(default=1, gt=0)
    unit_price: Decimal = Field(ge=0)


class InvoiceCreate(BaseModel):
    client_id: int
    items: list[InvoiceItemInput] = Field(min_length=1)
    tax_percent: Decimal = Field(default=Decimal("0"), ge=0, le=100)
    discount: Decimal = Field(default=Decimal("0"), ge=0)
    notes: Optional[str] = None
    due_date: Optional[date] = None


class InvoiceUpdate(BaseModel):
    status: Optional[InvoiceStatus] = None
    items: Optional[list[InvoiceItemInput]] = Field(default=None, min_length=1)
    tax_percent: Optional[Decimal] = Field(default=None, ge=0, le=100)
    discount: Optional[Decimal] = Field(default=None, ge=0)
    notes: Optional[str] = None
    due_date: Optional[date] = None


class PaymentCreate(BaseModel):
    # Positivity is checked by the service so the error carries a readable message.
    amount: Decimal
    method: PaymentMethod = PaymentMethod.BANK_TRANSFER
    reference: Optional[str] = None
    notes: Optional[str] = None


class InvoiceItemResponse(BaseModel):
    id: int
    description: str
    quantity: int
    unit_price: Decimal
    amount: Decimal
    order: int

    model_config = {"from_attributes": True}


class PaymentResponse(BaseModel):
    id: int
    invoice_id: int
    amount: Decimal
    method: PaymentMethod
    reference: Optional[str] = None
    notes: Optional[str] = None
    received_by_id: Optional[int] = None
    paid_at: datetime

    model_config = {"from_attributes": True}


class InvoiceResponse(BaseModel):
    id: int
    invoice_number: str
    client_id: int
    created_by_id: Optional[int] = None
    status: InvoiceStatus
    subtotal: Decimal
    tax_percent: Decimal
    tax_amount: Decimal
    discount: Decimal
    total_amount: Decimal
    paid_amount: Decimal
    notes: Optional[str] = None
    due_date: Optional[date] = None
    sent_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    items: list[InvoiceItemResponse] = []
    payments: list[PaymentResponse] = []

    model_config = {"from_attributes": True}


class InvoiceEnvelope(BaseModel):
    success: bool = True
    invoice: InvoiceResponse


class InvoiceListResponse(BaseModel):
    invoices: list[InvoiceResponse]
    total: int
    page: int
    limit: int


class PaymentEnvelope(BaseModel):
    success: bool = True
    payment: PaymentResponse
    invoice: InvoiceResponse
