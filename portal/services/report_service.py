"""
Reporting: dashboard summary figures and document exports.

PDF output uses fpdf2 with the built-in Helvetica font, which only covers
Latin-1; text is transliterated before it is written. Workbooks use openpyxl.
"""

import calendar
from collections import Counter
from datetime import date, datetime, timezone
from decimal import Decimal
from io import BytesIO
from typing import Any, Optional

from fpdf import FPDF
from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from sqlalchemy import func
from sqlmodel import Session, select

from portal.core.config import settings
from portal.core.errors import ValidationFailed
from portal.core.logging import get_logger
from portal.models.appointment import Appointment
from portal.models.document import Document
from portal.models.invoice import Invoice, InvoiceStatus, Payment
from portal.models.user import ClientProfile, User, UserRole
from portal.services.document_service import DocumentService

logger = get_logger(__name__)

ZERO = Decimal("0.00")
EXPORT_FORMATS = ("pdf", "xlsx")
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
PDF_MEDIA_TYPE = "application/pdf"
UNPAID_INVOICE_STATUSES = (InvoiceStatus.DRAFT, InvoiceStatus.SENT, InvoiceStatus.PARTIALLY_PAID)


def _latin1(text: Any) -> str:
    return str(text if text is not None else "").encode("latin-1", "replace").decode("latin-1")


def _fmt_money(value: Optional[Decimal]) -> str:
    return f"{(value or ZERO):,.2f}"


def _fmt_date(value: Optional[date | datetime]) -> str:
    if value is None:
        return "-"
    return value.strftime("%d %b %Y")


def month_bounds(year: int, month: int) -> tuple[datetime, datetime]:
    """Half-open UTC interval ``[start, end)`` covering the month."""
    if not 1 <= month <= 12:
        raise ValidationFailed("Month must be between 1 and 12")
    if not 2000 <= year <= 2100:
        raise ValidationFailed("Year is out of range")
    start = datetime(year, month, 1, tzinfo=timezone.utc)
    if month == 12:
        end = datetime(year + 1, 1, 1, tzinfo=timezone.utc)
    else:
        end = datetime(year, month + 1, 1, tzinfo=timezone.utc)
    return start, end


def _client_names(session: Session, client_ids: set[int]) -> dict[int, str]:
    if not client_ids:
        return {}
    rows = session.exec(
        select(ClientProfile.id, User.full_name, ClientProfile.company_name)
        .join(User, User.id == ClientProfile.user_id)
        .where(ClientProfile.id.in_(client_ids))  # type: ignore[union-attr]
    ).all()
    return {client_id: company or name for client_id, name, company in rows}


class ReportService:
    @staticmethod
    def summary(session: Session, start: Optional[datetime] = None, end: Optional[datetime] = None) -> dict[str, Any]:
        """
        Headline figures for the reports page.

        Counts of users are all-time; appointment and invoice figures are
        restricted to ``[start, end)`` on their creation time when given.
        """
        live_users = [User.deleted_at.is_(None)]  # type: ignore[union-attr]
        user_counts = Counter(
            role for role in session.exec(select(User.role).where(*live_users)).all()
        )

        appointment_query = select(Appointment.status)
        invoice_query = select(Invoice).where(Invoice.deleted_at.is_(None))  # type: ignore[union-attr]
        payment_query = select(func.coalesce(func.sum(Payment.amount), 0))
        if start is not None:
            appointment_query = appointment_query.where(Appointment.created_at >= start)
            invoice_query = invoice_query.where(Invoice.created_at >= start)
            payment_query = payment_query.where(Payment.paid_at >= start)
        if end is not None:
            appointment_query = appointment_query.where(Appointment.created_at < end)
            invoice_query = invoice_query.where(Invoice.created_at < end)
            payment_query = payment_query.where(Payment.paid_at < end)

        appointment_statuses = Counter(status.value for status in session.exec(appointment_query).all())
        invoices = list(session.exec(invoice_query).all())
        invoice_statuses = Counter(invoice.status.value for invoice in invoices)

        billable = [invoice for invoice in invoices if invoice.status != InvoiceStatus.CANCELLED]
        invoiced = sum((invoice.total_amount for invoice in billable), ZERO)
        outstanding = sum((invoice.total_amount - invoice.paid_amount for invoice in billable), ZERO)
        collected = Decimal(str(session.exec(payment_query).one()))

        return {
            "users": {
                "total": sum(user_counts.values()),
                "clients": user_counts.get(UserRole.CLIENT, 0),
                "staff": user_counts.get(UserRole.STAFF, 0),
                "admins": user_counts.get(UserRole.ADMIN, 0) + user_counts.get(UserRole.SUPER_ADMIN, 0),
            },
            "appointments": {
                "total": sum(appointment_statuses.values()),
                "by_status": dict(appointment_statuses),
            },
            "invoices": {
                "total": len(invoices),
                "by_status": dict(invoice_statuses),
            },
            "revenue": {
                "invoiced": str(invoiced.quantize(Decimal("0.01"))),
                "collected": str(collected.quantize(Decimal("0.01"))),
                "outstanding": str(max(outstanding, ZERO).quantize(Decimal("0.01"))),
            },
        }

    @staticmethod
    def dashboard_stats(session: Session, now: Optional[datetime] = None) -> dict[str, Any]:
        """
        Working figures for the staff dashboard: documents by status, this
        month's revenue, money still owed and the next document deadlines.
        """
        now = now or datetime.now(timezone.utc)
        start, end = month_bounds(now.year, now.month)

        document_statuses = Counter(
            status.value
            for status in session.exec(
                select(Document.status).where(Document.deleted_at.is_(None))  # type: ignore[union-attr]
            ).all()
        )

        live_invoices = select(Invoice).where(Invoice.deleted_at.is_(None))  # type: ignore[union-attr]
        month_paid = list(
            session.exec(
                live_invoices.where(
                    Invoice.created_at >= start,
                    Invoice.created_at < end,
                    Invoice.status.in_([InvoiceStatus.PAID, InvoiceStatus.PARTIALLY_PAID]),  # type: ignore[attr-defined]
                )
            ).all()
        )
        unpaid = list(
            session.exec(
                live_invoices.where(Invoice.status.in_(UNPAID_INVOICE_STATUSES))  # type: ignore[attr-defined]
            ).all()
        )
        outstanding = sum((invoice.total_amount - invoice.paid_amount for invoice in unpaid), ZERO)

        deadlines = DocumentService.upcoming_deadlines(session, now.date())
        return {
            "year": now.year,
            "month": now.month,
            "documents_by_status": dict(document_statuses),
            "revenue": {
                "collected": str(sum((i.paid_amount for i in month_paid), ZERO).quantize(Decimal("0.01"))),
                "invoiced": str(sum((i.total_amount for i in month_paid), ZERO).quantize(Decimal("0.01"))),
                "invoice_count": len(month_paid),
            },
            "outstanding": {
                "amount": str(max(outstanding, ZERO).quantize(Decimal("0.01"))),
                "unpaid_count": len(unpaid),
            },
            "upcoming_deadlines": [
                {
                    "id": document.id,
                    "document_number": document.document_number,
                    "title": document.title,
                    "status": document.status.value,
                    "due_date": document.due_date.isoformat() if document.due_date else None,
                    "client_id": document.client_id,
                }
                for document in deadlines
            ],
        }

    @staticmethod
    def monthly_data(session: Session, year: int, month: int) -> dict[str, Any]:
        start, end = month_bounds(year, month)
        invoices = list(
            session.exec(
                select(Invoice)
                .where(
                    Invoice.deleted_at.is_(None),  # type: ignore[union-attr]
                    Invoice.created_at >= start,
                    Invoice.created_at < end,
                )
                .order_by(Invoice.invoice_number)
            ).all()
        )
        payments = list(
            session.exec(
                select(Payment).where(Payment.paid_at >= start, Payment.paid_at < end).order_by(Payment.paid_at)
            ).all()
        )
        appointment_count = int(
            session.exec(
                select(func.count())
                .select_from(Appointment)
                .where(Appointment.scheduled_at >= start, Appointment.scheduled_at < end)
            ).one()
        )
        names = _client_names(session, {invoice.client_id for invoice in invoices})
        invoice_numbers = dict(
            session.exec(
                select(Invoice.id, Invoice.invoice_number).where(
                    Invoice.id.in_({payment.invoice_id for payment in payments})  # type: ignore[union-attr]
                )
            ).all()
        ) if payments else {}

        return {
            "period": f"{calendar.month_name[month]} {year}",
            "invoices": invoices,
            "payments": payments,
            "client_names": names,
            "invoice_numbers": invoice_numbers,
            "appointment_count": appointment_count,
            "invoiced_total": sum((i.total_amount for i in invoices if i.status != InvoiceStatus.CANCELLED), ZERO),
            "collected_total": sum((p.amount for p in payments), ZERO),
        }

    @staticmethod
    def export_monthly(session: Session, year: int, month: int, fmt: str) -> tuple[bytes, str, str]:
        """
        Render the monthly report.

        Returns:
            ``(content, media_type, filename)``
        """
        fmt = (fmt or "pdf").lower()
        if fmt not in EXPORT_FORMATS:
            raise ValidationFailed("Unsupported format. Use pdf or xlsx.")
        data = ReportService.monthly_data(session, year, month)
        filename = f"report-{year}-{month:02d}.{fmt}"
        if fmt == "xlsx":
            return build_monthly_workbook(data), XLSX_MEDIA_TYPE, filename
        return build_monthly_pdf(data), PDF_MEDIA_TYPE, filename


def build_monthly_workbook(data: dict[str, Any]) -> bytes:
    wb = Workbook()

    header_fill = PatternFill(start_color="1F2937", end_color="1F2937", fill_type="solid")
    header_font = Font(bold=True, color="FFFFFF", size=11)
    bold_font = Font(bold=True, size=10)
    currency_fmt = "#,##0.00"
    right_align = Alignment(horizontal="right", vertical="center")

    summary = wb.active
    summary.title = "Summary"
    summary.column_dimensions["A"].width = 28
    summary.column_dimensions["B"].width = 18
    summary["A1"] = f"{settings.PROJECT_NAME}: monthly report"
    summary["A1"].font = Font(bold=True, size=13)
    summary["A2"] = data["period"]
    rows = [
        ("Invoices issued", len(data["invoices"])),
        ("Amount invoiced", float(data["invoiced_total"])),
        ("Payments received", len(data["payments"])),
        ("Amount collected", float(data["collected_total"])),
        ("Appointments scheduled", data["appointment_count"]),
    ]
    for offset, (label, value) in enumerate(rows, start=4):
        summary.cell(row=offset, column=1, value=label).font = bold_font
        cell = summary.cell(row=offset, column=2, value=value)
        cell.alignment = right_align
        if isinstance(value, float):
            cell.number_format = currency_fmt

    def write_header(ws, headers: list[str], widths: list[int]) -> None:
        for col, (title, width) in enumerate(zip(headers, widths), start=1):
            cell = ws.cell(row=1, column=col, value=title)
            cell.fill = header_fill
            cell.font = header_font
            ws.column_dimensions[cell.column_letter].width = width

    invoices_ws = wb.create_sheet("Invoices")
    write_header(
        invoices_ws,
        ["Number", "Client", "Status", "Issued", "Due", "Total", "Paid"],
        [16, 32, 16, 14, 14, 14, 14],
    )
    for row, invoice in enumerate(data["invoices"], start=2):
        invoices_ws.cell(row=row, column=1, value=invoice.invoice_number)
        invoices_ws.cell(row=row, column=2, value=data["client_names"].get(invoice.client_id, ""))
        invoices_ws.cell(row=row, column=3, value=invoice.status.value)
        invoices_ws.cell(row=row, column=4, value=invoice.created_at.date())
        invoices_ws.cell(row=row, column=5, value=invoice.due_date)
        for col, amount in ((6, invoice.total_amount), (7, invoice.paid_amount)):
            cell = invoices_ws.cell(row=row, column=col, value=float(amount))
            cell.number_format = currency_fmt

    payments_ws = wb.create_sheet("Payments")
    write_header(payments_ws, ["Invoice", "Date", "Method", "Reference", "Amount"], [16, 14, 16, 24, 14])
    for row, payment in enumerate(data["payments"], start=2):
        payments_ws.cell(row=row, column=1, value=data["invoice_numbers"].get(payment.invoice_id, ""))
        payments_ws.cell(row=row, column=2, value=payment.paid_at.date())
        payments_ws.cell(row=row, column=3, value=payment.method.value)
        payments_ws.cell(row=row, column=4, value=payment.reference or "")
        cell = payments_ws.cell(row=row, column=5, value=float(payment.amount))
        cell.number_format = currency_fmt

    buf = BytesIO()
    wb.save(buf)
    return buf.getvalue()


def _new_pdf() -> FPDF:
    pdf = FPDF(orientation="P", unit="mm", format="A4")
    pdf.set_auto_page_break(auto=True, margin=20)
    pdf.set_margins(left=18, top=16, right=18)
    pdf.add_page()
    return pdf


def _table(pdf: FPDF, headers: list[str], widths: list[float], rows: list[list[str]], align_right: set[int]) -> None:
    pdf.set_font("Helvetica", "B", 9)
    pdf.set_fill_color(31, 41, 55)
    pdf.set_text_color(255, 255, 255)
    for title, width in zip(headers, widths):
        pdf.cell(width, 7, _latin1(title), border=1, fill=True)
    pdf.ln()
    pdf.set_text_color(0, 0, 0)
    pdf.set_font("Helvetica", "", 9)
    for row in rows:
        for col, (value, width) in enumerate(zip(row, widths)):
            pdf.cell(width, 6, _latin1(value), border=1, align="R" if col in align_right else "L")
        pdf.ln()


def build_monthly_pdf(data: dict[str, Any]) -> bytes:
    pdf = _new_pdf()
    pdf.set_font("Helvetica", "B", 15)
    pdf.cell(0, 9, _latin1(f"{settings.PROJECT_NAME}: monthly report"))
    pdf.ln()
    pdf.set_font("Helvetica", "", 11)
    pdf.cell(0, 7, _latin1(data["period"]))
    pdf.ln(10)

    pdf.set_font("Helvetica", "B", 11)
    for label, value in (
        ("Invoices issued", str(len(data["invoices"]))),
        ("Amount invoiced", _fmt_money(data["invoiced_total"])),
        ("Payments received", str(len(data["payments"]))),
        ("Amount collected", _fmt_money(data["collected_total"])),
        ("Appointments scheduled", str(data["appointment_count"])),
    ):
        pdf.set_font("Helvetica", "B", 10)
        pdf.cell(60, 6, label)
        pdf.set_font("Helvetica", "", 10)
        pdf.cell(40, 6, value, align="R")
        pdf.ln()
    pdf.ln(6)

    pdf.set_font("Helvetica", "B", 12)
    pdf.cell(0, 8, "Invoices")
    pdf.ln()
    _table(
        pdf,
        ["Number", "Client", "Status", "Issued", "Total", "Paid"],
        [28, 50, 28, 24, 22, 22],
        [
            [
                invoice.invoice_number,
                data["client_names"].get(invoice.client_id, ""),
                invoice.status.value,
                _fmt_date(invoice.created_at),
                _fmt_money(invoice.total_amount),
                _fmt_money(invoice.paid_amount),
            ]
            for invoice in data["invoices"]
        ],
        align_right={4, 5},
    )
    pdf.ln(6)

    pdf.set_font("Helvetica", "B", 12)
    pdf.cell(0, 8, "Payments")
    pdf.ln()
    _table(
        pdf,
        ["Invoice", "Date", "Method", "Reference", "Amount"],
        [30, 26, 32, 58, 28],
        [
            [
                data["invoice_numbers"].get(payment.invoice_id, ""),
                _fmt_date(payment.paid_at),
                payment.method.value,
                payment.reference or "",
                _fmt_money(payment.amount),
            ]
            for payment in data["payments"]
        ],
        align_right={4},
    )
    return bytes(pdf.output())


def build_invoice_pdf(invoice: Invoice, client_name: str, client_email: Optional[str] = None) -> bytes:
    """Printable invoice with line items, totals and payment history."""
    pdf = _new_pdf()
    page_w = pdf.w - pdf.l_margin - pdf.r_margin

    pdf.set_font("Helvetica", "B", 16)
    pdf.cell(page_w / 2, 10, _latin1(settings.PROJECT_NAME))
    pdf.set_font("Helvetica", "B", 14)
    pdf.cell(page_w / 2, 10, "INVOICE", align="R")
    pdf.ln(12)

    pdf.set_font("Helvetica", "", 10)
    left = [("Bill to", client_name), ("Email", client_email or "-")]
    right = [
        ("Number", invoice.invoice_number),
        ("Issued", _fmt_date(invoice.created_at)),
        ("Due", _fmt_date(invoice.due_date)),
        ("Status", invoice.status.value.replace("_", " ")),
    ]
    for index in range(max(len(left), len(right))):
        label, value = left[index] if index < len(left) else ("", "")
        pdf.set_font("Helvetica", "B", 10)
        pdf.cell(22, 6, label)
        pdf.set_font("Helvetica", "", 10)
        pdf.cell(page_w / 2 - 22, 6, _latin1(value))
        label, value = right[index] if index < len(right) else ("", "")
        pdf.set_font("Helvetica", "B", 10)
        pdf.cell(22, 6, label)
        pdf.set_font("Helvetica", "", 10)
        pdf.cell(page_w / 2 - 22, 6, _latin1(value), align="R")
        pdf.ln()
    pdf.ln(6)

    _table(
        pdf,
        ["#", "Description", "Qty", "Unit price", "Amount"],
        [10, page_w - 10 - 16 - 30 - 30, 16, 30, 30],
        [
            [str(index), item.description, str(item.quantity), _fmt_money(item.unit_price), _fmt_money(item.amount)]
            for index, item in enumerate(invoice.items, start=1)
        ],
        align_right={2, 3, 4},
    )
    pdf.ln(4)

    totals = [
        ("Subtotal", _fmt_money(invoice.subtotal)),
        (f"Tax ({invoice.tax_percent:g}%)", _fmt_money(invoice.tax_amount)),
        ("Discount", f"-{_fmt_money(invoice.discount)}"),
        ("Total", _fmt_money(invoice.total_amount)),
        ("Paid", _fmt_money(invoice.paid_amount)),
        ("Balance due", _fmt_money(max(invoice.total_amount - invoice.paid_amount, ZERO))),
    ]
    for label, value in totals:
        bold = label in ("Total", "Balance due")
        pdf.set_font("Helvetica", "B" if bold else "", 10)
        pdf.cell(page_w - 30, 6, label, align="R")
        pdf.cell(30, 6, value, align="R")
        pdf.ln()

    if invoice.payments:
        pdf.ln(6)
        pdf.set_font("Helvetica", "B", 11)
        pdf.cell(0, 7, "Payments")
        pdf.ln()
        _table(
            pdf,
            ["Date", "Method", "Reference", "Amount"],
            [30, 36, page_w - 30 - 36 - 30, 30],
            [
                [_fmt_date(p.paid_at), p.method.value.replace("_", " "), p.reference or "", _fmt_money(p.amount)]
                for p in invoice.payments
            ],
            align_right={3},
        )

    if invoice.notes:
        pdf.ln(6)
        pdf.set_font("Helvetica", "B", 10)
        pdf.cell(0, 6, "Notes")
        pdf.ln()
        pdf.set_font("Helvetica", "", 10)
        pdf.multi_cell(0, 5, _latin1(invoice.notes))

    return bytes(pdf.output())


def export_invoice_pdf(session: Session, invoice: Invoice) -> tuple[bytes, str]:
    """Returns ``(content, filename)``."""
    profile = session.get(ClientProfile, invoice.client_id)
    owner = session.get(User, profile.user_id) if profile else None
    client_name = (profile.company_name if profile and profile.company_name else None) or (
        owner.full_name if owner else "Client"
    )
    content = build_invoice_pdf(invoice, client_name, owner.email if owner else None)
    logger.info(f"Exported invoice {invoice.invoice_number} as PDF ({len(content)} bytes)")
    return content, f"{invoice.invoice_number}.pdf"
