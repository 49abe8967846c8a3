"""
Tests for invoicing and payment recording.
"""

from datetime import datetime, timezone
from decimal import Decimal

from fastapi.testclient import TestClient
from sqlmodel import Session

from conftest import API
from portal.models.invoice import Invoice
from portal.models.user import ClientProfile
from portal.schemas.invoice import InvoiceItemInput
from portal.services.invoice_service import compute_totals, money, next_invoice_number


def create_invoice(client: TestClient, headers: dict, client_id: int, **overrides) -> dict:
    payload = {
        "client_id": client_id,
        "items": [
            {"description": "Deed preparation", "quantity": 2, "unit_price": "100.00"},
            {"description": "Stamp duty", "quantity": 1, "unit_price": "50.00"},
        ],
        "tax_percent": "10",
        "discount": "25.00",
        **overrides,
    }
    response = client.post(f"{API}/invoices", json=payload, headers=headers)
    assert response.status_code == 200, response.text
    return response.json()["invoice"]


def test_compute_totals() -> None:
    items = [
        InvoiceItemInput(description="A", quantity=3, unit_price=Decimal("19.99")),
        InvoiceItemInput(description="B", unit_price=Decimal("0.015")),
    ]
    line_items, amounts = compute_totals(items, Decimal("7.5"), Decimal("1"))
    assert [line.amount for line in line_items] == [Decimal("59.97"), Decimal("0.02")]
    assert amounts["subtotal"] == Decimal("59.99")
    assert amounts["tax_amount"] == Decimal("4.50")
    assert amounts["total_amount"] == Decimal("63.49")


def test_money_rounds_half_up() -> None:
    assert money("2.675") == Decimal("2.68")
    assert money(1) == Decimal("1.00")


def test_invoice_numbers_are_sequential_per_year(session: Session, client_profile: ClientProfile) -> None:
    now = datetime(2031, 5, 1, tzinfo=timezone.utc)
    assert next_invoice_number(session, now) == "INV-2031-0001"
    session.add(Invoice(invoice_number="INV-2031-0007", client_id=client_profile.id))
    session.add(Invoice(invoice_number="INV-2030-0042", client_id=client_profile.id))
    session.commit()
    assert next_invoice_number(session, now) == "INV-2031-0008"


def test_staff_create_invoice(client: TestClient, staff_headers: dict, client_profile: ClientProfile) -> None:
    invoice = create_invoice(client, staff_headers, client_profile.id)
    assert invoice["invoice_number"].startswith("INV-")
    assert invoice["status"] == "DRAFT"
    assert Decimal(invoice["subtotal"]) == Decimal("250.00")
    assert Decimal(invoice["tax_amount"]) == Decimal("25.00")
    assert Decimal(invoice["total_amount"]) == Decimal("250.00")
    assert [item["description"] for item in invoice["items"]] == ["Deed preparation", "Stamp duty"]


def test_clients_cannot_create_invoices(client: TestClient, client_headers: dict, client_profile: ClientProfile) -> None:
    response = client.post(
        f"{API}/invoices",
        json={"client_id": client_profile.id, "items": [{"description": "X", "unit_price": "1"}]},
        headers=client_headers,
    )
    assert response.status_code == 403


def test_invoice_requires_items(client: TestClient, staff_headers: dict, client_profile: ClientProfile) -> None:
    response = client.post(f"{API}/invoices", json={"client_id": client_profile.id, "items": []}, headers=staff_headers)
    assert response.status_code == 400


def test_clients_see_only_their_invoices(
    client: TestClient,
    staff_headers: dict,
    client_headers: dict,
    other_client_headers: dict,
    client_profile: ClientProfile,
) -> None:
    invoice = create_invoice(client, staff_headers, client_profile.id)

    mine = client.get(f"{API}/invoices", headers=client_headers).json()
    assert mine["total"] == 1
    assert mine["invoices"][0]["id"] == invoice["id"]

    theirs = client.get(f"{API}/invoices", headers=other_client_headers).json()
    assert theirs["total"] == 0
    response = client.get(f"{API}/invoices/{invoice['id']}", headers=other_client_headers)
    assert response.status_code == 403


def test_payments_move_invoice_to_partially_paid_then_paid(
    client: TestClient, staff_headers: dict, client_profile: ClientProfile
) -> None:
    invoice = create_invoice(client, staff_headers, client_profile.id)
    url = f"{API}/invoices/{invoice['id']}/payments"

    response = client.post(url, json={"amount": "100.00", "method": "CASH"}, headers=staff_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["invoice"]["status"] == "PARTIALLY_PAID"
    assert Decimal(data["invoice"]["paid_amount"]) == Decimal("100.00")
    assert data["invoice"]["paid_at"] is None

    response = client.post(url, json={"amount": "150.00"}, headers=staff_headers)
    data = response.json()
    assert data["invoice"]["status"] == "PAID"
    assert data["invoice"]["paid_at"] is not None
    assert len(data["invoice"]["payments"]) == 2


def test_payment_must_be_positive(client: TestClient, staff_headers: dict, client_profile: ClientProfile) -> None:
    invoice = create_invoice(client, staff_headers, client_profile.id)
    response = client.post(f"{API}/invoices/{invoice['id']}/payments", json={"amount": "0"}, headers=staff_headers)
    assert response.status_code == 400
    assert response.json()["error"] == "Payment amount must be greater than 0"


def test_no_payments_on_cancelled_invoice(client: TestClient, staff_headers: dict, client_profile: ClientProfile) -> None:
    invoice = create_invoice(client, staff_headers, client_profile.id)
    client.patch(f"{API}/invoices/{invoice['id']}", json={"status": "CANCELLED"}, headers=staff_headers)
    response = client.post(f"{API}/invoices/{invoice['id']}/payments", json={"amount": "10"}, headers=staff_headers)
    assert response.status_code == 400


def test_update_recomputes_totals(client: TestClient, staff_headers: dict, client_profile: ClientProfile) -> None:
    invoice = create_invoice(client, staff_headers, client_profile.id)

    response = client.patch(f"{API}/invoices/{invoice['id']}", json={"discount": "0"}, headers=staff_headers)
    assert Decimal(response.json()["invoice"]["total_amount"]) == Decimal("275.00")

    response = client.patch(
        f"{API}/invoices/{invoice['id']}",
        json={"items": [{"description": "Flat fee", "unit_price": "80"}], "status": "SENT"},
        headers=staff_headers,
    )
    updated = response.json()["invoice"]
    assert Decimal(updated["subtotal"]) == Decimal("80.00")
    assert Decimal(updated["total_amount"]) == Decimal("88.00")
    assert updated["sent_at"] is not None
    assert len(updated["items"]) == 1


def test_lowering_total_settles_partially_paid_invoice(
    client: TestClient, staff_headers: dict, client_profile: ClientProfile
) -> None:
    invoice = create_invoice(
        client, staff_headers, client_profile.id,
        items=[{"description": "Legalisation", "unit_price": "100.00"}], tax_percent="0", discount="0",
    )
    url = f"{API}/invoices/{invoice['id']}"
    client.post(f"{url}/payments", json={"amount": "60.00"}, headers=staff_headers)

    updated = client.patch(url, json={"discount": "50.00"}, headers=staff_headers).json()["invoice"]
    assert Decimal(updated["total_amount"]) == Decimal("50.00")
    assert updated["status"] == "PAID"
    assert updated["paid_at"] is not None

    updated = client.patch(url, json={"discount": "0"}, headers=staff_headers).json()["invoice"]
    assert updated["status"] == "PARTIALLY_PAID"
    assert updated["paid_at"] is None


def test_payment_statuses_cannot_be_set_by_hand(
    client: TestClient, staff_headers: dict, client_profile: ClientProfile
) -> None:
    invoice = create_invoice(client, staff_headers, client_profile.id)
    for status in ("PAID", "PARTIALLY_PAID"):
        response = client.patch(f"{API}/invoices/{invoice['id']}", json={"status": status}, headers=staff_headers)
        assert response.status_code == 400
    assert client.get(f"{API}/invoices/{invoice['id']}", headers=staff_headers).json()["invoice"]["status"] == "DRAFT"


def test_only_admins_delete_invoices(
    client: TestClient, staff_headers: dict, admin_headers: dict, client_profile: ClientProfile
) -> None:
    invoice = create_invoice(client, staff_headers, client_profile.id)
    assert client.delete(f"{API}/invoices/{invoice['id']}", headers=staff_headers).status_code == 403
    assert client.delete(f"{API}/invoices/{invoice['id']}", headers=admin_headers).status_code == 200

    assert client.get(f"{API}/invoices", headers=admin_headers).json()["total"] == 0
    assert client.get(f"{API}/invoices/{invoice['id']}", headers=admin_headers).status_code == 404


def test_invoice_pdf_export(
    client: TestClient, staff_headers: dict, client_headers: dict, client_profile: ClientProfile
) -> None:
    invoice = create_invoice(client, staff_headers, client_profile.id)
    response = client.get(f"{API}/invoices/{invoice['id']}/export", headers=client_headers)
    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert f'filename="{invoice["invoice_number"]}.pdf"' in response.headers["content-disposition"]
    assert response.content.startswith(b"%PDF")
