"""
Tests for branches, landing page content and soft deletion.
"""

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session

from conftest import API
from portal.models.user import User


@pytest.mark.parametrize(
    "path, payload",
    [
        ("/admin/faq", {"question": "Do I need an ID?", "answer": "Yes, bring a valid ID."}),
        ("/admin/services", {"title": "Deed of sale", "duration_minutes": 45, "price": "150.00"}),
        ("/admin/team", {"name": "Jane Notary", "position": "Notary Public"}),
        ("/admin/testimonials", {"client_name": "Happy Client", "content": "Fast and friendly.", "rating": 5}),
        ("/admin/gallery", {"title": "Front desk", "image_url": "/static/img/desk.jpg"}),
    ],
)
def test_soft_deleted_content_leaves_lists(client: TestClient, admin_headers: dict, path: str, payload: dict) -> None:
    response = client.post(f"{API}{path}", json=payload, headers=admin_headers)
    assert response.status_code == 200, response.text
    item_id = response.json()["id"]

    listed = client.get(f"{API}{path}", headers=admin_headers).json()
    assert [item["id"] for item in listed] == [item_id]

    assert client.delete(f"{API}{path}/{item_id}", headers=admin_headers).status_code == 200
    assert client.get(f"{API}{path}", headers=admin_headers).json() == []
    assert client.get(f"{API}{path}/{item_id}", headers=admin_headers).status_code == 404


def test_content_update_keeps_unsent_fields(client: TestClient, admin_headers: dict) -> None:
    faq = client.post(
        f"{API}/admin/faq", json={"question": "Q?", "answer": "A.", "category": "general"}, headers=admin_headers
    ).json()
    response = client.put(f"{API}/admin/faq/{faq['id']}", json={"answer": "Better answer."}, headers=admin_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["answer"] == "Better answer."
    assert data["question"] == "Q?"
    assert data["category"] == "general"


@pytest.mark.parametrize(
    "path, payload, update",
    [
        ("/admin/faq", {"question": "Q?", "answer": "A."}, {"question": None}),
        ("/admin/faq", {"question": "Q?", "answer": "A."}, {"is_active": None}),
        ("/admin/services", {"title": "Affidavit"}, {"order": None}),
        ("/admin/team", {"name": "Sam", "position": "Clerk"}, {"name": None}),
        ("/admin/gallery", {"image_url": "/static/img/a.jpg"}, {"image_url": None}),
    ],
)
def test_explicit_null_on_required_column_is_rejected(
    client: TestClient, admin_headers: dict, path: str, payload: dict, update: dict
) -> None:
    item = client.post(f"{API}{path}", json=payload, headers=admin_headers).json()
    response = client.put(f"{API}{path}/{item['id']}", json=update, headers=admin_headers)
    assert response.status_code == 400
    assert "may not be null" in response.json()["error"]
    assert client.get(f"{API}{path}/{item['id']}", headers=admin_headers).status_code == 200


def test_nullable_content_fields_can_be_cleared(client: TestClient, admin_headers: dict) -> None:
    faq = client.post(
        f"{API}/admin/faq", json={"question": "Q?", "answer": "A.", "category": "general"}, headers=admin_headers
    ).json()
    response = client.put(f"{API}/admin/faq/{faq['id']}", json={"category": None}, headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["category"] is None


def test_testimonial_rating_is_bounded(client: TestClient, admin_headers: dict) -> None:
    response = client.post(
        f"{API}/admin/testimonials",
        json={"client_name": "X", "content": "Y", "rating": 6},
        headers=admin_headers,
    )
    assert response.status_code == 400


def test_content_admin_requires_admin(client: TestClient, staff_headers: dict) -> None:
    assert client.get(f"{API}/admin/faq", headers=staff_headers).status_code == 403


def test_public_content_shows_only_active_items(client: TestClient, admin_headers: dict) -> None:
    client.post(f"{API}/admin/faq", json={"question": "Shown?", "answer": "Yes", "order": 2}, headers=admin_headers)
    client.post(f"{API}/admin/faq", json={"question": "First?", "answer": "Yes", "order": 1}, headers=admin_headers)
    client.post(
        f"{API}/admin/faq", json={"question": "Hidden?", "answer": "No", "is_active": False}, headers=admin_headers
    )

    response = client.get(f"{API}/public/content")
    assert response.status_code == 200
    data = response.json()
    assert [faq["question"] for faq in data["faqs"]] == ["First?", "Shown?"]
    assert data["services"] == []


def test_branch_staff_count_and_detail(client: TestClient, admin_headers: dict, session: Session, staff: User) -> None:
    branch = client.post(f"{API}/admin/branches", json={"name": "Downtown"}, headers=admin_headers).json()
    assert branch["staff_count"] == 0

    response = client.put(f"{API}/admin/users/{staff.id}", json={"branch_id": branch["id"]}, headers=admin_headers)
    assert response.status_code == 200

    listed = client.get(f"{API}/admin/branches", headers=admin_headers).json()
    assert listed[0]["staff_count"] == 1
    detail = client.get(f"{API}/admin/branches/{branch['id']}", headers=admin_headers).json()
    assert [member["email"] for member in detail["staff"]] == [staff.email]


def test_only_super_admin_deletes_branches(
    client: TestClient, admin_headers: dict, super_admin_headers: dict
) -> None:
    branch = client.post(f"{API}/admin/branches", json={"name": "Uptown"}, headers=admin_headers).json()

    response = client.delete(f"{API}/admin/branches/{branch['id']}", headers=admin_headers)
    assert response.status_code == 403
    assert response.json()["error"] == "Only SUPER_ADMIN can delete branches"

    response = client.delete(f"{API}/admin/branches/{branch['id']}", headers=super_admin_headers)
    assert response.status_code == 200
    assert client.get(f"{API}/admin/branches", headers=super_admin_headers).json() == []


def test_branch_with_staff_cannot_be_deleted(
    client: TestClient, admin_headers: dict, super_admin_headers: dict, staff: User
) -> None:
    branch = client.post(f"{API}/admin/branches", json={"name": "Harbor"}, headers=admin_headers).json()
    client.put(f"{API}/admin/users/{staff.id}", json={"branch_id": branch["id"]}, headers=admin_headers)

    response = client.delete(f"{API}/admin/branches/{branch['id']}", headers=super_admin_headers)
    assert response.status_code == 400
    assert response.json()["error"] == "Cannot delete branch with 1 active staff. Reassign staff first."


# ---- service fees ----


def test_service_fees_grouped_and_searchable(
    client: TestClient, admin_headers: dict, staff_headers: dict, client_headers: dict
) -> None:
    for payload in (
        {"name": "Deed of sale", "base_fee": "2500000", "description": "Property transfer"},
        {"name": "Land certificate check", "category": "ppat", "base_fee": "500000"},
        {"name": "Company deed", "base_fee": "3000000"},
    ):
        response = client.post(f"{API}/service-fees", json=payload, headers=admin_headers)
        assert response.status_code == 200, response.text

    fees = client.get(f"{API}/service-fees", headers=staff_headers).json()
    assert [(f["category"], f["name"]) for f in fees] == [
        ("notary", "Company deed"),
        ("notary", "Deed of sale"),
        ("ppat", "Land certificate check"),
    ]
    assert Decimal(fees[0]["base_fee"]) == Decimal("3000000.00")

    ppat = client.get(f"{API}/service-fees", params={"category": "ppat"}, headers=staff_headers).json()
    assert [f["name"] for f in ppat] == ["Land certificate check"]
    found = client.get(f"{API}/service-fees", params={"search": "PROPERTY"}, headers=staff_headers).json()
    assert [f["name"] for f in found] == ["Deed of sale"]

    assert client.get(f"{API}/service-fees", headers=client_headers).status_code == 403


def test_service_fee_admin_rules(client: TestClient, admin_headers: dict, staff_headers: dict) -> None:
    response = client.post(f"{API}/service-fees", json={"name": "Free", "base_fee": "0"}, headers=admin_headers)
    assert response.status_code == 400
    response = client.post(f"{API}/service-fees", json={"name": "Legalisation", "base_fee": "100"}, headers=staff_headers)
    assert response.status_code == 403

    fee = client.post(f"{API}/service-fees", json={"name": "Legalisation", "base_fee": "100"}, headers=admin_headers).json()
    url = f"{API}/service-fees/{fee['id']}"
    response = client.patch(url, json={"base_fee": "150.50", "is_active": False}, headers=admin_headers)
    assert Decimal(response.json()["base_fee"]) == Decimal("150.50")
    assert response.json()["is_active"] is False
    assert client.patch(url, json={"base_fee": None}, headers=admin_headers).status_code == 400

    assert client.delete(url, headers=admin_headers).status_code == 200
    assert client.get(f"{API}/service-fees", headers=admin_headers).json() == []
    assert client.get(url, headers=admin_headers).status_code == 404
