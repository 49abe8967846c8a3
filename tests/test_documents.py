"""
Tests for document tracking, checklists and document types.
"""

from datetime import date, datetime, timedelta, timezone

from fastapi.testclient import TestClient
from sqlmodel import Session

from conftest import API
from portal.models.document import Document, DocumentType
from portal.models.user import ClientProfile, User
from portal.services.document_service import next_document_number, type_code


def create_type(client: TestClient, headers: dict, name: str = "Deed of Sale", **overrides) -> dict:
    response = client.post(f"{API}/admin/document-types", json={"name": name, **overrides}, headers=headers)
    assert response.status_code == 200, response.text
    return response.json()


def open_document(client: TestClient, headers: dict, type_id: int, **payload) -> dict:
    response = client.post(
        f"{API}/documents", json={"title": "Sale of Lot 12", "document_type_id": type_id, **payload}, headers=headers
    )
    assert response.status_code == 200, response.text
    return response.json()


def test_type_code() -> None:
    assert type_code("Deed of Sale") == "DEE"
    assert type_code("p.o.a") == "POA"
    assert type_code(" - ") == "DOC"


def test_document_numbers_are_sequential_per_type_and_year(session: Session, client_profile: ClientProfile) -> None:
    deed = DocumentType(name="Deed of Sale")
    session.add(deed)
    session.commit()
    now = datetime(2031, 2, 1, tzinfo=timezone.utc)
    assert next_document_number(session, "Deed of Sale", now) == "DOC-DEE-2031-0001"

    for number in ("DOC-DEE-2031-0004", "DOC-WIL-2031-0009", "DOC-DEE-2030-0020"):
        session.add(Document(document_number=number, title="x", client_id=client_profile.id, document_type_id=deed.id))
    session.commit()
    assert next_document_number(session, "Deed of Sale", now) == "DOC-DEE-2031-0005"
    assert next_document_number(session, "Will", now) == "DOC-WIL-2031-0010"


def test_client_files_document_for_self(
    client: TestClient, admin_headers: dict, client_headers: dict, client_profile: ClientProfile, staff: User
) -> None:
    doc_type = create_type(client, admin_headers, estimated_duration_days=10)
    document = open_document(client, client_headers, doc_type["id"], client_id=999, staff_id=staff.id)

    assert document["client_id"] == client_profile.id
    assert document["staff_id"] is None
    assert document["status"] == "DRAFT"
    assert document["priority"] == "NORMAL"
    assert document["document_number"].startswith("DOC-DEE-")
    assert document["due_date"] == (datetime.now(timezone.utc).date() + timedelta(days=10)).isoformat()
    assert [(entry["status"], entry["notes"]) for entry in document["timeline"]] == [("DRAFT", "Document created")]


def test_staff_must_name_the_client(client: TestClient, admin_headers: dict, staff_headers: dict) -> None:
    doc_type = create_type(client, admin_headers)
    response = client.post(
        f"{API}/documents", json={"title": "Will", "document_type_id": doc_type["id"]}, headers=staff_headers
    )
    assert response.status_code == 400
    assert response.json()["error"] == "Client ID is required"


def test_staff_see_only_documents_assigned_to_them(
    client: TestClient, admin_headers: dict, staff_headers: dict, staff: User, client_profile: ClientProfile
) -> None:
    doc_type = create_type(client, admin_headers)
    mine = open_document(client, staff_headers, doc_type["id"], client_id=client_profile.id)
    assert mine["staff_id"] == staff.id
    unassigned = open_document(client, admin_headers, doc_type["id"], client_id=client_profile.id)

    listed = client.get(f"{API}/documents", headers=staff_headers).json()
    assert [d["id"] for d in listed["documents"]] == [mine["id"]]
    assert client.get(f"{API}/documents/{unassigned['id']}", headers=staff_headers).status_code == 403
    assert client.get(f"{API}/documents", headers=admin_headers).json()["total"] == 2


def test_clients_see_only_their_documents(
    client: TestClient,
    admin_headers: dict,
    client_headers: dict,
    other_client_headers: dict,
    client_profile: ClientProfile,
) -> None:
    doc_type = create_type(client, admin_headers)
    document = open_document(client, admin_headers, doc_type["id"], client_id=client_profile.id)

    assert client.get(f"{API}/documents", headers=client_headers).json()["total"] == 1
    assert client.get(f"{API}/documents", headers=other_client_headers).json()["total"] == 0
    response = client.get(f"{API}/documents/{document['id']}", headers=other_client_headers)
    assert response.status_code == 403


def test_soft_deleted_document_leaves_list(
    client: TestClient, admin_headers: dict, staff_headers: dict, client_profile: ClientProfile
) -> None:
    doc_type = create_type(client, admin_headers)
    document = open_document(client, staff_headers, doc_type["id"], client_id=client_profile.id)
    url = f"{API}/documents/{document['id']}"

    assert client.delete(url, headers=staff_headers).status_code == 403
    assert client.delete(url, headers=admin_headers).status_code == 200

    assert client.get(f"{API}/documents", headers=admin_headers).json()["total"] == 0
    assert client.get(f"{API}/documents", headers=staff_headers).json()["documents"] == []
    assert client.get(url, headers=admin_headers).status_code == 404


def test_search_and_status_filter(client: TestClient, admin_headers: dict, client_profile: ClientProfile) -> None:
    doc_type = create_type(client, admin_headers, name="Will")
    gift = open_document(client, admin_headers, doc_type["id"], client_id=client_profile.id, title="Deed of Gift")
    open_document(client, admin_headers, doc_type["id"], client_id=client_profile.id, title="Last will")
    client.put(f"{API}/documents/{gift['id']}", json={"status": "IN_REVIEW"}, headers=admin_headers)

    found = client.get(f"{API}/documents", params={"search": "GIFT"}, headers=admin_headers).json()
    assert [d["id"] for d in found["documents"]] == [gift["id"]]

    by_number = client.get(f"{API}/documents", params={"search": gift["document_number"]}, headers=admin_headers)
    assert by_number.json()["total"] == 1

    in_review = client.get(f"{API}/documents", params={"status": "IN_REVIEW"}, headers=admin_headers).json()
    assert [d["title"] for d in in_review["documents"]] == ["Deed of Gift"]


def test_status_change_adds_timeline_entry(
    client: TestClient, admin_headers: dict, staff_headers: dict, client_profile: ClientProfile
) -> None:
    doc_type = create_type(client, admin_headers)
    document = open_document(client, staff_headers, doc_type["id"], client_id=client_profile.id)
    url = f"{API}/documents/{document['id']}"

    updated = client.put(url, json={"priority": "HIGH"}, headers=staff_headers).json()
    assert updated["priority"] == "HIGH"
    assert len(updated["timeline"]) == 1

    updated = client.put(
        url, json={"status": "WAITING_SIGNATURE", "status_notes": "Parties booked"}, headers=staff_headers
    ).json()
    assert updated["timeline"][0]["status"] == "WAITING_SIGNATURE"
    assert updated["timeline"][0]["notes"] == "Parties booked"
    assert updated["completed_at"] is None

    updated = client.put(url, json={"status": "COMPLETED"}, headers=staff_headers).json()
    assert [entry["status"] for entry in updated["timeline"]] == ["COMPLETED", "WAITING_SIGNATURE", "DRAFT"]
    assert updated["timeline"][0]["notes"] == "Status changed to COMPLETED"
    assert updated["completed_at"] is not None


def test_client_may_only_submit_an_open_document(
    client: TestClient, admin_headers: dict, client_headers: dict
) -> None:
    doc_type = create_type(client, admin_headers)
    document = open_document(client, client_headers, doc_type["id"])
    url = f"{API}/documents/{document['id']}"

    response = client.put(url, json={"status": "SUBMITTED", "description": "Two sellers"}, headers=client_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "SUBMITTED"
    assert response.json()["description"] == "Two sellers"

    assert client.put(url, json={"status": "COMPLETED"}, headers=client_headers).status_code == 403
    assert client.put(url, json={"priority": "URGENT"}, headers=client_headers).status_code == 403

    client.put(url, json={"status": "IN_REVIEW"}, headers=admin_headers)
    response = client.put(url, json={"title": "Renamed"}, headers=client_headers)
    assert response.status_code == 403
    assert response.json()["error"] == "Document can no longer be edited"


def test_only_admins_reassign_documents(
    client: TestClient, admin_headers: dict, staff_headers: dict, admin: User, client_profile: ClientProfile
) -> None:
    doc_type = create_type(client, admin_headers)
    document = open_document(client, staff_headers, doc_type["id"], client_id=client_profile.id)
    url = f"{API}/documents/{document['id']}"

    assert client.put(url, json={"staff_id": admin.id}, headers=staff_headers).status_code == 403
    response = client.put(url, json={"staff_id": admin.id}, headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["staff_id"] == admin.id
    assert client.get(url, headers=staff_headers).status_code == 403


def test_explicit_null_title_is_rejected(client: TestClient, admin_headers: dict, client_profile: ClientProfile) -> None:
    doc_type = create_type(client, admin_headers)
    document = open_document(client, admin_headers, doc_type["id"], client_id=client_profile.id)
    response = client.put(f"{API}/documents/{document['id']}", json={"title": None}, headers=admin_headers)
    assert response.status_code == 400


# ---- checklist ----


def test_checklist_completion_and_verification(
    client: TestClient, admin_headers: dict, staff_headers: dict, client_headers: dict, staff: User,
    client_profile: ClientProfile,
) -> None:
    doc_type = create_type(client, admin_headers)
    document = open_document(client, staff_headers, doc_type["id"], client_id=client_profile.id)
    url = f"{API}/documents/{document['id']}/checklist"

    response = client.post(
        url,
        json={"items": [{"label": "ID card"}, {"label": "Land certificate", "is_required": False, "notes": "copy"}]},
        headers=staff_headers,
    )
    assert response.status_code == 200
    items = response.json()["checklist"]
    assert [(i["label"], i["is_required"], i["order"]) for i in items] == [
        ("ID card", True, 0),
        ("Land certificate", False, 1),
    ]
    first = items[0]["id"]

    response = client.patch(url, json={"checklist_id": first, "is_completed": True}, headers=client_headers)
    assert response.status_code == 200
    assert response.json()["is_completed"] is True
    assert response.json()["completed_at"] is not None

    response = client.patch(url, json={"checklist_id": first, "verified": True}, headers=client_headers)
    assert response.status_code == 403

    response = client.patch(url, json={"checklist_id": first, "verified": True}, headers=staff_headers)
    assert response.json()["verified_by_id"] == staff.id

    listed = client.get(url, headers=client_headers).json()["checklist"]
    assert listed[0]["verified_at"] is not None
    assert listed[1]["is_completed"] is False


def test_checklist_rules(
    client: TestClient, admin_headers: dict, client_headers: dict, client_profile: ClientProfile
) -> None:
    doc_type = create_type(client, admin_headers)
    first = open_document(client, admin_headers, doc_type["id"], client_id=client_profile.id)
    second = open_document(client, admin_headers, doc_type["id"], client_id=client_profile.id)

    response = client.post(
        f"{API}/documents/{first['id']}/checklist", json={"items": [{"label": "KTP"}]}, headers=client_headers
    )
    assert response.status_code == 403
    response = client.post(f"{API}/documents/{first['id']}/checklist", json={"items": []}, headers=admin_headers)
    assert response.status_code == 400

    item = client.post(
        f"{API}/documents/{first['id']}/checklist", json={"items": [{"label": "KTP"}]}, headers=admin_headers
    ).json()["checklist"][0]
    response = client.patch(
        f"{API}/documents/{second['id']}/checklist",
        json={"checklist_id": item["id"], "is_completed": True},
        headers=admin_headers,
    )
    assert response.status_code == 404


# ---- document types ----


def test_document_types_listing_and_deactivation(
    client: TestClient, admin_headers: dict, client_headers: dict, client_profile: ClientProfile
) -> None:
    will = create_type(client, admin_headers, name="Will", required_documents=["ID card", "Family card"])
    deed = create_type(client, admin_headers, name="Deed of Sale")
    assert will["estimated_duration_days"] == 7
    assert will["required_documents"] == ["ID card", "Family card"]

    public = client.get(f"{API}/document-types", headers=client_headers).json()
    assert [t["name"] for t in public] == ["Deed of Sale", "Will"]

    open_document(client, admin_headers, deed["id"], client_id=client_profile.id)
    response = client.delete(f"{API}/admin/document-types/{deed['id']}", headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["error"] == "Cannot delete document type that is in use"

    assert client.delete(f"{API}/admin/document-types/{will['id']}", headers=admin_headers).status_code == 200
    assert [t["name"] for t in client.get(f"{API}/document-types", headers=client_headers).json()] == ["Deed of Sale"]
    everything = client.get(f"{API}/admin/document-types", params={"include_inactive": True}, headers=admin_headers)
    assert {t["name"]: t["is_active"] for t in everything.json()} == {"Deed of Sale": True, "Will": False}

    response = client.post(
        f"{API}/documents", json={"title": "Late will", "document_type_id": will["id"]}, headers=client_headers
    )
    assert response.status_code == 400
    assert response.json()["error"] == "Document type not found"


def test_document_type_update(client: TestClient, admin_headers: dict, staff_headers: dict) -> None:
    doc_type = create_type(client, admin_headers)
    url = f"{API}/admin/document-types/{doc_type['id']}"

    response = client.patch(url, json={"estimated_duration_days": 14, "description": "Jual beli"}, headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["estimated_duration_days"] == 14
    assert response.json()["name"] == "Deed of Sale"

    assert client.patch(url, json={"name": None}, headers=admin_headers).status_code == 400
    assert client.patch(url, json={"name": "X"}, headers=staff_headers).status_code == 403
    assert client.get(f"{API}/admin/document-types/9999", headers=admin_headers).status_code == 404


def test_explicit_due_date_is_kept(client: TestClient, admin_headers: dict, client_profile: ClientProfile) -> None:
    doc_type = create_type(client, admin_headers)
    due = date(2031, 1, 15)
    document = open_document(client, admin_headers, doc_type["id"], client_id=client_profile.id, due_date=due.isoformat())
    assert document["due_date"] == "2031-01-15"
