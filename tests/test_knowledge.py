"""
Tests for the knowledge base and its chunker.
"""

from fastapi.testclient import TestClient
from sqlmodel import Session, select

from conftest import API
from portal.models.chat import KnowledgeChunk
from portal.services.knowledge_service import chunk_content


def long_article() -> str:
    paragraph = "Bring a valid identity document and the original deed. " * 12
    return "\n\n".join(
        [
            "# Property transfers",
            paragraph,
            paragraph,
            "## Fees",
            "The fee depends on the property value. " * 30,
            "### Timeline",
            "Most transfers complete within two weeks.",
        ]
    )


def test_short_content_is_one_chunk() -> None:
    chunks = chunk_content("Office hours are 9 to 5.")
    assert len(chunks) == 1
    assert chunks[0].content == "Office hours are 9 to 5."
    assert chunks[0].index == 0


def test_empty_content_has_no_chunks() -> None:
    assert chunk_content("   ") == []


def test_long_content_splits_on_headings_with_overlap() -> None:
    chunks = chunk_content(long_article(), max_size=800, overlap=50)
    assert len(chunks) > 2
    assert [c.index for c in chunks] == list(range(len(chunks)))
    assert chunks[0].heading == "Property transfers"
    assert chunks[-1].heading == "Timeline"
    assert not chunks[0].content.startswith("...")
    assert all(c.content.startswith("...") for c in chunks[1:])
    # every chunk before overlap stays within the limit
    assert all(len(c.content) <= 800 + 50 + 4 for c in chunks)


def test_sentences_split_when_a_paragraph_is_too_long() -> None:
    text = "Sentence number one is here. " * 100
    chunks = chunk_content(text, max_size=300, overlap=0)
    assert len(chunks) >= 10
    assert all(len(c.content) <= 300 for c in chunks)


def test_create_update_delete_article(client: TestClient, super_admin_headers: dict, session: Session) -> None:
    response = client.post(
        f"{API}/admin/knowledge-base",
        json={"title": "Transfers", "category": "procedures", "content": long_article()},
        headers=super_admin_headers,
    )
    assert response.status_code == 200, response.text
    article = response.json()
    assert article["chunk_count"] > 1
    assert "GUEST" in article["allowed_roles"]

    response = client.put(
        f"{API}/admin/knowledge-base/{article['id']}",
        json={"content": "Short replacement text."},
        headers=super_admin_headers,
    )
    assert response.json()["chunk_count"] == 1

    response = client.put(
        f"{API}/admin/knowledge-base/{article['id']}", json={"title": "Renamed"}, headers=super_admin_headers
    )
    assert response.json()["chunk_count"] == 1

    assert client.delete(f"{API}/admin/knowledge-base/{article['id']}", headers=super_admin_headers).status_code == 200
    assert client.get(f"{API}/admin/knowledge-base", headers=super_admin_headers).json() == {"items": []}
    assert session.exec(select(KnowledgeChunk)).all() == []


def test_unknown_role_is_rejected(client: TestClient, super_admin_headers: dict) -> None:
    response = client.post(
        f"{API}/admin/knowledge-base",
        json={"title": "T", "category": "c", "content": "x", "allowed_roles": ["WIZARD"]},
        headers=super_admin_headers,
    )
    assert response.status_code == 400
    assert response.json()["error"] == "Unknown roles: WIZARD"


def test_knowledge_base_is_super_admin_only(client: TestClient, admin_headers: dict) -> None:
    assert client.get(f"{API}/admin/knowledge-base", headers=admin_headers).status_code == 403
