"""
Tests for the chatbot: retrieval, prompts, provider calls and history.
"""

from typing import Any
from unittest.mock import MagicMock, patch

import pytest
import requests
from fastapi.testclient import TestClient
from sqlmodel import Session

from conftest import API
from portal.core.errors import ServiceUnavailable
from portal.models.chat import GUEST_ROLE, KnowledgeBase
from portal.models.user import User
from portal.schemas.chat import KnowledgeBaseCreate
from portal.services.chatbot_service import (
    ChatbotService,
    ChatProviderClient,
    estimate_tokens,
    extract_reply,
    search_knowledge,
    system_prompt_for_role,
)
from portal.services.knowledge_service import KnowledgeService


class FakeProvider:
    """Records the prompt and answers with a canned completion."""

    calls: list[list[dict[str, str]]] = []

    def __init__(self) -> None:
        self.model = "test-model"

    @property
    def configured(self) -> bool:
        return True

    def complete(self, messages: list[dict[str, str]]) -> dict[str, Any]:
        FakeProvider.calls.append(messages)
        return {
            "choices": [{"message": {"role": "assistant", "content": " Please bring your ID. "}}],
            "usage": {"prompt_tokens": 120, "completion_tokens": 8},
        }


@pytest.fixture(name="provider")
def provider_fixture():
    FakeProvider.calls = []
    with patch.object(ChatbotService, "client_factory", FakeProvider):
        yield FakeProvider


def add_article(session: Session, actor: User, title: str, content: str, roles: list[str]) -> KnowledgeBase:
    article, _ = KnowledgeService.create(
        session, actor, KnowledgeBaseCreate(title=title, category="general", content=content, allowed_roles=roles)
    )
    return article


def ask(client: TestClient, text: str, headers: dict | None = None, token: str = "browser-token-1", **extra):
    return client.post(
        f"{API}/chatbot",
        json={"messages": [{"role": "user", "content": text}], "session_token": token, **extra},
        headers=headers or {},
    )


def test_estimate_tokens() -> None:
    assert estimate_tokens("") == 0
    assert estimate_tokens("abcdefg") == 2


def test_extract_reply_falls_back() -> None:
    assert extract_reply({"choices": []}) == "Sorry, I can't answer that right now."


def test_unknown_role_gets_guest_prompt() -> None:
    assert system_prompt_for_role("NOBODY") == system_prompt_for_role(GUEST_ROLE)


def test_search_respects_allowed_roles(session: Session, super_admin: User) -> None:
    add_article(session, super_admin, "Passport notarization", "Bring your passport and a copy.", [GUEST_ROLE, "CLIENT"])
    add_article(session, super_admin, "Internal passport checklist", "Staff verify passport numbers.", ["STAFF"])

    guest_titles = {c.title for c in search_knowledge(session, "passport", GUEST_ROLE, min_score=30)}
    staff_titles = {c.title for c in search_knowledge(session, "passport", "STAFF", min_score=30)}
    assert guest_titles == {"Passport notarization"}
    assert staff_titles == {"Internal passport checklist"}


def test_inactive_articles_are_not_searched(session: Session, super_admin: User) -> None:
    article = add_article(session, super_admin, "Wills", "How to register a will.", [GUEST_ROLE])
    article.is_active = False
    session.add(article)
    session.commit()
    assert search_knowledge(session, "will", GUEST_ROLE, min_score=0) == []


def test_chat_is_unavailable_without_a_provider(client: TestClient) -> None:
    response = ask(client, "Hello")
    assert response.status_code == 503
    assert response.json() == {"error": "The AI assistant is not configured"}


def test_guest_chat_uses_knowledge_base(
    client: TestClient, session: Session, super_admin: User, provider
) -> None:
    add_article(session, super_admin, "Passport notarization", "Bring your passport and a copy.", [GUEST_ROLE])

    response = ask(client, "What do I need for passport notarization?")
    assert response.status_code == 200, response.text
    data = response.json()
    assert data["reply"] == "Please bring your ID."
    assert data["rag_sources"] == ["Passport notarization"]
    assert data["tokens"] == {"input": 120, "output": 8, "total": 128}

    system = provider.calls[0][0]
    assert system["role"] == "system"
    assert "prospective client" in system["content"]
    assert "Bring your passport and a copy." in system["content"]


def test_turns_in_one_session_accumulate(client: TestClient, client_headers: dict, provider) -> None:
    first = ask(client, "Hi", client_headers).json()
    second = ask(client, "And the fees?", client_headers, session_id=first["session_id"]).json()
    assert second["session_id"] == first["session_id"]

    history = client.get(f"{API}/chatbot/history", headers=client_headers).json()
    assert history["pagination"]["total"] == 1
    assert history["sessions"][0]["total_messages"] == 4
    assert history["sessions"][0]["title"] == "Hi"

    transcript = client.get(f"{API}/chatbot/history/{first['session_id']}", headers=client_headers).json()
    assert [m["role"] for m in transcript["messages"]] == ["user", "assistant", "user", "assistant"]


def test_session_token_of_another_user_is_rejected(
    client: TestClient, client_headers: dict, other_client_headers: dict, provider
) -> None:
    ask(client, "Hi", client_headers, token="shared-token")
    assert len(provider.calls) == 1
    response = ask(client, "Hi", other_client_headers, token="shared-token")
    assert response.status_code == 400
    # rejected before the provider is called
    assert len(provider.calls) == 1


def test_last_turn_must_be_the_user(client: TestClient, provider) -> None:
    response = client.post(
        f"{API}/chatbot",
        json={"messages": [{"role": "assistant", "content": "Hello"}], "session_token": "browser-token-1"},
    )
    assert response.status_code == 400


def test_history_is_private(
    client: TestClient, client_headers: dict, other_client_headers: dict, admin_headers: dict, provider
) -> None:
    chat = ask(client, "Hi", client_headers).json()
    url = f"{API}/chatbot/history/{chat['session_id']}"

    assert client.get(url, headers=other_client_headers).status_code == 404
    assert client.get(url, headers=admin_headers).status_code == 200
    assert client.delete(url, headers=admin_headers).status_code == 404

    assert client.delete(url, headers=client_headers).status_code == 200
    assert client.get(url, headers=client_headers).status_code == 404


def test_history_requires_sign_in(client: TestClient) -> None:
    assert client.get(f"{API}/chatbot/history").status_code == 401


def test_provider_client_posts_chat_completion() -> None:
    provider = ChatProviderClient(base_url="https://llm.example.com/v1/", api_key="sk-test", model="m")
    fake_response = MagicMock(status_code=200)
    fake_response.json.return_value = {"choices": []}
    with patch("portal.services.chatbot_service.requests.post", return_value=fake_response) as post:
        provider.complete([{"role": "user", "content": "hi"}])

    url = post.call_args.args[0]
    assert url == "https://llm.example.com/v1/chat/completions"
    assert post.call_args.kwargs["headers"]["Authorization"] == "Bearer sk-test"
    assert post.call_args.kwargs["json"]["model"] == "m"


def test_provider_errors_become_service_unavailable() -> None:
    provider = ChatProviderClient(base_url="https://llm.example.com/v1", api_key="sk-test")
    with patch("portal.services.chatbot_service.requests.post", side_effect=requests.Timeout("slow")):
        with pytest.raises(ServiceUnavailable):
            provider.complete([{"role": "user", "content": "hi"}])

    failing = MagicMock(status_code=500, text="boom")
    with patch("portal.services.chatbot_service.requests.post", return_value=failing):
        with pytest.raises(ServiceUnavailable):
            provider.complete([{"role": "user", "content": "hi"}])
