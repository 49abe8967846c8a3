"""
Tests for the page gate and the route policy table.
"""

import pytest
from fastapi.testclient import TestClient

from conftest import API, PASSWORD, login
from portal.core.access import (
    ADMINS,
    ALL_ROLES,
    DEFAULT_ROUTE_POLICIES,
    SUPER_ADMIN_ONLY,
    PolicyConfigurationError,
    RoutePolicy,
    match_policy,
    path_has_prefix,
    validate_policy_table,
)
from portal.core.gate import GateState, evaluate
from portal.models.user import User, UserRole


def identity(role: UserRole) -> User:
    return User(id=1, email="x@example.com", full_name="X", role=role)


@pytest.mark.parametrize("path", ["/", "/login", "/register", "/setup", "/forgot-password", "/reset-password", "/offline"])
def test_public_paths_allow_guests(path: str) -> None:
    decision = evaluate(path, None)
    assert decision.state == GateState.ALLOW
    assert decision.via == GateState.PUBLIC


@pytest.mark.parametrize("path", ["/static/portal.css", "/sw.js", "/favicon.ico", "/api/admin/users", "/api"])
def test_assets_and_api_bypass_the_gate(path: str) -> None:
    assert evaluate(path, None).allowed


def test_guest_is_sent_to_login_with_callback() -> None:
    decision = evaluate("/billing", None)
    assert decision.state == GateState.DENY_REDIRECT
    assert decision.via == GateState.REQUIRES_AUTH
    assert decision.redirect_to == "/login?callbackUrl=%2Fbilling"


def test_signed_in_user_is_sent_away_from_login() -> None:
    decision = evaluate("/login", identity(UserRole.CLIENT))
    assert decision.redirect_to == "/dashboard"


@pytest.mark.parametrize(
    "path, role, allowed",
    [
        ("/admin", UserRole.ADMIN, True),
        ("/admin/users", UserRole.STAFF, False),
        ("/admin/license", UserRole.ADMIN, False),
        ("/admin/license", UserRole.SUPER_ADMIN, True),
        ("/admin/knowledge-base", UserRole.ADMIN, False),
        ("/staff", UserRole.STAFF, True),
        ("/staff", UserRole.CLIENT, False),
        ("/reports", UserRole.STAFF, False),
        ("/billing", UserRole.CLIENT, True),
        ("/dashboard", UserRole.CLIENT, True),
        ("/administrator", UserRole.CLIENT, True),
    ],
)
def test_role_check(path: str, role: UserRole, allowed: bool) -> None:
    decision = evaluate(path, identity(role))
    assert decision.allowed is allowed
    if not allowed:
        assert decision.via == GateState.ROLE_CHECK
        assert decision.redirect_to == "/dashboard"


def test_prefixes_match_whole_segments() -> None:
    assert path_has_prefix("/admin/users", "/admin")
    assert not path_has_prefix("/administrator", "/admin")
    assert match_policy("/admin/license/keys", DEFAULT_ROUTE_POLICIES).roles == SUPER_ADMIN_ONLY


def test_default_policy_table_is_valid() -> None:
    validate_policy_table(DEFAULT_ROUTE_POLICIES)


def test_shadowed_policy_is_rejected() -> None:
    policies = [RoutePolicy("/admin", ADMINS), RoutePolicy("/admin/license", SUPER_ADMIN_ONLY)]
    with pytest.raises(PolicyConfigurationError):
        validate_policy_table(policies)


def test_policy_without_roles_is_rejected() -> None:
    with pytest.raises(PolicyConfigurationError):
        validate_policy_table([RoutePolicy("/billing", frozenset())])


def test_relative_prefix_is_rejected() -> None:
    with pytest.raises(PolicyConfigurationError):
        validate_policy_table([RoutePolicy("billing", ALL_ROLES)])


# ---- middleware ----


def test_guest_page_request_redirects_to_login(client: TestClient) -> None:
    response = client.get("/reports", follow_redirects=False)
    assert response.status_code == 307
    assert response.headers["location"] == "/login?callbackUrl=%2Freports"


def test_landing_page_is_served_to_guests(client: TestClient) -> None:
    response = client.get("/")
    assert response.status_code == 200
    assert "text/html" in response.headers["content-type"]


def test_role_restricted_page_redirects(client: TestClient, staff: User) -> None:
    headers = login(client, staff.email)
    response = client.get("/reports", headers=headers, follow_redirects=False)
    assert response.status_code == 307
    assert response.headers["location"] == "/dashboard"

    response = client.get("/staff", headers=headers)
    assert response.status_code == 200


def test_callback_keeps_the_query_string() -> None:
    decision = evaluate("/billing", None, query="invoice=3")
    assert decision.redirect_to == "/login?callbackUrl=%2Fbilling%3Finvoice%3D3"


def test_guest_deep_link_keeps_query_through_middleware(client: TestClient) -> None:
    response = client.get("/billing?invoice=3", follow_redirects=False)
    assert response.status_code == 307
    assert response.headers["location"] == "/login?callbackUrl=%2Fbilling%3Finvoice%3D3"


def test_knowledge_base_page_is_served_to_super_admin_only(
    client: TestClient, super_admin: User, admin: User
) -> None:
    response = client.get("/admin/knowledge-base", headers=login(client, super_admin.email))
    assert response.status_code == 200
    assert "Chatbot knowledge base" in response.text

    response = client.get("/admin/knowledge-base", headers=login(client, admin.email), follow_redirects=False)
    assert response.status_code == 307
    assert response.headers["location"] == "/dashboard"


def test_signed_in_user_visiting_login_goes_to_dashboard(client: TestClient, client_user: User) -> None:
    headers = login(client, client_user.email)
    response = client.get("/login", headers=headers, follow_redirects=False)
    assert response.status_code == 307
    assert response.headers["location"] == "/dashboard"


def test_session_cookie_opens_pages(client: TestClient, admin: User) -> None:
    response = client.post(f"{API}/auth/login", data={"username": admin.email, "password": PASSWORD})
    assert response.status_code == 200
    response = client.get("/admin")
    assert response.status_code == 200


def test_service_worker_is_served_from_root(client: TestClient) -> None:
    response = client.get("/sw.js")
    assert response.status_code == 200
    assert response.headers["service-worker-allowed"] == "/"
