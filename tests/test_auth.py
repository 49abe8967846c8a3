"""
Tests for authentication endpoints.
"""

from datetime import timedelta
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import update
from sqlmodel import Session, select

from conftest import API, PASSWORD, login
from portal.core.config import settings
from portal.core.errors import ValidationFailed
from portal.core.security import generate_token, hash_token, verify_password
from portal.models.audit import AuditAction, AuditLog
from portal.models.base import utcnow
from portal.models.user import AuthSession, ClientProfile, PasswordResetToken, User, UserRole
from portal.services.auth_service import FORGOT_PASSWORD_MESSAGE, AuthService
from portal.services.user_service import UserService


def test_register_rejects_short_password(client: TestClient) -> None:
    response = client.post(
        f"{API}/auth/register",
        json={"name": "A", "email": "a@x.com", "password": "short"},
    )
    assert response.status_code == 400
    assert "at least 6 characters" in response.json()["error"]


def test_register_creates_client_with_profile(client: TestClient, session: Session) -> None:
    response = client.post(
        f"{API}/auth/register",
        json={"name": "A", "email": "a@x.com", "password": "longenough"},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["message"] == "Registration successful. Please sign in."
    assert data["user"]["role"] == "CLIENT"
    assert "hashed_password" not in data["user"]

    user = session.exec(select(User).where(User.email == "a@x.com")).one()
    profile = session.exec(select(ClientProfile).where(ClientProfile.user_id == user.id)).one()
    assert profile.client_number.startswith("CLT")
    actions = session.exec(select(AuditLog.action).where(AuditLog.user_id == user.id)).all()
    assert AuditAction.REGISTER in actions


def test_register_missing_fields(client: TestClient) -> None:
    response = client.post(f"{API}/auth/register", json={"email": "a@x.com"})
    assert response.status_code == 400
    assert response.json()["error"] == "Name, email and password are required"


def test_register_duplicate_email(client: TestClient, client_user: User) -> None:
    """Test that duplicate email registration fails."""
    response = client.post(
        f"{API}/auth/register",
        json={"name": "Dup", "email": client_user.email, "password": "password123"},
    )
    assert response.status_code == 400
    assert "already registered" in response.json()["error"].lower()


def test_login_success_sets_cookie(client: TestClient, client_user: User, session: Session) -> None:
    """Test successful login."""
    response = client.post(
        f"{API}/auth/login",
        data={"username": client_user.email, "password": PASSWORD},
    )
    assert response.status_code == 200
    data = response.json()
    assert "access_token" in data
    assert data["token_type"] == "bearer"
    assert response.cookies.get(settings.SESSION_COOKIE_NAME) == data["access_token"]

    sessions = session.exec(select(AuthSession).where(AuthSession.user_id == client_user.id)).all()
    assert len(sessions) == 1


def test_login_wrong_password(client: TestClient, client_user: User) -> None:
    """Test login with wrong password."""
    response = client.post(
        f"{API}/auth/login",
        data={"username": client_user.email, "password": "wrongpassword"},
    )
    assert response.status_code == 401
    assert response.json() == {"error": "Incorrect email or password"}


def test_login_nonexistent_user(client: TestClient) -> None:
    """Test login with non-existent user."""
    response = client.post(
        f"{API}/auth/login",
        data={"username": "nonexistent@example.com", "password": "password123"},
    )
    assert response.status_code == 401


def test_login_requires_license_for_non_super_admins(client: TestClient, staff: User, super_admin: User) -> None:
    with patch.object(settings, "LICENSE_REQUIRED_FOR_LOGIN", True):
        response = client.post(f"{API}/auth/login", data={"username": staff.email, "password": PASSWORD})
        assert response.status_code == 403

        response = client.post(f"{API}/auth/login", data={"username": super_admin.email, "password": PASSWORD})
        assert response.status_code == 200


def test_logout_revokes_session(client: TestClient, client_user: User) -> None:
    headers = login(client, client_user.email)
    assert client.get(f"{API}/users/me", headers=headers).status_code == 200

    response = client.post(f"{API}/auth/logout", headers=headers)
    assert response.status_code == 200
    assert client.get(f"{API}/users/me", headers=headers).status_code == 401


def test_forgot_password_same_answer_for_unknown_email(client: TestClient) -> None:
    with patch("portal.services.auth_service.enqueue_task") as enqueue:
        response = client.post(f"{API}/auth/forgot-password", json={"email": "nobody@example.com"})
    assert response.status_code == 200
    assert response.json()["message"] == FORGOT_PASSWORD_MESSAGE
    enqueue.assert_not_called()


def test_reset_token_is_single_use(client: TestClient, client_user: User) -> None:
    old_headers = login(client, client_user.email)
    with patch("portal.services.auth_service.enqueue_task") as enqueue:
        response = client.post(f"{API}/auth/forgot-password", json={"email": client_user.email})
    assert response.status_code == 200
    token = enqueue.call_args.kwargs["token"]

    response = client.post(f"{API}/auth/reset-password", json={"token": token, "password": "brandnewpass"})
    assert response.status_code == 200

    response = client.post(f"{API}/auth/reset-password", json={"token": token, "password": "anotherpass1"})
    assert response.status_code == 400
    assert response.json()["error"] == "Token is invalid or has expired"

    # open sessions are revoked and the new password works
    assert client.get(f"{API}/users/me", headers=old_headers).status_code == 401
    login(client, client_user.email, "brandnewpass")


def test_reset_password_rejects_unknown_token(client: TestClient) -> None:
    response = client.post(f"{API}/auth/reset-password", json={"token": "nope", "password": "longenough"})
    assert response.status_code == 400


def test_setup_creates_super_admin_once(client: TestClient) -> None:
    assert client.get(f"{API}/setup/status").json() == {"needs_setup": True}

    payload = {"name": "Owner", "email": "owner@example.com", "password": "ownerpass1"}
    response = client.post(f"{API}/setup", json=payload)
    assert response.status_code == 200
    assert response.json()["role"] == UserRole.SUPER_ADMIN.value

    assert client.get(f"{API}/setup/status").json() == {"needs_setup": False}
    response = client.post(f"{API}/setup", json={**payload, "email": "second@example.com"})
    assert response.status_code == 400


def test_reset_token_consumed_by_a_concurrent_request(session: Session, client_user: User) -> None:
    token = generate_token()
    reset = PasswordResetToken(
        user_id=client_user.id, token_hash=hash_token(token), expires_at=utcnow() + timedelta(minutes=30)
    )
    session.add(reset)
    session.commit()
    real_get_by_id = UserService.get_by_id

    def consumed_in_between(db: Session, user_id: int):
        # another request claims the token after this one has read it
        db.connection().execute(
            update(PasswordResetToken).where(PasswordResetToken.id == reset.id).values(consumed_at=utcnow())
        )
        return real_get_by_id(db, user_id)

    with patch.object(UserService, "get_by_id", side_effect=consumed_in_between):
        with pytest.raises(ValidationFailed):
            AuthService.reset_password(session, token, "brandnewpass")

    session.refresh(client_user)
    assert verify_password(PASSWORD, client_user.hashed_password)
