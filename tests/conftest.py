"""
Pytest configuration and fixtures.
Provides test database, client, and common test utilities.
"""

import os

os.environ["SECRET_KEY"] = "test-secret-key-not-for-production"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["DISABLE_BOOTSTRAP_USERS"] = "true"
os.environ["LICENSE_REQUIRED_FOR_LOGIN"] = "false"
os.environ["AI_API_BASE_URL"] = ""
os.environ["AI_API_KEY"] = ""

from typing import Generator  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlmodel import Session, SQLModel  # noqa: E402

from portal.core.config import settings  # noqa: E402
from portal.db.session import build_engine, get_session  # noqa: E402
from portal.main import app  # noqa: E402
from portal.models.user import ClientProfile, User, UserRole  # noqa: E402
from portal.services.license_service import invalidate_license_cache  # noqa: E402
from portal.services.user_service import UserService  # noqa: E402

API = settings.API_PREFIX
PASSWORD = "password123"


@pytest.fixture(name="session")
def session_fixture() -> Generator[Session, None, None]:
    """
    Create a test database session.
    Uses an in-memory SQLite database for fast tests.
    """
    engine = build_engine("sqlite:///:memory:")
    SQLModel.metadata.create_all(engine)

    with Session(engine) as session:
        yield session


@pytest.fixture(name="client")
def client_fixture(session: Session) -> Generator[TestClient, None, None]:
    """
    Create a test client with dependency overrides.
    """

    def get_session_override() -> Generator[Session, None, None]:
        yield session

    app.dependency_overrides[get_session] = get_session_override

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def reset_license_cache() -> Generator[None, None, None]:
    invalidate_license_cache()
    yield
    invalidate_license_cache()


def make_user(session: Session, email: str, role: UserRole, full_name: str = "Test User") -> User:
    user = UserService.create(session, email=email, password=PASSWORD, full_name=full_name, role=role)
    session.commit()
    session.refresh(user)
    return user


def login(client: TestClient, email: str, password: str = PASSWORD) -> dict[str, str]:
    """
    Sign in through the API and return Authorization headers.

    The session cookie set by the login response is dropped so that each
    request authenticates with the headers it is given.
    """
    response = client.post(f"{API}/auth/login", data={"username": email, "password": password})
    assert response.status_code == 200, response.text
    client.cookies.clear()
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


@pytest.fixture(name="super_admin")
def super_admin_fixture(session: Session) -> User:
    return make_user(session, "root@example.com", UserRole.SUPER_ADMIN, "Root Admin")


@pytest.fixture(name="admin")
def admin_fixture(session: Session) -> User:
    return make_user(session, "admin@example.com", UserRole.ADMIN, "Office Admin")


@pytest.fixture(name="staff")
def staff_fixture(session: Session) -> User:
    return make_user(session, "staff@example.com", UserRole.STAFF, "Desk Staff")


@pytest.fixture(name="client_user")
def client_user_fixture(session: Session) -> User:
    return make_user(session, "client@example.com", UserRole.CLIENT, "First Client")


@pytest.fixture(name="other_client")
def other_client_fixture(session: Session) -> User:
    return make_user(session, "other@example.com", UserRole.CLIENT, "Second Client")


@pytest.fixture(name="client_profile")
def client_profile_fixture(session: Session, client_user: User) -> ClientProfile:
    profile = UserService.get_client_profile(session, client_user.id)
    assert profile is not None
    return profile


@pytest.fixture(name="super_admin_headers")
def super_admin_headers_fixture(client: TestClient, super_admin: User) -> dict[str, str]:
    return login(client, super_admin.email)


@pytest.fixture(name="admin_headers")
def admin_headers_fixture(client: TestClient, admin: User) -> dict[str, str]:
    return login(client, admin.email)


@pytest.fixture(name="staff_headers")
def staff_headers_fixture(client: TestClient, staff: User) -> dict[str, str]:
    return login(client, staff.email)


@pytest.fixture(name="client_headers")
def client_headers_fixture(client: TestClient, client_user: User) -> dict[str, str]:
    return login(client, client_user.email)


@pytest.fixture(name="other_client_headers")
def other_client_headers_fixture(client: TestClient, other_client: User) -> dict[str, str]:
    return login(client, other_client.email)
