"""
Tests for health check endpoints.
"""

from unittest.mock import patch

from fastapi.testclient import TestClient
from redis.exceptions import ConnectionError as RedisConnectionError

from portal.core.config import settings
from portal.workers.queue import email_queue, enqueue_task, redis_conn
from portal.workers.tasks import send_email_task

API = settings.API_PREFIX


def test_health_reports_integrations(client: TestClient) -> None:
    response = client.get(f"{API}/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["service"] == settings.PROJECT_NAME
    # conftest blanks the provider settings and disables the login license check
    assert data["chatbot_configured"] is False
    assert data["license_required"] is False


def test_database_health_check(client: TestClient) -> None:
    response = client.get(f"{API}/health/db")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "database": "ok"}


def test_queue_health_unreachable_redis(client: TestClient) -> None:
    with patch.object(redis_conn, "ping", side_effect=RedisConnectionError("refused")):
        response = client.get(f"{API}/health/queue")
    assert response.status_code == 503
    assert response.json()["status"] == "unhealthy"


def test_enqueue_survives_redis_outage() -> None:
    with patch.object(email_queue, "enqueue", side_effect=RedisConnectionError("refused")):
        assert enqueue_task(send_email_task, to="a@example.com", subject="s", body="b") is None
