"""Tests for the health endpoints."""

from unittest.mock import MagicMock

from fastapi.testclient import TestClient

from apps.api.core.config import Settings
from apps.api.main import create_app
from packages.transaction_store import MemoryBackend, TransactionStore


def _client(store, **overrides):
    app = create_app(Settings(_env_file=None, **overrides), store=store)
    return TestClient(app)


def test_health_returns_200():
    response = _client(TransactionStore()).get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "service": "api"}


def test_readiness_reports_store():
    response = _client(TransactionStore(MemoryBackend())).get("/health/ready")
    data = response.json()
    assert data["status"] == "healthy"
    assert data["services"] == {"api": "up", "store": "up"}
    assert data["store_backend"] == "memory"
    assert data["transactions"] == 0


def test_readiness_degraded_when_backend_down():
    backend = MagicMock(spec=MemoryBackend)
    backend.load_all.return_value = []
    backend.ping.side_effect = ConnectionError("redis unreachable")

    response = _client(TransactionStore(backend), STORE_BACKEND="redis").get("/health/ready")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "degraded"
    assert data["services"]["store"] == "down"
    assert data["store_backend"] == "redis"
