"""Tests for the transactions domain router: listing stored transactions."""

import pytest
from fastapi.testclient import TestClient

from apps.api.core.config import Settings
from apps.api.main import create_app
from packages.ingestion_engine.models import Transaction
from packages.transaction_store import TransactionStore


def _txn(txn_id, date, amount=-10.0, name="COFFEE"):
    return Transaction(id=txn_id, date=date, name=name, amount=amount, source="csv_generic")


@pytest.fixture
def store():
    store = TransactionStore()
    for txn in [
        _txn("t1", "2025-01-10"),
        _txn("t2", "2025-02-15"),
        _txn("t3", "2025-03-20"),
        _txn("t4", "2025-03-01"),
    ]:
        store._index(txn)
    return store


@pytest.fixture
def client(store):
    app = create_app(Settings(_env_file=None), store=store)
    return TestClient(app, raise_server_exceptions=False)


def test_list_transactions_newest_first(client):
    response = client.get("/transactions")

    assert response.status_code == 200
    data = response.json()
    assert data["count"] == 4
    assert [t["id"] for t in data["transactions"]] == ["t3", "t4", "t2", "t1"]


def test_list_transactions_uses_stored_field_names(client):
    txn = client.get("/transactions").json()["transactions"][0]
    assert {"id", "date", "amount", "merchant_name", "duplicate_key", "raw_data"} <= set(txn)


def test_limit_truncates(client):
    data = client.get("/transactions", params={"limit": 2}).json()
    assert data["count"] == 2
    assert [t["id"] for t in data["transactions"]] == ["t3", "t4"]


def test_date_range_is_inclusive(client):
    data = client.get(
        "/transactions", params={"startDate": "2025-02-15", "endDate": "2025-03-01"}
    ).json()
    assert [t["id"] for t in data["transactions"]] == ["t4", "t2"]


def test_date_params_accept_us_format(client):
    data = client.get("/transactions", params={"startDate": "03/01/2025"}).json()
    assert [t["id"] for t in data["transactions"]] == ["t3", "t4"]


def test_invalid_date_returns_400(client):
    response = client.get("/transactions", params={"startDate": "someday"})
    assert response.status_code == 400
    assert "startDate" in response.json()["detail"]


def test_non_positive_limit_returns_422(client):
    response = client.get("/transactions", params={"limit": 0})
    assert response.status_code == 422
