"""Tests for the ingestion domain router: CSV upload and upload deletion."""

import pytest
from fastapi.testclient import TestClient

from apps.api.core.config import Settings
from apps.api.main import create_app
from packages.transaction_store import MemoryBackend, TransactionStore

GENERIC_CSV = """Date,Description,Amount
01/15/2025,STARBUCKS STORE #123,-4.50
01/16/2025,PAYROLL DEPOSIT,2500.00
01/17/2025,SHELL OIL 5744,-38.20
"""

AMEX_CSV = """Date,Description,Card Member,Account #,Amount
01/15/2025,STARBUCKS,JANE DOE,-12345,4.50
01/16/2025,AMAZON MARKETPLACE,JANE DOE,-12345,25.99
01/17/2025,PAYMENT THANK YOU,JANE DOE,-12345,-500.00
"""


@pytest.fixture
def store():
    return TransactionStore(MemoryBackend())


def _client(store, **overrides) -> TestClient:
    settings = Settings(_env_file=None, **overrides)
    return TestClient(create_app(settings, store=store), raise_server_exceptions=False)


@pytest.fixture
def client(store):
    return _client(store)


def _upload(client, csv_content, file_name="checking.csv", **extra):
    body = {"csvContent": csv_content, "fileName": file_name, **extra}
    return client.post("/upload/csv", json=body)


def test_upload_csv_returns_summary(client):
    response = _upload(client, GENERIC_CSV)

    assert response.status_code == 200
    data = response.json()
    assert data["message"] == "CSV processed successfully"
    assert data["fileName"] == "checking.csv"
    assert data["bankType"] == "generic"
    assert data["totalTransactions"] == 3
    assert data["savedCount"] == 3
    assert data["duplicateCount"] == 0
    assert data["processing"] == "Complete"
    assert data["uploadId"].startswith("upload_")
    assert response.headers["access-control-allow-origin"] == "*"


def test_reupload_is_idempotent(client, store):
    first = _upload(client, GENERIC_CSV).json()
    second = _upload(client, GENERIC_CSV).json()

    assert first["savedCount"] == 3
    assert second["savedCount"] == 0
    assert second["duplicateCount"] == 3
    assert len(store) == 3


def test_repeated_row_within_one_file_is_a_duplicate(client):
    csv_content = GENERIC_CSV + "01/15/2025,STARBUCKS STORE #123,-4.50\n"

    data = _upload(client, csv_content).json()

    assert data["totalTransactions"] == 4
    assert data["savedCount"] == 3
    assert data["duplicateCount"] == 1


def test_amex_charges_are_stored_negative(client, store):
    data = _upload(client, AMEX_CSV, file_name="amex_january.csv").json()

    assert data["bankType"] == "amex"
    transactions = client.get("/transactions").json()["transactions"]
    amounts = {t["name"]: t["amount"] for t in transactions}
    assert amounts["STARBUCKS"] == -4.5
    assert amounts["AMAZON MARKETPLACE"] == -25.99
    # AMEX lists payments as negative; they are still recorded as money out
    assert amounts["PAYMENT THANK YOU"] == -500.0
    assert all(t["source"] == "csv_amex" for t in transactions)


def test_explicit_bank_type_overrides_file_name(client):
    data = _upload(client, AMEX_CSV, file_name="statement.csv", bankType="AMEX").json()
    assert data["bankType"] == "amex"


def test_malformed_rows_are_skipped_and_counted(client):
    csv_content = """Date,Description,Amount
01/15/2025,STARBUCKS,-4.50
not-a-date,COFFEE,-3.00
01/16/2025,,-9.99
01/17/2025,ZERO,0.00
"""
    data = _upload(client, csv_content).json()

    assert data["savedCount"] == 1
    assert data["skippedCount"] == 3
    assert data["skippedReasons"] == {
        "invalid_date": 1,
        "empty_description": 1,
        "zero_amount": 1,
    }


def test_missing_csv_content_returns_400(client):
    response = client.post("/upload/csv", json={"fileName": "checking.csv"})

    assert response.status_code == 400
    assert response.json()["detail"] == "csvContent is required"
    assert response.headers["access-control-allow-origin"] == "*"


def test_header_only_csv_returns_400(client):
    response = _upload(client, "Date,Description,Amount\n\n")

    assert response.status_code == 400
    assert response.json()["detail"] == "CSV must have at least a header and one data row"


def test_unresolvable_columns_list_headers(client):
    response = _upload(client, "Foo,Bar\n1,2\n")

    assert response.status_code == 400
    detail = response.json()["detail"]
    assert "Could not find date column" in detail
    assert "Available headers: Foo, Bar" in detail


def test_oversized_upload_returns_413(store):
    client = _client(store, MAX_UPLOAD_BYTES=16)

    response = _upload(client, GENERIC_CSV)

    assert response.status_code == 413
    assert len(store) == 0


def test_csv_categorization_is_opt_in(store):
    plain = _client(store)
    _upload(plain, GENERIC_CSV)
    assert {tuple(t.category) for t in store._transactions.values()} == {("General",)}

    categorizing_store = TransactionStore()
    categorizing = _client(categorizing_store, CATEGORIZE_CSV_UPLOADS=True)
    _upload(categorizing, GENERIC_CSV)
    categories = {t.name: t.category[0] for t in categorizing_store._transactions.values()}
    assert categories["STARBUCKS STORE #123"] == "Food and Drink"
    assert categories["PAYROLL DEPOSIT"] == "Income"
    assert categories["SHELL OIL 5744"] == "Transportation"


def test_delete_upload_removes_its_transactions(client, store):
    data = _upload(client, GENERIC_CSV).json()

    response = client.delete(f"/uploads/{data['uploadId']}")

    assert response.status_code == 200
    assert response.json() == {
        "message": "Upload deleted successfully",
        "uploadId": data["uploadId"],
        "deletedCount": 3,
    }
    assert client.get("/transactions").json()["count"] == 0
    # The same file can be imported again once its upload is gone
    assert _upload(client, GENERIC_CSV).json()["savedCount"] == 3


def test_delete_unknown_upload_deletes_nothing(client):
    _upload(client, GENERIC_CSV)

    response = client.delete("/uploads/upload_missing")

    assert response.status_code == 200
    assert response.json()["deletedCount"] == 0
    assert client.get("/transactions").json()["count"] == 3


def test_persisted_uploads_survive_restart(store):
    backend = store.backend
    _upload(_client(store), GENERIC_CSV)

    restarted = _client(TransactionStore(backend))
    response = _upload(restarted, GENERIC_CSV)

    assert response.json()["duplicateCount"] == 3
