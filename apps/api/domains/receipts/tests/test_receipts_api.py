"""Tests for the receipts domain: Textract analyzer and receipt upload."""

import base64
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError
from fastapi.testclient import TestClient

from apps.api.core.config import Settings
from apps.api.deps import get_receipt_analyzer
from apps.api.domains.receipts.service import (
    ReceiptAnalysisError,
    TextractReceiptAnalyzer,
    decode_image,
)
from apps.api.main import create_app
from packages.ingestion_engine.receipts import ReceiptAnalysis, ReceiptLineItem
from packages.transaction_store import TransactionStore

IMAGE_BYTES = b"\xff\xd8\xff\xe0fake-jpeg"
IMAGE_B64 = base64.b64encode(IMAGE_BYTES).decode()


def _analysis(**overrides):
    fields = dict(
        total=23.27,
        tax=1.77,
        date="2025-03-14",
        vendor_name="Whole Foods Market",
        line_items=[
            ReceiptLineItem("Organic Milk", 2, 3.25, 6.5),
            ReceiptLineItem("Sales Tax", 1, 0.0, 1.77),
            ReceiptLineItem("Coupon", 1, 0.0, 0.0),
        ],
    )
    fields.update(overrides)
    return ReceiptAnalysis(**fields)


@pytest.fixture
def analyzer():
    mock_analyzer = MagicMock()
    mock_analyzer.analyze.return_value = [_analysis()]
    return mock_analyzer


@pytest.fixture
def store():
    return TransactionStore()


@pytest.fixture
def client(store, analyzer):
    app = create_app(Settings(_env_file=None), store=store)
    app.dependency_overrides[get_receipt_analyzer] = lambda: analyzer
    c = TestClient(app, raise_server_exceptions=False)
    yield c
    app.dependency_overrides.clear()


def _upload(client, image_data=IMAGE_B64, file_name="wf.jpg"):
    return client.post(
        "/upload/receipt",
        json={"imageData": image_data, "fileName": file_name, "fileType": "image/jpeg"},
    )


class TestDecodeImage:
    def test_plain_base64(self):
        assert decode_image(IMAGE_B64) == IMAGE_BYTES

    def test_data_url_prefix_is_stripped(self):
        assert decode_image(f"data:image/jpeg;base64,{IMAGE_B64}") == IMAGE_BYTES

    def test_invalid_base64(self):
        with pytest.raises(ValueError, match="not valid base64"):
            decode_image("***not base64***")


class TestTextractReceiptAnalyzer:
    def test_analyze_sends_image_bytes(self):
        textract = MagicMock()
        textract.analyze_expense.return_value = {"ExpenseDocuments": []}

        result = TextractReceiptAnalyzer(textract).analyze(IMAGE_BYTES)

        assert result == []
        textract.analyze_expense.assert_called_once_with(Document={"Bytes": IMAGE_BYTES})

    def test_client_error_becomes_receipt_analysis_error(self):
        textract = MagicMock()
        textract.analyze_expense.side_effect = ClientError(
            {"Error": {"Code": "UnsupportedDocumentException", "Message": "bad image"}},
            "AnalyzeExpense",
        )

        with pytest.raises(ReceiptAnalysisError):
            TextractReceiptAnalyzer(textract).analyze(IMAGE_BYTES)


class TestReceiptUpload:
    def test_receipt_is_stored_with_line_items(self, client, store, analyzer):
        response = _upload(client)

        assert response.status_code == 200
        data = response.json()
        assert data["message"] == "Receipt processed successfully"
        assert data["fileName"] == "wf.jpg"
        assert data["lineItemCount"] == 2
        txn = data["transaction"]
        assert txn["amount"] == -23.27
        assert txn["source"] == "receipt_ocr"
        assert txn["category"] == ["Food and Drink"]
        analyzer.analyze.assert_called_once_with(IMAGE_BYTES)

        children = [t for t in store._transactions.values() if t.parent_transaction_id]
        assert {c.name: c.category for c in children} == {
            "Organic Milk": ["Food and Drink"],
            "Sales Tax": ["Tax & Fees"],
        }
        assert all(c.id.startswith(f"{txn['id']}_line_") for c in children)
        assert len(store) == 3

    def test_same_receipt_twice_is_recorded_once(self, client, store):
        _upload(client)
        response = _upload(client)

        data = response.json()
        assert data["message"] == "Receipt already recorded"
        assert data["duplicateCount"] == 1
        assert data["lineItemCount"] == 0
        assert len(store) == 3

    def test_missing_image_returns_400(self, client):
        response = client.post("/upload/receipt", json={"fileName": "wf.jpg"})
        assert response.status_code == 400
        assert response.json()["detail"] == "imageData is required"

    def test_invalid_image_returns_400(self, client):
        assert _upload(client, image_data="%%%").status_code == 400

    def test_ocr_failure_returns_502(self, client, analyzer):
        analyzer.analyze.side_effect = ReceiptAnalysisError("Receipt analysis failed")
        response = _upload(client)
        assert response.status_code == 502

    def test_no_receipt_found_returns_422(self, client, analyzer):
        analyzer.analyze.return_value = []
        response = _upload(client)
        assert response.status_code == 422
        assert response.json()["detail"] == "No receipt found in image"

    def test_receipt_without_date_returns_422(self, client, store, analyzer):
        analyzer.analyze.return_value = [_analysis(date=None)]
        response = _upload(client)
        assert response.status_code == 422
        assert len(store) == 0
