import pytest

from packages.ingestion_engine.receipts import (
    ReceiptAnalysis,
    ReceiptError,
    ReceiptLineItem,
    build_receipt_transaction,
    parse_expense_documents,
)


def _field(field_type, value):
    return {"Type": {"Text": field_type}, "ValueDetection": {"Text": value}}


def _line_item(*fields):
    return {"LineItemExpenseFields": [_field(t, v) for t, v in fields]}


TEXTRACT_RESPONSE = {
    "ExpenseDocuments": [
        {
            "ExpenseIndex": 1,
            "SummaryFields": [
                _field("VENDOR_NAME", "Whole Foods Market"),
                _field("VENDOR_ADDRESS", "10 Main St, Austin TX"),
                _field("VENDOR_PHONE", "(512) 555-0100"),
                _field("INVOICE_RECEIPT_DATE", "03/14/2025"),
                _field("INVOICE_RECEIPT_ID", "R-889"),
                _field("SUBTOTAL", "$21.50"),
                _field("TAX", "$1.77"),
                _field("TOTAL", "$23.27"),
                {"Type": {"Text": "OTHER"}},
            ],
            "LineItemGroups": [
                {
                    "LineItems": [
                        _line_item(("ITEM", "Organic Milk"), ("QUANTITY", "2"), ("UNIT_PRICE", "3.25"), ("PRICE", "6.50")),
                        _line_item(("ITEM", "Sourdough"), ("PRICE", "$15.00")),
                        _line_item(("QUANTITY", "1")),
                    ]
                }
            ],
        }
    ]
}


def test_parse_expense_documents_summary_and_vendor():
    (receipt,) = parse_expense_documents(TEXTRACT_RESPONSE)

    assert receipt.total == 23.27
    assert receipt.subtotal == 21.5
    assert receipt.tax == 1.77
    assert receipt.date == "2025-03-14"
    assert receipt.receipt_id == "R-889"
    assert receipt.vendor_name == "Whole Foods Market"
    assert receipt.vendor_address == "10 Main St, Austin TX"
    assert receipt.vendor_phone == "(512) 555-0100"


def test_parse_expense_documents_line_items():
    (receipt,) = parse_expense_documents(TEXTRACT_RESPONSE)

    # The row with neither a description nor a price is dropped
    assert receipt.line_items == [
        ReceiptLineItem("Organic Milk", 2, 3.25, 6.5),
        ReceiptLineItem("Sourdough", 1, 0.0, 15.0),
    ]


def test_amount_paid_is_a_total():
    response = {"ExpenseDocuments": [{"SummaryFields": [_field("AMOUNT_PAID", "1,204.10")]}]}
    assert parse_expense_documents(response)[0].total == 1204.10


def test_empty_response():
    assert parse_expense_documents({}) == []


def test_to_contract_uses_camel_case():
    (receipt,) = parse_expense_documents(TEXTRACT_RESPONSE)
    contract = receipt.to_contract()

    assert contract["summary"]["receiptId"] == "R-889"
    assert contract["vendorInfo"]["name"] == "Whole Foods Market"
    assert contract["lineItems"][0] == {
        "description": "Organic Milk",
        "quantity": 2,
        "unitPrice": 3.25,
        "totalPrice": 6.5,
    }


def test_build_receipt_transaction():
    (receipt,) = parse_expense_documents(TEXTRACT_RESPONSE)

    txn = build_receipt_transaction(receipt, file_name="wf.jpg", file_type="image/jpeg")

    assert txn.id.startswith("receipt_")
    assert txn.amount == -23.27
    assert txn.source == "receipt_ocr"
    assert txn.merchant_name == "Whole Foods Market"
    assert txn.name == "Whole Foods Market - Receipt"
    assert txn.date == "2025-03-14"
    assert txn.duplicate_key == "2025-03-14_whole foods market_23.27"
    assert txn.raw_data["line_items"][1]["total_price"] == 15.0
    assert txn.raw_data["summary"]["tax"] == 1.77


def test_unknown_vendor():
    txn = build_receipt_transaction(ReceiptAnalysis(total=5.0, date="2025-01-01"))
    assert txn.merchant_name == "Unknown Vendor"


@pytest.mark.parametrize(
    "analysis,message",
    [
        (ReceiptAnalysis(total=0.0, date="2025-01-01"), "no total"),
        (ReceiptAnalysis(total=9.99, date=None), "no recognizable date"),
    ],
)
def test_unusable_receipt_raises(analysis, message):
    with pytest.raises(ReceiptError, match=message):
        build_receipt_transaction(analysis)
