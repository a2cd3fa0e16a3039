"""Receipt OCR results to transactions.

``parse_expense_documents`` reads an AWS Textract ``AnalyzeExpense``
response; ``build_receipt_transaction`` turns one analyzed receipt into a
spend transaction whose ``raw_data`` keeps the priced line items.
"""

import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from .amounts import parse_amount
from .dates import normalize_date
from .fingerprint import duplicate_key
from .models import Transaction, generate_id

logger = logging.getLogger(__name__)

# Textract summary field type -> receipt attribute
SUMMARY_FIELDS = {
    "total": "total",
    "amount_paid": "total",
    "subtotal": "subtotal",
    "tax": "tax",
    "invoice_receipt_date": "date",
    "date": "date",
    "invoice_receipt_id": "receipt_id",
    "receipt_id": "receipt_id",
}

VENDOR_FIELDS = {
    "vendor_name": "name",
    "merchant_name": "name",
    "vendor_address": "address",
    "vendor_phone": "phone",
}

LINE_ITEM_FIELDS = {
    "item": "description",
    "product_code": "description",
    "quantity": "quantity",
    "unit_price": "unit_price",
    "price": "total_price",
    "amount": "total_price",
}


class ReceiptError(ValueError):
    """An analyzed receipt cannot become a transaction."""


@dataclass
class ReceiptLineItem:
    description: str = ""
    quantity: int = 1
    unit_price: float = 0.0
    total_price: float = 0.0


@dataclass
class ReceiptAnalysis:
    total: float = 0.0
    subtotal: Optional[float] = None
    tax: Optional[float] = None
    date: Optional[str] = None
    receipt_id: Optional[str] = None
    vendor_name: Optional[str] = None
    vendor_address: Optional[str] = None
    vendor_phone: Optional[str] = None
    line_items: List[ReceiptLineItem] = field(default_factory=list)

    def to_contract(self) -> Dict[str, Any]:
        """camelCase shape returned by the OCR collaborator."""
        return {
            "summary": {
                "total": self.total,
                "subtotal": self.subtotal,
                "tax": self.tax,
                "date": self.date,
                "receiptId": self.receipt_id,
            },
            "vendorInfo": {
                "name": self.vendor_name,
                "address": self.vendor_address,
                "phone": self.vendor_phone,
            },
            "lineItems": [
                {
                    "description": item.description,
                    "quantity": item.quantity,
                    "unitPrice": item.unit_price,
                    "totalPrice": item.total_price,
                }
                for item in self.line_items
            ],
        }


def _field_type_and_value(expense_field: Dict[str, Any]):
    field_type = (expense_field.get("Type") or {}).get("Text")
    value = (expense_field.get("ValueDetection") or {}).get("Text")
    if not field_type or not value:
        return None, None
    return field_type.lower(), value.strip()


def _parse_quantity(value: str) -> int:
    try:
        return int(float(value.replace(",", "")))
    except ValueError:
        return 1


def _parse_line_item(line_item: Dict[str, Any]) -> ReceiptLineItem:
    item = ReceiptLineItem()
    for expense_field in line_item.get("LineItemExpenseFields") or []:
        field_type, value = _field_type_and_value(expense_field)
        attr = LINE_ITEM_FIELDS.get(field_type)
        if attr == "description":
            item.description = value
        elif attr == "quantity":
            item.quantity = _parse_quantity(value) or 1
        elif attr in ("unit_price", "total_price"):
            setattr(item, attr, parse_amount(value))
    return item


def parse_expense_document(document: Dict[str, Any]) -> ReceiptAnalysis:
    analysis = ReceiptAnalysis()

    for expense_field in document.get("SummaryFields") or []:
        field_type, value = _field_type_and_value(expense_field)
        if field_type in SUMMARY_FIELDS:
            attr = SUMMARY_FIELDS[field_type]
            if attr in ("total", "subtotal", "tax"):
                setattr(analysis, attr, parse_amount(value))
            elif attr == "date":
                analysis.date = normalize_date(value)
            else:
                analysis.receipt_id = value
        elif field_type in VENDOR_FIELDS:
            setattr(analysis, f"vendor_{VENDOR_FIELDS[field_type]}", value)

    for group in document.get("LineItemGroups") or []:
        for line_item in group.get("LineItems") or []:
            item = _parse_line_item(line_item)
            # Rows with neither text nor a price are OCR noise
            if item.description or item.total_price > 0:
                analysis.line_items.append(item)

    return analysis


def parse_expense_documents(response: Dict[str, Any]) -> List[ReceiptAnalysis]:
    """Every expense document in a Textract ``AnalyzeExpense`` response."""
    receipts = [parse_expense_document(doc) for doc in response.get("ExpenseDocuments") or []]
    logger.info(f"Textract returned {len(receipts)} expense documents")
    return receipts


def build_receipt_transaction(
    analysis: ReceiptAnalysis,
    file_name: Optional[str] = None,
    file_type: Optional[str] = None,
) -> Transaction:
    """Spend transaction for one analyzed receipt.

    Raises:
        ReceiptError: the receipt has no total or no recognizable date
    """
    if not analysis.total:
        raise ReceiptError("Receipt has no total")
    if not analysis.date:
        raise ReceiptError("Receipt has no recognizable date")

    vendor = analysis.vendor_name or "Unknown Vendor"
    amount = -abs(analysis.total)

    return Transaction(
        id=generate_id("receipt"),
        date=analysis.date,
        name=f"{vendor} - Receipt",
        merchant_name=vendor,
        amount=amount,
        source="receipt_ocr",
        account_id="physical_receipts",
        upload_filename=file_name,
        location={"address": analysis.vendor_address, "country": "US"},
        duplicate_key=duplicate_key(analysis.date, vendor, amount),
        raw_data={
            "file_name": file_name,
            "file_type": file_type,
            "summary": {
                "total": analysis.total,
                "subtotal": analysis.subtotal,
                "tax": analysis.tax,
                "receipt_id": analysis.receipt_id,
            },
            "vendor": {
                "name": analysis.vendor_name,
                "address": analysis.vendor_address,
                "phone": analysis.vendor_phone,
            },
            "line_items": [asdict(item) for item in analysis.line_items],
        },
    )
