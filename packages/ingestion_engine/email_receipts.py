"""E-mail receipt parsing: Amazon order confirmations and generic receipts."""

import logging
import re
from typing import Optional

from .amounts import parse_amount
from .dates import normalize_date
from .fingerprint import duplicate_key
from .models import Transaction

logger = logging.getLogger(__name__)

RECEIPT_KEYWORDS = [
    "receipt",
    "order",
    "purchase",
    "transaction",
    "invoice",
    "confirmation",
    "payment",
    "billing",
]

AMAZON_ORDER_NUMBER = re.compile(r"Order #(\d+-\d+-\d+)", re.IGNORECASE)
AMAZON_TOTALS = [
    re.compile(r"Order Total:?\s*\$?([\d,]+\.?\d*)", re.IGNORECASE),
    re.compile(r"Total:?\s*\$?([\d,]+\.?\d*)", re.IGNORECASE),
]
AMAZON_ORDER_DATE = re.compile(r"Order Date:?\s*([A-Za-z]+ \d{1,2}, \d{4})", re.IGNORECASE)

GENERIC_AMOUNTS = [
    re.compile(r"Total:?\s*\$?([\d,]+\.?\d*)", re.IGNORECASE),
    re.compile(r"Amount:?\s*\$?([\d,]+\.?\d*)", re.IGNORECASE),
    re.compile(r"Charged:?\s*\$?([\d,]+\.?\d*)", re.IGNORECASE),
    re.compile(r"\$(\d+\.\d{2})"),
]
GENERIC_DATE = re.compile(
    r"(\d{1,2}/\d{1,2}/\d{4})|(\d{4}-\d{2}-\d{2})|([A-Za-z]+ \d{1,2}, \d{4})"
)
GENERIC_MERCHANT = [
    re.compile(r"\bfrom\s+([A-Za-z ]+)", re.IGNORECASE),
    re.compile(r"\bat\s+([A-Za-z ]+)", re.IGNORECASE),
]


class EmailReceiptError(ValueError):
    """The message does not contain a usable receipt."""


def is_amazon_order(sender: str, subject: str) -> bool:
    subject_lower = (subject or "").lower()
    return (
        "amazon.com" in (sender or "").lower()
        or "your order" in subject_lower
        or "order confirmation" in subject_lower
    )


def is_receipt(subject: str) -> bool:
    subject_lower = (subject or "").lower()
    return any(keyword in subject_lower for keyword in RECEIPT_KEYWORDS)


def merchant_from_sender(sender: str) -> str:
    """``orders@shop.example.com`` -> ``Shop``."""
    _, _, domain = (sender or "").partition("@")
    if not domain:
        return "Unknown"
    label = domain.split(".")[0]
    return label[:1].upper() + label[1:]


def _first_amount(patterns, text: str) -> Optional[float]:
    for pattern in patterns:
        match = pattern.search(text)
        if match:
            amount = parse_amount(match.group(1))
            if amount:
                return amount
    return None


def _resolve_date(candidate: Optional[str], received_at: Optional[str]) -> str:
    parsed = normalize_date(candidate) if candidate else None
    parsed = parsed or normalize_date(received_at)
    if not parsed:
        raise EmailReceiptError("Receipt e-mail has no recognizable date")
    return parsed


def parse_amazon_order(
    message_id: str, subject: str, body: str, received_at: Optional[str] = None
) -> Transaction:
    total = _first_amount(AMAZON_TOTALS, body)
    if not total:
        raise EmailReceiptError("Amazon e-mail has no order total")

    order_match = AMAZON_ORDER_NUMBER.search(body) or AMAZON_ORDER_NUMBER.search(subject)
    order_number = order_match.group(1) if order_match else None
    date_match = AMAZON_ORDER_DATE.search(body)
    date = _resolve_date(date_match.group(1) if date_match else None, received_at)

    name = f"Amazon Order - {order_number or 'Unknown'}"
    amount = -abs(total)
    return Transaction(
        id=f"amazon_{message_id}",
        date=date,
        name=name,
        merchant_name="Amazon",
        amount=amount,
        source="email_amazon",
        account_id="amazon_orders",
        category=["Shopping"],
        subcategory=["Online", "Amazon"],
        location={"country": "US"},
        duplicate_key=duplicate_key(date, name, amount),
        raw_data={
            "message_id": message_id,
            "subject": subject,
            "order_number": order_number,
            "total": total,
        },
    )


def parse_generic_receipt(
    message_id: str,
    sender: str,
    subject: str,
    body: str,
    received_at: Optional[str] = None,
) -> Transaction:
    total = _first_amount(GENERIC_AMOUNTS, body)
    if not total:
        raise EmailReceiptError("Receipt e-mail has no amount")

    date_match = GENERIC_DATE.search(body)
    date = _resolve_date(date_match.group(0) if date_match else None, received_at)

    merchant = None
    for pattern in GENERIC_MERCHANT:
        match = pattern.search(body)
        if match and match.group(1).strip():
            merchant = match.group(1).strip()
            break

    name = subject or "Email receipt"
    amount = -abs(total)
    return Transaction(
        id=f"email_{message_id}",
        date=date,
        name=name,
        merchant_name=merchant or merchant_from_sender(sender),
        amount=amount,
        source="email_receipt",
        account_id="email_receipts",
        category=["Shopping"],
        subcategory=["Email Receipt"],
        location={"country": "US"},
        duplicate_key=duplicate_key(date, name, amount),
        raw_data={"message_id": message_id, "sender": sender, "subject": subject},
    )


def parse_email_receipt(
    message_id: str,
    sender: str,
    subject: str,
    body: str,
    received_at: Optional[str] = None,
) -> Transaction:
    """Turn an inbound e-mail into a spend transaction.

    Raises:
        EmailReceiptError: the message is not a receipt, or it lacks a
            total or a date.
    """
    body = body or ""
    subject = subject or ""

    if is_amazon_order(sender, subject):
        logger.info(f"Parsing Amazon order e-mail {message_id}")
        return parse_amazon_order(message_id, subject, body, received_at)
    if is_receipt(subject):
        logger.info(f"Parsing receipt e-mail {message_id} from {sender}")
        return parse_generic_receipt(message_id, sender, subject, body, received_at)

    raise EmailReceiptError("E-mail does not match any known receipt pattern")
