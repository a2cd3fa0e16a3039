"""Pydantic schemas for the e-mail receipt domain."""

from typing import Optional

from apps.api.core.schemas import CamelModel
from apps.api.domains.transactions.schemas import TransactionOut


class EmailReceiptRequest(CamelModel):
    message_id: str
    source: str = ""  # sender address
    subject: str = ""
    body: str = ""
    received_at: Optional[str] = None


class EmailReceiptResponse(CamelModel):
    message: str
    transaction: TransactionOut
    duplicate: bool = False
