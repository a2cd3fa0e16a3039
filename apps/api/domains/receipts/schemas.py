"""Pydantic schemas for the receipts domain."""

from typing import Optional

from apps.api.core.schemas import CamelModel
from apps.api.domains.transactions.schemas import TransactionOut


class ReceiptUploadRequest(CamelModel):
    image_data: Optional[str] = None  # base64, optionally a data: URL
    file_name: Optional[str] = None
    file_type: str = "image/jpeg"


class ReceiptUploadResponse(CamelModel):
    message: str
    file_name: Optional[str] = None
    transaction: TransactionOut
    line_item_count: int = 0
    receipt_count: int = 1
    duplicate_count: int = 0
