"""Pydantic schemas for the transactions domain."""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from apps.api.core.schemas import CamelModel


class TransactionOut(BaseModel):
    """A stored transaction. Field names match the stored record."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    date: str
    name: str
    amount: float
    source: str
    merchant_name: str = ""
    category: list[str] = Field(default_factory=list)
    subcategory: list[str] = Field(default_factory=list)
    account_id: str = ""
    iso_currency_code: str = "USD"
    upload_id: Optional[str] = None
    upload_filename: Optional[str] = None
    duplicate_key: str = ""
    created_at: str
    updated_at: Optional[str] = None
    location: Optional[dict[str, Any]] = None
    raw_data: dict[str, Any] = Field(default_factory=dict)
    parent_transaction_id: Optional[str] = None
    categorization_confidence: Optional[float] = None
    processing_metadata: dict[str, Any] = Field(default_factory=dict)


class TransactionListResponse(BaseModel):
    transactions: list[TransactionOut]
    count: int


class SyncResponse(CamelModel):
    message: str = "Plaid sync completed successfully"
    new_transactions: int
    modified_transactions: int
    saved_transactions: int
    next_cursor: Optional[str] = None
