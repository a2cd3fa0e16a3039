"""Canonical transaction record shared by every ingestion source."""

import time
import uuid
from dataclasses import asdict, dataclass, field, fields
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def generate_id(prefix: str) -> str:
    """Source-prefixed opaque id, e.g. ``amex_1718900000000_3f9a1c2b7``."""
    return f"{prefix}_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


@dataclass
class Transaction:
    """Standardized transaction structure.

    Amounts follow one sign convention across sources: negative is money
    out (spend), positive is money in (income, credit, refund).
    """

    id: str
    date: str
    name: str
    amount: float
    source: str
    merchant_name: str = ""
    category: List[str] = field(default_factory=lambda: ["General"])
    subcategory: List[str] = field(default_factory=lambda: ["Uncategorized"])
    account_id: str = ""
    iso_currency_code: str = "USD"
    upload_id: Optional[str] = None
    upload_filename: Optional[str] = None
    duplicate_key: str = ""
    created_at: str = field(default_factory=utc_now_iso)
    updated_at: Optional[str] = None
    location: Optional[Dict[str, Any]] = None
    raw_data: Dict[str, Any] = field(default_factory=dict)
    parent_transaction_id: Optional[str] = None
    categorization_confidence: Optional[float] = None
    processing_metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not self.merchant_name:
            self.merchant_name = self.name
        self.amount = round(float(self.amount), 2)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Transaction":
        """Build from a stored record, ignoring keys this model does not know."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})
