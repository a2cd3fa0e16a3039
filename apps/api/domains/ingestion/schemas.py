"""Pydantic schemas for the ingestion domain."""

from typing import Optional

from pydantic import Field

from apps.api.core.schemas import CamelModel


class CsvUploadRequest(CamelModel):
    """CSV statement upload. ``csvContent`` is checked by the router so a
    missing body field yields a 400, not a schema error."""

    csv_content: Optional[str] = None
    file_name: Optional[str] = None
    bank_type: Optional[str] = None


class CsvUploadResponse(CamelModel):
    message: str = "CSV processed successfully"
    file_name: Optional[str] = None
    bank_type: str
    upload_id: str
    total_transactions: int
    saved_count: int
    duplicate_count: int
    skipped_count: int = 0
    skipped_reasons: dict[str, int] = Field(default_factory=dict)
    processing: str = "Complete"


class DeleteUploadResponse(CamelModel):
    message: str = "Upload deleted successfully"
    upload_id: str
    deleted_count: int
