"""Ingestion router: CSV statement upload and upload deletion."""

import structlog
from fastapi import APIRouter, Depends

from apps.api.core.config import Settings
from apps.api.core.errors import BadRequestError, PayloadTooLargeError
from apps.api.deps import get_app_settings, get_processor, get_store
from apps.api.domains.ingestion.schemas import (
    CsvUploadRequest,
    CsvUploadResponse,
    DeleteUploadResponse,
)
from apps.api.domains.ingestion.service import delete_upload, ingest_csv
from packages.categorization.processor import TransactionProcessor
from packages.ingestion_engine.columns import CsvFormatError
from packages.transaction_store import TransactionStore

router = APIRouter(tags=["ingestion"])
logger = structlog.get_logger()


@router.post("/upload/csv", response_model=CsvUploadResponse)
async def upload_csv(
    payload: CsvUploadRequest,
    store: TransactionStore = Depends(get_store),
    processor: TransactionProcessor = Depends(get_processor),
    settings: Settings = Depends(get_app_settings),
):
    """Parse a bank statement and store every transaction not seen before.

    Re-uploading the same file stores nothing new; each repeated row is
    reported in ``duplicateCount``.
    """
    if not payload.csv_content:
        raise BadRequestError("csvContent is required")

    size = len(payload.csv_content.encode("utf-8"))
    if size > settings.MAX_UPLOAD_BYTES:
        raise PayloadTooLargeError(f"File too large (max {settings.MAX_UPLOAD_BYTES} bytes)")

    try:
        result = await ingest_csv(
            store,
            payload.csv_content,
            file_name=payload.file_name,
            bank_type=payload.bank_type,
            processor=processor if settings.CATEGORIZE_CSV_UPLOADS else None,
        )
    except CsvFormatError as e:
        raise BadRequestError(str(e))

    upload = result.upload
    logger.info(
        "csv_processed",
        upload_id=upload.upload_id,
        bank_type=upload.bank_type,
        total=upload.total,
        saved=result.saved,
        duplicates=result.duplicates,
        skipped=result.skipped,
    )

    return CsvUploadResponse(
        file_name=payload.file_name,
        bank_type=upload.bank_type,
        upload_id=upload.upload_id,
        total_transactions=upload.total,
        saved_count=result.saved,
        duplicate_count=result.duplicates,
        skipped_count=result.skipped,
        skipped_reasons=upload.skipped,
    )


@router.delete("/uploads/{upload_id}", response_model=DeleteUploadResponse)
async def remove_upload(upload_id: str, store: TransactionStore = Depends(get_store)):
    deleted = await delete_upload(store, upload_id)
    logger.info("upload_deleted", upload_id=upload_id, deleted=deleted)
    return DeleteUploadResponse(upload_id=upload_id, deleted_count=deleted)
