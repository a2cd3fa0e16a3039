"""Receipts router: receipt image upload."""

import structlog
from fastapi import APIRouter, Depends
from starlette.concurrency import run_in_threadpool

from apps.api.core.errors import BadRequestError, UpstreamError, ValidationError
from apps.api.deps import get_processor, get_receipt_analyzer, get_store
from apps.api.domains.receipts.schemas import ReceiptUploadRequest, ReceiptUploadResponse
from apps.api.domains.receipts.service import (
    ReceiptAnalysisError,
    TextractReceiptAnalyzer,
    decode_image,
    ingest_receipts,
)
from apps.api.domains.transactions.schemas import TransactionOut
from packages.categorization.processor import TransactionProcessor
from packages.ingestion_engine.receipts import ReceiptError
from packages.transaction_store import TransactionStore

router = APIRouter(tags=["receipts"])
logger = structlog.get_logger()


@router.post("/upload/receipt", response_model=ReceiptUploadResponse)
async def upload_receipt(
    payload: ReceiptUploadRequest,
    store: TransactionStore = Depends(get_store),
    processor: TransactionProcessor = Depends(get_processor),
    analyzer: TextractReceiptAnalyzer = Depends(get_receipt_analyzer),
):
    """OCR a receipt image and store it as a spend with child line items."""
    if not payload.image_data:
        raise BadRequestError("imageData is required")

    try:
        image = decode_image(payload.image_data)
    except ValueError as e:
        raise BadRequestError(str(e))

    try:
        receipts = await run_in_threadpool(analyzer.analyze, image)
    except ReceiptAnalysisError as e:
        raise UpstreamError(str(e))

    if not receipts:
        raise ValidationError("No receipt found in image")

    try:
        result = await ingest_receipts(
            store, processor, receipts, file_name=payload.file_name, file_type=payload.file_type
        )
    except ReceiptError as e:
        raise ValidationError(str(e))

    logger.info(
        "receipt_processed",
        file_name=payload.file_name,
        receipts=len(receipts),
        line_items=result.line_items,
        duplicates=result.duplicates,
    )

    all_duplicates = result.duplicates == len(result.transactions)
    return ReceiptUploadResponse(
        message="Receipt already recorded" if all_duplicates else "Receipt processed successfully",
        file_name=payload.file_name,
        transaction=TransactionOut.model_validate(result.transactions[0]),
        line_item_count=result.line_items,
        receipt_count=len(result.transactions),
        duplicate_count=result.duplicates,
    )
