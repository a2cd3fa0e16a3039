"""Receipts service: image OCR via AWS Textract and receipt storage."""

import base64
import binascii
import logging
import re
from dataclasses import dataclass, field
from typing import Any, List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from packages.categorization.processor import TransactionProcessor
from packages.ingestion_engine.models import Transaction
from packages.ingestion_engine.receipts import (
    ReceiptAnalysis,
    build_receipt_transaction,
    parse_expense_documents,
)
from packages.transaction_store import TransactionStore

logger = logging.getLogger(__name__)

DATA_URL_PREFIX = re.compile(r"^data:[^;,]*;base64,", re.IGNORECASE)


class ReceiptAnalysisError(Exception):
    """The OCR service could not analyze the image."""


class TextractReceiptAnalyzer:
    """Runs AWS Textract ``AnalyzeExpense`` on raw image bytes."""

    def __init__(self, client: Any):
        self.client = client

    @classmethod
    def from_region(cls, region: str) -> "TextractReceiptAnalyzer":
        return cls(boto3.client("textract", region_name=region))

    def analyze(self, image_bytes: bytes) -> List[ReceiptAnalysis]:
        try:
            response = self.client.analyze_expense(Document={"Bytes": image_bytes})
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Textract analyze_expense failed: {e}")
            raise ReceiptAnalysisError(f"Receipt analysis failed: {e}") from e
        return parse_expense_documents(response)


def decode_image(image_data: str) -> bytes:
    """Decode base64 image data, with or without a ``data:`` URL prefix."""
    payload = DATA_URL_PREFIX.sub("", image_data.strip())
    try:
        image = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError("imageData is not valid base64") from e
    if not image:
        raise ValueError("imageData is empty")
    return image


@dataclass
class ReceiptIngestResult:
    transactions: List[Transaction] = field(default_factory=list)
    line_items: int = 0
    duplicates: int = 0


async def ingest_receipts(
    store: TransactionStore,
    processor: TransactionProcessor,
    receipts: List[ReceiptAnalysis],
    file_name: Optional[str] = None,
    file_type: Optional[str] = None,
) -> ReceiptIngestResult:
    """Categorize and store each analyzed receipt with its line items.

    Every receipt is validated before anything is stored, so one unusable
    receipt rejects the whole image.

    Raises:
        ReceiptError: a receipt has no total or no date
    """
    candidates = [build_receipt_transaction(r, file_name, file_type) for r in receipts]
    result = ReceiptIngestResult()

    for txn in candidates:
        await processor.process(txn)
        result.transactions.append(txn)

        if not await store.save_if_new(txn):
            logger.info(f"Receipt {txn.duplicate_key} matches a stored transaction")
            result.duplicates += 1
            continue

        children = processor.build_line_items(txn)
        await store.save_batch(children, only_new=False)
        result.line_items += len(children)

    return result
