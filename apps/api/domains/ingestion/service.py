"""Ingestion service: CSV statement to stored transactions.

Candidates whose duplicate key is already stored are counted as duplicates
and never reach the store; the store's atomic ``save_if_new`` catches the
rest (repeated rows inside one file, concurrent uploads of the same file).
"""

import logging
from dataclasses import dataclass
from typing import Optional

from packages.categorization.processor import TransactionProcessor
from packages.ingestion_engine.parser import ParsedUpload, parse_bank_statement
from packages.transaction_store import TransactionStore

logger = logging.getLogger(__name__)


@dataclass
class CsvIngestResult:
    upload: ParsedUpload
    saved: int
    duplicates: int

    @property
    def skipped(self) -> int:
        return sum(self.upload.skipped.values())


async def ingest_csv(
    store: TransactionStore,
    csv_content: str,
    file_name: Optional[str] = None,
    bank_type: Optional[str] = None,
    processor: Optional[TransactionProcessor] = None,
) -> CsvIngestResult:
    """Parse, optionally categorize, and store a CSV statement.

    Raises:
        CsvFormatError: the content has no header or no data row, or the
            header lacks a date or description column
    """
    upload = parse_bank_statement(csv_content, file_name=file_name, bank_type=bank_type)

    candidates = [txn for txn in upload.transactions if not store.is_duplicate(txn.duplicate_key)]
    duplicates = upload.total - len(candidates)

    if processor is not None and candidates:
        await processor.process_batch(candidates)

    saved = await store.save_batch(candidates, only_new=True)
    duplicates += len(candidates) - saved

    logger.info(
        f"Upload {upload.upload_id} ({upload.bank_type}): {saved} saved, "
        f"{duplicates} duplicates, {sum(upload.skipped.values())} rows skipped"
    )
    return CsvIngestResult(upload=upload, saved=saved, duplicates=duplicates)


async def delete_upload(store: TransactionStore, upload_id: str) -> int:
    return await store.delete_by_upload_id(upload_id)
