"""
Bank Statement Parser - CSV ingestion pipeline for multiple bank formats.

Supports: AMEX, Truist and generic (header-resolved) exports.
Flow: split lines -> tokenize header -> bank extractor -> candidates.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from .columns import CsvFormatError
from .extractors import ExtractionResult, detect_bank_type, get_extractor
from .models import Transaction, generate_id
from .tokenizer import parse_line, split_lines

logger = logging.getLogger(__name__)


@dataclass
class ParsedUpload:
    """Result of parsing one CSV upload."""

    upload_id: str
    bank_type: str
    file_name: Optional[str]
    headers: List[str]
    transactions: List[Transaction] = field(default_factory=list)
    skipped: Dict[str, int] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return len(self.transactions)


class ProgressTracker:
    """Tracks progress for large file processing."""

    def __init__(self, total: int, callback: Optional[Callable] = None):
        self.total = total
        self.current = 0
        self.callback = callback
        self.last_percent = 0

    def update(self, increment: int = 1):
        self.current += increment
        percent = int((self.current / self.total) * 100) if self.total else 100

        if percent != self.last_percent and percent % 10 == 0:
            self.last_percent = percent
            if self.callback:
                self.callback(percent)
            else:
                logger.info(f"Processing: {percent}%")

    def finish(self):
        if self.callback and self.last_percent != 100:
            self.last_percent = 100
            self.callback(100)


class BankStatementParser:
    """
    Main parser class for bank CSV exports.

    The bank type is either declared by the caller or detected from the
    file name. File-level problems raise ``CsvFormatError``; bad rows are
    skipped and counted.
    """

    def __init__(
        self,
        csv_content: str,
        file_name: Optional[str] = None,
        bank_type: Optional[str] = None,
        progress_callback: Optional[Callable] = None,
    ):
        """
        Initialize parser.

        Args:
            csv_content: Raw CSV text
            file_name: Original file name (used for bank detection)
            bank_type: Bank type override (amex, truist, generic)
            progress_callback: Callback function(percent) for progress updates
        """
        if csv_content is None:
            raise ValueError("csv_content must be provided")

        self.csv_content = csv_content
        self.file_name = file_name
        self.bank_type = (bank_type or detect_bank_type(file_name)).lower()
        self.progress_callback = progress_callback

    def parse(self, upload_id: Optional[str] = None) -> ParsedUpload:
        lines = split_lines(self.csv_content)
        if len(lines) < 2:
            raise CsvFormatError("CSV must have at least a header and one data row")

        headers = [h.replace('"', "").strip() for h in parse_line(lines[0])]
        data_lines = lines[1:]
        upload_id = upload_id or generate_id("upload")

        logger.info(
            f"Parsing {self.bank_type} CSV {self.file_name!r}: "
            f"{len(data_lines)} data lines, headers={headers}"
        )

        extractor = get_extractor(self.bank_type)
        progress = ProgressTracker(len(data_lines), self.progress_callback)
        result: ExtractionResult = extractor.extract(
            headers, data_lines, upload_id, self.file_name, progress=progress
        )
        progress.finish()

        return ParsedUpload(
            upload_id=upload_id,
            bank_type=extractor.bank_type,
            file_name=self.file_name,
            headers=headers,
            transactions=result.transactions,
            skipped=dict(result.skipped),
        )

    def parse_to_records(self) -> List[Dict[str, Any]]:
        """Parse and return as list of dictionaries."""
        return [txn.to_dict() for txn in self.parse().transactions]


def parse_bank_statement(
    csv_content: str,
    file_name: Optional[str] = None,
    bank_type: Optional[str] = None,
    upload_id: Optional[str] = None,
    progress_callback: Optional[Callable] = None,
) -> ParsedUpload:
    """
    Convenience function to parse a bank CSV export.

    Args:
        csv_content: Raw CSV text
        file_name: Original file name
        bank_type: Bank type (amex, truist, generic); detected when omitted
        upload_id: Upload id to stamp on every transaction
        progress_callback: Callback for progress updates

    Returns:
        ParsedUpload with candidate transactions and skip counts
    """
    parser = BankStatementParser(
        csv_content=csv_content,
        file_name=file_name,
        bank_type=bank_type,
        progress_callback=progress_callback,
    )
    return parser.parse(upload_id=upload_id)
