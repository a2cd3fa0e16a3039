"""
Ledger Ingestion Engine

Transaction parsing, normalization and duplicate fingerprinting.
"""

__version__ = "0.1.0"

from .columns import ColumnMapping, ColumnResolver, CsvFormatError
from .dates import normalize_date
from .amounts import parse_amount, split_debit_credit
from .email_receipts import EmailReceiptError, parse_email_receipt
from .extractors import (
    AmexExtractor,
    BankExtractor,
    GenericExtractor,
    TruistExtractor,
    detect_bank_type,
    get_extractor,
)
from .fingerprint import clean_description, duplicate_key
from .merchant_extractor import MerchantExtractor
from .models import Transaction, generate_id
from .parser import BankStatementParser, ParsedUpload, parse_bank_statement
from .receipts import (
    ReceiptAnalysis,
    ReceiptError,
    ReceiptLineItem,
    build_receipt_transaction,
    parse_expense_documents,
)
from .tokenizer import parse_line

__all__ = [
    "AmexExtractor",
    "BankExtractor",
    "BankStatementParser",
    "ColumnMapping",
    "ColumnResolver",
    "CsvFormatError",
    "EmailReceiptError",
    "GenericExtractor",
    "MerchantExtractor",
    "ParsedUpload",
    "ReceiptAnalysis",
    "ReceiptError",
    "ReceiptLineItem",
    "Transaction",
    "TruistExtractor",
    "build_receipt_transaction",
    "clean_description",
    "detect_bank_type",
    "duplicate_key",
    "generate_id",
    "get_extractor",
    "normalize_date",
    "parse_amount",
    "parse_bank_statement",
    "parse_email_receipt",
    "parse_expense_documents",
    "parse_line",
    "split_debit_credit",
]
