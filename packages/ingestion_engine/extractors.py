"""Bank-specific extractors turning tokenized CSV rows into transactions.

Two known banks (AMEX, Truist) export fixed layouts and are read by
position. Everything else goes through ``GenericExtractor``, which resolves
its columns from the header row by keyword.
"""

import logging
from abc import ABC, abstractmethod
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Type

from .amounts import parse_amount, split_debit_credit
from .columns import ColumnMapping, ColumnResolver
from .dates import normalize_date
from .fingerprint import duplicate_key
from .merchant_extractor import MerchantExtractor
from .models import Transaction, generate_id
from .tokenizer import parse_line

logger = logging.getLogger(__name__)


class RowRejected(Exception):
    """A single data row failed validation and is skipped."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


@dataclass
class ExtractionResult:
    transactions: List[Transaction] = field(default_factory=list)
    skipped: Counter = field(default_factory=Counter)

    @property
    def skipped_count(self) -> int:
        return sum(self.skipped.values())


class BankExtractor(ABC):
    """Base extractor: row loop, validation and candidate construction."""

    bank_type: str = ""
    min_fields: int = 1
    account_id: str = "manual_upload"

    def __init__(self, merchant_extractor: Optional[MerchantExtractor] = None):
        self.merchant_extractor = merchant_extractor or MerchantExtractor()

    @property
    def source(self) -> str:
        return f"csv_{self.bank_type}"

    def prepare(self, headers: Sequence[str]) -> None:
        """Hook run once per file before any row. Raises ``CsvFormatError``."""

    @abstractmethod
    def extract_row(
        self, values: List[str], upload_id: str, file_name: Optional[str]
    ) -> Transaction:
        """Build a transaction from one row or raise ``RowRejected``."""

    def extract(
        self,
        headers: Sequence[str],
        data_lines: Sequence[str],
        upload_id: str,
        file_name: Optional[str] = None,
        progress=None,
    ) -> ExtractionResult:
        """Extract every data row. ``progress`` is ticked once per row."""
        self.prepare(headers)
        result = ExtractionResult()

        for line_number, line in enumerate(data_lines, start=2):
            if progress is not None:
                progress.update()
            values = parse_line(line)
            try:
                if len(values) < self.min_fields:
                    raise RowRejected("too_few_fields")
                txn = self.extract_row(values, upload_id, file_name)
            except RowRejected as e:
                result.skipped[e.reason] += 1
                logger.debug(f"Skipping {self.bank_type} line {line_number}: {e.reason}")
                continue
            except (ValueError, IndexError) as e:
                result.skipped["malformed"] += 1
                logger.warning(f"Error parsing {self.bank_type} line {line_number}: {e}")
                continue
            result.transactions.append(txn)

        logger.info(
            f"{self.bank_type} extractor: {len(result.transactions)} transactions, "
            f"{result.skipped_count} skipped"
        )
        return result

    def build_transaction(
        self,
        raw_date: str,
        description: str,
        amount: float,
        upload_id: str,
        file_name: Optional[str],
        merchant_name: str = "",
        **extra,
    ) -> Transaction:
        """Validate the extracted values and construct the candidate."""
        parsed_date = normalize_date(raw_date)
        if not parsed_date:
            raise RowRejected("invalid_date")

        description = (description or "").strip()
        if not description:
            raise RowRejected("empty_description")

        if amount == 0:
            raise RowRejected("zero_amount")

        return Transaction(
            id=generate_id(self.bank_type),
            date=parsed_date,
            name=description,
            merchant_name=merchant_name or self.merchant_extractor.extract(description) or description,
            amount=amount,
            source=self.source,
            account_id=self.account_id,
            upload_id=upload_id,
            upload_filename=file_name,
            duplicate_key=duplicate_key(parsed_date, description, amount),
            **extra,
        )


class AmexExtractor(BankExtractor):
    """AMEX export, read by position.

    Date, Description, Card Member, Account #, Amount, Extended Details,
    Appears On Your Statement As, Address, City/State, Zip Code, Country,
    Reference, Category
    """

    bank_type = "amex"
    min_fields = 5
    account_id = "amex_manual"

    DATE, DESCRIPTION, AMOUNT, EXTENDED, STATEMENT_AS = 0, 1, 4, 5, 6
    ADDRESS, CITY, ZIP, COUNTRY, REFERENCE, CATEGORY = 7, 8, 9, 10, 11, 12

    @staticmethod
    def _field(values: List[str], index: int) -> str:
        return values[index] if index < len(values) else ""

    def extract_row(self, values, upload_id, file_name):
        # AMEX reports charges as positive numbers
        amount = -abs(parse_amount(self._field(values, self.AMOUNT)))
        description = self._field(values, self.DESCRIPTION)

        location = {
            "address": self._field(values, self.ADDRESS),
            "city": self._field(values, self.CITY),
            "zip": self._field(values, self.ZIP),
            "country": self._field(values, self.COUNTRY),
        }

        return self.build_transaction(
            self._field(values, self.DATE),
            description,
            amount,
            upload_id,
            file_name,
            merchant_name=self._field(values, self.STATEMENT_AS) or description,
            category=[self._field(values, self.CATEGORY) or "General"],
            subcategory=["Manual Upload"],
            location=location if any(location.values()) else None,
            raw_data={
                "csv_line": values,
                "extended_details": self._field(values, self.EXTENDED),
                "reference": self._field(values, self.REFERENCE),
            },
        )


class TruistExtractor(BankExtractor):
    """Truist export, read by position.

    Account Type, Account Number, Date, Description, Debit, Credit,
    Running Balance
    """

    bank_type = "truist"
    min_fields = 5
    account_id = "truist_manual"

    ACCOUNT_TYPE, ACCOUNT_NUMBER, DATE, DESCRIPTION = 0, 1, 2, 3
    DEBIT, CREDIT, BALANCE = 4, 5, 6

    def extract_row(self, values, upload_id, file_name):
        credit = values[self.CREDIT] if len(values) > self.CREDIT else ""
        amount = split_debit_credit(values[self.DEBIT], credit)

        return self.build_transaction(
            values[self.DATE],
            values[self.DESCRIPTION],
            amount,
            upload_id,
            file_name,
            category=["General"],
            subcategory=["Manual Upload"],
            raw_data={
                "csv_line": values,
                "account_type": values[self.ACCOUNT_TYPE],
                "account_number": values[self.ACCOUNT_NUMBER],
                "running_balance": values[self.BALANCE] if len(values) > self.BALANCE else "",
            },
        )


class GenericExtractor(BankExtractor):
    """Any other bank: columns resolved from the header row."""

    bank_type = "generic"

    def __init__(
        self,
        merchant_extractor: Optional[MerchantExtractor] = None,
        resolver: Optional[ColumnResolver] = None,
    ):
        super().__init__(merchant_extractor)
        self.resolver = resolver or ColumnResolver()
        self.mapping: Optional[ColumnMapping] = None
        self.headers: List[str] = []

    def prepare(self, headers):
        self.headers = list(headers)
        self.mapping = self.resolver.resolve(self.headers)
        self.min_fields = self.mapping.required_width
        logger.info(f"Generic column mapping: {self.mapping}")

    @staticmethod
    def _value(values: List[str], index: Optional[int]) -> str:
        if index is None or index >= len(values):
            return ""
        return values[index].strip()

    def _amount(self, values: List[str]) -> float:
        mapping = self.mapping
        amount_str = self._value(values, mapping.amount)
        if amount_str:
            return parse_amount(amount_str)
        return split_debit_credit(
            self._value(values, mapping.debit), self._value(values, mapping.credit)
        )

    def extract_row(self, values, upload_id, file_name):
        return self.build_transaction(
            values[self.mapping.date],
            values[self.mapping.description],
            self._amount(values),
            upload_id,
            file_name,
            category=["General"],
            subcategory=["Manual Upload"],
            raw_data={"csv_line": values, "headers": self.headers},
        )


EXTRACTORS: Dict[str, Type[BankExtractor]] = {
    "amex": AmexExtractor,
    "truist": TruistExtractor,
    "generic": GenericExtractor,
}

# File-name fragments identifying a known bank
BANK_FILENAME_HINTS: Dict[str, List[str]] = {
    "amex": ["amex", "american_express", "american express"],
    "truist": ["truist", "bb&t", "suntrust"],
}


def detect_bank_type(file_name: Optional[str]) -> str:
    """Guess the bank from an upload's file name, defaulting to generic."""
    lowered = (file_name or "").lower()
    for bank, hints in BANK_FILENAME_HINTS.items():
        if any(hint in lowered for hint in hints):
            return bank
    return "generic"


def get_extractor(bank_type: Optional[str]) -> BankExtractor:
    """Extractor for a bank tag. Unknown tags use the generic extractor."""
    extractor_cls = EXTRACTORS.get((bank_type or "generic").lower(), GenericExtractor)
    return extractor_cls()
