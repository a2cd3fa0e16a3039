"""Keyword-based column resolution for bank exports with unknown layouts."""

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence


class CsvFormatError(ValueError):
    """File-level CSV problem that aborts the whole upload."""

    def __init__(self, message: str, headers: Optional[Sequence[str]] = None):
        self.headers = list(headers or [])
        if self.headers:
            message = f"{message}. Available headers: {', '.join(self.headers)}"
        super().__init__(message)


# Role order matters: a header index claimed by an earlier role is skipped
# by later ones, so "Transaction Date" and "Transaction Amount" are never
# taken as the description.
DEFAULT_COLUMN_KEYWORDS: Dict[str, List[str]] = {
    "date": ["date", "transaction date", "posted date", "trans date"],
    "debit": ["debit", "withdrawal", "charge"],
    "credit": ["credit", "deposit", "payment"],
    "amount": ["amount", "transaction amount", "trans amount"],
    "description": ["description", "merchant", "payee", "memo", "details", "transaction"],
}


@dataclass
class ColumnMapping:
    date: int
    description: int
    amount: Optional[int] = None
    debit: Optional[int] = None
    credit: Optional[int] = None

    @property
    def required_width(self) -> int:
        """Minimum field count for a row to carry date and description."""
        return max(self.date, self.description) + 1


class ColumnResolver:
    """Maps arbitrary header names to semantic roles by substring search."""

    def __init__(self, keywords: Optional[Dict[str, List[str]]] = None):
        self.keywords = keywords or DEFAULT_COLUMN_KEYWORDS

    @staticmethod
    def find_column(
        headers: Sequence[str], search_terms: Sequence[str], exclude: Sequence[int] = ()
    ) -> Optional[int]:
        """First header index whose lowercased text contains any term."""
        for index, header in enumerate(headers):
            if index in exclude:
                continue
            header_lower = header.lower()
            if any(term.lower() in header_lower for term in search_terms):
                return index
        return None

    def resolve(self, headers: Sequence[str]) -> ColumnMapping:
        claimed: List[int] = []
        found: Dict[str, Optional[int]] = {}

        for role, terms in self.keywords.items():
            index = self.find_column(headers, terms, exclude=claimed)
            found[role] = index
            if index is not None:
                claimed.append(index)

        if found.get("date") is None:
            raise CsvFormatError("Could not find date column", headers)
        if found.get("description") is None:
            raise CsvFormatError("Could not find description column", headers)
        if all(found.get(role) is None for role in ("amount", "debit", "credit")):
            raise CsvFormatError(
                "Could not find amount columns (debit/credit or amount)", headers
            )

        return ColumnMapping(
            date=found["date"],
            description=found["description"],
            amount=found.get("amount"),
            debit=found.get("debit"),
            credit=found.get("credit"),
        )
