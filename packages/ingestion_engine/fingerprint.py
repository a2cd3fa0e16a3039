"""Duplicate-key generation for cross-upload and cross-source dedup.

Different sources describe the same purchase differently ("POS STARBUCKS
#123" from a bank export, "Starbucks" from the aggregator), so the key is
built from aggressively normalized text rather than the raw descriptor.
"""

import re

from .dates import normalize_date

_WHITESPACE = re.compile(r"\s+")
_LEADING_BOILERPLATE = re.compile(
    r"^(pos|purchase|payment|transfer|deposit|withdrawal)\s+", re.IGNORECASE
)
# POS marker, "#123" / "*123" references
_TRAILING_REFERENCE = re.compile(r"\s+(pos|#\d+|\*\d+)$", re.IGNORECASE)
# Masked card endings like "xx1234"
_TRAILING_CARD = re.compile(r"\s+xx\d+$", re.IGNORECASE)


def clean_description(description: str) -> str:
    if not description:
        return ""
    text = _WHITESPACE.sub(" ", str(description).lower().strip())
    text = _LEADING_BOILERPLATE.sub("", text)
    text = _TRAILING_REFERENCE.sub("", text)
    text = _TRAILING_CARD.sub("", text)
    return text.strip()


def duplicate_key(date, description: str, amount) -> str:
    """Deterministic fingerprint: ``{date}_{clean description}_{|amount|}``.

    The sign is ignored so a CSV charge (``-4.50``) and an aggregator record
    reporting the same outflow as ``4.5`` collapse to one key.
    """
    normalized_date = normalize_date(date)
    normalized_amount = f"{abs(float(amount)):.2f}"
    return f"{normalized_date}_{clean_description(description)}_{normalized_amount}"
