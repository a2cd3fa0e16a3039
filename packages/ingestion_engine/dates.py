"""Date normalization to canonical ``YYYY-MM-DD`` strings."""

import logging
import re
import warnings
from datetime import date
from typing import Optional

import pandas as pd

logger = logging.getLogger(__name__)

# Checked in order. The position of the 4-digit group decides whether the
# year leads (YYYY-MM-DD) or trails (MM/DD/YYYY, MM-DD-YYYY).
DATE_PATTERNS = [
    re.compile(r"(\d{1,2})/(\d{1,2})/(\d{4})"),
    re.compile(r"(\d{4})-(\d{1,2})-(\d{1,2})"),
    re.compile(r"(\d{1,2})-(\d{1,2})-(\d{4})"),
]

# The free-text fallback only sees dates that name their year; pandas
# resolves relative words to the current date and fills missing parts in.
EXPLICIT_YEAR = re.compile(r"\b\d{4}\b")
RELATIVE_WORDS = re.compile(r"\b(?:today|now|yesterday|tomorrow)\b", re.IGNORECASE)
MIN_YEAR = 1900


def _from_groups(p1: str, p2: str, p3: str) -> Optional[date]:
    if len(p3) == 4:
        year, month, day = p3, p1, p2
    else:
        year, month, day = p1, p2, p3
    try:
        parsed = date(int(year), int(month), int(day))
    except ValueError:
        return None
    return parsed if parsed.year >= MIN_YEAR else None


def normalize_date(value) -> Optional[str]:
    """Parse a free-text date, returning ``YYYY-MM-DD`` or ``None``.

    ``None`` means the record must be dropped; callers never substitute
    today's date.
    """
    if value is None:
        return None
    if isinstance(value, date):
        return value.isoformat()[:10]

    text = str(value).strip()
    if not text:
        return None

    for pattern in DATE_PATTERNS:
        match = pattern.search(text)
        if match:
            parsed = _from_groups(*match.groups())
            if parsed:
                return parsed.isoformat()

    if RELATIVE_WORDS.search(text) or not EXPLICIT_YEAR.search(text):
        logger.debug(f"Rejecting date without an explicit year: {text!r}")
        return None

    # General fallback, e.g. "Jun 21, 2025" or "21 June 2025"
    try:
        with warnings.catch_warnings():
            warnings.simplefilter("ignore")
            parsed = pd.to_datetime(text)
    except (ValueError, TypeError, OverflowError):
        logger.debug(f"Unparseable date: {text!r}")
        return None

    if pd.isna(parsed) or parsed.year < MIN_YEAR:
        return None
    return parsed.date().isoformat()
