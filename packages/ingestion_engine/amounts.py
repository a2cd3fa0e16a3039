"""Amount-string parsing shared by all bank extractors."""

import re
from typing import Optional

# Currency symbols, thousands separators and whitespace
_NOISE = re.compile(r"[₹$€£¥,\s]")
_CURRENCY_PREFIX = re.compile(r"^[A-Za-z]{3}(?=[\d(+\-.])")


def parse_amount(value) -> float:
    """Parse an amount string into a signed float.

    Handles ``1,234.56``, ``$25.00``, ``USD 25.00``, ``-25`` and the
    accounting notation ``($133.08)`` which means ``-133.08``. Blank or
    unparseable values return ``0.0`` so the caller's zero-amount check
    drops the row.
    """
    if value is None:
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)

    amount_str = _NOISE.sub("", str(value))
    amount_str = _CURRENCY_PREFIX.sub("", amount_str)
    if not amount_str:
        return 0.0

    negative = False
    if amount_str.startswith("(") and amount_str.endswith(")"):
        negative = True
        amount_str = amount_str[1:-1]

    try:
        amount = float(amount_str)
    except ValueError:
        return 0.0

    return -abs(amount) if negative else amount


def split_debit_credit(debit: Optional[str], credit: Optional[str]) -> float:
    """Net amount from separate debit/credit columns.

    A nonzero credit is money in, a nonzero debit is money out. Credit wins
    when both are populated.
    """
    credit_amount = abs(parse_amount(credit)) if credit else 0.0
    debit_amount = abs(parse_amount(debit)) if debit else 0.0

    if credit_amount > 0:
        return credit_amount
    if debit_amount > 0:
        return -debit_amount
    return 0.0
