"""Single-line CSV tokenizer.

Only commas outside double quotes separate fields. Embedded quotes cannot
be escaped (``""`` toggles quoted mode twice), so a field such as
``"6"" pipe"`` loses its inner quotes.
"""

from typing import List

QUOTE = '"'
SEPARATOR = ","


def parse_line(line: str) -> List[str]:
    """Split one raw CSV row into trimmed fields.

    An unterminated quote never raises: the rest of the line simply becomes
    part of the last field.
    """
    fields: List[str] = []
    current: List[str] = []
    in_quotes = False

    for char in line:
        if char == QUOTE:
            in_quotes = not in_quotes
        elif char == SEPARATOR and not in_quotes:
            fields.append("".join(current).strip())
            current = []
        else:
            current.append(char)

    fields.append("".join(current).strip())
    return [_strip_quotes(value) for value in fields]


def _strip_quotes(value: str) -> str:
    if value.startswith(QUOTE):
        value = value[1:]
    if value.endswith(QUOTE):
        value = value[:-1]
    return value.strip()


def split_lines(content: str) -> List[str]:
    """Non-blank, trimmed lines of a CSV document."""
    return [line.strip() for line in content.splitlines() if line.strip()]
