import json
import re
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Optional, Tuple

# Shared with the categorization engine, which reads the same table
RULES_PATH = Path(__file__).resolve().parent.parent / "categorization" / "category_rules.json"


@lru_cache(maxsize=1)
def _rule_table_aliases() -> Tuple[Tuple[str, str], ...]:
    with open(RULES_PATH, "r", encoding="utf-8") as f:
        return tuple(json.load(f).get("merchant_aliases", {}).items())


def default_merchant_aliases() -> Dict[str, str]:
    """Uppercase fragment -> display name, from ``category_rules.json``."""
    return dict(_rule_table_aliases())


class MerchantExtractor:
    def __init__(self, aliases: Optional[Dict[str, str]] = None):
        # Ordered list of known merchants (order matters for substring matching)
        self.known_merchants: List[Tuple[str, List[str]]] = [
            ("Whole Foods", ["whole foods", "wholefds"]),
            ("Trader Joe's", ["trader joe"]),
            ("Amazon", ["amazon", "amzn"]),
            ("Walmart", ["wal-mart", "walmart", "wm supercenter"]),
            ("Target", ["target"]),
            ("Costco", ["costco"]),
            ("Kroger", ["kroger"]),
            ("Publix", ["publix"]),
            ("Starbucks", ["starbucks"]),
            ("McDonalds", ["mcdonalds", "mcdonald's"]),
            ("Chipotle", ["chipotle"]),
            ("Uber", ["uber"]),
            ("Lyft", ["lyft"]),
            ("Netflix", ["netflix"]),
            ("Spotify", ["spotify"]),
            ("CVS Pharmacy", ["cvs"]),
            ("Walgreens", ["walgreens"]),
            ("Shell", ["shell oil", "shell service"]),
            ("Chevron", ["chevron"]),
            ("ExxonMobil", ["exxon", "exxonmobil"]),
        ]

        # Uppercase fragment -> display name, checked by normalize()
        self.aliases = aliases or default_merchant_aliases()

        self.noise_patterns = [
            r"^(?:pos|purchase|debit card purchase|checkcard|ach debit)\s+",
            r"\bxx+\d+\b",  # Masked card numbers
            r"[#*]\s*\d+",  # Store / reference numbers
            r"\b\d{2}/\d{2}\b",  # Posting dates
            r"\b\d{4,}\b",  # Long reference numbers
            r"\s+",  # Compress whitespace
        ]

    def normalize(self, merchant_name: str) -> str:
        """Canonical display name used as categorization input.

        Known aliases win; otherwise each word is title-cased.
        """
        if not merchant_name:
            return ""

        upper = merchant_name.upper().strip()
        for pattern, replacement in self.aliases.items():
            if pattern in upper:
                return replacement

        return " ".join(
            word[:1].upper() + word[1:].lower() for word in merchant_name.split(" ")
        )

    def extract(self, raw_description: str) -> str:
        if not raw_description:
            return ""

        cleaned = raw_description.lower()

        # Strategy 1: Known Merchant Matching
        for official_name, aliases in self.known_merchants:
            for alias in aliases:
                if alias in cleaned:
                    return official_name

        # Strategy 2: Heuristic Cleaning for Unknowns
        for pattern in self.noise_patterns:
            cleaned = re.sub(pattern, " ", cleaned, flags=re.IGNORECASE)

        cleaned = re.sub(r"[^a-zA-Z&\s]", " ", cleaned)
        cleaned = re.sub(r"\s+", " ", cleaned).strip()

        return cleaned.title()
