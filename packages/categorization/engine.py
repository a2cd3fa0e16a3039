"""Rule-based transaction categorization.

The rule table lives in ``category_rules.json`` so categories, keywords,
merchant aliases and amount thresholds can change without code edits.
Category order in the file is significant: on equal confidence the
first-registered category wins.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field

from packages.ingestion_engine.merchant_extractor import MerchantExtractor
from packages.ingestion_engine.models import Transaction

logger = logging.getLogger(__name__)

DEFAULT_RULES_PATH = Path(__file__).parent / "category_rules.json"


class CategoryRule(BaseModel):
    name: str
    keywords: List[str]
    subcategories: Dict[str, List[str]] = Field(default_factory=dict)

    def subcategory_for(self, keyword: str) -> str:
        for subcategory, keywords in self.subcategories.items():
            if keyword in keywords:
                return subcategory
        return "General"


class AmountFallback(BaseModel):
    """Applies when ``|amount| > above`` or ``|amount| < below``."""

    category: str
    subcategory: str
    confidence: float
    above: Optional[float] = None
    below: Optional[float] = None

    def matches(self, abs_amount: float) -> bool:
        if self.above is not None and abs_amount > self.above:
            return True
        if self.below is not None and abs_amount < self.below:
            return True
        return False


class IncomeRule(BaseModel):
    category: str = "Income"
    high_threshold: float = 1000
    high_subcategory: str = "Salary/Wages"
    low_threshold: float = 50
    low_subcategory: str = "Interest/Refund"
    default_subcategory: str = "Deposit"
    confidence: float = 0.9


class LineItemRule(BaseModel):
    fees_category: str = "Tax & Fees"
    fees_keywords: List[str] = Field(default_factory=lambda: ["tax", "fee"])
    discounts_category: str = "Discounts"
    discounts_keywords: List[str] = Field(default_factory=lambda: ["discount", "coupon"])
    default_category: str = "Shopping"


class DefaultCategory(BaseModel):
    category: str = "General"
    subcategory: str = "Uncategorized"


class RuleTable(BaseModel):
    categories: List[CategoryRule]
    merchant_aliases: Dict[str, str] = Field(default_factory=dict)
    amount_fallbacks: List[AmountFallback] = Field(default_factory=list)
    income: IncomeRule = Field(default_factory=IncomeRule)
    line_items: LineItemRule = Field(default_factory=LineItemRule)
    default: DefaultCategory = Field(default_factory=DefaultCategory)


@dataclass
class CategoryResult:
    category: List[str]
    subcategory: List[str]
    confidence: float
    method: str
    matched_keyword: Optional[str] = None
    suggested_changes: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def primary(self) -> str:
        return self.category[0]


class CategorizationEngine:
    """Keyword scorer with amount heuristics and an income override."""

    def __init__(self, rules: RuleTable, merchant_extractor: Optional[MerchantExtractor] = None):
        self.rules = rules
        self.merchant_extractor = merchant_extractor or MerchantExtractor(
            aliases=rules.merchant_aliases or None
        )
        # Keyword followed by a word boundary, compiled once per keyword
        self._boundary_patterns = {
            keyword: re.compile(re.escape(keyword.lower()) + r"\b")
            for rule in rules.categories
            for keyword in rule.keywords
        }

    @classmethod
    def from_file(cls, path: Optional[Union[str, Path]] = None) -> "CategorizationEngine":
        rules_path = Path(path) if path else DEFAULT_RULES_PATH
        with open(rules_path, "r", encoding="utf-8") as f:
            rules = RuleTable.model_validate(json.load(f))
        logger.info(f"Loaded {len(rules.categories)} category rules from {rules_path}")
        return cls(rules)

    def build_text(self, merchant_name: str, name: str) -> str:
        merchant = self.merchant_extractor.normalize(merchant_name or name or "")
        return f"{merchant} {name or ''}".lower()

    def calculate_confidence(self, keyword: str, text: str) -> float:
        """``min(len(kw) / len(text) * 10, 1)`` plus position bonuses, capped at 1."""
        if not text:
            return 0.0
        keyword = keyword.lower()
        confidence = min(len(keyword) / len(text) * 10, 1.0)

        if text.startswith(keyword):
            confidence += 0.3

        pattern = self._boundary_patterns.get(keyword) or re.compile(
            re.escape(keyword) + r"\b"
        )
        if pattern.search(text):
            confidence += 0.2

        return min(confidence, 1.0)

    def match_keywords(self, text: str) -> Optional[CategoryResult]:
        best: Optional[CategoryResult] = None

        for rule in self.rules.categories:
            for keyword in rule.keywords:
                if keyword.lower() not in text:
                    continue
                confidence = self.calculate_confidence(keyword, text)
                # Strict comparison keeps the first-registered category on ties
                if best is None or confidence > best.confidence:
                    best = CategoryResult(
                        category=[rule.name],
                        subcategory=[rule.subcategory_for(keyword)],
                        confidence=confidence,
                        method="keyword",
                        matched_keyword=keyword,
                    )

        if best is not None and best.confidence > 0:
            return best
        return None

    def categorize_by_amount(self, amount: float) -> Optional[CategoryResult]:
        abs_amount = abs(amount or 0)
        for fallback in self.rules.amount_fallbacks:
            if fallback.matches(abs_amount):
                return CategoryResult(
                    category=[fallback.category],
                    subcategory=[fallback.subcategory],
                    confidence=fallback.confidence,
                    method="amount",
                )
        return None

    def classify_income(self, amount: float) -> Optional[CategoryResult]:
        """Money in is Income regardless of any keyword match."""
        if amount is None or not amount > 0:
            return None

        income = self.rules.income
        if amount > income.high_threshold:
            subcategory = income.high_subcategory
        elif amount < income.low_threshold:
            subcategory = income.low_subcategory
        else:
            subcategory = income.default_subcategory

        return CategoryResult(
            category=[income.category],
            subcategory=[subcategory],
            confidence=income.confidence,
            method="income",
        )

    def categorize_fields(
        self,
        merchant_name: str,
        name: str,
        amount: float,
        original_category: Optional[List[str]] = None,
    ) -> CategoryResult:
        result = self.classify_income(amount)
        if result is None:
            result = self.match_keywords(self.build_text(merchant_name, name))
        if result is None:
            result = self.categorize_by_amount(amount)
        if result is None:
            default = self.rules.default
            result = CategoryResult(
                category=[default.category],
                subcategory=[default.subcategory],
                confidence=0.0,
                method="default",
            )

        result.suggested_changes = self.suggest_changes(original_category, result)
        return result

    def categorize(self, txn: Transaction) -> CategoryResult:
        return self.categorize_fields(txn.merchant_name, txn.name, txn.amount, txn.category)

    def suggest_changes(
        self, original_category: Optional[List[str]], result: CategoryResult
    ) -> List[Dict[str, Any]]:
        default = self.rules.default.category
        if not original_category or original_category[0] == default:
            if result.primary == default:
                return []
            return [
                {
                    "type": "new_categorization",
                    "message": f"Suggested category: {result.primary} > {result.subcategory[0]}",
                    "confidence": result.confidence,
                }
            ]
        if original_category[0] != result.primary:
            return [
                {
                    "type": "category_change",
                    "message": f'Consider changing from "{original_category[0]}" to "{result.primary}"',
                    "confidence": result.confidence,
                }
            ]
        return []

    def categorize_line_item(
        self, description: str, parent_category: Optional[List[str]] = None
    ) -> List[str]:
        rule = self.rules.line_items
        text = (description or "").lower()

        if any(keyword in text for keyword in rule.fees_keywords):
            return [rule.fees_category]
        if any(keyword in text for keyword in rule.discounts_keywords):
            return [rule.discounts_category]
        return list(parent_category or [rule.default_category])
