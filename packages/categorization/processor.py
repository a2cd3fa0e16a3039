"""Business rules applied to every transaction before it is stored."""

import asyncio
import logging
import math
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

from rapidfuzz.distance import Levenshtein

from packages.ingestion_engine.models import Transaction, utc_now_iso

from .engine import CategorizationEngine

logger = logging.getLogger(__name__)


@dataclass
class BatchSummary:
    processed: int = 0
    errors: int = 0
    flagged: int = 0
    categorized: int = 0
    transactions: List[Transaction] = field(default_factory=list)


class TransactionProcessor:
    """Categorizes a transaction and attaches review flags.

    ``store`` is optional; when given, recent transactions are scanned for
    potential duplicates (same amount within a few days, same merchant or a
    very similar name).
    """

    LARGE_AMOUNT_THRESHOLD = 10000
    REVIEW_THRESHOLD = 500
    DUPLICATE_WINDOW_DAYS = 3
    DUPLICATE_SCAN_LIMIT = 50
    SIMILARITY_THRESHOLD = 0.8
    CONFIDENT_THRESHOLD = 0.7

    def __init__(self, engine: CategorizationEngine, store=None, batch_size: int = 10):
        self.engine = engine
        self.store = store
        self.batch_size = batch_size

    async def process(self, txn: Transaction) -> Transaction:
        self.enrich(txn)

        rules = [
            self.validate_amount,
            self.detect_potential_duplicates,
            self.flag_large_transaction,
            self.classify_income,
            self.summarize_line_items,
        ]
        for rule in rules:
            try:
                result = rule(txn)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                logger.error(f"Error applying rule {rule.__name__} to {txn.id}: {e}")
                txn.processing_metadata.setdefault("errors", []).append(
                    {"rule": rule.__name__, "error": str(e), "timestamp": utc_now_iso()}
                )

        return txn

    def enrich(self, txn: Transaction) -> Transaction:
        original_category = list(txn.category or [])
        result = self.engine.categorize(txn)

        txn.category = result.category
        txn.subcategory = result.subcategory
        txn.categorization_confidence = result.confidence
        txn.processing_metadata.update(
            {
                "processed_at": utc_now_iso(),
                "categorization_method": result.method,
                "matched_keyword": result.matched_keyword,
                "original_category": original_category,
                "suggested_changes": result.suggested_changes,
            }
        )
        return txn

    @staticmethod
    def _flag(txn: Transaction, flag: Dict[str, Any]) -> None:
        txn.processing_metadata.setdefault("flags", []).append(flag)

    def validate_amount(self, txn: Transaction) -> None:
        if not isinstance(txn.amount, (int, float)) or math.isnan(txn.amount):
            raise ValueError("Invalid transaction amount")

        if abs(txn.amount) > self.LARGE_AMOUNT_THRESHOLD:
            self._flag(
                txn,
                {
                    "type": "large_amount",
                    "message": f"Transaction amount exceeds ${self.LARGE_AMOUNT_THRESHOLD:,}",
                    "amount": txn.amount,
                },
            )

    def flag_large_transaction(self, txn: Transaction) -> None:
        if abs(txn.amount) > self.REVIEW_THRESHOLD:
            self._flag(
                txn,
                {
                    "type": "large_transaction",
                    "message": f"Transaction exceeds ${self.REVIEW_THRESHOLD} threshold",
                    "amount": txn.amount,
                    "requires_review": True,
                },
            )

    def classify_income(self, txn: Transaction) -> None:
        if txn.amount > 0:
            txn.processing_metadata["income_classification"] = {
                "type": "automatic",
                "confidence": self.engine.rules.income.confidence,
            }

    def is_similar(self, candidate: Transaction, txn: Transaction) -> bool:
        if candidate.id == txn.id:
            return False
        if abs(candidate.amount - txn.amount) >= 0.01:
            return False
        if candidate.merchant_name == txn.merchant_name:
            return True
        similarity = Levenshtein.normalized_similarity(candidate.name or "", txn.name or "")
        return similarity > self.SIMILARITY_THRESHOLD

    async def find_similar(self, txn: Transaction) -> List[Transaction]:
        if self.store is None:
            return []

        day = date.fromisoformat(txn.date)
        window = timedelta(days=self.DUPLICATE_WINDOW_DAYS)
        recent = await self.store.query(
            (day - window).isoformat(),
            (day + window).isoformat(),
            self.DUPLICATE_SCAN_LIMIT,
        )
        return [candidate for candidate in recent if self.is_similar(candidate, txn)]

    async def detect_potential_duplicates(self, txn: Transaction) -> None:
        similar = await self.find_similar(txn)
        if not similar:
            return

        self._flag(
            txn,
            {
                "type": "potential_duplicate",
                "message": f"Found {len(similar)} similar transaction(s)",
                "similar_transactions": [
                    {"id": t.id, "date": t.date, "amount": t.amount, "merchant": t.merchant_name}
                    for t in similar
                ],
            },
        )

    def build_line_items(self, txn: Transaction) -> List[Transaction]:
        """Child transactions for each priced receipt line item."""
        if txn.source != "receipt_ocr":
            return []

        children = []
        for index, item in enumerate(txn.raw_data.get("line_items") or []):
            total_price = item.get("total_price") or 0
            if total_price <= 0:
                continue
            description = item.get("description") or f"Line Item {index + 1}"
            children.append(
                Transaction(
                    id=f"{txn.id}_line_{index}",
                    parent_transaction_id=txn.id,
                    date=txn.date,
                    name=description,
                    merchant_name=txn.merchant_name,
                    amount=-abs(total_price),
                    source="receipt_line_item",
                    account_id=txn.account_id,
                    category=self.engine.categorize_line_item(description, txn.category),
                    subcategory=["Receipt Line Item"],
                    raw_data={
                        "line_item_index": index,
                        "quantity": item.get("quantity"),
                        "unit_price": item.get("unit_price"),
                        "description": item.get("description"),
                        "parent_receipt": txn.raw_data.get("file_name"),
                    },
                )
            )
        return children

    def summarize_line_items(self, txn: Transaction) -> None:
        children = self.build_line_items(txn)
        if children:
            txn.processing_metadata["line_items"] = {
                "count": len(children),
                "total_amount": round(sum(abs(child.amount) for child in children), 2),
            }

    async def process_batch(self, transactions: List[Transaction]) -> BatchSummary:
        summary = BatchSummary()
        total_batches = math.ceil(len(transactions) / self.batch_size) if transactions else 0

        for start in range(0, len(transactions), self.batch_size):
            batch = transactions[start : start + self.batch_size]
            results = await asyncio.gather(
                *(self.process(txn) for txn in batch), return_exceptions=True
            )

            for txn, result in zip(batch, results):
                if isinstance(result, Exception):
                    logger.error(f"Error processing transaction {txn.id}: {result}")
                    summary.errors += 1
                    continue
                summary.processed += 1
                summary.transactions.append(result)
                if result.processing_metadata.get("flags"):
                    summary.flagged += 1
                if (result.categorization_confidence or 0) > self.CONFIDENT_THRESHOLD:
                    summary.categorized += 1

            logger.info(f"Processed batch {start // self.batch_size + 1}/{total_batches}")

        logger.info(
            f"Batch processing complete: processed={summary.processed} errors={summary.errors} "
            f"flagged={summary.flagged} categorized={summary.categorized}"
        )
        return summary
