"""Transactions service: stored-transaction queries and bank-link sync.

Plaid's ``/transactions/sync`` is cursor based: each call returns the
activity added or modified since the cursor plus the next cursor, which is
persisted in the store so the following sync resumes where this one ended.
"""

import hashlib
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from packages.categorization.processor import TransactionProcessor
from packages.ingestion_engine.dates import normalize_date
from packages.ingestion_engine.fingerprint import duplicate_key
from packages.ingestion_engine.models import Transaction
from packages.transaction_store import TransactionStore

logger = logging.getLogger(__name__)

PLAID_HOSTS = {
    "sandbox": "https://sandbox.plaid.com",
    "development": "https://development.plaid.com",
    "production": "https://production.plaid.com",
}

SYNC_PAGE_SIZE = 500
MAX_SYNC_PAGES = 20


class BankSyncError(Exception):
    """The bank-link service rejected or failed a request."""


class PlaidClient:
    """Minimal async client for the Plaid transactions sync endpoint."""

    def __init__(
        self,
        client_id: str,
        secret: str,
        access_token: str,
        environment: str = "sandbox",
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
    ):
        if environment not in PLAID_HOSTS:
            raise ValueError(f"Unknown Plaid environment: {environment}")
        self.client_id = client_id
        self.secret = secret
        self.access_token = access_token
        self.base_url = PLAID_HOSTS[environment]
        self.timeout = timeout
        self._client = http_client

    @property
    def cursor_name(self) -> str:
        """Store key for this item's cursor. The access token itself is not stored."""
        digest = hashlib.sha256(self.access_token.encode("utf-8")).hexdigest()[:16]
        return f"plaid_{digest}"

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            )
        return self._client

    async def sync(self, cursor: Optional[str] = None, count: int = SYNC_PAGE_SIZE) -> Dict[str, Any]:
        """One page of ``/transactions/sync``.

        Returns:
            The response body: ``added``, ``modified``, ``removed``,
            ``next_cursor`` and ``has_more``.
        """
        body: Dict[str, Any] = {
            "client_id": self.client_id,
            "secret": self.secret,
            "access_token": self.access_token,
            "count": count,
        }
        if cursor:
            body["cursor"] = cursor

        client = await self._get_client()
        try:
            response = await client.post("/transactions/sync", json=body)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"Plaid sync rejected: {e.response.status_code} {e.response.text}")
            raise BankSyncError(f"Plaid sync failed with status {e.response.status_code}") from e
        except httpx.HTTPError as e:
            logger.error(f"Plaid sync request failed: {e}")
            raise BankSyncError(f"Plaid sync request failed: {e}") from e

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


def plaid_to_transaction(record: Dict[str, Any]) -> Optional[Transaction]:
    """Map a Plaid transaction, or return None when it has no usable date
    or a zero amount.

    Plaid reports money out as a positive amount; the sign is flipped to
    the ledger's convention (negative is spend).
    """
    date = normalize_date(record.get("date") or record.get("authorized_date"))
    if not date:
        logger.warning(f"Skipping Plaid transaction {record.get('transaction_id')}: no date")
        return None

    name = record.get("name") or record.get("merchant_name") or "Plaid transaction"
    amount = -float(record.get("amount") or 0)
    if amount == 0:
        logger.warning(f"Skipping Plaid transaction {record.get('transaction_id')}: zero amount")
        return None

    category = record.get("category")
    personal_finance = record.get("personal_finance_category") or {}
    if not category and personal_finance.get("primary"):
        category = [personal_finance["primary"].replace("_", " ").title()]

    return Transaction(
        id=record["transaction_id"],
        date=date,
        name=name,
        merchant_name=record.get("merchant_name") or "",
        amount=amount,
        source="plaid",
        account_id=record.get("account_id") or "",
        iso_currency_code=record.get("iso_currency_code") or "USD",
        category=list(category or ["General"]),
        location=record.get("location"),
        duplicate_key=duplicate_key(date, name, amount),
        raw_data=record,
    )


@dataclass
class SyncResult:
    added: int = 0
    modified: int = 0
    saved: int = 0
    next_cursor: Optional[str] = None


def _convert(records: List[Dict[str, Any]]) -> List[Transaction]:
    converted = (plaid_to_transaction(record) for record in records)
    return [txn for txn in converted if txn is not None]


async def sync_bank_transactions(
    store: TransactionStore,
    client: PlaidClient,
    processor: Optional[TransactionProcessor] = None,
) -> SyncResult:
    """Pull every page since the stored cursor and save it.

    New transactions go through the duplicate-key check, so a purchase
    already imported from a CSV statement is not stored twice. Modified
    transactions are merged into the stored record with the same id.
    """
    result = SyncResult()
    cursor = await store.get_cursor(client.cursor_name)

    for _ in range(MAX_SYNC_PAGES):
        page = await client.sync(cursor)
        added = _convert(page.get("added") or [])
        modified = _convert(page.get("modified") or [])
        result.added += len(page.get("added") or [])
        result.modified += len(page.get("modified") or [])

        if processor is not None:
            await processor.process_batch(added + modified)

        result.saved += await store.save_batch(added, only_new=True)
        await store.save_batch(modified, only_new=False)
        result.saved += len(modified)

        if page.get("removed"):
            logger.info(f"Plaid reported {len(page['removed'])} removed transactions")

        cursor = page.get("next_cursor") or cursor
        if cursor:
            await store.save_cursor(client.cursor_name, cursor)
        if not page.get("has_more"):
            break
    else:
        logger.warning(f"Plaid sync stopped after {MAX_SYNC_PAGES} pages; resuming next sync")

    result.next_cursor = cursor
    logger.info(
        f"Plaid sync: {result.added} added, {result.modified} modified, {result.saved} saved"
    )
    return result


async def list_transactions(
    store: TransactionStore,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    limit: Optional[int] = None,
) -> List[Transaction]:
    return await store.query(start_date=start_date, end_date=end_date, limit=limit)
