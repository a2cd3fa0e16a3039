"""Write-through transaction store.

Reads are served from memory. Writes land in memory first and are then
replicated to the backing store with a bounded timeout; a replication
failure is logged and never surfaces to the caller.
"""

import asyncio
import functools
import logging
from typing import Any, Callable, Dict, List, Optional, Set

from packages.ingestion_engine.models import Transaction, utc_now_iso

from .backends import BackingStore

logger = logging.getLogger(__name__)

# Fields overwritten when a transaction with a known id is saved again
MERGE_FIELDS = (
    "amount",
    "category",
    "subcategory",
    "merchant_name",
    "name",
    "location",
    "raw_data",
    "updated_at",
)


class TransactionStore:
    def __init__(
        self,
        backend: Optional[BackingStore] = None,
        timeout: float = 2.0,
        batch_size: int = 10,
    ):
        self.backend = backend
        self.timeout = timeout
        self.batch_size = batch_size
        self._transactions: Dict[str, Transaction] = {}
        self._by_duplicate_key: Dict[str, Set[str]] = {}
        self._cursors: Dict[str, str] = {}
        self._lock = asyncio.Lock()
        self._hydrated = False

    def __len__(self) -> int:
        return len(self._transactions)

    @property
    def hydrated(self) -> bool:
        return self._hydrated

    async def _call(self, fn: Callable, *args) -> Any:
        """Run a backing-store call in the executor, bounded by ``timeout``."""
        loop = asyncio.get_running_loop()
        return await asyncio.wait_for(
            loop.run_in_executor(None, functools.partial(fn, *args)),
            timeout=self.timeout,
        )

    async def _replicate(self, operation: str, fn: Callable, *args) -> Any:
        """Like ``_call``, but a failure is logged and reported as None."""
        if self.backend is None:
            return None
        try:
            return await self._call(fn, *args)
        except asyncio.TimeoutError:
            logger.warning(f"Backing store {operation} timed out after {self.timeout}s")
        except Exception as e:
            logger.warning(f"Backing store {operation} failed: {e}")
        return None

    def _index(self, txn: Transaction) -> None:
        self._transactions[txn.id] = txn
        if txn.duplicate_key:
            self._by_duplicate_key.setdefault(txn.duplicate_key, set()).add(txn.id)

    def _unindex(self, txn: Transaction) -> None:
        self._transactions.pop(txn.id, None)
        ids = self._by_duplicate_key.get(txn.duplicate_key)
        if ids is not None:
            ids.discard(txn.id)
            if not ids:
                del self._by_duplicate_key[txn.duplicate_key]

    async def open(self) -> int:
        """Hydrate from the backing store.

        Runs once it succeeds; later calls are no-ops. A failed or timed-out
        load leaves the store unhydrated so the next call tries again.
        """
        async with self._lock:
            if self._hydrated:
                return len(self._transactions)

            records = []
            if self.backend is not None:
                try:
                    records = await self._call(self.backend.load_all) or []
                except asyncio.TimeoutError:
                    logger.warning(f"Backing store load timed out after {self.timeout}s; will retry")
                    return len(self._transactions)
                except Exception as e:
                    logger.warning(f"Backing store load failed: {e}; will retry")
                    return len(self._transactions)

            for record in records:
                try:
                    txn = Transaction.from_dict(record)
                except (TypeError, ValueError) as e:
                    logger.warning(f"Skipping unreadable record {record.get('id')}: {e}")
                    continue
                # Writes made while the backend was unreachable are newer
                if txn.id not in self._transactions:
                    self._index(txn)

            self._hydrated = True
            logger.info(f"Transaction store ready with {len(self._transactions)} transactions")
            return len(self._transactions)

    def close(self) -> None:
        if self.backend is not None:
            self.backend.close()

    def _save_locked(self, txn: Transaction) -> Optional[Dict[str, Any]]:
        """Memory write. Returns the merged fields on an id collision, else None."""
        existing = self._transactions.get(txn.id)
        if existing is None:
            self._index(txn)
            return None

        txn.updated_at = txn.updated_at or utc_now_iso()
        fields = {name: getattr(txn, name) for name in MERGE_FIELDS}
        if txn.duplicate_key and txn.duplicate_key != existing.duplicate_key:
            self._unindex(existing)
            existing.duplicate_key = txn.duplicate_key
            fields["duplicate_key"] = txn.duplicate_key
        for name, value in fields.items():
            setattr(existing, name, value)
        self._index(existing)
        return fields

    async def _persist(self, txn: Transaction, merged: Optional[Dict[str, Any]]) -> None:
        if self.backend is None:
            return
        if merged is None:
            inserted = await self._replicate("put", self.backend.put_if_absent, txn.to_dict())
            if inserted is False:
                # Another writer got the id first; fold this record into it
                await self._replicate("update", self.backend.update, txn.id, txn.to_dict())
        else:
            await self._replicate("update", self.backend.update, txn.id, merged)

    async def save(self, txn: Transaction) -> bool:
        """Insert, or merge mutable fields on an id collision.

        Returns:
            True if inserted, False if merged into an existing record
        """
        async with self._lock:
            merged = self._save_locked(txn)
        await self._persist(txn, merged)
        return merged is None

    async def save_if_new(self, txn: Transaction) -> bool:
        """Store ``txn`` unless its duplicate key or id is already known.

        The check and the insert happen under one lock.
        """
        async with self._lock:
            if txn.duplicate_key and txn.duplicate_key in self._by_duplicate_key:
                logger.debug(f"Duplicate {txn.duplicate_key} skipped")
                return False
            if txn.id in self._transactions:
                return False
            self._save_locked(txn)
        await self._persist(txn, None)
        return True

    def is_duplicate(self, duplicate_key: str) -> bool:
        return bool(duplicate_key) and duplicate_key in self._by_duplicate_key

    def get(self, txn_id: str) -> Optional[Transaction]:
        return self._transactions.get(txn_id)

    async def query(
        self,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Transaction]:
        """Transactions dated within ``[start_date, end_date]``, newest first."""
        matches = [
            txn
            for txn in self._transactions.values()
            if (not start_date or txn.date >= start_date) and (not end_date or txn.date <= end_date)
        ]
        matches.sort(key=lambda t: (t.date, t.created_at), reverse=True)
        if limit is not None:
            matches = matches[:limit]
        return matches

    async def delete_by_upload_id(self, upload_id: str) -> int:
        async with self._lock:
            members = [t for t in self._transactions.values() if t.upload_id == upload_id]
            for txn in members:
                self._unindex(txn)

        if members and self.backend is not None:
            await self._replicate("delete", self.backend.delete, [t.id for t in members])
        logger.info(f"Deleted {len(members)} transactions for upload {upload_id}")
        return len(members)

    async def get_cursor(self, name: str) -> Optional[str]:
        if name not in self._cursors and self.backend is not None:
            cursor = await self._replicate("get_cursor", self.backend.get_cursor, name)
            if cursor:
                self._cursors[name] = cursor
        return self._cursors.get(name)

    async def save_cursor(self, name: str, cursor: str) -> None:
        self._cursors[name] = cursor
        if self.backend is not None:
            await self._replicate("put_cursor", self.backend.put_cursor, name, cursor)

    async def save_batch(self, transactions: List[Transaction], only_new: bool = True) -> int:
        """Save in chunks of ``batch_size`` with bounded concurrency per chunk."""
        saver = self.save_if_new if only_new else self.save
        saved = 0
        for start in range(0, len(transactions), self.batch_size):
            chunk = transactions[start : start + self.batch_size]
            results = await asyncio.gather(*(saver(txn) for txn in chunk))
            saved += sum(1 for stored in results if stored)
        return saved

    async def ping(self) -> bool:
        if self.backend is None:
            return True
        return bool(await self._replicate("ping", self.backend.ping))
