# packages/transaction_store/backends.py
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import redis

logger = logging.getLogger(__name__)


class BackingStore(ABC):
    """
    Abstract base class for transaction persistence.

    Implementations are synchronous; ``TransactionStore`` runs them in an
    executor with a timeout. Records are plain dicts (``Transaction.to_dict``).
    """

    @abstractmethod
    def load_all(self) -> List[Dict[str, Any]]:
        """Return every persisted transaction record."""
        pass

    @abstractmethod
    def put_if_absent(self, record: Dict[str, Any]) -> bool:
        """
        Insert a record only if no record with the same id exists.

        Returns:
            True if inserted, False if the id was already present
        """
        pass

    @abstractmethod
    def update(self, txn_id: str, fields: Dict[str, Any]) -> None:
        """Merge fields into an existing record."""
        pass

    @abstractmethod
    def delete(self, txn_ids: List[str]) -> int:
        """Delete records by id, returning how many existed."""
        pass

    @abstractmethod
    def get_cursor(self, name: str) -> Optional[str]:
        pass

    @abstractmethod
    def put_cursor(self, name: str, cursor: str) -> None:
        pass

    @abstractmethod
    def ping(self) -> bool:
        pass

    def close(self) -> None:
        """Release connections. No-op by default."""


class MemoryBackend(BackingStore):
    """Process-local backend, used for development and tests."""

    def __init__(self):
        self.records: Dict[str, Dict[str, Any]] = {}
        self.cursors: Dict[str, str] = {}

    def load_all(self):
        return [dict(record) for record in self.records.values()]

    def put_if_absent(self, record):
        if record["id"] in self.records:
            return False
        self.records[record["id"]] = dict(record)
        return True

    def update(self, txn_id, fields):
        self.records.setdefault(txn_id, {"id": txn_id}).update(fields)

    def delete(self, txn_ids):
        return sum(1 for txn_id in txn_ids if self.records.pop(txn_id, None) is not None)

    def get_cursor(self, name):
        return self.cursors.get(name)

    def put_cursor(self, name, cursor):
        self.cursors[name] = cursor

    def ping(self):
        return True


class RedisBackend(BackingStore):
    """
    Redis-backed persistence.

    Layout (``prefix`` defaults to ``ledger``):
        {prefix}:txn:{id}      JSON record, written with SET NX
        {prefix}:txn_ids       set of all transaction ids
        {prefix}:cursor:{name} sync cursors
    """

    LOAD_CHUNK_SIZE = 500

    def __init__(self, client: "redis.Redis", prefix: str = "ledger"):
        self.client = client
        self.prefix = prefix

    @classmethod
    def from_url(cls, url: str, prefix: str = "ledger", timeout: float = 2.0) -> "RedisBackend":
        client = redis.from_url(
            url,
            socket_connect_timeout=timeout,
            socket_timeout=timeout,
            decode_responses=True,
        )
        return cls(client, prefix=prefix)

    def _txn_key(self, txn_id: str) -> str:
        return f"{self.prefix}:txn:{txn_id}"

    @property
    def _index_key(self) -> str:
        return f"{self.prefix}:txn_ids"

    def _cursor_key(self, name: str) -> str:
        return f"{self.prefix}:cursor:{name}"

    def load_all(self):
        txn_ids = sorted(self.client.smembers(self._index_key))
        records = []
        for start in range(0, len(txn_ids), self.LOAD_CHUNK_SIZE):
            chunk = txn_ids[start : start + self.LOAD_CHUNK_SIZE]
            for raw in self.client.mget([self._txn_key(txn_id) for txn_id in chunk]):
                if raw is None:
                    continue
                try:
                    records.append(json.loads(raw))
                except json.JSONDecodeError as e:
                    logger.warning(f"Skipping corrupt transaction record: {e}")
        logger.info(f"Loaded {len(records)} transactions from Redis")
        return records

    def put_if_absent(self, record):
        inserted = self.client.set(self._txn_key(record["id"]), json.dumps(record), nx=True)
        if inserted:
            self.client.sadd(self._index_key, record["id"])
        return bool(inserted)

    def update(self, txn_id, fields):
        key = self._txn_key(txn_id)
        raw = self.client.get(key)
        record = json.loads(raw) if raw else {"id": txn_id}
        record.update(fields)
        self.client.set(key, json.dumps(record))
        self.client.sadd(self._index_key, txn_id)

    def delete(self, txn_ids):
        if not txn_ids:
            return 0
        deleted = self.client.delete(*[self._txn_key(txn_id) for txn_id in txn_ids])
        self.client.srem(self._index_key, *txn_ids)
        return int(deleted)

    def get_cursor(self, name):
        return self.client.get(self._cursor_key(name))

    def put_cursor(self, name, cursor):
        self.client.set(self._cursor_key(name), cursor)

    def ping(self):
        return bool(self.client.ping())

    def close(self):
        self.client.close()
