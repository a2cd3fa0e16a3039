"""
Ledger Transaction Store

In-memory transaction index with write-through replication.
"""

from .backends import BackingStore, MemoryBackend, RedisBackend
from .store import MERGE_FIELDS, TransactionStore

__all__ = [
    "BackingStore",
    "MemoryBackend",
    "RedisBackend",
    "MERGE_FIELDS",
    "TransactionStore",
]
