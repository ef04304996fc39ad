"""Embedded ordered key-value store with prefix scans and versionstamps."""

from .keys import MAX_KEY_SIZE, Key, KeyPart, decode_key, encode_key
from .store import (
    DEFAULT_BATCH_SIZE,
    MAX_VALUE_SIZE,
    MEMORY_PATH,
    AtomicOperation,
    KVStore,
    ListIterator,
)
from .types import CommitResult, KvEntry

__all__ = [
    "DEFAULT_BATCH_SIZE",
    "MAX_KEY_SIZE",
    "MAX_VALUE_SIZE",
    "MEMORY_PATH",
    "AtomicOperation",
    "CommitResult",
    "KVStore",
    "Key",
    "KeyPart",
    "KvEntry",
    "ListIterator",
    "decode_key",
    "encode_key",
]
