"""In-memory ordered key-value storage with buffered transactions."""

from __future__ import annotations

import bisect
import threading
from dataclasses import dataclass
from typing import Iterable, Iterator, Optional, Union

MOCK_ADDR = "mocktikv://"

Pair = tuple[bytes, bytes]


class NotFoundError(LookupError):
    """Raised when a key is absent from the storage."""


def prefix_next(key: bytes) -> bytes:
    """Return the smallest key greater than every key starting with ``key``."""
    key = bytes(key)
    stripped = key.rstrip(b"\xff")
    if not stripped:
        return key + b"\x00"
    carried = len(key) - len(stripped)
    return stripped[:-1] + bytes([stripped[-1] + 1]) + b"\x00" * carried


class MemoryStorage:
    """An ordered key-value store kept in memory."""

    def __init__(self) -> None:
        self._data: dict[bytes, bytes] = {}
        self._keys: list[bytes] = []
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._data)

    def begin(self) -> "StoreTransaction":
        """Start a new transaction on this storage."""
        return StoreTransaction(self)

    def _get(self, key: bytes) -> Optional[bytes]:
        with self._lock:
            return self._data.get(key)

    def _range(self, start: Optional[bytes], end: Optional[bytes]) -> list[Pair]:
        with self._lock:
            lo = 0 if start is None else bisect.bisect_left(self._keys, start)
            hi = len(self._keys) if end is None else bisect.bisect_left(self._keys, end)
            return [(k, self._data[k]) for k in self._keys[lo:hi]]

    def _apply(self, writes: dict[bytes, Optional[bytes]]) -> None:
        with self._lock:
            for key, value in writes.items():
                if value is None:
                    if key in self._data:
                        del self._data[key]
                        self._keys.pop(bisect.bisect_left(self._keys, key))
                    continue
                if key not in self._data:
                    bisect.insort(self._keys, key)
                self._data[key] = value


class StoreTransaction:
    """A transaction that buffers writes until commit."""

    def __init__(self, storage: MemoryStorage) -> None:
        self._storage = storage
        self._writes: dict[bytes, Optional[bytes]] = {}

    def get(self, key: bytes) -> bytes:
        """Return the value of ``key``; raise NotFoundError if absent."""
        key = bytes(key)
        value = self._writes[key] if key in self._writes else self._storage._get(key)
        if value is None:
            raise NotFoundError(key)
        return value

    def set(self, key: bytes, value: bytes) -> None:
        """Store ``value`` under ``key``. Empty values are not allowed."""
        value = bytes(value)
        if not value:
            raise ValueError("cannot set an empty value")
        self._writes[bytes(key)] = value

    def delete(self, key: bytes) -> None:
        """Remove ``key``; removing an absent key is not an error."""
        self._writes[bytes(key)] = None

    def batch_get(self, keys: Iterable[bytes]) -> dict[bytes, bytes]:
        """Return a mapping of the given keys that exist to their values."""
        found: dict[bytes, bytes] = {}
        for key in keys:
            try:
                found[bytes(key)] = self.get(key)
            except NotFoundError:
                continue
        return found

    def _view(self, start: Optional[bytes], end: Optional[bytes]) -> list[Pair]:
        start = None if start is None else bytes(start)
        end = None if end is None else bytes(end)
        merged = dict(self._storage._range(start, end))
        for key, value in self._writes.items():
            if (start is not None and key < start) or (end is not None and key >= end):
                continue
            if value is None:
                merged.pop(key, None)
            else:
                merged[key] = value
        return sorted(merged.items())

    def iter(self, start: Optional[bytes] = None, end: Optional[bytes] = None) -> Iterator[Pair]:
        """Iterate ``(key, value)`` pairs with ``start <= key < end`` in ascending order.

        The pairs are taken when the call is made, so writes during
        iteration do not disturb it.
        """
        return iter(self._view(start, end))

    def iter_reverse(self, start: Optional[bytes] = None) -> Iterator[Pair]:
        """Iterate ``(key, value)`` pairs with ``key < start`` in descending order."""
        return reversed(self._view(None, start))

    def delete_range(self, start: Optional[bytes], end: Optional[bytes]) -> int:
        """Delete every key in ``[start, end)`` and return how many were removed."""
        pairs = self._view(start, end)
        for key, _ in pairs:
            self.delete(key)
        return len(pairs)

    def commit(self) -> None:
        """Apply the buffered writes to the storage."""
        self._storage._apply(self._writes)
        self._writes = {}

    def rollback(self) -> None:
        """Discard the buffered writes."""
        self._writes = {}


def open_storage(addrs: str) -> MemoryStorage:
    """Open the storage named by ``addrs``."""
    if MOCK_ADDR in addrs:
        return MemoryStorage()
    raise ValueError(f"unsupported storage address: {addrs!r}")


@dataclass
class DB:
    """A numbered database inside a namespace of a storage."""

    storage: MemoryStorage
    namespace: bytes = b"default"
    db_id: int = 0

    def __post_init__(self) -> None:
        if isinstance(self.namespace, str):
            self.namespace = self.namespace.encode()

    def prefix(self) -> bytes:
        """Return the key prefix shared by everything in this database."""
        return self.namespace + b":" + str(self.db_id).encode() + b":"

    def begin(self) -> "Transaction":
        """Start a transaction on this database."""
        return Transaction(self, self.storage.begin())


@dataclass
class Transaction:
    """A storage transaction bound to a database."""

    db: DB
    raw: StoreTransaction

    def commit(self) -> None:
        self.raw.commit()

    def rollback(self) -> None:
        self.raw.rollback()

    def __enter__(self) -> "Transaction":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            self.commit()
        else:
            self.rollback()


def meta_key(db: DB, key: Optional[bytes]) -> bytes:
    """Return the meta key of a user key: ``{ns}:{id}:M:{key}``."""
    return db.prefix() + b"M:" + bytes(key or b"")


def data_key(db: DB, object_id: Optional[bytes]) -> bytes:
    """Return the data key prefix of an object: ``{ns}:{id}:D:{object_id}``."""
    return db.prefix() + b"D:" + bytes(object_id or b"")


def batch_get_values(
    txn: Union[Transaction, StoreTransaction], keys: list[bytes]
) -> list[Optional[bytes]]:
    """Return values aligned with ``keys``, with None where a key is absent."""
    raw = txn.raw if isinstance(txn, Transaction) else txn
    found = raw.batch_get(keys)
    return [found.get(bytes(key)) for key in keys]