"""Operations on keys regardless of the type of value they hold."""

from __future__ import annotations

import random
from typing import Iterable, Iterator, Optional

from titandb.object import (
    OBJECT_ENCODING_LENGTH,
    KeyNotFoundError,
    Object,
    destroy_object,
    unexpire_at,
)
from titandb.object import expire_at as schedule_expiry
from titandb.store import (
    NotFoundError,
    Transaction,
    batch_get_values,
    meta_key,
    prefix_next,
)
from titandb.util import now

_RANDOM_KEY_LENGTH = 64


class Kv:
    """Key-level commands within one transaction."""

    def __init__(self, txn: Transaction) -> None:
        self.txn = txn

    def _meta_prefix(self) -> bytes:
        return meta_key(self.txn.db, None)

    def keys(self, start: bytes = b"") -> Iterator[bytes]:
        """Yield live keys of the database in order, starting at ``start``."""
        prefix = self._meta_prefix()
        at = now()
        for key, value in self.txn.raw.iter(meta_key(self.txn.db, start), prefix_next(prefix)):
            if not Object.decode(value).is_expired(at):
                yield key[len(prefix):]

    def delete(self, keys: Iterable[bytes]) -> int:
        """Delete the given keys, ignoring absent ones; return how many were deleted."""
        unique = list(dict.fromkeys(bytes(k) for k in keys))
        values = batch_get_values(self.txn, [meta_key(self.txn.db, k) for k in unique])
        at = now()
        count = 0
        for key, value in zip(unique, values):
            if value is None:
                continue
            obj = Object.decode(value)
            if obj.is_expired(at):
                continue
            destroy_object(self.txn, obj, key)
            count += 1
        return count

    def expire_at(self, key: bytes, at: int) -> None:
        """Set the deadline of ``key`` to ``at`` nanoseconds; 0 removes it."""
        mkey = meta_key(self.txn.db, key)
        try:
            raw = self.txn.raw.get(mkey)
        except NotFoundError:
            raise KeyNotFoundError() from None
        obj = Object.decode(raw)
        if obj.is_expired(now()):
            raise KeyNotFoundError()
        if at == 0 and obj.expire_at != 0:
            unexpire_at(self.txn.raw, mkey, obj.expire_at)
        if at > 0:
            schedule_expiry(self.txn.raw, mkey, obj.id, obj.type, obj.expire_at, at)
        obj.expire_at = at
        self.txn.raw.set(mkey, obj.encode() + raw[OBJECT_ENCODING_LENGTH:])

    def _live_values(self, keys: Iterable[bytes]) -> Iterator[tuple[bytes, bytes, Object]]:
        unique = list(dict.fromkeys(meta_key(self.txn.db, k) for k in keys))
        at = now()
        for mkey, value in zip(unique, batch_get_values(self.txn, unique)):
            if value is None:
                continue
            obj = Object.decode(value)
            if not obj.is_expired(at):
                yield mkey, value, obj

    def exists(self, keys: Iterable[bytes]) -> int:
        """Return how many of the given keys exist."""
        return sum(1 for _ in self._live_values(keys))

    def flush_db(self) -> None:
        """Remove everything in the current database."""
        prefix = self.txn.db.prefix()
        self.txn.raw.delete_range(prefix, prefix_next(prefix))

    def flush_all(self) -> None:
        """Remove every database of the current namespace."""
        prefix = self.txn.db.namespace + b":"
        self.txn.raw.delete_range(prefix, prefix_next(prefix))

    def random_key(self) -> Optional[bytes]:
        """Return a key of the current database chosen at random, or None if it is empty."""
        prefix = self._meta_prefix()
        probe = meta_key(self.txn.db, random.randbytes(_RANDOM_KEY_LENGTH))
        after = [k[len(prefix):] for k, _ in self.txn.raw.iter(probe, prefix_next(prefix))]
        if after:
            return random.choice(after)
        before = []
        for key, _ in self.txn.raw.iter_reverse(probe):
            if not key.startswith(prefix):
                break
            before.append(key[len(prefix):])
        return random.choice(before) if before else None

    def touch(self, keys: Iterable[bytes]) -> int:
        """Update the access time of the given keys; return how many exist."""
        ts = now()
        count = 0
        for mkey, value, obj in list(self._live_values(keys)):
            obj.updated_at = ts
            self.txn.raw.set(mkey, obj.encode() + value[OBJECT_ENCODING_LENGTH:])
            count += 1
        return count


def get_kv(txn: Transaction) -> Kv:
    """Return the key-level commands bound to ``txn``."""
    return Kv(txn)