"""Unordered sets of byte-string members."""

from __future__ import annotations

import struct
from itertools import islice
from typing import Iterable, Iterator

from titandb.object import (
    OBJECT_ENCODING_LENGTH,
    InvalidLengthError,
    Object,
    ObjectEncoding,
    ObjectType,
    SetNilValueError,
    TitanError,
    TypeMismatchError,
)
from titandb.store import (
    NotFoundError,
    Transaction,
    batch_get_values,
    data_key,
    meta_key,
    prefix_next,
)
from titandb.util import now, uuid

SET_NIL_VALUE = b"\x00"

_LENGTH = struct.Struct(">q")


def remove_duplicates(members: Iterable[bytes]) -> list[bytes]:
    """Return the members without repeats, keeping first occurrences in order."""
    return list(dict.fromkeys(bytes(m) for m in members))


class Set:
    """A set whose members are stored as keys under the object's data prefix."""

    def __init__(self, txn: Transaction, key: bytes) -> None:
        ts = now()
        self.txn = txn
        self.key = bytes(key)
        self.meta = Object(
            id=uuid(),
            type=ObjectType.SET,
            encoding=ObjectEncoding.HT,
            created_at=ts,
            updated_at=ts,
            expire_at=0,
        )
        self.length = 0
        self._exists = False

    def _prefix(self) -> bytes:
        return data_key(self.txn.db, self.meta.id) + b":"

    def _item_key(self, member: bytes) -> bytes:
        return self._prefix() + bytes(member)

    def _update_meta(self) -> None:
        encoded = self.meta.encode() + _LENGTH.pack(self.length)
        self.txn.raw.set(meta_key(self.txn.db, self.key), encoded)
        self.meta.updated_at = now()
        self._exists = True

    def exists(self) -> bool:
        return self._exists

    def members(self) -> Iterator[bytes]:
        """Yield the stored members in key order."""
        prefix = self._prefix()
        for key, _ in self.txn.raw.iter(prefix, prefix_next(prefix)):
            yield key[len(prefix):]

    def sadd(self, *members: bytes) -> int:
        """Add members and return how many were not present before."""
        unique = remove_duplicates(members)
        item_keys = [self._item_key(m) for m in unique]
        current = batch_get_values(self.txn, item_keys)
        added = 0
        for item_key, value in zip(item_keys, current):
            if value is None:
                added += 1
            self.txn.raw.set(item_key, SET_NIL_VALUE)
        self.length += added
        self._update_meta()
        return added

    def smembers(self) -> list[bytes]:
        """Return all members of the set."""
        if not self._exists:
            return []
        return list(islice(self.members(), max(self.length, 0)))

    def scard(self) -> int:
        """Return the number of members."""
        return self.length if self._exists else 0

    def sismember(self, member: bytes) -> int:
        """Return 1 if ``member`` belongs to the set, else 0."""
        if not self._exists:
            return 0
        try:
            value = self.txn.raw.get(self._item_key(member))
        except NotFoundError:
            return 0
        if value != SET_NIL_VALUE:
            raise SetNilValueError()
        return 1

    def spop(self, count: int) -> list[bytes]:
        """Remove and return up to ``count`` members; a negative count removes all."""
        if not self._exists or self.length == 0:
            return []
        prefix = self._prefix()
        popped = []
        for key, _ in self.txn.raw.iter(prefix, prefix_next(prefix)):
            if count == 0:
                break
            popped.append(key[len(prefix):])
            self.txn.raw.delete(key)
            count -= 1
        self.length -= len(popped)
        self._update_meta()
        return popped

    def srem(self, members: Iterable[bytes]) -> int:
        """Remove the given members and return how many were removed."""
        if not self._exists:
            return 0
        removed = 0
        for member in remove_duplicates(members):
            item_key = self._item_key(member)
            try:
                value = self.txn.raw.get(item_key)
            except NotFoundError:
                continue
            if value == SET_NIL_VALUE:
                self.txn.raw.delete(item_key)
                removed += 1
        self.length -= removed
        self._update_meta()
        return removed

    def smove(self, destination: bytes, member: bytes) -> int:
        """Move ``member`` to the set at ``destination``; return 1 if it was moved."""
        if not self._exists:
            return 0
        if self.sismember(member) == 0:
            return 0
        try:
            target = get_set(self.txn, destination)
        except TitanError:
            return 0
        if target.sismember(member) == 0:
            target.sadd(member)
        self.txn.raw.delete(self._item_key(member))
        self.length -= 1
        self._update_meta()
        return 1


def get_set(txn: Transaction, key: bytes) -> Set:
    """Load the set stored at ``key``, or a fresh one if absent or expired."""
    result = Set(txn, key)
    try:
        raw = txn.raw.get(meta_key(txn.db, key))
    except NotFoundError:
        return result
    obj = Object.decode(raw)
    if obj.is_expired(now()):
        return result
    if obj.type is not ObjectType.SET:
        raise TypeMismatchError()
    tail = raw[OBJECT_ENCODING_LENGTH:]
    if len(tail) != _LENGTH.size:
        raise InvalidLengthError()
    result.meta = obj
    (result.length,) = _LENGTH.unpack(tail)
    result._exists = True
    return result