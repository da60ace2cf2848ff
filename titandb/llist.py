"""Linked lists whose elements are keyed by sortable float positions."""

from __future__ import annotations

import struct
from itertools import islice
from typing import Iterator, Optional

from titandb.object import (
    OBJECT_ENCODING_LENGTH,
    SEPARATOR,
    InvalidLengthError,
    KeyNotFoundError,
    Object,
    ObjectEncoding,
    ObjectType,
    OutOfRangeError,
    PrecisionError,
    gc,
)
from titandb.store import Transaction, data_key, meta_key, prefix_next
from titandb.util import decode_float64, encode_float64, now, uuid

_META = struct.Struct(">qdd")

Element = tuple[float, bytes]


def calculate_index(left: float, right: float) -> float:
    """Return a position strictly between ``left`` and ``right``."""
    middle = (left + right) / 2
    if middle != left and middle != right:
        return middle
    raise PrecisionError()


class LList:
    """A list stored as one key per element under the object's data prefix.

    Elements are ordered by a float position encoded into the key, so an
    element can be inserted between two others without moving any.
    """

    def __init__(
        self,
        txn: Transaction,
        meta_key: bytes,
        meta: Object,
        size: int = 0,
        lindex: float = 0.0,
        rindex: float = 0.0,
    ) -> None:
        self.txn = txn
        self.meta = meta
        self.size = size
        self.lindex = float(lindex)
        self.rindex = float(rindex)
        self._meta_key = bytes(meta_key)
        self._prefix = data_key(txn.db, meta.id) + SEPARATOR

    def _key(self, position: float) -> bytes:
        return self._prefix + encode_float64(position)

    def _position(self, key: bytes) -> float:
        return decode_float64(key[len(self._prefix):])

    def _forward(self) -> Iterator[Element]:
        """Yield ``(position, value)`` from the leftmost element onwards."""
        pairs = self.txn.raw.iter(self._key(self.lindex), prefix_next(self._prefix))
        for key, value in pairs:
            yield self._position(key), value

    def _backward(self) -> Iterator[Element]:
        """Yield ``(position, value)`` from the rightmost element backwards."""
        for key, value in self.txn.raw.iter_reverse(prefix_next(self._key(self.rindex))):
            if not key.startswith(self._prefix):
                break
            yield self._position(key), value

    def _save(self) -> None:
        self.txn.raw.set(self._meta_key, self.marshal())

    def _normalize(self, n: int) -> int:
        if n < 0:
            n += self.size
        if not 0 <= n < self.size:
            raise OutOfRangeError()
        return n

    def _nth(self, n: int) -> Element:
        element = next(islice(self._forward(), n, None), None)
        if element is None:
            raise OutOfRangeError()
        return element

    def marshal(self) -> bytes:
        """Encode the object meta followed by length, left and right positions."""
        return self.meta.encode() + _META.pack(self.size, self.lindex, self.rindex)

    def length(self) -> int:
        return self.size

    def exists(self) -> bool:
        return self.size != 0

    def lpush(self, *values: bytes) -> None:
        """Add each value to the left end in turn."""
        for value in values:
            self.lindex -= 1
            self.txn.raw.set(self._key(self.lindex), value)
            self.size += 1
            if self.size == 1:
                self.rindex = self.lindex
        self._save()

    def rpush(self, *values: bytes) -> None:
        """Add each value to the right end in turn."""
        for value in values:
            self.rindex += 1
            self.txn.raw.set(self._key(self.rindex), value)
            self.size += 1
            if self.size == 1:
                self.lindex = self.rindex
        self._save()

    def set(self, n: int, data: bytes) -> None:
        """Replace the element at index ``n``; negative indexes count from the right."""
        position, _ = self._nth(self._normalize(n))
        self.txn.raw.set(self._key(position), data)

    def insert(self, pivot: bytes, value: bytes, before: bool) -> None:
        """Insert ``value`` before or after the first element equal to ``pivot``."""
        pivot = bytes(pivot)
        walker = self._forward()
        previous: Optional[float] = None
        for position, item in walker:
            if item == pivot:
                current = position
                break
            previous = position
        else:
            raise KeyNotFoundError()
        following = next(walker, None)

        if before:
            if previous is None:
                self.lindex -= 1
                target = self.lindex
            else:
                target = calculate_index(previous, current)
        else:
            if following is None:
                self.rindex += 1
                target = self.rindex
            else:
                target = calculate_index(current, following[0])
        self.size += 1
        self.txn.raw.set(self._key(target), value)
        self._save()

    def index(self, n: int) -> bytes:
        """Return the element at index ``n``; negative indexes count from the right."""
        _, value = self._nth(self._normalize(n))
        return value

    def lpop(self) -> bytes:
        """Remove and return the leftmost element."""
        if self.size == 0:
            raise KeyNotFoundError()
        walker = self._forward()
        first = next(walker, None)
        if first is None:
            raise KeyNotFoundError()
        position, value = first
        self.txn.raw.delete(self._key(position))
        if self.size == 1:
            self.txn.raw.delete(self._meta_key)
            self.size = 0
            return value
        following = next(walker, None)
        if following is None:
            raise KeyNotFoundError()
        self.size -= 1
        self.lindex = following[0]
        self._save()
        return value

    def rpop(self) -> bytes:
        """Remove and return the rightmost element."""
        if self.size == 0:
            raise KeyNotFoundError()
        walker = self._backward()
        last = next(walker, None)
        if last is None:
            raise KeyNotFoundError()
        position, value = last
        self.txn.raw.delete(self._key(position))
        if self.size == 1:
            self.txn.raw.delete(self._meta_key)
            self.size = 0
            return value
        preceding = next(walker, None)
        if preceding is None:
            raise KeyNotFoundError()
        self.size -= 1
        self.rindex = preceding[0]
        self._save()
        return value

    def range(self, left: int, right: int) -> list[bytes]:
        """Return the elements from ``left`` to ``right`` inclusive."""
        if right < 0:
            right += self.size
            if right < 0:
                return []
        if left < 0:
            left = max(left + self.size, 0)
        if left > right:
            return []
        return [value for _, value in islice(self._forward(), left, right + 1)]

    def ltrim(self, start: int, stop: int) -> None:
        """Keep only the elements from ``start`` to ``stop`` inclusive."""
        if start < 0:
            start = max(start + self.size, 0)
        if stop < 0:
            stop += self.size
        stop = min(stop, self.size - 1)
        if start > stop:
            self.destroy()
            return
        elements = list(self._forward())
        for position, _ in elements[:start] + elements[stop + 1:]:
            self.txn.raw.delete(self._key(position))
        kept = elements[start:stop + 1]
        if not kept:
            self.txn.raw.delete(self._meta_key)
            self.size = 0
            return
        self.lindex = kept[0][0]
        self.rindex = kept[-1][0]
        self.size = len(kept)
        self._save()

    def lrem(self, value: bytes, n: int) -> int:
        """Remove elements equal to ``value`` and return how many were removed.

        A positive ``n`` removes up to ``n`` from the left, a negative one up
        to ``-n`` from the right, and zero removes them all.
        """
        value = bytes(value)
        if n < 0:
            walker, limit = self._backward(), -n
        elif n > 0:
            walker, limit = self._forward(), n
        else:
            walker, limit = self._forward(), None
        matches = list(islice((pos for pos, item in walker if item == value), limit))
        for position in matches:
            self.txn.raw.delete(self._key(position))

        self.size -= len(matches)
        if self.size <= 0:
            self.size = 0
            self.txn.raw.delete(self._meta_key)
            return len(matches)

        last = next(self._backward(), None)
        if last is None:
            raise KeyNotFoundError()
        first = next(self._forward(), None)
        if first is None:
            raise KeyNotFoundError()
        self.rindex = last[0]
        self.lindex = first[0]
        self._save()
        return len(matches)

    def destroy(self) -> None:
        """Delete the list's meta data and all of its elements."""
        self.txn.raw.delete(self._meta_key)
        gc(self.txn.raw, self._prefix)
        self.size = 0


def get_llist(txn: Transaction, meta_key: bytes, obj: Object, raw: bytes) -> LList:
    """Build a list from its decoded object and raw meta value."""
    tail = bytes(raw[OBJECT_ENCODING_LENGTH:])
    if len(tail) != _META.size:
        raise InvalidLengthError()
    size, lindex, rindex = _META.unpack(tail)
    return LList(txn, meta_key, obj, size, lindex, rindex)


def new_llist(txn: Transaction, key: bytes) -> LList:
    """Create an empty list for ``key`` without looking at the storage."""
    ts = now()
    obj = Object(
        id=uuid(),
        type=ObjectType.LIST,
        encoding=ObjectEncoding.LINKEDLIST,
        created_at=ts,
        updated_at=ts,
        expire_at=0,
    )
    return LList(txn, meta_key(txn.db, key), obj)