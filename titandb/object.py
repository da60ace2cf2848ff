"""Object metadata shared by every data type, and its life cycle."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import Optional

from titandb.store import (
    NotFoundError,
    StoreTransaction,
    Transaction,
    data_key,
    meta_key,
    prefix_next,
)
from titandb.util import now, uuid_string

SEPARATOR = b":"
OBJECT_ENCODING_LENGTH = 42
EXPIRE_KEY_PREFIX = b"$sys:0:at:"

_LAYOUT = struct.Struct(">16sBBqqq")
_TIMESTAMP = struct.Struct(">q")


class TitanError(Exception):
    """Base class of the database errors."""


class KeyNotFoundError(TitanError):
    def __init__(self, message: str = "key not found") -> None:
        super().__init__(message)


class TypeMismatchError(TitanError):
    def __init__(self, message: str = "operation against a key holding the wrong kind of value") -> None:
        super().__init__(message)


class EncodingMismatchError(TitanError):
    def __init__(self, message: str = "object encoding mismatch") -> None:
        super().__init__(message)


class InvalidLengthError(TitanError):
    def __init__(self, message: str = "invalid data length") -> None:
        super().__init__(message)


class OutOfRangeError(TitanError):
    def __init__(self, message: str = "index out of range") -> None:
        super().__init__(message)


class PrecisionError(TitanError):
    def __init__(self, message: str = "list index precision exhausted") -> None:
        super().__init__(message)


class IntegerError(TitanError):
    def __init__(self, message: str = "value is not an integer or out of range") -> None:
        super().__init__(message)


class SetNilValueError(TitanError):
    def __init__(self, message: str = "set member holds an unexpected value") -> None:
        super().__init__(message)


class ObjectType(IntEnum):
    STRING = 0
    LIST = 1
    SET = 2
    ZSET = 3
    HASH = 4

    def __str__(self) -> str:
        return self.name.lower()


_ENCODING_NAMES = {
    0: "raw",
    1: "int",
    2: "hashtable",
    3: "zipmap",
    4: "linkedlist",
    5: "ziplist",
    6: "intset",
    7: "skiplist",
    8: "embstr",
    9: "quicklist",
}


class ObjectEncoding(IntEnum):
    RAW = 0
    INT = 1
    HT = 2
    ZIPMAP = 3
    LINKEDLIST = 4
    ZIPLIST = 5
    INTSET = 6
    SKIPLIST = 7
    EMBSTR = 8
    QUICKLIST = 9

    def __str__(self) -> str:
        return _ENCODING_NAMES[self.value]


@dataclass
class Object:
    """Meta data stored under a key's meta key, ahead of type-specific data."""

    id: bytes = b""
    type: ObjectType = ObjectType.STRING
    encoding: ObjectEncoding = ObjectEncoding.RAW
    created_at: int = 0
    updated_at: int = 0
    expire_at: int = 0

    def __str__(self) -> str:
        return (
            f"ID:{uuid_string(self.id)} type:{self.type} encoding:{self.encoding} "
            f"createdat:{self.created_at} updatedat:{self.updated_at} expireat:{self.expire_at}"
        )

    def encode(self) -> bytes:
        """Encode into exactly OBJECT_ENCODING_LENGTH bytes."""
        if len(self.id) != 16:
            raise InvalidLengthError(f"object id must be 16 bytes, got {len(self.id)}")
        return _LAYOUT.pack(
            bytes(self.id),
            int(self.type),
            int(self.encoding),
            self.created_at,
            self.updated_at,
            self.expire_at,
        )

    @classmethod
    def decode(cls, data: bytes):
        """Decode the leading OBJECT_ENCODING_LENGTH bytes of ``data``."""
        if len(data) < OBJECT_ENCODING_LENGTH:
            raise InvalidLengthError()
        object_id, type_, encoding, created, updated, expire = _LAYOUT.unpack(
            bytes(data[:OBJECT_ENCODING_LENGTH])
        )
        try:
            object_type = ObjectType(type_)
        except ValueError:
            raise TypeMismatchError(f"unknown object type {type_}") from None
        try:
            object_encoding = ObjectEncoding(encoding)
        except ValueError:
            raise EncodingMismatchError(f"unknown object encoding {encoding}") from None
        return cls(
            id=object_id,
            type=object_type,
            encoding=object_encoding,
            created_at=created,
            updated_at=updated,
            expire_at=expire,
        )

    def is_expired(self, at: Optional[int] = None) -> bool:
        """Return whether the object has a deadline that has passed at ``at``."""
        if at is None:
            at = now()
        return 0 < self.expire_at <= at


@dataclass
class Lease(Object):
    """An object whose time to live can be shared by other objects."""

    touched_at: int = 0


def get_object(txn: Transaction, key: bytes) -> Object:
    """Return the live object stored under the user key ``key``."""
    mkey = meta_key(txn.db, key)
    try:
        raw = txn.raw.get(mkey)
    except NotFoundError:
        raise KeyNotFoundError() from None
    obj = Object.decode(raw)
    if obj.is_expired(now()):
        raise KeyNotFoundError()
    return obj


def destroy_object(txn: Transaction, obj: Object, key: bytes) -> None:
    """Delete an object's meta data, its data and its expiry entry."""
    mkey = meta_key(txn.db, key)
    txn.raw.delete(mkey)
    if obj.type is not ObjectType.STRING:
        gc(txn.raw, data_key(txn.db, obj.id))
    if obj.expire_at > 0:
        unexpire_at(txn.raw, mkey, obj.expire_at)


def _expire_key(mkey: bytes, at: int) -> bytes:
    return EXPIRE_KEY_PREFIX + _TIMESTAMP.pack(at) + SEPARATOR + bytes(mkey)


def expire_at(
    store_txn: StoreTransaction,
    mkey: bytes,
    object_id: bytes,
    object_type: ObjectType,
    old: int,
    at: int,
) -> None:
    """Record that the object under ``mkey`` expires at ``at``, replacing ``old``."""
    if old > 0:
        store_txn.delete(_expire_key(mkey, old))
    store_txn.set(_expire_key(mkey, at), bytes([int(object_type)]) + bytes(object_id))


def unexpire_at(store_txn: StoreTransaction, mkey: bytes, at: int) -> None:
    """Remove the expiry record of the object under ``mkey`` at ``at``."""
    store_txn.delete(_expire_key(mkey, at))


def gc(store_txn: StoreTransaction, prefix: bytes) -> None:
    """Remove every key starting with ``prefix``."""
    store_txn.delete_range(prefix, prefix_next(prefix))