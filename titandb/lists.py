"""Lookup of list objects in either of their encodings."""

from __future__ import annotations

from typing import Union

from titandb.llist import LList, get_llist, new_llist
from titandb.object import (
    EncodingMismatchError,
    Object,
    ObjectEncoding,
    ObjectType,
    TypeMismatchError,
)
from titandb.store import NotFoundError, Transaction, meta_key
from titandb.util import now
from titandb.zlist import ZList, get_zlist, new_zlist

List = Union[LList, ZList]


def get_list(txn: Transaction, key: bytes, use_zip: bool = False) -> List:
    """Load the list stored at ``key``, or a fresh one if absent or expired.

    A fresh list is a compact list when ``use_zip`` is set, a linked list otherwise.
    """
    factory = new_zlist if use_zip else new_llist
    mkey = meta_key(txn.db, key)
    try:
        raw = txn.raw.get(mkey)
    except NotFoundError:
        return factory(txn, key)
    obj = Object.decode(raw)
    if obj.is_expired(now()):
        return factory(txn, key)
    if obj.type is not ObjectType.LIST:
        raise TypeMismatchError()
    if obj.encoding is ObjectEncoding.LINKEDLIST:
        return get_llist(txn, mkey, obj, raw)
    if obj.encoding is ObjectEncoding.ZIPLIST:
        return get_zlist(txn, mkey, obj, raw)
    raise EncodingMismatchError()