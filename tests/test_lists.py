import pytest

from titandb.llist import LList
from titandb.lists import get_list
from titandb.object import (
    EncodingMismatchError,
    Object,
    ObjectEncoding,
    ObjectType,
    TypeMismatchError,
)
from titandb.store import DB, MemoryStorage, meta_key
from titandb.strings import new_string
from titandb.util import now, uuid
from titandb.zlist import ZList


@pytest.fixture
def db():
    return DB(MemoryStorage())


def test_absent_key_gives_empty_linked_list(db):
    lst = get_list(db.begin(), b"k")
    assert isinstance(lst, LList)
    assert lst.exists() is False


def test_absent_key_with_zip_gives_compact_list(db):
    lst = get_list(db.begin(), b"k", use_zip=True)
    assert isinstance(lst, ZList)
    assert lst.length() == 0


def test_loads_stored_linked_list(db):
    txn = db.begin()
    lst = get_list(txn, b"k")
    lst.rpush(b"a", b"b")
    txn.commit()
    loaded = get_list(db.begin(), b"k", use_zip=True)
    assert isinstance(loaded, LList)
    assert loaded.range(0, -1) == [b"a", b"b"]


def test_loads_stored_compact_list(db):
    txn = db.begin()
    lst = get_list(txn, b"k", use_zip=True)
    lst.rpush(b"a", b"b")
    txn.commit()
    loaded = get_list(db.begin(), b"k")
    assert isinstance(loaded, ZList)
    assert loaded.range(0, -1) == [b"a", b"b"]


def test_wrong_type(db):
    txn = db.begin()
    new_string(txn, b"k").set(b"value")
    with pytest.raises(TypeMismatchError):
        get_list(txn, b"k")


def test_wrong_encoding(db):
    txn = db.begin()
    obj = Object(id=uuid(), type=ObjectType.LIST, encoding=ObjectEncoding.RAW)
    txn.raw.set(meta_key(db, b"k"), obj.encode())
    with pytest.raises(EncodingMismatchError):
        get_list(txn, b"k")


def test_expired_list_is_replaced(db):
    txn = db.begin()
    lst = get_list(txn, b"k")
    lst.meta.expire_at = now() - 1_000_000_000
    lst.rpush(b"a")
    old_id = lst.meta.id
    txn.commit()
    fresh = get_list(db.begin(), b"k")
    assert fresh.exists() is False
    assert fresh.meta.id != old_id