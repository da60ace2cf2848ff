import time

import pytest

from titandb.keyspace import get_kv
from titandb.object import KeyNotFoundError, Object, get_object
from titandb.sets import get_set
from titandb.store import DB, MemoryStorage, meta_key


@pytest.fixture
def db():
    return DB(MemoryStorage())


def set_val(db, key, val):
    from titandb.strings import new_string

    txn = db.begin()
    new_string(txn, key).set(val)
    txn.commit()


def is_missing(db, key):
    txn = db.begin()
    try:
        get_object(txn, key)
    except KeyNotFoundError:
        return True
    return False


def test_delete(db):
    key = b"keys-key-del"
    set_val(db, key, b"keys-val-del")
    txn = db.begin()
    assert get_kv(txn).delete([key]) == 1
    txn.commit()
    assert is_missing(db, key) is True


def test_delete_ignores_absent_and_duplicates(db):
    set_val(db, b"a", b"1")
    txn = db.begin()
    assert get_kv(txn).delete([b"a", b"a", b"nope"]) == 1


def test_delete_removes_collection_data(db):
    txn = db.begin()
    get_set(txn, b"s").sadd(b"m1", b"m2")
    txn.commit()
    txn = db.begin()
    assert get_kv(txn).delete([b"s"]) == 1
    txn.commit()
    remaining = list(db.begin().raw.iter(db.prefix(), None))
    assert remaining == []


def test_exists(db):
    set_val(db, b"key-ex", b"val-ex")
    txn = db.begin()
    assert get_kv(txn).exists([b"key-ex"]) == 1
    assert get_kv(txn).exists([b"missing"]) == 0


def test_expire_at(db):
    key = b"key-ex"
    set_val(db, key, b"val-ex")
    time1 = time.time_ns() + 100 * 1_000_000_000
    txn = db.begin()
    get_kv(txn).expire_at(key, time1)
    txn.commit()
    assert get_object(db.begin(), key).expire_at == time1


def test_expire_at_keeps_value(db):
    set_val(db, b"k", b"value")
    txn = db.begin()
    get_kv(txn).expire_at(b"k", time.time_ns() + 10**12)
    raw = txn.raw.get(meta_key(db, b"k"))
    assert raw.endswith(b"value")


def test_expire_at_past_hides_key(db):
    set_val(db, b"k", b"v")
    txn = db.begin()
    kv = get_kv(txn)
    kv.expire_at(b"k", 1)
    assert kv.exists([b"k"]) == 0
    assert list(kv.keys()) == []
    with pytest.raises(KeyNotFoundError):
        kv.expire_at(b"k", 0)


def test_expire_at_missing_key(db):
    with pytest.raises(KeyNotFoundError):
        get_kv(db.begin()).expire_at(b"nope", 5)


def test_expire_at_zero_clears_deadline(db):
    set_val(db, b"k", b"v")
    txn = db.begin()
    kv = get_kv(txn)
    kv.expire_at(b"k", time.time_ns() + 10**12)
    kv.expire_at(b"k", 0)
    assert get_object(txn, b"k").expire_at == 0


def test_keys(db):
    keys = [b"keys", b"keys12", b"keys13", b"keys14", b"keys15"]
    for key in keys:
        set_val(db, key, b"val")
    txn = db.begin()
    assert list(get_kv(txn).keys(b"keys")) == keys


def test_keys_start_skips_earlier(db):
    for key in (b"a", b"b", b"c"):
        set_val(db, key, b"val")
    assert list(get_kv(db.begin()).keys(b"b")) == [b"b", b"c"]


def test_random_key(db):
    keys = [b"randomkey1", b"randomkey2", b"randomkey3", b"randomkey4", b"randomkey5"]
    for key in keys:
        set_val(db, key, b"val")
    for _ in range(5):
        assert get_kv(db.begin()).random_key() in keys


def test_random_key_empty(db):
    assert get_kv(db.begin()).random_key() is None


def test_flush_db_only_current(db):
    other = DB(db.storage, db.namespace, 1)
    set_val(db, b"a", b"1")
    set_val(other, b"b", b"2")
    txn = db.begin()
    get_kv(txn).flush_db()
    txn.commit()
    assert is_missing(db, b"a") is True
    assert is_missing(other, b"b") is False


def test_flush_all(db):
    other = DB(db.storage, db.namespace, 1)
    set_val(db, b"a", b"1")
    set_val(other, b"b", b"2")
    txn = db.begin()
    get_kv(txn).flush_all()
    txn.commit()
    assert is_missing(db, b"a") is True
    assert is_missing(other, b"b") is True


def test_touch(db):
    set_val(db, b"k", b"value")
    before = get_object(db.begin(), b"k").updated_at
    txn = db.begin()
    assert get_kv(txn).touch([b"k", b"missing"]) == 1
    raw = txn.raw.get(meta_key(db, b"k"))
    assert Object.decode(raw).updated_at >= before
    assert raw.endswith(b"value")