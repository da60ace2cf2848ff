import pytest

from titandb.store import (
    DB,
    MOCK_ADDR,
    MemoryStorage,
    NotFoundError,
    StoreTransaction,
    Transaction,
    batch_get_values,
    data_key,
    meta_key,
    open_storage,
    prefix_next,
)


@pytest.fixture
def storage():
    return MemoryStorage()


def _committed(storage, pairs):
    txn = storage.begin()
    for key, value in pairs:
        txn.set(key, value)
    txn.commit()


def test_get_missing_raises(storage):
    with pytest.raises(NotFoundError):
        storage.begin().get(b"missing")


def test_set_get_round_trip(storage):
    txn = storage.begin()
    txn.set(b"k", b"v")
    assert txn.get(b"k") == b"v"


def test_delete_hides_value(storage):
    _committed(storage, [(b"k", b"v")])
    txn = storage.begin()
    txn.delete(b"k")
    with pytest.raises(NotFoundError):
        txn.get(b"k")


def test_uncommitted_writes_invisible(storage):
    writer = storage.begin()
    writer.set(b"k", b"v")
    with pytest.raises(NotFoundError):
        storage.begin().get(b"k")
    writer.commit()
    assert storage.begin().get(b"k") == b"v"
    assert len(storage) == 1


def test_rollback_discards(storage):
    txn = storage.begin()
    txn.set(b"k", b"v")
    txn.rollback()
    with pytest.raises(NotFoundError):
        txn.get(b"k")


def test_empty_value_rejected(storage):
    with pytest.raises(ValueError):
        storage.begin().set(b"k", b"")


def test_iter_sorted_and_bounded(storage):
    txn = storage.begin()
    for key in [b"c", b"a", b"e", b"b", b"d"]:
        txn.set(key, key)
    assert [k for k, _ in txn.iter(b"b", b"e")] == [b"b", b"c", b"d"]
    assert [v for _, v in txn.iter()] == [b"a", b"b", b"c", b"d", b"e"]


def test_iter_merges_buffered_and_committed(storage):
    _committed(storage, [(b"a", b"1"), (b"c", b"3")])
    txn = storage.begin()
    txn.set(b"b", b"2")
    txn.delete(b"c")
    txn.set(b"a", b"9")
    assert list(txn.iter()) == [(b"a", b"9"), (b"b", b"2")]


def test_iter_reverse_exclusive_descending(storage):
    _committed(storage, [(b"a", b"1"), (b"b", b"2"), (b"c", b"3"), (b"d", b"4")])
    txn = storage.begin()
    assert [k for k, _ in txn.iter_reverse(b"d")] == [b"c", b"b", b"a"]
    assert [k for k, _ in txn.iter_reverse()] == [b"d", b"c", b"b", b"a"]


def test_iteration_survives_deletes(storage):
    _committed(storage, [(b"a", b"1"), (b"b", b"2"), (b"c", b"3")])
    txn = storage.begin()
    seen = []
    for key, _ in txn.iter():
        txn.delete(key)
        seen.append(key)
    assert seen == [b"a", b"b", b"c"]
    assert list(txn.iter()) == []


def test_delete_range(storage):
    _committed(storage, [(b"p:1", b"x"), (b"p:2", b"y"), (b"q", b"z")])
    txn = storage.begin()
    assert txn.delete_range(b"p:", prefix_next(b"p:")) == 2
    txn.commit()
    assert [k for k, _ in storage.begin().iter()] == [b"q"]


def test_batch_get_only_found(storage):
    _committed(storage, [(b"a", b"1")])
    assert storage.begin().batch_get([b"a", b"b"]) == {b"a": b"1"}


def test_batch_get_values_aligned(storage):
    _committed(storage, [(b"a", b"1"), (b"c", b"3")])
    txn = Transaction(DB(storage), storage.begin())
    assert batch_get_values(txn, [b"c", b"b", b"a"]) == [b"3", None, b"1"]
    assert batch_get_values(txn.raw, [b"b"]) == [None]


def test_prefix_next_values():
    assert prefix_next(b"ab") == b"ac"
    assert prefix_next(b"a\xff") == b"b\x00"
    assert prefix_next(b"\xff") == b"\xff\x00"


@pytest.mark.parametrize("key", [b"a", b"abc", b"x\xff", b"\x00"])
def test_prefix_next_bounds_prefix(key):
    upper = prefix_next(key)
    assert upper > key
    for suffix in [b"", b"\x00", b"\xff\xff", b"zzz"]:
        assert key + suffix < upper


def test_meta_and_data_keys(storage):
    db = DB(storage, "ns", 3)
    mkey = meta_key(db, b"user")
    dkey = data_key(db, b"id")
    assert db.namespace == b"ns"
    assert mkey.startswith(db.prefix()) and mkey.endswith(b"user")
    assert dkey.startswith(db.prefix()) and dkey.endswith(b"id")
    assert meta_key(db, b"id") != dkey
    assert meta_key(db, None) == meta_key(db, b"")


def test_db_prefixes_do_not_overlap(storage):
    one = DB(storage, b"ns", 1).prefix()
    ten = DB(storage, b"ns", 10).prefix()
    assert not one.startswith(ten)
    assert not ten.startswith(one)


def test_transaction_context_manager_commits(storage):
    db = DB(storage)
    with db.begin() as txn:
        txn.raw.set(b"k", b"v")
    assert storage.begin().get(b"k") == b"v"


def test_transaction_context_manager_rolls_back(storage):
    db = DB(storage)
    with pytest.raises(RuntimeError):
        with db.begin() as txn:
            txn.raw.set(b"k", b"v")
            raise RuntimeError("boom")
    with pytest.raises(NotFoundError):
        storage.begin().get(b"k")


def test_open_storage():
    storage = open_storage(MOCK_ADDR)
    assert len(storage) == 0
    txn = storage.begin()
    assert isinstance(txn, StoreTransaction) and list(txn.iter()) == []
    with pytest.raises(ValueError):
        open_storage("tikv://127.0.0.1:2379")