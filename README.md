# titandb

Redis-style data structures (strings, sets, hashes and lists) laid out as
plain keys and values on an ordered, transactional key-value store. Every
user key has a meta record. The record holds the object's type, encoding,
timestamps and expiry. The elements of sets, hashes and linked lists are
kept under data keys derived from the object's id.

The package includes an in-memory ordered store, `MemoryStorage`. Every
operation runs inside a transaction. Writes are buffered in the transaction
and reach the storage only on `commit()`.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Usage

```python
from titandb.store import open_storage, DB
from titandb.strings import get_string
from titandb.sets import get_set
from titandb.hashes import get_hash
from titandb.lists import get_list
from titandb.keyspace import get_kv

storage = open_storage("mocktikv://")
db = DB(storage, namespace=b"default", db_id=0)

with db.begin() as txn:          # commits on success, rolls back on error
    s = get_string(txn, b"greeting")
    s.set(b"hello")
    s.append(b" world")

    h = get_hash(txn, b"user:1")
    h.hset(b"name", b"alice")
    h.hincrby(b"visits", 1)

    st = get_set(txn, b"tags")
    st.sadd(b"a", b"b", b"c")

    lst = get_list(txn, b"queue", use_zip=False)
    lst.rpush(b"job1", b"job2")

with db.begin() as txn:
    kv = get_kv(txn)
    print(kv.exists([b"greeting", b"tags", b"missing"]))   # 2
    print(list(kv.keys()))
```

## Modules

- `titandb.store`: `MemoryStorage` and its `StoreTransaction` (get, set,
  delete, batch_get, ordered `iter` / `iter_reverse`, delete_range, commit,
  rollback). It also has `DB` and `Transaction`, `open_storage`, and the
  key layout helpers `meta_key`, `data_key`, `prefix_next` and
  `batch_get_values`. A missing key raises `NotFoundError`.
- `titandb.object`: the `Object` meta record (`encode`, `decode`,
  `is_expired`), `ObjectType`, `ObjectEncoding` and `Lease`. It provides
  `get_object`, `destroy_object`, the expiry bookkeeping `expire_at` /
  `unexpire_at`, `gc` for data prefixes, and the error classes.
- `titandb.util`: `uuid`, `uuid_string`, `now` (nanoseconds), and
  `encode_float64` / `decode_float64`, which produce a byte encoding that
  sorts in numeric order. It also has `redis_popcount`, `redis_bitpos` and
  `init_cursor`.
- `titandb.strings`: `String` via `get_string` / `new_string`. It supports
  get, set (with an optional expiry in nanoseconds), append, get_set,
  get_range, set_range, incr, incrf, set_bit, get_bit, bit_count and
  bit_pos.
- `titandb.sets`: `Set` via `get_set`. It supports sadd, srem, spop, smove,
  smembers, scard and sismember. `remove_duplicates` is a separate helper.
- `titandb.hashes`: `Hash` via `get_hash`. It supports hset, hsetnx, hget,
  hgetall (a dict), hdel, hexists, hincrby, hincrbyfloat, hlen, hmget, hmset,
  and hscan, which is a generator of `(field, value)` pairs.
- `titandb.llist`: `LList`, a list stored one key per element, ordered by
  float positions (`get_llist`, `new_llist`, `calculate_index`).
- `titandb.zlist`: `ZList`, a compact list stored inside the meta value
  (`get_zlist`, `new_zlist`, `transfer_to_llist`).
- `titandb.lists`: `get_list(txn, key, use_zip=False)` loads a list in
  whichever encoding it was stored in. A new list is created as a `ZList`
  when `use_zip` is set and as an `LList` otherwise.
- `titandb.keyspace`: `Kv` via `get_kv`. It has keys (a generator), delete,
  exists, expire_at, touch, random_key, flush_db and flush_all.

Errors from the data types are subclasses of `titandb.object.TitanError`,
for example `KeyNotFoundError`, `TypeMismatchError`, `OutOfRangeError`,
`IntegerError` and `PrecisionError`.

## What this package does not do

- It is a library only. There is no network server, no wire protocol and no
  command-line program.
- Storage is in memory and lasts only as long as the process.
  `open_storage` accepts only addresses containing `mocktikv://` and raises
  `ValueError` for any other address.
- Expired keys are treated as absent when read, and expiry records are
  written. Nothing runs in the background to reclaim expired keys or
  garbage-collected data.
- Sorted sets are not implemented. `ObjectType.ZSET` exists only as a type
  tag.