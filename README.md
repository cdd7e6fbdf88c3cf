# lediskv

`lediskv` provides Redis-like commands over an ordered, thread-safe,
in-memory key-value store. Keys, fields and values are `bytes`.

The package is made of building blocks:

- `lediskv.storage`: `Store`, an ordered map of byte keys to byte values
  (`get`, `put`, `delete`, `items`, `range`, `snapshot`, `write_batch`);
  `WriteBatch`, which collects puts and deletes and applies them together on
  `commit` (or drops them on `rollback`); `Batch`, a locked write batch used
  as a context manager that raises `ReadOnlyError` on `commit` when its
  read-only check says so; and `RangeType` (`CLOSE`, `LOPEN`, `ROPEN`,
  `OPEN`) for the ends of a key range.
- `lediskv.kv`: `KVMixin`, string commands: `get`, `set`, `set_nx`,
  `set_ex`, `set_ex_at`, `get_set`, `exists`, `delete`, `incr`, `incr_by`,
  `decr`, `decr_by`, `mget`, `mset`, `append`, `get_range`, `set_range`,
  `strlen`, bit commands (`set_bit`, `get_bit`, `bit_count`, `bit_pos`,
  `bit_op`) and expiry (`expire`, `expire_at`, `ttl`, `persist`). `KVPair`
  holds a key and a value for `mset`.
- `lediskv.hash`: `HashMixin`, hash commands: `hset`, `hget`, `hmset`,
  `hmget`, `hdel`, `hincr_by`, `hgetall`, `hkeys`, `hvalues`, `hlen`,
  `hclear`, `hmclear`, `hkey_exists`, and expiry (`hexpire`, `hexpire_at`,
  `httl`, `hpersist`). `FVPair` holds a field and a value.
- `lediskv.scan`: `ScanMixin`: `scan` and `rev_scan` list the keys of a
  data type after or before a cursor, optionally filtered by a regular
  expression; `hscan` and `hrev_scan` do the same for the fields of a hash.
- `lediskv.sort`: `SortMixin`: `xsort` sorts values numerically or by bytes,
  with `BY` and `GET` patterns (`weight_*`, `hash_*->field`, `#`), an offset
  and a size; `lookup_key_by_pattern` resolves one pattern.
- `lediskv.dump`: the dump file format. `write_dump(store, stream, commit_id)`
  writes every pair of a store; `read_dump(stream)` returns the `DumpHead`
  and a lazy iterator over the pairs.
- `lediskv.const`: `DataType` (`KV`, `LIST`, `HASH`, `SET`, `ZSET`), store
  type codes, size limits, `type_name`, and the errors `LedisError` and
  `ReadOnlyError`.

## Installation

```
pip install lediskv
```

## Putting a database together

The mixins expect the class they are mixed into to provide `_store` (a
`Store`), `_index_buf` (the varint-encoded database number that prefixes
every key; for numbers below 128 this is a single byte) and the batches
`_kv_batch` and `_hash_batch`:

```python
from lediskv.const import DataType
from lediskv.hash import HashMixin
from lediskv.kv import KVMixin
from lediskv.scan import ScanMixin
from lediskv.sort import SortMixin
from lediskv.storage import Batch, Store


class Database(KVMixin, HashMixin, ScanMixin, SortMixin):
    def __init__(self, store: Store, index: int = 0) -> None:
        self._store = store
        self._index_buf = bytes([index])
        self._kv_batch = Batch(store.write_batch())
        self._hash_batch = Batch(store.write_batch())


store = Store()
db = Database(store)

db.set(b"greeting", b"hello")
db.append(b"greeting", b" world")
print(db.get(b"greeting"))                     # b'hello world'

db.incr_by(b"counter", 10)
db.expire(b"counter", 60)
print(db.ttl(b"counter"))                      # 60

db.hset(b"user:1", b"name", b"alice")
db.hincr_by(b"user:1", b"visits", 1)
print(db.hgetall(b"user:1"))

print(db.scan(DataType.KV, None, 10, True, ""))  # [b'counter', b'greeting']
print(db.xsort([b"3", b"1", b"2"], 0, -1, False, False, None, None))
```

Two `Database` objects over the same `Store` with different indexes keep
their keys apart.

Errors are raised as `LedisError`; a `Batch` given a `readonly` check that
returns true raises `ReadOnlyError` on `commit`.

## Dumps

```python
from lediskv.dump import read_dump, write_dump

with open("backup.dump", "wb") as f:
    write_dump(store, f, commit_id=0)

restored = Store()
with open("backup.dump", "rb") as f:
    head, pairs = read_dump(f)
    batch = restored.write_batch()
    for key, value in pairs:
        batch.put(key, value)
    batch.commit()
```

Keys and values in a dump are compressed in the snappy block format.

## What it does not do

- Data lives in memory only; the only way to keep it is a dump.
- There is no configuration file handling, no manager of numbered
  databases, no server and no command-line tool; you compose a database class
  as shown above.
- Expired keys are not removed on their own: once the expiry time has passed
  `ttl` and `httl` report `-1`, but the value stays until it is deleted.
- There are no list, set or sorted-set commands. `scan` accepts those data
  types and lists their keys if such keys are in the store.