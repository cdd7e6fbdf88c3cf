import pytest

from lediskv.const import LMETA_TYPE, SSIZE_TYPE, ZSIZE_TYPE, DataType, LedisError
from lediskv.hash import HashMixin
from lediskv.kv import KVMixin
from lediskv.scan import ScanMixin
from lediskv.storage import Batch, Store


class _DB(KVMixin, HashMixin, ScanMixin):
    def __init__(self, store, index=0):
        self._store = store
        self._index_buf = bytes([index])
        self._kv_batch = Batch(store.write_batch())
        self._hash_batch = Batch(store.write_batch())


@pytest.fixture
def db():
    return _DB(Store())


def _put_meta(db, store_type, key):
    db._store.put(db._index_buf + bytes([store_type]) + key, b"\x01" + bytes(7))


def test_empty_scan(db):
    assert db.scan(DataType.KV, None, 10, True, "") == []
    assert db.rev_scan(DataType.KV, None, 10, True, "") == []


@pytest.mark.parametrize(
    "cursor,count,inclusive,match,expected",
    [
        (None, 1, True, "", [b"a"]),
        (b"a", 2, False, "", [b"b", b"c"]),
        (None, 3, True, "", [b"a", b"b", b"c"]),
        (None, 3, True, "b", [b"b"]),
        (None, 3, True, ".", [b"a", b"b", b"c"]),
        (None, 3, True, "a+", [b"a"]),
    ],
)
def test_kv_scan(db, cursor, count, inclusive, match, expected):
    for key in (b"a", b"b", b"c"):
        db.set(key, b"")
    assert db.scan(DataType.KV, cursor, count, inclusive, match) == expected


@pytest.mark.parametrize(
    "cursor,count,inclusive,match,expected",
    [
        (None, 1, True, "", [b"c"]),
        (b"c", 2, False, "", [b"b", b"a"]),
        (None, 3, True, "", [b"c", b"b", b"a"]),
        (None, 3, True, "b", [b"b"]),
        (None, 3, True, ".", [b"c", b"b", b"a"]),
        (None, 3, True, "c+", [b"c"]),
    ],
)
def test_kv_rev_scan(db, cursor, count, inclusive, match, expected):
    for key in (b"a", b"b", b"c"):
        db.set(key, b"")
    assert db.rev_scan(DataType.KV, cursor, count, inclusive, match) == expected


def test_hash_key_scan(db):
    db.hset(b"k1", b"1", b"")
    db.hset(b"k2", b"2", b"")
    db.hset(b"k3", b"3", b"")
    assert db.scan(DataType.HASH, None, 1, True, "") == [b"k1"]
    assert db.scan(DataType.HASH, b"k1", 2, True, "") == [b"k1", b"k2"]
    assert db.scan(DataType.HASH, b"k1", 2, False, "") == [b"k2", b"k3"]


@pytest.mark.parametrize(
    "data_type,store_type",
    [(DataType.LIST, LMETA_TYPE), (DataType.SET, SSIZE_TYPE), (DataType.ZSET, ZSIZE_TYPE)],
)
def test_meta_key_scan(db, data_type, store_type):
    for key in (b"k1", b"k2", b"k3"):
        _put_meta(db, store_type, key)
    assert db.scan(data_type, None, 1, True, "") == [b"k1"]
    assert db.scan(data_type, b"k1", 2, True, "") == [b"k1", b"k2"]
    assert db.scan(data_type, b"k1", 2, False, "") == [b"k2", b"k3"]


def test_scan_does_not_mix_types(db):
    db.set(b"kv", b"1")
    db.hset(b"h", b"f", b"v")
    assert db.scan(DataType.KV, None, 10, True, "") == [b"kv"]
    assert db.scan(DataType.HASH, None, 10, True, "") == [b"h"]


def test_scan_does_not_mix_databases():
    store = Store()
    db0 = _DB(store, 0)
    db1 = _DB(store, 1)
    db0.set(b"a", b"1")
    db1.set(b"b", b"2")
    assert db0.scan(DataType.KV, None, 10, True, "") == [b"a"]
    assert db1.rev_scan(DataType.KV, None, 10, True, "") == [b"b"]


def test_non_positive_count_uses_default(db):
    for i in range(15):
        db.set(b"key%02d" % i, b"")
    assert len(db.scan(DataType.KV, None, 0, True, "")) == 10


def test_invalid_match_raises(db):
    with pytest.raises(LedisError):
        db.scan(DataType.KV, None, 10, True, "(")


def test_invalid_data_type_raises(db):
    with pytest.raises(LedisError):
        db.scan(99, None, 10, True, "")


def test_hscan(db):
    key = b"scan_h_key"
    value = b"hello world"
    for field in (b"1", b"222", b"19", b"1234"):
        db.hset(key, field, value)

    fields = db.hscan(key, None, 100, True, "")
    assert [p.field for p in fields] == [b"1", b"1234", b"19", b"222"]
    assert all(p.value == value for p in fields)

    v = db.hscan(key, b"19", 1, False, "")
    assert [p.field for p in v] == [b"222"]

    v = db.hrev_scan(key, b"19", 1, False, "")
    assert [p.field for p in v] == [b"1234"]


def test_hscan_match_and_isolation(db):
    db.hset(b"h1", b"apple", b"1")
    db.hset(b"h1", b"banana", b"2")
    db.hset(b"h2", b"apricot", b"3")
    assert [p.field for p in db.hscan(b"h1", None, 10, True, "^a")] == [b"apple"]
    assert [p.field for p in db.hrev_scan(b"h1", None, 10, True, "")] == [b"banana", b"apple"]


def test_hscan_invalid_key(db):
    with pytest.raises(LedisError):
        db.hscan(b"", None, 10, True, "")