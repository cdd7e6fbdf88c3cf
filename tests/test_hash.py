import pytest

from lediskv.const import LedisError, ReadOnlyError
from lediskv.hash import FVPair, HashMixin
from lediskv.kv import KVMixin
from lediskv.storage import Batch, Store


class _HashDB(KVMixin, HashMixin):
    def __init__(self, store, readonly=False):
        self._store = store
        self._index_buf = b"\x00"
        flag = lambda: readonly
        self._kv_batch = Batch(self._store.write_batch(), readonly=flag)
        self._hash_batch = Batch(self._store.write_batch(), readonly=flag)


def test_hash_codec():
    db = _HashDB(Store())
    ek = db.h_encode_size_key(b"key")
    assert db.h_decode_size_key(ek) == b"key"

    ek = db.h_encode_hash_key(b"key", b"field")
    assert db.h_decode_hash_key(ek) == (b"key", b"field")


def test_decode_invalid_keys():
    db = _HashDB(Store())
    with pytest.raises(LedisError):
        db.h_decode_size_key(db.encode_kv_key(b"key"))
    with pytest.raises(LedisError):
        db.h_decode_hash_key(db.h_encode_size_key(b"key"))
    with pytest.raises(LedisError):
        db.h_decode_hash_key(b"\x01" + db.h_encode_hash_key(b"k", b"f")[1:])


def test_db_hash():
    db = _HashDB(Store())
    key = b"testdb_hash_a"
    assert db.hset(key, b"a", b"hello world 1") == 1
    assert db.hset(key, b"b", b"hello world 2") == 1
    assert db.hmget(key, b"a", b"b") == [b"hello world 1", b"hello world 2"]


def test_hset_overwrite_and_len():
    db = _HashDB(Store())
    assert db.hset(b"h", b"f", b"1") == 1
    assert db.hset(b"h", b"f", b"2") == 0
    assert db.hget(b"h", b"f") == b"2"
    assert db.hlen(b"h") == 1


def test_hash_persist():
    db = _HashDB(Store())
    key = b"persist"
    db.hset(key, b"field", b"")
    assert db.hpersist(key) == 0
    assert db.hexpire(key, 10) == 1
    assert db.httl(key) in (9, 10)
    assert db.hpersist(key) == 1
    assert db.httl(key) == -1


def test_hash_key_exists():
    db = _HashDB(Store())
    key = b"hkeyexists_test"
    assert db.hkey_exists(key) == 0
    db.hset(key, b"hello", b"world")
    assert db.hkey_exists(key) == 1


def test_hmset_getall_keys_values():
    db = _HashDB(Store())
    db.hmset(b"h", FVPair(b"b", b"2"), FVPair(b"a", b"1"), FVPair(b"c", b"3"))
    assert db.hlen(b"h") == 3
    assert db.hgetall(b"h") == [(b"a", b"1"), (b"b", b"2"), (b"c", b"3")]
    assert db.hkeys(b"h") == [b"a", b"b", b"c"]
    assert db.hvalues(b"h") == [b"1", b"2", b"3"]


def test_hgetall_does_not_mix_keys():
    db = _HashDB(Store())
    db.hset(b"a", b"f", b"1")
    db.hset(b"ab", b"f", b"2")
    assert db.hgetall(b"a") == [(b"f", b"1")]


def test_hdel():
    db = _HashDB(Store())
    db.hmset(b"h", FVPair(b"a", b"1"), FVPair(b"b", b"2"))
    assert db.hdel(b"h", b"a", b"missing") == 1
    assert db.hlen(b"h") == 1
    assert db.hdel(b"h", b"b") == 1
    assert db.hkey_exists(b"h") == 0


def test_hincr_by():
    db = _HashDB(Store())
    assert db.hincr_by(b"h", b"n", 5) == 5
    assert db.hincr_by(b"h", b"n", -7) == -2
    assert db.hget(b"h", b"n") == b"-2"
    assert db.hlen(b"h") == 1
    db.hset(b"h", b"s", b"abc")
    with pytest.raises(LedisError):
        db.hincr_by(b"h", b"s", 1)


def test_hclear_and_hmclear():
    db = _HashDB(Store())
    db.hmset(b"h1", FVPair(b"a", b"1"), FVPair(b"b", b"2"))
    db.hexpire(b"h1", 100)
    assert db.hclear(b"h1") == 2
    assert db.hgetall(b"h1") == []
    assert db.httl(b"h1") == -1

    keys = [str(i).encode() for i in range(200)]
    for key in keys:
        db.hset(key, b"f", b"v")
    assert db.hmclear(*keys) == 200
    assert all(db.hget(key, b"f") is None for key in keys)
    assert db.hlen(keys[0]) == 0


def test_hexpire_missing_and_invalid():
    db = _HashDB(Store())
    assert db.hexpire(b"none", 10) == 0
    with pytest.raises(LedisError):
        db.hexpire(b"none", 0)
    with pytest.raises(LedisError):
        db.hexpire_at(b"none", 1)


def test_size_checks():
    db = _HashDB(Store())
    with pytest.raises(LedisError, match="invalid key size"):
        db.hset(b"", b"f", b"v")
    with pytest.raises(LedisError, match="invalid hash field size"):
        db.hset(b"k", b"", b"v")
    with pytest.raises(LedisError, match="invalid hash field size"):
        db.hget(b"k", b"x" * 1025)


def test_readonly_rejects_writes():
    db = _HashDB(Store(), readonly=True)
    with pytest.raises(ReadOnlyError):
        db.hset(b"h", b"f", b"v")
    assert db.hget(b"h", b"f") is None