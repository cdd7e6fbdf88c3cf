"""Hash values: maps of fields to values stored under one key."""

from __future__ import annotations

from typing import NamedTuple

from .const import (
    ERR_EXPIRE_VALUE,
    ERR_HASH_FIELD_SIZE,
    ERR_KEY_SIZE,
    HASH_TYPE,
    HSIZE_TYPE,
    MAX_HASH_FIELD_SIZE,
    MAX_KEY_SIZE,
    LedisError,
)
from .kv import (
    _check_key_size,
    _check_value_size,
    _int64,
    _now,
    _put_int64,
    _str_int64,
    _wrap_int64,
)
from .storage import RangeType

HASH_START_SEP = ord(":")
HASH_STOP_SEP = HASH_START_SEP + 1

ERR_HASH_KEY = "invalid hash key"
ERR_HSIZE_KEY = "invalid hsize key"


class FVPair(NamedTuple):
    """A hash field together with its value."""

    field: bytes
    value: bytes


def _check_hash_kf_size(key: bytes | None, field: bytes | None) -> None:
    if not key or len(key) > MAX_KEY_SIZE:
        raise LedisError(ERR_KEY_SIZE)
    if not field or len(field) > MAX_HASH_FIELD_SIZE:
        raise LedisError(ERR_HASH_FIELD_SIZE)


class HashMixin:
    """Hash commands of a database.

    Mixed in together with ``KVMixin``; the class provides ``_store``,
    ``_index_buf`` and ``_hash_batch`` (the batch used for hash writes).
    """

    # -- key codecs -------------------------------------------------------

    def h_encode_size_key(self, key: bytes | None) -> bytes:
        """The store key that holds the number of fields of a hash."""
        return self._index_buf + bytes([HSIZE_TYPE]) + (key or b"")

    def h_decode_size_key(self, encoded: bytes) -> bytes:
        """The hash key held in a size key."""
        pos = self._check_key_index(encoded)
        if pos + 1 > len(encoded) or encoded[pos] != HSIZE_TYPE:
            raise LedisError(ERR_HSIZE_KEY)
        return encoded[pos + 1 :]

    def h_encode_hash_key(self, key: bytes | None, field: bytes | None) -> bytes:
        """The store key of one field of a hash."""
        key = key or b""
        return (
            self._index_buf
            + bytes([HASH_TYPE])
            + (len(key) & 0xFFFF).to_bytes(2, "big")
            + key
            + bytes([HASH_START_SEP])
            + (field or b"")
        )

    def h_decode_hash_key(self, encoded: bytes) -> tuple[bytes, bytes]:
        """The hash key and field held in a field key."""
        pos = self._check_key_index(encoded)
        if pos + 1 > len(encoded) or encoded[pos] != HASH_TYPE:
            raise LedisError(ERR_HASH_KEY)
        pos += 1
        if pos + 2 > len(encoded):
            raise LedisError(ERR_HASH_KEY)
        key_len = int.from_bytes(encoded[pos : pos + 2], "big")
        pos += 2
        if pos + key_len >= len(encoded):
            raise LedisError(ERR_HASH_KEY)
        key = encoded[pos : pos + key_len]
        pos += key_len
        if encoded[pos] != HASH_START_SEP:
            raise LedisError(ERR_HASH_KEY)
        return key, encoded[pos + 1 :]

    def _h_start_key(self, key: bytes) -> bytes:
        return self.h_encode_hash_key(key, None)

    def _h_stop_key(self, key: bytes) -> bytes:
        return self.h_encode_hash_key(key, None)[:-1] + bytes([HASH_STOP_SEP])

    def _h_fields(self, key: bytes) -> list[tuple[bytes, bytes]]:
        return self._store.range(self._h_start_key(key), self._h_stop_key(key), RangeType.ROPEN)

    # -- internal writes --------------------------------------------------

    def _h_incr_size(self, batch, key: bytes, delta: int) -> int:
        size_key = self.h_encode_size_key(key)
        size = _int64(self._store.get(size_key)) + delta
        if size <= 0:
            size = 0
            batch.delete(size_key)
            self._rm_expire(batch, HASH_TYPE, key)
        else:
            batch.put(size_key, _put_int64(size))
        return size

    def _h_set_item(self, batch, key: bytes, field: bytes, value: bytes) -> int:
        encoded = self.h_encode_hash_key(key, field)
        n = 1
        if self._store.get(encoded) is not None:
            n = 0
        else:
            self._h_incr_size(batch, key, 1)
        batch.put(encoded, value)
        return n

    def _h_delete(self, batch, key: bytes) -> int:
        """Delete all fields and the size of a hash; expiry is left alone."""
        num = 0
        for encoded, _ in self._h_fields(key):
            batch.delete(encoded)
            num += 1
        batch.delete(self.h_encode_size_key(key))
        return num

    # -- commands ---------------------------------------------------------

    def hlen(self, key: bytes) -> int:
        _check_key_size(key)
        return _int64(self._store.get(self.h_encode_size_key(key)))

    def hset(self, key: bytes, field: bytes, value: bytes) -> int:
        """Set a field; 1 if the field is new, 0 if it was overwritten."""
        _check_hash_kf_size(key, field)
        _check_value_size(value)
        with self._hash_batch as batch:
            n = self._h_set_item(batch, key, field, value)
            batch.commit()
        return n

    def hget(self, key: bytes, field: bytes) -> bytes | None:
        _check_hash_kf_size(key, field)
        return self._store.get(self.h_encode_hash_key(key, field))

    def hmset(self, key: bytes, *args: FVPair) -> None:
        with self._hash_batch as batch:
            num = 0
            for field, value in args:
                _check_hash_kf_size(key, field)
                _check_value_size(value)
                encoded = self.h_encode_hash_key(key, field)
                if self._store.get(encoded) is None:
                    num += 1
                batch.put(encoded, value)
            self._h_incr_size(batch, key, num)
            batch.commit()

    def hmget(self, key: bytes, *args: bytes) -> list[bytes | None]:
        for field in args:
            _check_hash_kf_size(key, field)
        return [self._store.get(self.h_encode_hash_key(key, field)) for field in args]

    def hdel(self, key: bytes, *args: bytes) -> int:
        """Delete fields; returns how many existed."""
        with self._hash_batch as batch:
            num = 0
            for field in args:
                _check_hash_kf_size(key, field)
                encoded = self.h_encode_hash_key(key, field)
                if self._store.get(encoded) is None:
                    continue
                num += 1
                batch.delete(encoded)
            self._h_incr_size(batch, key, -num)
            batch.commit()
        return num

    def hincr_by(self, key: bytes, field: bytes, delta: int) -> int:
        """Add delta to the decimal integer in a field; returns the new value."""
        _check_hash_kf_size(key, field)
        with self._hash_batch as batch:
            current = _str_int64(self._store.get(self.h_encode_hash_key(key, field)))
            n = _wrap_int64(current + delta)
            self._h_set_item(batch, key, field, str(n).encode())
            batch.commit()
        return n

    def hgetall(self, key: bytes) -> list[FVPair]:
        _check_key_size(key)
        return [
            FVPair(self.h_decode_hash_key(encoded)[1], value)
            for encoded, value in self._h_fields(key)
        ]

    def hkeys(self, key: bytes) -> list[bytes]:
        _check_key_size(key)
        return [self.h_decode_hash_key(encoded)[1] for encoded, _ in self._h_fields(key)]

    def hvalues(self, key: bytes) -> list[bytes]:
        _check_key_size(key)
        result = []
        for encoded, value in self._h_fields(key):
            self.h_decode_hash_key(encoded)
            result.append(value)
        return result

    def hclear(self, key: bytes) -> int:
        """Remove a whole hash; returns the number of fields removed."""
        _check_key_size(key)
        with self._hash_batch as batch:
            num = self._h_delete(batch, key)
            self._rm_expire(batch, HASH_TYPE, key)
            batch.commit()
        return num

    def hmclear(self, *args: bytes) -> int:
        """Remove several hashes; returns how many keys were given."""
        with self._hash_batch as batch:
            for key in args:
                _check_key_size(key)
                self._h_delete(batch, key)
                self._rm_expire(batch, HASH_TYPE, key)
            batch.commit()
        return len(args)

    def _h_expire_at(self, key: bytes, when: int) -> int:
        with self._hash_batch as batch:
            if self.hlen(key) == 0:
                return 0
            self._expire_at(batch, HASH_TYPE, key, when)
            batch.commit()
        return 1

    def hexpire(self, key: bytes, duration: int) -> int:
        if duration <= 0:
            raise LedisError(ERR_EXPIRE_VALUE)
        return self._h_expire_at(key, _now() + duration)

    def hexpire_at(self, key: bytes, when: int) -> int:
        if when <= _now():
            raise LedisError(ERR_EXPIRE_VALUE)
        return self._h_expire_at(key, when)

    def httl(self, key: bytes) -> int:
        _check_key_size(key)
        return self._ttl_of(HASH_TYPE, key)

    def hpersist(self, key: bytes) -> int:
        _check_key_size(key)
        with self._hash_batch as batch:
            n = self._rm_expire(batch, HASH_TYPE, key)
            batch.commit()
        return n

    def hkey_exists(self, key: bytes) -> int:
        _check_key_size(key)
        return 1 if self._store.get(self.h_encode_size_key(key)) is not None else 0