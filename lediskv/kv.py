"""Plain key-value strings, including bit operations and key expiry."""

from __future__ import annotations

import re
import time
from typing import NamedTuple

from .const import (
    BIT_AND,
    BIT_NOT,
    BIT_OR,
    BIT_XOR,
    ERR_EXPIRE_VALUE,
    ERR_KEY_SIZE,
    ERR_VALUE_SIZE,
    EXP_META_TYPE,
    EXP_TIME_TYPE,
    KV_TYPE,
    MAX_KEY_SIZE,
    MAX_VALUE_SIZE,
    LedisError,
)

_INT64_MIN = -(1 << 63)
_INT64_MAX = (1 << 63) - 1
_DECIMAL = re.compile(rb"[+-]?[0-9]+")


class KVPair(NamedTuple):
    """A key together with its value."""

    key: bytes
    value: bytes


def _check_key_size(key: bytes | None) -> None:
    if not key or len(key) > MAX_KEY_SIZE:
        raise LedisError(ERR_KEY_SIZE)


def _check_value_size(value: bytes | None) -> None:
    if value is not None and len(value) > MAX_VALUE_SIZE:
        raise LedisError(ERR_VALUE_SIZE)


def _now() -> int:
    return int(time.time())


def _wrap_int64(n: int) -> int:
    return (n - _INT64_MIN) % (1 << 64) + _INT64_MIN


def _put_int64(n: int) -> bytes:
    return (n & 0xFFFFFFFFFFFFFFFF).to_bytes(8, "little")


def _int64(value: bytes | None) -> int:
    """Decode a stored 8-byte little-endian integer; a missing value is 0."""
    if value is None:
        return 0
    if len(value) != 8:
        raise LedisError("invalid integer")
    return int.from_bytes(value, "little", signed=True)


def _str_int64(value: bytes | None) -> int:
    """Parse a decimal integer stored as text; a missing value is 0."""
    if value is None:
        return 0
    if not _DECIMAL.fullmatch(value):
        raise LedisError(f"invalid integer {value!r}")
    n = int(value)
    if not _INT64_MIN <= n <= _INT64_MAX:
        raise LedisError(f"integer out of range {value!r}")
    return n


def _get_range(start: int, end: int, length: int) -> tuple[int, int]:
    if start < 0:
        start += length
    if end < 0:
        end += length
    start = max(start, 0)
    end = max(end, 0)
    if end >= length:
        end = length - 1
    if start > end:
        start = end
    return start, end


def _get_bit_range(start: int, end: int, bit_length: int) -> tuple[int, int]:
    if start < 0:
        start += bit_length
    if end < 0:
        end += bit_length
    start = max(start, 0)
    if end >= bit_length:
        end = bit_length - 1
    if start > end:
        start = end
    return start, end


def _validate_range(start: int, end: int, length: int, unit: str, prefix: str) -> tuple[int, int]:
    if start >= length or end >= length:
        raise LedisError(f"{unit} range out of bounds")
    if start < 0:
        start += length
    if end < 0:
        end += length
    start = max(start, 0)
    if end >= length:
        end = length - 1
    if start > end:
        raise LedisError(f"{prefix}invalid range: start > end")
    return start, end


class KVMixin:
    """String commands of a database.

    The class it is mixed into provides ``_store`` (the backing store),
    ``_index_buf`` (the varint-encoded database index that prefixes every
    key) and ``_kv_batch`` (the batch used for string writes).
    """

    # -- key codecs -------------------------------------------------------

    def _check_key_index(self, encoded: bytes) -> int:
        prefix = self._index_buf
        if len(encoded) < len(prefix):
            raise LedisError("key is too small")
        if encoded[: len(prefix)] != prefix:
            raise LedisError("invalid db index")
        return len(prefix)

    def encode_kv_key(self, key: bytes | None) -> bytes:
        """The store key of a string key."""
        return self._index_buf + bytes([KV_TYPE]) + (key or b"")

    def decode_kv_key(self, encoded: bytes) -> bytes:
        """The string key held in a store key."""
        pos = self._check_key_index(encoded)
        if pos + 1 > len(encoded) or encoded[pos] != KV_TYPE:
            raise LedisError("invalid encode kv key")
        return encoded[pos + 1 :]

    # -- expiry bookkeeping shared by all data types -----------------------

    def _exp_meta_key(self, data_type: int, key: bytes) -> bytes:
        return self._index_buf + bytes([EXP_META_TYPE, data_type]) + key

    def _exp_time_key(self, data_type: int, key: bytes, when: int) -> bytes:
        return (
            self._index_buf
            + bytes([EXP_TIME_TYPE])
            + (when & 0xFFFFFFFFFFFFFFFF).to_bytes(8, "big")
            + bytes([data_type])
            + key
        )

    def _expire_at(self, batch, data_type: int, key: bytes, when: int) -> None:
        meta_key = self._exp_meta_key(data_type, key)
        batch.put(self._exp_time_key(data_type, key, when), meta_key)
        batch.put(meta_key, _put_int64(when))

    def _rm_expire(self, batch, data_type: int, key: bytes) -> int:
        meta_key = self._exp_meta_key(data_type, key)
        stored = self._store.get(meta_key)
        if stored is None:
            return 0
        when = _int64(stored)
        batch.delete(meta_key)
        batch.delete(self._exp_time_key(data_type, key, when))
        return 1

    def _ttl_of(self, data_type: int, key: bytes) -> int:
        when = _int64(self._store.get(self._exp_meta_key(data_type, key)))
        if when == 0:
            return -1
        remaining = when - _now()
        return remaining if remaining > 0 else -1

    # -- plain values -----------------------------------------------------

    def _kv_delete(self, batch, key: bytes) -> int:
        batch.delete(self.encode_kv_key(key))
        return 1

    def get(self, key: bytes) -> bytes | None:
        _check_key_size(key)
        return self._store.get(self.encode_kv_key(key))

    def set(self, key: bytes, value: bytes) -> None:
        _check_key_size(key)
        _check_value_size(value)
        with self._kv_batch as batch:
            batch.put(self.encode_kv_key(key), value)
            self._rm_expire(batch, KV_TYPE, key)
            batch.commit()

    def set_nx(self, key: bytes, value: bytes) -> int:
        """Set the value only if the key is absent; 1 if it was set."""
        _check_key_size(key)
        _check_value_size(value)
        encoded = self.encode_kv_key(key)
        with self._kv_batch as batch:
            if self._store.get(encoded) is not None:
                return 0
            batch.put(encoded, value)
            batch.commit()
        return 1

    def set_ex(self, key: bytes, duration: int, value: bytes) -> None:
        _check_key_size(key)
        _check_value_size(value)
        if duration <= 0:
            raise LedisError(ERR_EXPIRE_VALUE)
        with self._kv_batch as batch:
            batch.put(self.encode_kv_key(key), value)
            self._expire_at(batch, KV_TYPE, key, _now() + duration)
            batch.commit()

    def set_ex_at(self, key: bytes, timestamp: int, value: bytes) -> None:
        _check_key_size(key)
        _check_value_size(value)
        if timestamp <= _now():
            raise LedisError(ERR_EXPIRE_VALUE)
        with self._kv_batch as batch:
            batch.put(self.encode_kv_key(key), value)
            self._expire_at(batch, KV_TYPE, key, timestamp)
            batch.commit()

    def get_set(self, key: bytes, value: bytes) -> bytes | None:
        """Set a new value and return the old one."""
        _check_key_size(key)
        _check_value_size(value)
        encoded = self.encode_kv_key(key)
        with self._kv_batch as batch:
            old = self._store.get(encoded)
            batch.put(encoded, value)
            batch.commit()
        return old

    def exists(self, key: bytes) -> int:
        _check_key_size(key)
        return 1 if self._store.get(self.encode_kv_key(key)) is not None else 0

    def delete(self, *args: bytes) -> int:
        """Delete keys; returns how many keys were given."""
        if not args:
            return 0
        with self._kv_batch as batch:
            for key in args:
                self._kv_delete(batch, key)
                self._rm_expire(batch, KV_TYPE, key)
            batch.commit()
        return len(args)

    def _incr(self, key: bytes, delta: int) -> int:
        _check_key_size(key)
        encoded = self.encode_kv_key(key)
        with self._kv_batch as batch:
            n = _wrap_int64(_str_int64(self._store.get(encoded)) + delta)
            batch.put(encoded, str(n).encode())
            batch.commit()
        return n

    def incr(self, key: bytes) -> int:
        return self._incr(key, 1)

    def incr_by(self, key: bytes, increment: int) -> int:
        return self._incr(key, increment)

    def decr(self, key: bytes) -> int:
        return self._incr(key, -1)

    def decr_by(self, key: bytes, decrement: int) -> int:
        return self._incr(key, -decrement)

    def mget(self, *args: bytes) -> list[bytes | None]:
        for key in args:
            _check_key_size(key)
        return [self._store.get(self.encode_kv_key(key)) for key in args]

    def mset(self, *args: KVPair) -> None:
        if not args:
            return
        with self._kv_batch as batch:
            for key, value in args:
                _check_key_size(key)
                _check_value_size(value)
                batch.put(self.encode_kv_key(key), value)
            batch.commit()

    # -- expiry -----------------------------------------------------------

    def _set_expire_at(self, key: bytes, when: int) -> int:
        with self._kv_batch as batch:
            if not self.exists(key):
                return 0
            self._expire_at(batch, KV_TYPE, key, when)
            batch.commit()
        return 1

    def expire(self, key: bytes, duration: int) -> int:
        if duration <= 0:
            raise LedisError(ERR_EXPIRE_VALUE)
        return self._set_expire_at(key, _now() + duration)

    def expire_at(self, key: bytes, when: int) -> int:
        if when <= _now():
            raise LedisError(ERR_EXPIRE_VALUE)
        return self._set_expire_at(key, when)

    def ttl(self, key: bytes) -> int:
        """Seconds left before the key expires, or -1 without an expiry."""
        _check_key_size(key)
        return self._ttl_of(KV_TYPE, key)

    def persist(self, key: bytes) -> int:
        """Remove the expiry; 1 if there was one."""
        _check_key_size(key)
        with self._kv_batch as batch:
            n = self._rm_expire(batch, KV_TYPE, key)
            batch.commit()
        return n

    # -- substrings -------------------------------------------------------

    def set_range(self, key: bytes, offset: int, value: bytes) -> int:
        """Overwrite part of the value at offset, padding with zero bytes."""
        if not value:
            return 0
        _check_key_size(key)
        if offset < 0:
            raise LedisError("offset is out of range")
        if len(value) + offset > MAX_VALUE_SIZE:
            raise LedisError(ERR_VALUE_SIZE)
        encoded = self.encode_kv_key(key)
        with self._kv_batch as batch:
            buf = bytearray(self._store.get(encoded) or b"")
            if offset + len(value) > len(buf):
                buf.extend(bytes(offset + len(value) - len(buf)))
            buf[offset : offset + len(value)] = value
            batch.put(encoded, bytes(buf))
            batch.commit()
        return len(buf)

    def get_range(self, key: bytes, start: int, end: int) -> bytes | None:
        _check_key_size(key)
        value = self._store.get(self.encode_kv_key(key))
        if not value:
            return value
        start, end = _get_range(start, end, len(value))
        if start > end:
            return None
        return value[start : end + 1]

    def strlen(self, key: bytes) -> int:
        _check_key_size(key)
        value = self._store.get(self.encode_kv_key(key))
        return 0 if value is None else len(value)

    def append(self, key: bytes, value: bytes) -> int:
        """Append to the value; returns the new length."""
        if not value:
            return 0
        _check_key_size(key)
        encoded = self.encode_kv_key(key)
        with self._kv_batch as batch:
            old = self._store.get(encoded) or b""
            if len(old) + len(value) > MAX_VALUE_SIZE:
                raise LedisError(ERR_VALUE_SIZE)
            new = old + value
            batch.put(encoded, new)
            batch.commit()
        return len(new)

    # -- bits -------------------------------------------------------------

    def bit_op(self, op: str, dest_key: bytes, *args: bytes) -> int:
        """Combine two or more values bitwise into dest_key; returns its length."""
        _check_key_size(dest_key)
        op = op.lower()
        if not args:
            return 0
        if op == BIT_NOT and len(args) > 1:
            raise LedisError("BITOP NOT has only one srckey")
        if len(args) < 2:
            return 0

        value = bytearray(self._store.get(self.encode_kv_key(args[0])) or b"")
        for src in args[1:]:
            _check_key_size(src)
            other = bytearray(self._store.get(self.encode_kv_key(src)) or b"")
            if len(value) < len(other):
                value, other = other, value
            for i, byte in enumerate(other):
                if op == BIT_AND:
                    value[i] &= byte
                elif op == BIT_OR:
                    value[i] |= byte
                elif op == BIT_XOR:
                    value[i] ^= byte
                else:
                    raise LedisError(f"invalid op type: {op}")
            if op == BIT_AND:
                value[len(other) :] = bytes(len(value) - len(other))

        with self._kv_batch as batch:
            batch.put(self.encode_kv_key(dest_key), bytes(value))
            batch.commit()
        return len(value)

    def bit_count(self, key: bytes, start: int, end: int, bit_mode: str) -> int:
        """Count set bits in a byte or bit range; negative indexes count from the end."""
        _check_key_size(key)
        value = self._store.get(self.encode_kv_key(key))
        if value is None:
            return 0
        bit_mode = bit_mode.upper()
        if bit_mode not in ("BYTE", "BIT"):
            raise LedisError("ERR invalid bit mode")

        if bit_mode == "BYTE":
            start, end = _validate_range(start, end, len(value), "byte", "byte ")
            part = bytearray(value[start : end + 1])
        else:
            start, end = _validate_range(start, end, len(value) * 8, "bit", "ERR ")
            start_byte, start_bit = divmod(start, 8)
            end_byte, end_bit = divmod(end, 8)
            if start_byte >= len(value) or end_byte >= len(value):
                raise LedisError("ERR bit range out of bounds")
            part = bytearray(value[start_byte : end_byte + 1])
            if start_bit > 0:
                part[0] &= 0xFF >> start_bit
            if end_bit < 7:
                part[-1] &= (0xFF << (7 - end_bit)) & 0xFF
        return int.from_bytes(part, "big").bit_count()

    def bit_pos(self, key: bytes, on: int, start: int, end: int, bit_mode: str) -> int:
        """Position of the first bit equal to on within the range, or -1."""
        _check_key_size(key)
        if on not in (0, 1):
            raise LedisError(f"bit must be 0 or 1, not {on}")
        value = self._store.get(self.encode_kv_key(key)) or b""
        if not value:
            return -1

        if bit_mode == "BIT":
            start, end = _get_bit_range(start, end, len(value) * 8)
            start_byte, start_bit = divmod(start, 8)
            end_byte, end_bit = divmod(end, 8)
        else:
            start, end = _get_range(start, end, len(value))
            start_byte, start_bit = start, 0
            end_byte, end_bit = end, 7

        if start_byte > end_byte:
            return -1

        for offset, byte in enumerate(value[start_byte : end_byte + 1], start_byte):
            if offset == start_byte:
                bits = range(start_bit, 8)
            elif offset == end_byte:
                bits = range(0, end_bit + 1)
            else:
                bits = range(8)
            for bit in bits:
                if (byte >> (7 - bit)) & 1 == on:
                    return offset * 8 + bit
        return -1

    def set_bit(self, key: bytes, offset: int, on: int) -> int:
        """Set or clear one bit; returns its previous value."""
        _check_key_size(key)
        if on & ~1:
            raise LedisError(f"bit must be 0 or 1, not {on}")
        if offset < 0:
            raise LedisError("bit offset is out of range")
        offset &= 0xFFFFFFFF
        encoded = self.encode_kv_key(key)
        with self._kv_batch as batch:
            value = bytearray(self._store.get(encoded) or b"")
            byte_offset = offset >> 3
            if byte_offset >= len(value):
                value.extend(bytes(byte_offset + 1 - len(value)))
            mask = 1 << (7 - (offset & 0x7))
            old = value[byte_offset] & mask
            value[byte_offset] = (value[byte_offset] & ~mask & 0xFF) | (mask if on else 0)
            batch.put(encoded, bytes(value))
            batch.commit()
        return 1 if old else 0

    def get_bit(self, key: bytes, offset: int) -> int:
        _check_key_size(key)
        value = self._store.get(self.encode_kv_key(key)) or b""
        offset &= 0xFFFFFFFF
        byte_offset = offset >> 3
        if byte_offset >= len(value):
            return 0
        return 1 if value[byte_offset] & (1 << (7 - (offset & 0x7))) else 0