"""The dump file format: a commit id followed by compressed key-value records."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import BinaryIO, Iterator

from .const import LedisError
from .storage import Store

_HEAD = struct.Struct(">Q")
_KEY_LEN = struct.Struct(">H")
_VALUE_LEN = struct.Struct(">I")


# -- snappy block format -----------------------------------------------------


def _put_uvarint(n: int) -> bytes:
    out = bytearray()
    while n >= 0x80:
        out.append((n & 0x7F) | 0x80)
        n >>= 7
    out.append(n)
    return bytes(out)


def _uvarint(data: bytes) -> tuple[int, int]:
    result = 0
    shift = 0
    for pos, byte in enumerate(data):
        if shift >= 64:
            break
        result |= (byte & 0x7F) << shift
        if byte < 0x80:
            return result, pos + 1
        shift += 7
    raise LedisError("snappy: corrupt input")


def _emit_literal(out: bytearray, literal: bytes) -> None:
    if not literal:
        return
    n = len(literal) - 1
    if n < 60:
        out.append(n << 2)
    else:
        size = (n.bit_length() + 7) // 8
        out.append((59 + size) << 2)
        out += n.to_bytes(size, "little")
    out += literal


def _emit_copy(out: bytearray, offset: int, length: int) -> None:
    while length >= 68:
        out.append((63 << 2) | 2)
        out += offset.to_bytes(2, "little")
        length -= 64
    if length > 64:
        out.append((59 << 2) | 2)
        out += offset.to_bytes(2, "little")
        length -= 60
    if length >= 12 or offset >= 2048:
        out.append(((length - 1) << 2) | 2)
        out += offset.to_bytes(2, "little")
    else:
        out.append(((offset >> 8) << 5) | ((length - 4) << 2) | 1)
        out.append(offset & 0xFF)


def _snappy_encode(data: bytes) -> bytes:
    out = bytearray(_put_uvarint(len(data)))
    table: dict[bytes, int] = {}
    literal_start = 0
    i = 0
    n = len(data)
    while i + 4 <= n:
        chunk = data[i : i + 4]
        candidate = table.get(chunk)
        table[chunk] = i
        if candidate is None or i - candidate > 0xFFFF:
            i += 1
            continue
        length = 4
        while i + length < n and data[candidate + length] == data[i + length]:
            length += 1
        _emit_literal(out, data[literal_start:i])
        _emit_copy(out, i - candidate, length)
        i += length
        literal_start = i
    _emit_literal(out, data[literal_start:])
    return bytes(out)


def _snappy_decode(data: bytes) -> bytes:
    expected, pos = _uvarint(data)
    out = bytearray()
    end = len(data)
    while pos < end:
        tag = data[pos]
        kind = tag & 0x03
        if kind == 0:
            length = tag >> 2
            pos += 1
            if length >= 60:
                size = length - 59
                if pos + size > end:
                    raise LedisError("snappy: corrupt input")
                length = int.from_bytes(data[pos : pos + size], "little")
                pos += size
            length += 1
            if pos + length > end:
                raise LedisError("snappy: corrupt input")
            out += data[pos : pos + length]
            pos += length
            continue
        if kind == 1:
            if pos + 2 > end:
                raise LedisError("snappy: corrupt input")
            length = 4 + ((tag >> 2) & 0x07)
            offset = ((tag >> 5) << 8) | data[pos + 1]
            pos += 2
        elif kind == 2:
            if pos + 3 > end:
                raise LedisError("snappy: corrupt input")
            length = 1 + (tag >> 2)
            offset = int.from_bytes(data[pos + 1 : pos + 3], "little")
            pos += 3
        else:
            if pos + 5 > end:
                raise LedisError("snappy: corrupt input")
            length = 1 + (tag >> 2)
            offset = int.from_bytes(data[pos + 1 : pos + 5], "little")
            pos += 5
        if offset == 0 or offset > len(out):
            raise LedisError("snappy: corrupt input")
        start = len(out) - offset
        if offset >= length:
            out += out[start : start + length]
        else:
            for k in range(length):
                out.append(out[start + k])
    if len(out) != expected:
        raise LedisError("snappy: corrupt input")
    return bytes(out)


# -- dump records --------------------------------------------------------------


def _read_exact(stream: BinaryIO, size: int) -> bytes:
    data = stream.read(size)
    if data is None or len(data) != size:
        raise LedisError("unexpected end of dump")
    return data


@dataclass
class DumpHead:
    """The header of a dump: the replication commit id it was taken at."""

    commit_id: int = 0

    @classmethod
    def read(cls, stream: BinaryIO) -> DumpHead:
        (commit_id,) = _HEAD.unpack(_read_exact(stream, _HEAD.size))
        return cls(commit_id)

    def write(self, stream: BinaryIO) -> None:
        stream.write(_HEAD.pack(self.commit_id))


def write_dump(store: Store, stream: BinaryIO, commit_id: int = 0) -> None:
    """Write every pair of the store, in key order, as a dump."""
    DumpHead(commit_id).write(stream)
    for key, value in store.items():
        encoded_key = _snappy_encode(key)
        if len(encoded_key) > 0xFFFF:
            raise LedisError("key too large for dump")
        encoded_value = _snappy_encode(value)
        if len(encoded_value) > 0xFFFFFFFF:
            raise LedisError("value too large for dump")
        stream.write(_KEY_LEN.pack(len(encoded_key)))
        stream.write(encoded_key)
        stream.write(_VALUE_LEN.pack(len(encoded_value)))
        stream.write(encoded_value)


def _records(stream: BinaryIO) -> Iterator[tuple[bytes, bytes]]:
    while True:
        raw = stream.read(_KEY_LEN.size)
        if not raw:
            return
        if len(raw) != _KEY_LEN.size:
            raise LedisError("unexpected end of dump")
        (key_len,) = _KEY_LEN.unpack(raw)
        key = _snappy_decode(_read_exact(stream, key_len))
        (value_len,) = _VALUE_LEN.unpack(_read_exact(stream, _VALUE_LEN.size))
        value = _snappy_decode(_read_exact(stream, value_len))
        yield key, value


def read_dump(stream: BinaryIO) -> tuple[DumpHead, Iterator[tuple[bytes, bytes]]]:
    """Read the header now and return it with a lazy iterator over the pairs.

    The iterator reads from the stream, so consume it while the stream is open.
    """
    head = DumpHead.read(stream)
    return head, _records(stream)