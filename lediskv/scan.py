"""Cursor-based scans over keys of a data type and over the fields of a hash."""

from __future__ import annotations

import re
from typing import Iterable, Iterator

from .const import (
    DEFAULT_SCAN_COUNT,
    ERR_DATA_TYPE,
    HSIZE_TYPE,
    KV_TYPE,
    LMETA_TYPE,
    SSIZE_TYPE,
    ZSIZE_TYPE,
    DataType,
    LedisError,
)
from .hash import FVPair
from .kv import _check_key_size
from .storage import RangeType

_SCANNABLE_TYPES = frozenset({KV_TYPE, LMETA_TYPE, HSIZE_TYPE, ZSIZE_TYPE, SSIZE_TYPE})


def _store_type(data_type: DataType | int) -> int:
    try:
        return DataType(data_type).store_type()
    except ValueError:
        raise LedisError(ERR_DATA_TYPE) from None


def _build_match(match: str | bytes | None) -> re.Pattern[bytes] | None:
    if not match:
        return None
    pattern = match.encode() if isinstance(match, str) else bytes(match)
    try:
        return re.compile(pattern)
    except re.error as exc:
        raise LedisError(f"invalid match pattern: {exc}") from exc


def _check_count(count: int) -> int:
    return DEFAULT_SCAN_COUNT if count <= 0 else count


def _range_type(inclusive: bool, reverse: bool) -> RangeType:
    if not inclusive:
        return RangeType.OPEN
    return RangeType.LOPEN if reverse else RangeType.ROPEN


class ScanMixin:
    """Scan commands of a database.

    The class provides ``_store`` and ``_index_buf``; hash scans also need
    ``h_encode_hash_key`` and ``h_decode_hash_key``.
    """

    # -- key scans --------------------------------------------------------

    def _encode_scan_key(self, store_type: int, key: bytes | None) -> bytes:
        if store_type not in _SCANNABLE_TYPES:
            raise LedisError(ERR_DATA_TYPE)
        return self._index_buf + bytes([store_type]) + (key or b"")

    def _decode_scan_key(self, store_type: int, encoded: bytes) -> bytes:
        prefix = self._index_buf + bytes([store_type])
        if not encoded.startswith(prefix):
            raise LedisError(ERR_DATA_TYPE)
        return encoded[len(prefix) :]

    def _encode_scan_max_key(self, store_type: int, key: bytes | None) -> bytes:
        if key:
            return self._encode_scan_key(store_type, key)
        return self._encode_scan_key(store_type, None)[:-1] + bytes([store_type + 1])

    def _iter_range(
        self, min_key: bytes, max_key: bytes, inclusive: bool, reverse: bool
    ) -> Iterable[tuple[bytes, bytes]]:
        return self._store.range(
            min_key, max_key, _range_type(inclusive, reverse), reverse=reverse
        )

    def _scan_generic(
        self,
        store_type: int,
        cursor: bytes | None,
        count: int,
        inclusive: bool,
        match: str | bytes | None,
        reverse: bool,
    ) -> list[bytes]:
        regex = _build_match(match)
        if reverse:
            min_key = self._encode_scan_key(store_type, None)
            max_key = self._encode_scan_max_key(store_type, cursor)
        else:
            min_key = self._encode_scan_key(store_type, cursor)
            max_key = self._encode_scan_max_key(store_type, None)
        count = _check_count(count)

        result: list[bytes] = []
        for encoded, _ in self._iter_range(min_key, max_key, inclusive, reverse):
            if len(result) >= count:
                break
            try:
                key = self._decode_scan_key(store_type, encoded)
            except LedisError:
                continue
            if regex is not None and not regex.search(key):
                continue
            result.append(key)
        return result

    def scan(
        self,
        data_type: DataType | int,
        cursor: bytes | None = None,
        count: int = DEFAULT_SCAN_COUNT,
        inclusive: bool = False,
        match: str | bytes | None = "",
    ) -> list[bytes]:
        """Keys of a type after the cursor; inclusive starts at the cursor itself."""
        return self._scan_generic(_store_type(data_type), cursor, count, inclusive, match, False)

    def rev_scan(
        self,
        data_type: DataType | int,
        cursor: bytes | None = None,
        count: int = DEFAULT_SCAN_COUNT,
        inclusive: bool = False,
        match: str | bytes | None = "",
    ) -> list[bytes]:
        """Keys of a type before the cursor, in descending order."""
        return self._scan_generic(_store_type(data_type), cursor, count, inclusive, match, True)

    # -- hash field scans -------------------------------------------------

    def _h_scan_max_key(self, key: bytes, cursor: bytes | None) -> bytes:
        if cursor:
            return self.h_encode_hash_key(key, cursor)
        encoded = self.h_encode_hash_key(key, None)
        return encoded[:-1] + bytes([encoded[-1] + 1])

    def _h_scan_pairs(
        self, key: bytes, cursor: bytes | None, inclusive: bool, reverse: bool
    ) -> Iterator[tuple[bytes, bytes]]:
        _check_key_size(key)
        if reverse:
            min_key = self.h_encode_hash_key(key, None)
            max_key = self._h_scan_max_key(key, cursor)
        else:
            min_key = self.h_encode_hash_key(key, cursor)
            max_key = self._h_scan_max_key(key, None)
        yield from self._iter_range(min_key, max_key, inclusive, reverse)

    def _h_scan_generic(
        self,
        key: bytes,
        cursor: bytes | None,
        count: int,
        inclusive: bool,
        match: str | bytes | None,
        reverse: bool,
    ) -> list[FVPair]:
        count = _check_count(count)
        regex = _build_match(match)
        result: list[FVPair] = []
        for encoded, value in self._h_scan_pairs(key, cursor, inclusive, reverse):
            if len(result) >= count:
                break
            _, field = self.h_decode_hash_key(encoded)
            if regex is not None and not regex.search(field):
                continue
            result.append(FVPair(field, value))
        return result

    def hscan(
        self,
        key: bytes,
        cursor: bytes | None = None,
        count: int = DEFAULT_SCAN_COUNT,
        inclusive: bool = False,
        match: str | bytes | None = "",
    ) -> list[FVPair]:
        """Fields of a hash after the cursor, with their values."""
        return self._h_scan_generic(key, cursor, count, inclusive, match, False)

    def hrev_scan(
        self,
        key: bytes,
        cursor: bytes | None = None,
        count: int = DEFAULT_SCAN_COUNT,
        inclusive: bool = False,
        match: str | bytes | None = "",
    ) -> list[FVPair]:
        """Fields of a hash before the cursor, in descending order."""
        return self._h_scan_generic(key, cursor, count, inclusive, match, True)