"""Sorting of collections, optionally by values looked up through patterns."""

from __future__ import annotations

from .const import LedisError

_HASH_PATTERN = b"*->"


def _sort_range(length: int, offset: int, size: int) -> tuple[int, int]:
    start = offset if offset > 0 else 0
    end = length - 1
    if size > 0:
        end = start + size - 1
    if start >= length:
        start = length - 1
        end = length - 2
    if end >= length:
        end = length - 1
    return start, end


def _parse_score(raw: bytes) -> float | None:
    try:
        text = raw.decode("ascii")
    except UnicodeDecodeError:
        return None
    if not text or text != text.strip() or "_" in text:
        return None
    try:
        return float(text)
    except ValueError:
        return None


class SortMixin:
    """The SORT family of a database; needs ``get`` and ``hget``."""

    def lookup_key_by_pattern(self, pattern: bytes, sub_key: bytes) -> bytes | None:
        """Substitute sub_key for '*' in pattern and read that key or hash field."""
        if pattern == b"#":
            return sub_key
        if b"*" not in pattern:
            return None

        key = pattern
        field = None
        n = pattern.find(_HASH_PATTERN)
        if n > 0 and n + 3 < len(pattern):
            key = pattern[: n + 1]
            field = pattern[n + 3 :]

        key = key.replace(b"*", sub_key, 1)
        try:
            if field is None:
                return self.get(key)
            return self.hget(key, field)
        except LedisError:
            return None

    def xsort(
        self,
        values: list[bytes],
        offset: int,
        size: int,
        alpha: bool,
        desc: bool,
        sort_by: bytes | None,
        sort_get: list[bytes] | None,
    ) -> list[bytes | None]:
        """Sort values numerically or by bytes, then slice and project them."""
        if not values:
            return []

        start, end = _sort_range(len(values), offset, size)
        dont_sort = sort_by is not None and b"*" not in sort_by

        items: list[tuple[bytes, bytes | None, float]] = []
        for value in values:
            cmp_value = None
            score = 0.0
            if not dont_sort:
                looked_up = value if sort_by is None else self.lookup_key_by_pattern(sort_by, value)
                if looked_up is not None:
                    if alpha:
                        if sort_by is not None:
                            cmp_value = looked_up
                    else:
                        parsed = _parse_score(looked_up)
                        if parsed is None:
                            text = looked_up.decode("utf-8", errors="replace")
                            raise LedisError(f"{text} scores can't be converted into double")
                        score = parsed
            items.append((value, cmp_value, score))

        if not dont_sort:
            if not alpha:
                sort_key = lambda item: (item[2], item[0])
            elif sort_by is not None:
                sort_key = lambda item: (0, b"") if item[1] is None else (1, item[1])
            else:
                sort_key = lambda item: item[0]
            items.sort(key=sort_key, reverse=desc)

        selected = items[start : end + 1] if end >= start else []
        if not sort_get:
            return [value for value, _, _ in selected]
        return [
            self.lookup_key_by_pattern(pattern, value)
            for value, _, _ in selected
            for pattern in sort_get
        ]