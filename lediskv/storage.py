"""An ordered in-memory key-value store with write batches."""

from __future__ import annotations

import itertools
import threading
from enum import Enum
from typing import Callable, ContextManager, Iterable

from sortedcontainers import SortedDict

from .const import ReadOnlyError


class RangeType(Enum):
    """Which ends of a key range are included."""

    CLOSE = 0x00
    LOPEN = 0x01
    ROPEN = 0x10
    OPEN = 0x11

    @property
    def inclusive(self) -> tuple[bool, bool]:
        return (not self.value & 0x01, not self.value & 0x10)


class Store:
    """A thread-safe map of byte keys to byte values, kept in key order."""

    def __init__(self, items: Iterable[tuple[bytes, bytes]] | None = None) -> None:
        self._data: SortedDict = SortedDict()
        self._lock = threading.RLock()
        for key, value in items or ():
            self._data[bytes(key)] = bytes(value)

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)

    def get(self, key: bytes) -> bytes | None:
        with self._lock:
            return self._data.get(bytes(key))

    def put(self, key: bytes, value: bytes) -> None:
        with self._lock:
            self._data[bytes(key)] = bytes(value)

    def delete(self, key: bytes) -> None:
        with self._lock:
            self._data.pop(bytes(key), None)

    def items(self) -> list[tuple[bytes, bytes]]:
        """All pairs in key order."""
        with self._lock:
            return list(self._data.items())

    def range(
        self,
        min_key: bytes | None = None,
        max_key: bytes | None = None,
        range_type: RangeType = RangeType.CLOSE,
        offset: int = 0,
        count: int = -1,
        reverse: bool = False,
    ) -> list[tuple[bytes, bytes]]:
        """Pairs between two keys; None means unbounded, a negative count no limit."""
        low = None if min_key is None else bytes(min_key)
        high = None if max_key is None else bytes(max_key)
        start = max(offset, 0)
        stop = None if count < 0 else start + count
        with self._lock:
            keys = self._data.irange(low, high, inclusive=range_type.inclusive, reverse=reverse)
            return [(key, self._data[key]) for key in itertools.islice(keys, start, stop)]

    def snapshot(self) -> Store:
        """A frozen copy of the current contents."""
        copy = Store()
        with self._lock:
            copy._data = self._data.copy()
        return copy

    def write_batch(self) -> WriteBatch:
        return WriteBatch(self)

    def _apply(self, ops: list[tuple[bytes, bytes | None]]) -> None:
        with self._lock:
            for key, value in ops:
                if value is None:
                    self._data.pop(key, None)
                else:
                    self._data[key] = value


class WriteBatch:
    """Puts and deletes that reach the store together on commit."""

    def __init__(self, store: Store) -> None:
        self._store = store
        self._ops: list[tuple[bytes, bytes | None]] = []

    def __len__(self) -> int:
        return len(self._ops)

    def put(self, key: bytes, value: bytes) -> None:
        self._ops.append((bytes(key), bytes(value)))

    def delete(self, key: bytes) -> None:
        self._ops.append((bytes(key), None))

    def commit(self) -> None:
        ops, self._ops = self._ops, []
        self._store._apply(ops)

    def rollback(self) -> None:
        self._ops.clear()


class Batch:
    """A locked write batch that refuses to commit in read-only mode.

    Used as a context manager: entering takes the lock, leaving discards
    anything not committed and releases it.
    """

    def __init__(
        self,
        write_batch: WriteBatch,
        *,
        lock: ContextManager | None = None,
        readonly: Callable[[], bool] | None = None,
        commit_lock: ContextManager | None = None,
    ) -> None:
        self._write_batch = write_batch
        self._lock = lock if lock is not None else threading.Lock()
        self._readonly = readonly if readonly is not None else (lambda: False)
        self._commit_lock = commit_lock if commit_lock is not None else threading.Lock()

    def __enter__(self) -> Batch:
        self._lock.__enter__()
        return self

    def __exit__(self, *exc_info) -> bool:
        try:
            self._write_batch.rollback()
        finally:
            self._lock.__exit__(None, None, None)
        return False

    def put(self, key: bytes, value: bytes) -> None:
        self._write_batch.put(key, value)

    def delete(self, key: bytes) -> None:
        self._write_batch.delete(key)

    def commit(self) -> None:
        if self._readonly():
            raise ReadOnlyError()
        with self._commit_lock:
            self._write_batch.commit()