"""Data types, store type codes, limits and errors."""

from __future__ import annotations

from enum import IntEnum

VERSION = "0.5"

KV_NAME = "KV"
LIST_NAME = "LIST"
HASH_NAME = "HASH"
SET_NAME = "SET"
ZSET_NAME = "ZSET"

# Type codes of the backend store keys.
NONE_TYPE = 0
KV_TYPE = 1
HASH_TYPE = 2
HSIZE_TYPE = 3
LIST_TYPE = 4
LMETA_TYPE = 5
ZSET_TYPE = 6
ZSIZE_TYPE = 7
ZSCORE_TYPE = 8
SET_TYPE = 11
SSIZE_TYPE = 12

MAX_DATA_TYPE = 100

# Expiry keys of the old, broken layout; kept only to repair old stores.
OBSOLETE_EXP_TIME_TYPE = 101
EXP_META_TYPE = 102
EXP_TIME_TYPE = 103

META_TYPE = 201

_TYPE_NAMES = {
    KV_TYPE: "kv",
    HASH_TYPE: "hash",
    HSIZE_TYPE: "hsize",
    LIST_TYPE: "list",
    LMETA_TYPE: "lmeta",
    ZSET_TYPE: "zset",
    ZSIZE_TYPE: "zsize",
    ZSCORE_TYPE: "zscore",
    SET_TYPE: "set",
    SSIZE_TYPE: "ssize",
    EXP_TIME_TYPE: "exptime",
    EXP_META_TYPE: "expmeta",
}

DEFAULT_SCAN_COUNT = 10

MAX_DATABASES = 10240
MAX_KEY_SIZE = 1024
MAX_HASH_FIELD_SIZE = 1024
MAX_ZSET_MEMBER_SIZE = 1024
MAX_SET_MEMBER_SIZE = 1024
MAX_VALUE_SIZE = 1024 * 1024 * 1024

BIT_AND = "and"
BIT_OR = "or"
BIT_XOR = "xor"
BIT_NOT = "not"

ERR_KEY_SIZE = "invalid key size"
ERR_VALUE_SIZE = "invalid value size"
ERR_HASH_FIELD_SIZE = "invalid hash field size"
ERR_SET_MEMBER_SIZE = "invalid set member size"
ERR_ZSET_MEMBER_SIZE = "invalid zset member size"
ERR_EXPIRE_VALUE = "invalid expire value"
ERR_LIST_INDEX = "invalid list index"
ERR_SCORE_MISS = "zset score miss"
ERR_WRITE_IN_READONLY = "write not support in readonly mode"
ERR_RPL_IN_RDWR = "replication not support in read write mode"
ERR_RPL_NOT_SUPPORT = "replication not support"
ERR_DATA_TYPE = "error data type"


class LedisError(Exception):
    """Raised for invalid arguments and failed database operations."""


class ReadOnlyError(LedisError):
    """Raised when a write is attempted in read-only mode."""

    def __init__(self, message: str = ERR_WRITE_IN_READONLY) -> None:
        super().__init__(message)


class DataType(IntEnum):
    """The user-visible data types."""

    KV = 0
    LIST = 1
    HASH = 2
    SET = 3
    ZSET = 4

    def __str__(self) -> str:
        return _DATA_TYPE_NAMES[self]

    def store_type(self) -> int:
        """The store type code of the key that marks a value of this type."""
        return _STORE_TYPES[self]


_DATA_TYPE_NAMES = {
    DataType.KV: KV_NAME,
    DataType.LIST: LIST_NAME,
    DataType.HASH: HASH_NAME,
    DataType.SET: SET_NAME,
    DataType.ZSET: ZSET_NAME,
}

_STORE_TYPES = {
    DataType.KV: KV_TYPE,
    DataType.LIST: LMETA_TYPE,
    DataType.HASH: HSIZE_TYPE,
    DataType.SET: SSIZE_TYPE,
    DataType.ZSET: ZSIZE_TYPE,
}


def type_name(code: int) -> str:
    """The short name of a store type code, or an empty string if unknown."""
    return _TYPE_NAMES.get(code, "")