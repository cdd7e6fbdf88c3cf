"""Redis-like strings, hashes, scans, sorting and dump files over an ordered in-memory store."""

__version__ = "0.5.0"

__all__ = ["const", "storage", "kv", "hash", "sort", "scan", "dump"]