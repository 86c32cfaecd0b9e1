"""
Hasher - Fast content hashing using xxHash.

Uses xxHash (xxh64) instead of SHA256 for fast checksums. The shard
manifest carries one digest per shard plus one for the whole serialized
index so a reader can verify what it downloaded before deserializing.
"""

from typing import Iterable

import xxhash


def hash_bytes(data: bytes) -> str:
    """xxh64 hex digest of an in-memory buffer."""
    return xxhash.xxh64(data).hexdigest()


def hash_chunks(chunks: Iterable[bytes]) -> str:
    """xxh64 hex digest of a sequence of buffers, as if concatenated."""
    hasher = xxhash.xxh64()
    for chunk in chunks:
        hasher.update(chunk)
    return hasher.hexdigest()

