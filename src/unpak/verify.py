"""Checks whether local copies match the content hashes in the manifest."""

from __future__ import annotations

import hashlib
import logging
from pathlib import Path

from .manifest import DEFAULT_HASH_ALGORITHM

log = logging.getLogger("unpak/verify")

_CHUNK_SIZE = 1 << 20


def compute_digest(path: Path, algorithm: str = DEFAULT_HASH_ALGORITHM) -> str:
    """Compute the hex digest of a file using the given hashlib algorithm."""
    hasher = hashlib.new(algorithm)
    with open(path, "rb") as fp:
        while chunk := fp.read(_CHUNK_SIZE):
            hasher.update(chunk)
    return hasher.hexdigest()


def is_current(path: Path, expected_hash: str, algorithm: str = DEFAULT_HASH_ALGORITHM) -> bool:
    """
    Return whether the file at path has the expected content hash.

    A missing or unreadable file is not current. This function never
    raises: any failure to hash the file counts as "stale".
    """
    try:
        digest = compute_digest(path, algorithm)
    except (OSError, ValueError) as exc:
        log.debug("hashing %s... failure: %s", path, exc)
        return False
    return digest == expected_hash
