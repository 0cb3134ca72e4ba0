"""Computes the minimal set of volumes covering the required directories."""

from __future__ import annotations

from collections.abc import Iterable

from .index import DirectoryTree


def select_required_volumes(tree: DirectoryTree, prefixes: Iterable[str]) -> list[int]:
    """
    Return the sorted indices of the volumes containing at least one
    file whose logical path starts with one of the given prefixes.

    An empty set of prefixes selects no volumes.
    """
    wanted = tuple(prefixes)
    if not wanted:
        return []
    required: set[int] = set()
    for path, volume_index in tree.entries.items():
        if volume_index in required:
            continue
        if path.startswith(wanted):
            required.add(volume_index)
    return sorted(required)
