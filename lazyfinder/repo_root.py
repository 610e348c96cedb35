"""Repository-root discovery with a short-lived path cache.

Walks upward from a path looking for a ``.git`` entry (directory, or file for
worktrees/submodules). Results, including "not in a repo", are cached briefly
so badge lookups for many sibling files do not re-probe the filesystem.
"""

from __future__ import annotations

import os
import threading
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

REPO_MARKER = ".git"
REPO_ROOT_CACHE_MAX = 256
REPO_ROOT_CACHE_TTL_SECONDS = 5.0


@dataclass(frozen=True)
class _RootCacheEntry:
    """Cached resolution result plus insertion timestamp."""

    root: Path | None
    loaded_at: float


def find_repo_root(path: Path) -> Path | None:
    """Return the closest ancestor of ``path`` containing ``.git``, uncached."""
    current = Path(os.path.abspath(path))
    try:
        if not current.is_dir():
            current = current.parent
    except OSError:
        current = current.parent
    while True:
        if os.path.lexists(current / REPO_MARKER):
            return current
        parent = current.parent
        if parent == current:
            return None
        current = parent


class RepoRootResolver:
    """Bounded TTL cache in front of ``find_repo_root``."""

    def __init__(
        self,
        ttl_seconds: float = REPO_ROOT_CACHE_TTL_SECONDS,
        max_entries: int = REPO_ROOT_CACHE_MAX,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._lock = threading.Lock()
        self._cache: OrderedDict[str, _RootCacheEntry] = OrderedDict()

    def resolve(self, path: Path) -> Path | None:
        key = os.path.abspath(path)
        now = self._clock()
        with self._lock:
            cached = self._cache.get(key)
            if cached is not None and now - cached.loaded_at <= self.ttl_seconds:
                self._cache.move_to_end(key)
                return cached.root

        root = find_repo_root(Path(key))
        with self._lock:
            self._cache[key] = _RootCacheEntry(root=root, loaded_at=now)
            self._cache.move_to_end(key)
            while len(self._cache) > self.max_entries:
                self._cache.popitem(last=False)
        return root

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()


__all__ = [
    "REPO_MARKER",
    "REPO_ROOT_CACHE_MAX",
    "REPO_ROOT_CACHE_TTL_SECONDS",
    "find_repo_root",
    "RepoRootResolver",
]
