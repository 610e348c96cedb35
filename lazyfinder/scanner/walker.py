"""Native fallback backend: bounded-concurrency recursive directory walk.

Used when neither ``fd`` nor ``rg`` is enabled and installed. All roots share
one ``(path, depth)`` work queue; at most ``MAX_CONCURRENT_READS`` directory
reads run at once on a thread pool, and every finished read re-pumps the
queue. The session completes once the queue is empty and nothing is in
flight.
"""

from __future__ import annotations

import logging
import os
import stat
import threading
from collections import deque
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from .ignore import DEFAULT_EXCLUDES, ExcludeMatcher, IgnorePatternCache, matches_ignore_patterns
from .session import ScanSession
from .types import DiscoveredItem, ItemKind, ScanFunction, ScanOptions

logger = logging.getLogger(__name__)

MAX_CONCURRENT_READS = 16


class _DirectoryWalk:
    """State of one walk session; never shared between sessions."""

    def __init__(self, options: ScanOptions, roots: Sequence[Path], session: ScanSession) -> None:
        self.options = options
        self.session = session
        self.excludes = ExcludeMatcher.from_patterns((*DEFAULT_EXCLUDES, *options.excludes))
        self.ignore_cache = IgnorePatternCache()
        self._lock = threading.Lock()
        self._queue: deque[tuple[str, int]] = deque()
        if options.max_depth > 0:
            self._queue.extend((str(root), 0) for root in roots)
        self._active = 0
        self._visited_dirs: set[str] = set()
        self._emitted_files: set[str] = set()
        self._executor = ThreadPoolExecutor(
            max_workers=MAX_CONCURRENT_READS,
            thread_name_prefix="lazyfinder-walk",
        )

    def start(self) -> None:
        self.session.add_cancel_hook(self._shutdown)
        self._pump()

    def _shutdown(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)

    def _pump(self) -> None:
        batch: list[tuple[str, int]] = []
        with self._lock:
            if self.session.finished:
                return
            while self._active < MAX_CONCURRENT_READS and self._queue:
                batch.append(self._queue.popleft())
                self._active += 1
            done = self._active == 0 and not self._queue

        if done:
            self._shutdown()
            self.session.finish()
            return

        for index, (path, depth) in enumerate(batch):
            try:
                self._executor.submit(self._read_directory, path, depth)
            except RuntimeError:
                # Executor already shut down by cancel().
                with self._lock:
                    self._active -= len(batch) - index
                return

    def _read_directory(self, path: str, depth: int) -> None:
        try:
            self._expand(path, depth)
        except Exception:
            logger.debug("walk of %s failed", path, exc_info=True)
        finally:
            with self._lock:
                self._active -= 1
            self._pump()

    def _claim_directory(self, path: str) -> bool:
        """Return False when the real directory behind ``path`` was already expanded."""
        real = os.path.realpath(path)
        with self._lock:
            if real in self._visited_dirs:
                return False
            self._visited_dirs.add(real)
            return True

    def _claim_file(self, path: str) -> bool:
        real = os.path.realpath(path)
        with self._lock:
            if real in self._emitted_files:
                return False
            self._emitted_files.add(real)
            return True

    def _expand(self, path: str, depth: int) -> None:
        if self.session.finished or not self._claim_directory(path):
            return

        options = self.options
        ignore_patterns = self.ignore_cache.patterns_for(Path(path)) if options.respect_gitignore else ()
        expand_children = depth + 1 < options.max_depth
        children: list[tuple[str, int]] = []

        try:
            with os.scandir(path) as entries:
                for entry in entries:
                    if self.session.finished:
                        return
                    name = entry.name
                    if not options.hidden and name.startswith("."):
                        continue
                    if self.excludes.matches(name):
                        continue
                    if ignore_patterns and matches_ignore_patterns(name, ignore_patterns):
                        continue

                    kind = self._classify(entry)
                    if kind is None:
                        continue
                    if kind is ItemKind.DIRECTORY:
                        if expand_children:
                            children.append((entry.path, depth + 1))
                        continue
                    self._emit_file(entry.path, kind)
        except OSError as exc:
            logger.debug("skipping unreadable directory %s: %s", path, exc)

        if children:
            with self._lock:
                self._queue.extend(children)

    def _classify(self, entry: os.DirEntry) -> ItemKind | None:
        """Return FILE/DIRECTORY/SYMLINK for walkable entries, ``None`` to skip."""
        try:
            if entry.is_symlink():
                if not self.options.follow_symlinks:
                    return None
                target = os.stat(entry.path)
                if stat.S_ISDIR(target.st_mode):
                    return ItemKind.DIRECTORY
                if stat.S_ISREG(target.st_mode):
                    return ItemKind.SYMLINK
                return None
            if entry.is_dir(follow_symlinks=False):
                return ItemKind.DIRECTORY
            if entry.is_file(follow_symlinks=False):
                return ItemKind.FILE
        except OSError:
            return None
        return None

    def _emit_file(self, path: str, kind: ItemKind) -> None:
        # Followed links can reach one real file through several paths.
        if self.options.follow_symlinks and not self._claim_file(path):
            return
        self.session.emit(DiscoveredItem.for_path(Path(path), kind))


def build_walk_scanner(options: ScanOptions, roots: Sequence[Path]) -> ScanFunction:
    scan_roots = list(roots)

    def scan(on_item, on_done):
        session = ScanSession(on_item, on_done, len(scan_roots))
        _DirectoryWalk(options, scan_roots, session).start()
        return session.cancel

    return scan


__all__ = ["MAX_CONCURRENT_READS", "build_walk_scanner"]
