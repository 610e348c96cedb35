"""Repository metadata watches for git status invalidation.

Each watched repository gets one non-recursive watchdog watch on its git
directory. Only events touching ``HEAD`` or ``index`` (the files rewritten by
commit, stage and checkout) are forwarded; git replaces ``index`` through a
rename of ``index.lock``, so move destinations count too.
"""

from __future__ import annotations

import logging
import os
import threading
from collections.abc import Callable
from pathlib import Path

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .repo_root import REPO_MARKER

logger = logging.getLogger(__name__)

WATCHED_METADATA_FILES = frozenset({"HEAD", "index"})

OnChange = Callable[[], None]
OnRepoEvent = Callable[[Path, OnChange | None], None]


def resolve_git_dir(repo_root: Path) -> Path | None:
    """Return the git directory for ``repo_root``, following ``gitdir:`` files."""
    marker = repo_root / REPO_MARKER
    try:
        if marker.is_dir():
            return marker
        text = marker.read_text(encoding="utf-8", errors="replace").strip()
    except OSError:
        return None
    if not text.startswith("gitdir:"):
        return None
    git_dir = Path(text[len("gitdir:"):].strip())
    if not git_dir.is_absolute():
        git_dir = repo_root / git_dir
    git_dir = Path(os.path.normpath(git_dir))
    return git_dir if git_dir.is_dir() else None


def _event_names(event: FileSystemEvent) -> set[str]:
    names = {os.path.basename(os.fsdecode(event.src_path))}
    dest_path = getattr(event, "dest_path", "")
    if dest_path:
        names.add(os.path.basename(os.fsdecode(dest_path)))
    return names


class GitMetadataEventHandler(FileSystemEventHandler):
    """Forward HEAD/index changes of one repository."""

    def __init__(self, repo_root: Path, on_metadata_change: Callable[[Path], None]) -> None:
        super().__init__()
        self.repo_root = repo_root
        self._on_metadata_change = on_metadata_change

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory or event.event_type in ("opened", "closed_no_write"):
            return
        if _event_names(event) & WATCHED_METADATA_FILES:
            self._on_metadata_change(self.repo_root)


class RepoWatcher:
    """Idempotent per-repository watch registry backed by one observer thread."""

    def __init__(self, on_event: OnRepoEvent, observer_factory: Callable[[], object] = Observer) -> None:
        self._on_event = on_event
        self._observer_factory = observer_factory
        self._observer = None
        self._lock = threading.Lock()
        self._watches: dict[Path, object] = {}
        self._handlers: dict[Path, GitMetadataEventHandler] = {}
        self._callbacks: dict[Path, OnChange | None] = {}
        self._pending: set[Path] = set()

    def _ensure_observer(self):
        with self._lock:
            if self._observer is None:
                observer = self._observer_factory()
                observer.start()
                self._observer = observer
            return self._observer

    def is_watching(self, repo_root: Path) -> bool:
        with self._lock:
            return repo_root in self._watches

    def watched_roots(self) -> list[Path]:
        with self._lock:
            return list(self._watches)

    def handler_for(self, repo_root: Path) -> GitMetadataEventHandler | None:
        with self._lock:
            return self._handlers.get(repo_root)

    def watch(self, repo_root: Path, on_change: OnChange | None = None) -> bool:
        """Install the watch for ``repo_root``; returns False if already watched or impossible.

        Observer calls run with ``self._lock`` released; watchdog dispatches
        into ``_dispatch`` while holding its own lock.
        """
        with self._lock:
            if repo_root in self._watches or repo_root in self._pending:
                return False
            self._pending.add(repo_root)

        git_dir = resolve_git_dir(repo_root)
        if git_dir is None:
            logger.debug("no git directory to watch under %s", repo_root)
            with self._lock:
                self._pending.discard(repo_root)
            return False

        handler = GitMetadataEventHandler(repo_root, self._dispatch)
        try:
            observer = self._ensure_observer()
            watch = observer.schedule(handler, str(git_dir), recursive=False)
        except Exception as exc:
            logger.debug("failed to watch %s: %s", git_dir, exc)
            with self._lock:
                self._pending.discard(repo_root)
            return False

        with self._lock:
            # unwatch() or stop() ran while scheduling.
            installed = repo_root in self._pending and self._observer is observer
            self._pending.discard(repo_root)
            if installed:
                self._watches[repo_root] = watch
                self._handlers[repo_root] = handler
                self._callbacks[repo_root] = on_change
        if not installed:
            self._unschedule(observer, watch, repo_root)
        return installed

    def unwatch(self, repo_root: Path) -> bool:
        with self._lock:
            self._pending.discard(repo_root)
            watch = self._watches.pop(repo_root, None)
            self._handlers.pop(repo_root, None)
            self._callbacks.pop(repo_root, None)
            observer = self._observer
        if watch is None:
            return False
        if observer is not None:
            self._unschedule(observer, watch, repo_root)
        return True

    @staticmethod
    def _unschedule(observer, watch, repo_root: Path) -> None:
        try:
            observer.unschedule(watch)
        except Exception:
            logger.debug("failed to unschedule watch for %s", repo_root, exc_info=True)

    def unwatch_all(self) -> None:
        for repo_root in self.watched_roots():
            self.unwatch(repo_root)

    def stop(self) -> None:
        self.unwatch_all()
        with self._lock:
            self._pending.clear()
            observer = self._observer
            self._observer = None
        if observer is not None:
            observer.stop()
            observer.join(timeout=1.0)

    def _dispatch(self, repo_root: Path) -> None:
        with self._lock:
            if repo_root not in self._watches:
                return
            on_change = self._callbacks.get(repo_root)
        self._on_event(repo_root, on_change)


__all__ = [
    "WATCHED_METADATA_FILES",
    "resolve_git_dir",
    "GitMetadataEventHandler",
    "RepoWatcher",
]
