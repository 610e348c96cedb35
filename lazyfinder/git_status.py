"""Git status classification and the shared per-repository status cache.

One ``git status --porcelain=v1 --ignored=matching -z -unormal`` run per
repository fills a relative-path -> ``StatusKind`` map. Entries are replaced
wholesale and read without locking; stale entries keep being served while a
background refresh runs.
"""

from __future__ import annotations

import logging
import os
import subprocess
import threading
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from types import MappingProxyType

from .repo_root import RepoRootResolver
from .watch import OnChange, OnRepoEvent, RepoWatcher

logger = logging.getLogger(__name__)

STATUS_CACHE_TTL_SECONDS = 15 * 60
GIT_STATUS_TIMEOUT_SECONDS = 30.0
GIT_STATUS_ARGS = (
    "--no-pager",
    "--no-optional-locks",
    "status",
    "--porcelain=v1",
    "--ignored=matching",
    "-z",
    "-unormal",
)


class StatusKind(str, Enum):
    UNTRACKED = "untracked"
    IGNORED = "ignored"
    MODIFIED = "modified"
    STAGED = "staged"
    DELETED = "deleted"
    ADDED = "added"
    RENAMED = "renamed"
    COPIED = "copied"
    UNMERGED = "unmerged"
    UNKNOWN = "unknown"

    @property
    def priority(self) -> int:
        return STATUS_PRIORITY[self]


STATUS_PRIORITY: dict[StatusKind, int] = {
    StatusKind.UNMERGED: 30,
    StatusKind.STAGED: 25,
    StatusKind.DELETED: 20,
    StatusKind.MODIFIED: 15,
    StatusKind.ADDED: 10,
    StatusKind.RENAMED: 10,
    StatusKind.COPIED: 10,
    StatusKind.UNTRACKED: 5,
    StatusKind.IGNORED: 1,
    StatusKind.UNKNOWN: 0,
}

STATUS_CODES: dict[str, StatusKind] = {
    "??": StatusKind.UNTRACKED,
    "!!": StatusKind.IGNORED,
    " M": StatusKind.MODIFIED,
    "M ": StatusKind.STAGED,
    "MM": StatusKind.MODIFIED,
    " D": StatusKind.DELETED,
    "D ": StatusKind.STAGED,
    "A ": StatusKind.ADDED,
    "R ": StatusKind.RENAMED,
    "C ": StatusKind.COPIED,
    "UU": StatusKind.UNMERGED,
    "AA": StatusKind.UNMERGED,
    "DD": StatusKind.UNMERGED,
}


def status_kind_for_code(code: str) -> StatusKind:
    return STATUS_CODES.get(code, StatusKind.UNKNOWN)


def _iter_porcelain_records(output: str) -> list[tuple[str, str]]:
    records: list[tuple[str, str]] = []
    tokens = output.split("\0")
    index = 0
    while index < len(tokens):
        token = tokens[index]
        index += 1
        if len(token) < 4 or token[2] != " ":
            continue

        status = token[:2]
        path_text = token[3:]
        if " -> " in path_text and ("R" in status or "C" in status):
            path_text = path_text.split(" -> ", 1)[1]
        elif "R" in status or "C" in status:
            # In -z mode the source path follows as its own token.
            index += 1
        records.append((status, path_text))

    return records


def parse_porcelain(output: str) -> dict[str, StatusKind]:
    """Map repo-relative paths to the highest-priority kind among their records."""
    status_map: dict[str, StatusKind] = {}
    for code, rel_path in _iter_porcelain_records(output):
        rel_path = rel_path.rstrip("/")
        if not rel_path:
            continue
        kind = status_kind_for_code(code)
        existing = status_map.get(rel_path)
        if existing is None or kind.priority > existing.priority:
            status_map[rel_path] = kind
    return status_map


def run_git_status(repo_root: Path, timeout_seconds: float = GIT_STATUS_TIMEOUT_SECONDS) -> str | None:
    """Return raw porcelain output, or ``None`` if git is missing or fails."""
    try:
        proc = subprocess.run(
            ["git", *GIT_STATUS_ARGS],
            cwd=repo_root,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.DEVNULL,
            text=True,
            encoding="utf-8",
            errors="surrogateescape",
            check=False,
            timeout=timeout_seconds,
        )
    except Exception as exc:
        logger.debug("git status failed in %s: %s", repo_root, exc)
        return None
    if proc.returncode != 0:
        logger.debug("git status exited with %s in %s", proc.returncode, repo_root)
        return None
    return proc.stdout


@dataclass(frozen=True)
class RepoEntry:
    """Immutable status snapshot of one repository."""

    root: Path
    status_map: Mapping[str, StatusKind]
    captured_at: float
    ok: bool = True


class StatusCache:
    """Shared git status cache with an explicit lifecycle.

    ``get_status_sync`` only reads what is cached. ``preload`` fetches in the
    background when the repository has no fresh entry. Watches on the
    repository's ``HEAD``/``index`` invalidate and refetch immediately,
    bypassing the TTL.
    """

    def __init__(
        self,
        ttl_seconds: float = STATUS_CACHE_TTL_SECONDS,
        *,
        clock: Callable[[], float] = time.monotonic,
        run_status: Callable[[Path], str | None] = run_git_status,
        resolver: RepoRootResolver | None = None,
        watcher_factory: Callable[[OnRepoEvent], RepoWatcher] = RepoWatcher,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._run_status = run_status
        self._resolver = resolver if resolver is not None else RepoRootResolver()
        self._watcher = watcher_factory(self._on_repo_event)
        self._lock = threading.Lock()
        self._entries: dict[Path, RepoEntry] = {}
        self._epoch = 0
        self._generations: dict[Path, int] = {}
        self._refreshing: dict[Path, list[OnChange]] = {}
        self._closed = False

    def __enter__(self) -> StatusCache:
        return self

    def __exit__(self, *_exc_info) -> None:
        self.close()

    @property
    def watcher(self) -> RepoWatcher:
        return self._watcher

    def repo_root_for(self, path: Path) -> Path | None:
        return self._resolver.resolve(Path(path))

    def entry(self, repo_root: Path) -> RepoEntry | None:
        return self._entries.get(Path(repo_root))

    def is_stale(self, entry: RepoEntry) -> bool:
        return self._clock() - entry.captured_at >= self.ttl_seconds

    def is_refreshing(self, repo_root: Path) -> bool:
        with self._lock:
            return Path(repo_root) in self._refreshing

    def get_status_sync(self, path: Path) -> StatusKind | None:
        """Return the cached kind for ``path`` without blocking.

        ``None`` means outside any repository or clean. ``UNKNOWN`` means the
        repository has no usable cached status: never loaded, just
        invalidated, or the last git run failed.
        """
        target = Path(os.path.abspath(path))
        repo_root = self._resolver.resolve(target)
        if repo_root is None:
            return None
        entry = self._entries.get(repo_root)
        if entry is None:
            return StatusKind.UNKNOWN
        if self.is_stale(entry):
            self._refresh_in_background(repo_root, None)
        if not entry.ok:
            return StatusKind.UNKNOWN
        try:
            rel_path = target.relative_to(repo_root).as_posix()
        except ValueError:
            return None
        return entry.status_map.get(rel_path)

    def preload(self, root: Path, on_complete: OnChange | None = None) -> None:
        """Ensure a fresh entry for the repository containing ``root``.

        Installs the repository watch (idempotent). ``on_complete`` runs
        immediately when the entry is fresh, otherwise after the background
        fetch stores it. Paths outside any repository are ignored.
        """
        repo_root = self._resolver.resolve(Path(root))
        if repo_root is None or self._closed:
            return
        self._watcher.watch(repo_root, on_complete)

        entry = self._entries.get(repo_root)
        if entry is not None and not self.is_stale(entry):
            if on_complete is not None:
                self._run_callback(on_complete)
            return
        self._refresh_in_background(repo_root, on_complete)

    def refresh(self, repo_root: Path) -> RepoEntry | None:
        """Fetch and store status for ``repo_root`` synchronously.

        Returns ``None`` when an invalidation raced the fetch; the result is
        then discarded instead of overwriting the newer state.
        """
        repo_root = Path(repo_root)
        token = self._generation_token(repo_root)
        output = self._run_status(repo_root)
        status_map = parse_porcelain(output) if output is not None else {}
        entry = RepoEntry(
            root=repo_root,
            status_map=MappingProxyType(status_map),
            captured_at=self._clock(),
            ok=output is not None,
        )
        with self._lock:
            if self._closed or self._generation_token_locked(repo_root) != token:
                return None
            self._entries[repo_root] = entry
        return entry

    def invalidate(self, root: Path | None = None) -> None:
        """Drop the entry for ``root``'s repository, or every entry when ``None``."""
        if root is None:
            with self._lock:
                self._entries.clear()
                self._epoch += 1
            return

        key = Path(os.path.abspath(root))
        if key not in self._entries:
            key = self._resolver.resolve(key) or key
        with self._lock:
            self._entries.pop(key, None)
            self._generations[key] = self._generations.get(key, 0) + 1

    def watch(self, root: Path, on_change: OnChange | None = None) -> bool:
        repo_root = self._resolver.resolve(Path(root))
        if repo_root is None:
            return False
        return self._watcher.watch(repo_root, on_change)

    def unwatch(self, root: Path) -> bool:
        repo_root = self._resolver.resolve(Path(root)) or Path(os.path.abspath(root))
        return self._watcher.unwatch(repo_root)

    def close(self) -> None:
        with self._lock:
            self._closed = True
        self._watcher.stop()
        self.invalidate(None)
        self._resolver.clear()

    def _generation_token(self, repo_root: Path) -> tuple[int, int]:
        with self._lock:
            return self._generation_token_locked(repo_root)

    def _generation_token_locked(self, repo_root: Path) -> tuple[int, int]:
        return self._epoch, self._generations.get(repo_root, 0)

    def _on_repo_event(self, repo_root: Path, on_change: OnChange | None) -> None:
        self.invalidate(repo_root)
        if on_change is not None:
            self._run_callback(on_change)
        self._refresh_in_background(repo_root, on_change)

    def _refresh_in_background(self, repo_root: Path, on_complete: OnChange | None) -> None:
        with self._lock:
            if self._closed:
                return
            waiters = self._refreshing.get(repo_root)
            if waiters is not None:
                if on_complete is not None:
                    waiters.append(on_complete)
                return
            self._refreshing[repo_root] = [on_complete] if on_complete is not None else []

        worker = threading.Thread(
            target=self._refresh_worker,
            args=(repo_root,),
            name="lazyfinder-git-status",
            daemon=True,
        )
        worker.start()

    def _refresh_worker(self, repo_root: Path) -> None:
        try:
            while not self._closed:
                if self.refresh(repo_root) is not None:
                    break
        except Exception:
            logger.debug("git status refresh failed for %s", repo_root, exc_info=True)
        finally:
            with self._lock:
                waiters = self._refreshing.pop(repo_root, [])
        for callback in waiters:
            self._run_callback(callback)

    @staticmethod
    def _run_callback(callback: OnChange) -> None:
        try:
            callback()
        except Exception:
            logger.exception("git status callback failed")


__all__ = [
    "STATUS_CACHE_TTL_SECONDS",
    "GIT_STATUS_TIMEOUT_SECONDS",
    "GIT_STATUS_ARGS",
    "StatusKind",
    "STATUS_PRIORITY",
    "STATUS_CODES",
    "status_kind_for_code",
    "parse_porcelain",
    "run_git_status",
    "RepoEntry",
    "StatusCache",
]
