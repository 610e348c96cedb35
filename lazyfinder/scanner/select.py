"""Backend selection: ``fd`` > ``rg`` > native walker, one per session."""

from __future__ import annotations

import logging
import shutil
import threading
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import TYPE_CHECKING

from .process import build_fd_scanner, build_rg_scanner
from .types import ScanFunction, ScanOptions
from .walker import build_walk_scanner

if TYPE_CHECKING:
    from ..git_status import StatusCache

logger = logging.getLogger(__name__)

BACKEND_FD = "fd"
BACKEND_RG = "rg"
BACKEND_WALK = "walk"
BACKENDS = (BACKEND_FD, BACKEND_RG, BACKEND_WALK)

# Debian/Ubuntu ship fd as ``fdfind``.
_EXECUTABLE_CANDIDATES: dict[str, tuple[str, ...]] = {
    BACKEND_FD: ("fd", "fdfind"),
    BACKEND_RG: ("rg",),
}

_EXECUTABLE_CACHE: dict[str, str | None] = {}
_EXECUTABLE_CACHE_LOCK = threading.Lock()


def clear_executable_cache() -> None:
    with _EXECUTABLE_CACHE_LOCK:
        _EXECUTABLE_CACHE.clear()


def find_executable(name: str) -> str | None:
    """Return the cached ``PATH`` lookup for ``name``."""
    with _EXECUTABLE_CACHE_LOCK:
        if name in _EXECUTABLE_CACHE:
            return _EXECUTABLE_CACHE[name]
    found = shutil.which(name)
    with _EXECUTABLE_CACHE_LOCK:
        _EXECUTABLE_CACHE[name] = found
    return found


def find_backend_executable(backend: str) -> str | None:
    for candidate in _EXECUTABLE_CANDIDATES.get(backend, ()):
        found = find_executable(candidate)
        if found is not None:
            return found
    return None


def select_backend(options: ScanOptions, force_backend: str | None = None) -> tuple[str, str | None]:
    """Return ``(backend_name, executable)`` for ``options``.

    ``force_backend`` bypasses the enable flags; an unavailable forced tool
    still degrades to the walker.
    """
    if force_backend is not None:
        if force_backend not in BACKENDS:
            raise ValueError(f"unknown scanner backend: {force_backend!r}")
        if force_backend == BACKEND_WALK:
            return BACKEND_WALK, None
        executable = find_backend_executable(force_backend)
        if executable is not None:
            return force_backend, executable
        logger.debug("%s requested but not installed; using walker", force_backend)
        return BACKEND_WALK, None

    if options.use_fd:
        executable = find_backend_executable(BACKEND_FD)
        if executable is not None:
            return BACKEND_FD, executable
    if options.use_rg:
        executable = find_backend_executable(BACKEND_RG)
        if executable is not None:
            return BACKEND_RG, executable
    return BACKEND_WALK, None


def backend_name(options: ScanOptions, force_backend: str | None = None) -> str:
    return select_backend(options, force_backend)[0]


def _preload_status(
    status_cache: StatusCache,
    roots: Sequence[Path],
    on_status_refresh: Callable[[], None] | None,
) -> None:
    def worker() -> None:
        for root in roots:
            try:
                status_cache.preload(root, on_status_refresh)
            except Exception:
                logger.debug("git status preload failed for %s", root, exc_info=True)

    threading.Thread(target=worker, name="lazyfinder-status-preload", daemon=True).start()


def build_scanner(
    options: ScanOptions | None,
    roots: Sequence[Path],
    *,
    status_cache: StatusCache | None = None,
    on_status_refresh: Callable[[], None] | None = None,
    force_backend: str | None = None,
) -> ScanFunction:
    """Return a scan function ``(on_item, on_done) -> cancel`` over ``roots``.

    When ``options.git_status`` is set and a ``status_cache`` is given, status
    preloading for every root starts in the background before this returns.
    """
    options = options if options is not None else ScanOptions()
    scan_roots = [Path(root) for root in roots]

    if options.git_status and status_cache is not None:
        _preload_status(status_cache, scan_roots, on_status_refresh)

    backend, executable = select_backend(options, force_backend)
    logger.debug("scanning %d root(s) with %s", len(scan_roots), backend)
    if backend == BACKEND_FD:
        return build_fd_scanner(options, scan_roots, executable=executable or "fd")
    if backend == BACKEND_RG:
        return build_rg_scanner(options, scan_roots, executable=executable or "rg")
    return build_walk_scanner(options, scan_roots)


__all__ = [
    "BACKEND_FD",
    "BACKEND_RG",
    "BACKEND_WALK",
    "BACKENDS",
    "clear_executable_cache",
    "find_executable",
    "find_backend_executable",
    "select_backend",
    "backend_name",
    "build_scanner",
]
