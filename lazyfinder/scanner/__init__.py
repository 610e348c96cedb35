"""Multi-backend file discovery.

This package contains the streaming scanner stack:
- option/item datatypes and the ``ScanFunction`` callback contract
- per-session cancellation and completion accounting
- ``fd``/``rg`` process streaming and the native fallback walker
- backend selection via ``build_scanner``
"""

from __future__ import annotations

from .types import DiscoveredItem, ItemKind, ItemStat, ScanFunction, ScanOptions
from .session import ScanSession
from .process import LineBuffer, fd_args, rg_args, spawn_streaming, stream_roots
from .walker import MAX_CONCURRENT_READS, build_walk_scanner
from .select import (
    BACKEND_FD,
    BACKEND_RG,
    BACKEND_WALK,
    backend_name,
    build_scanner,
    clear_executable_cache,
    select_backend,
)

__all__ = [
    "DiscoveredItem",
    "ItemKind",
    "ItemStat",
    "ScanFunction",
    "ScanOptions",
    "ScanSession",
    "LineBuffer",
    "fd_args",
    "rg_args",
    "spawn_streaming",
    "stream_roots",
    "MAX_CONCURRENT_READS",
    "build_walk_scanner",
    "BACKEND_FD",
    "BACKEND_RG",
    "BACKEND_WALK",
    "backend_name",
    "build_scanner",
    "clear_executable_cache",
    "select_backend",
]
