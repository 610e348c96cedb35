"""Datatypes shared by every scanner backend."""

from __future__ import annotations

import os
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

DEFAULT_MAX_DEPTH = 32


class ItemKind(str, Enum):
    FILE = "file"
    DIRECTORY = "directory"
    SYMLINK = "symlink"


@dataclass(frozen=True)
class ScanOptions:
    """Per-scan discovery options.

    ``use_fd``/``use_rg`` only enable a tool; it is still skipped when the
    executable cannot be found on ``PATH``.
    """

    hidden: bool = False
    follow_symlinks: bool = False
    respect_gitignore: bool = True
    use_fd: bool = True
    use_rg: bool = True
    excludes: tuple[str, ...] = ()
    max_depth: int = DEFAULT_MAX_DEPTH
    git_status: bool = False
    extra_fd_args: tuple[str, ...] = ()
    extra_rg_args: tuple[str, ...] = ()


@dataclass(frozen=True)
class ItemStat:
    size: int
    mtime: float
    mode: int


@dataclass(frozen=True)
class DiscoveredItem:
    """One discovered filesystem entry with an absolute ``path``."""

    path: Path
    name: str
    kind: ItemKind = ItemKind.FILE

    @classmethod
    def for_path(cls, path: Path, kind: ItemKind = ItemKind.FILE) -> DiscoveredItem:
        return cls(path=path, name=path.name, kind=kind)

    def stat(self) -> ItemStat | None:
        """Return size/mtime/mode for the item, or ``None`` when it vanished."""
        try:
            st = os.stat(self.path)
        except OSError:
            return None
        return ItemStat(size=int(st.st_size), mtime=float(st.st_mtime), mode=int(st.st_mode))


OnItem = Callable[[DiscoveredItem], None]
OnDone = Callable[[], None]
CancelFn = Callable[[], None]
ScanFunction = Callable[[OnItem, OnDone], CancelFn]


__all__ = [
    "DEFAULT_MAX_DEPTH",
    "ItemKind",
    "ScanOptions",
    "ItemStat",
    "DiscoveredItem",
    "OnItem",
    "OnDone",
    "CancelFn",
    "ScanFunction",
]
