"""Scan-root validation.

Roots are expanded (``~``), made absolute, and kept only when they name an
existing directory. Duplicate roots collapse to the first occurrence.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable
from pathlib import Path

logger = logging.getLogger(__name__)


def validate_root(raw: str | os.PathLike[str]) -> Path | None:
    """Return the absolute directory for ``raw`` or ``None`` when invalid."""
    try:
        candidate = Path(os.path.abspath(os.path.expanduser(os.fspath(raw))))
    except (TypeError, ValueError):
        return None
    try:
        if not candidate.is_dir():
            return None
    except OSError:
        return None
    return candidate


def normalize_roots(
    raw_roots: Iterable[str | os.PathLike[str]] | str | os.PathLike[str] | None,
    default: Path | None = None,
) -> list[Path]:
    """Validate ``raw_roots`` and fall back to ``default`` (or cwd) when none survive."""
    if raw_roots is None:
        items: list[str | os.PathLike[str]] = []
    elif isinstance(raw_roots, (str, os.PathLike)):
        items = [raw_roots]
    else:
        items = list(raw_roots)

    roots: list[Path] = []
    seen: set[Path] = set()
    for raw in items:
        root = validate_root(raw)
        if root is None:
            logger.warning("Invalid root directory: %s", raw)
            continue
        if root in seen:
            continue
        seen.add(root)
        roots.append(root)

    if roots:
        return roots
    fallback = default if default is not None else Path.cwd()
    return [Path(os.path.abspath(fallback))]


__all__ = ["validate_root", "normalize_roots"]
