"""Persistent JSON config helpers.

Stores default scan options. Malformed or missing
config falls back to built-in defaults.
"""

from __future__ import annotations

import json
from dataclasses import replace
from pathlib import Path

from platformdirs import user_config_dir

from .scanner.types import ScanOptions

APP_NAME = "lazyfinder"
CONFIG_FILENAME = "config.json"
CONFIG_PATH = Path(user_config_dir(APP_NAME, appauthor=False)) / CONFIG_FILENAME

_BOOL_KEYS = ("hidden", "follow_symlinks", "respect_gitignore", "use_fd", "use_rg", "git_status")
_STR_LIST_KEYS = ("excludes", "extra_fd_args", "extra_rg_args")


def load_config(path: Path | None = None) -> dict[str, object]:
    """Load the persisted JSON config object.

    Returns an empty dict when the file is missing, unreadable, malformed, or
    does not decode to a top-level JSON object.
    """
    config_path = CONFIG_PATH if path is None else path
    try:
        data = json.loads(config_path.read_text(encoding="utf-8"))
    except Exception:
        return {}
    return data if isinstance(data, dict) else {}


def save_config(data: dict[str, object], path: Path | None = None) -> None:
    """Persist config data as pretty-printed JSON; write errors are ignored."""
    config_path = CONFIG_PATH if path is None else path
    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)
        config_path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
    except Exception:
        pass


def scan_options_from_config(data: dict[str, object], base: ScanOptions | None = None) -> ScanOptions:
    """Overlay recognized, well-typed keys from ``data`` onto ``base``.

    Unknown keys and values of the wrong type are ignored.
    """
    options = base if base is not None else ScanOptions()
    updates: dict[str, object] = {}
    for key in _BOOL_KEYS:
        value = data.get(key)
        if isinstance(value, bool):
            updates[key] = value
    for key in _STR_LIST_KEYS:
        value = data.get(key)
        if isinstance(value, list) and all(isinstance(item, str) for item in value):
            updates[key] = tuple(value)
    max_depth = data.get("max_depth")
    if isinstance(max_depth, int) and not isinstance(max_depth, bool) and max_depth > 0:
        updates["max_depth"] = max_depth
    return replace(options, **updates)


def load_scan_options(path: Path | None = None) -> ScanOptions:
    return scan_options_from_config(load_config(path))


__all__ = [
    "APP_NAME",
    "CONFIG_PATH",
    "load_config",
    "save_config",
    "scan_options_from_config",
    "load_scan_options",
]
