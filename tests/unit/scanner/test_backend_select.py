"""Tests for scanner backend selection and status preloading."""

from __future__ import annotations

import tempfile
import threading
import unittest
from pathlib import Path
from unittest import mock

from lazyfinder.scanner import select
from lazyfinder.scanner.select import (
    BACKEND_FD,
    BACKEND_RG,
    BACKEND_WALK,
    backend_name,
    build_scanner,
    find_backend_executable,
    select_backend,
)
from lazyfinder.scanner.types import DiscoveredItem, ScanOptions


def _available(*names: str):
    table = {name: f"/usr/bin/{name}" for name in names}
    return lambda backend: table.get(backend)


class SelectBackendTests(unittest.TestCase):
    def test_prefers_fd_then_rg_then_walker(self) -> None:
        options = ScanOptions()
        with mock.patch.object(select, "find_backend_executable", side_effect=_available("fd", "rg")):
            self.assertEqual(select_backend(options), (BACKEND_FD, "/usr/bin/fd"))
        with mock.patch.object(select, "find_backend_executable", side_effect=_available("rg")):
            self.assertEqual(select_backend(options), (BACKEND_RG, "/usr/bin/rg"))
        with mock.patch.object(select, "find_backend_executable", side_effect=_available()):
            self.assertEqual(select_backend(options), (BACKEND_WALK, None))

    def test_disabled_tools_are_skipped_even_when_installed(self) -> None:
        with mock.patch.object(select, "find_backend_executable", side_effect=_available("fd", "rg")):
            self.assertEqual(backend_name(ScanOptions(use_fd=False)), BACKEND_RG)
            self.assertEqual(backend_name(ScanOptions(use_fd=False, use_rg=False)), BACKEND_WALK)

    def test_forced_backend_bypasses_flags_and_degrades_to_walker(self) -> None:
        options = ScanOptions(use_fd=False, use_rg=False)
        with mock.patch.object(select, "find_backend_executable", side_effect=_available("rg")):
            self.assertEqual(select_backend(options, force_backend=BACKEND_RG), (BACKEND_RG, "/usr/bin/rg"))
            self.assertEqual(select_backend(options, force_backend=BACKEND_FD), (BACKEND_WALK, None))
            self.assertEqual(select_backend(options, force_backend=BACKEND_WALK), (BACKEND_WALK, None))

    def test_unknown_forced_backend_raises(self) -> None:
        with self.assertRaises(ValueError):
            select_backend(ScanOptions(), force_backend="find")

    def test_fdfind_is_accepted_for_fd(self) -> None:
        lookups = {"fd": None, "fdfind": "/usr/bin/fdfind"}
        with mock.patch.object(select, "find_executable", side_effect=lookups.get):
            self.assertEqual(find_backend_executable(BACKEND_FD), "/usr/bin/fdfind")

    def test_unknown_backend_has_no_executable(self) -> None:
        self.assertIsNone(find_backend_executable(BACKEND_WALK))


class _SlowStatusCache:
    def __init__(self) -> None:
        self.release = threading.Event()
        self.preloaded: list[Path] = []
        self.started = threading.Event()

    def preload(self, root, on_complete=None) -> None:
        self.started.set()
        self.release.wait(timeout=10.0)
        self.preloaded.append(Path(root))
        if on_complete is not None:
            on_complete()


class BuildScannerTests(unittest.TestCase):
    def test_walker_scan_runs_through_build_scanner(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            (root / "a.txt").write_text("a", encoding="utf-8")
            items: list[DiscoveredItem] = []
            done = threading.Event()

            scan = build_scanner(ScanOptions(use_fd=False, use_rg=False), [root])
            scan(items.append, done.set)
            self.assertTrue(done.wait(timeout=10.0))

        self.assertEqual([item.path for item in items], [root / "a.txt"])

    def test_status_preload_runs_in_background(self) -> None:
        cache = _SlowStatusCache()
        refreshed = threading.Event()
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            options = ScanOptions(use_fd=False, use_rg=False, git_status=True)

            scan = build_scanner(options, [root], status_cache=cache, on_status_refresh=refreshed.set)
            self.assertTrue(callable(scan))
            self.assertTrue(cache.started.wait(timeout=5.0))
            self.assertEqual(cache.preloaded, [])

            cache.release.set()
            self.assertTrue(refreshed.wait(timeout=5.0))
        self.assertEqual(cache.preloaded, [root])

    def test_status_preload_is_skipped_without_git_status_option(self) -> None:
        cache = mock.Mock()
        with tempfile.TemporaryDirectory() as tmp:
            build_scanner(ScanOptions(use_fd=False, use_rg=False), [Path(tmp)], status_cache=cache)
        cache.preload.assert_not_called()

    def test_forced_walker_backend(self) -> None:
        with mock.patch.object(select, "build_walk_scanner", return_value="walk-scan") as build_walk:
            result = build_scanner(ScanOptions(), [Path("/tmp")], force_backend=BACKEND_WALK)
        self.assertEqual(result, "walk-scan")
        build_walk.assert_called_once()


if __name__ == "__main__":
    unittest.main()
