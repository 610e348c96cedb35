"""Tests for the native bounded-concurrency directory walker."""

from __future__ import annotations

import os
import tempfile
import threading
import unittest
from pathlib import Path

from lazyfinder.scanner.types import DiscoveredItem, ItemKind, ScanOptions
from lazyfinder.scanner.walker import build_walk_scanner


def _write(path: Path, text: str = "x") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def _walk(options: ScanOptions, roots: list[Path], timeout: float = 10.0) -> tuple[list[DiscoveredItem], int]:
    items: list[DiscoveredItem] = []
    done_calls: list[int] = []
    done = threading.Event()
    lock = threading.Lock()

    def on_item(item: DiscoveredItem) -> None:
        with lock:
            items.append(item)

    def on_done() -> None:
        done_calls.append(1)
        done.set()

    build_walk_scanner(options, roots)(on_item, on_done)
    if not done.wait(timeout=timeout):
        raise AssertionError("walk did not complete")
    return items, len(done_calls)


def _relative(items: list[DiscoveredItem], root: Path) -> set[str]:
    return {item.path.relative_to(root).as_posix() for item in items}


class WalkerTests(unittest.TestCase):
    def test_hidden_entries_are_skipped_unless_requested(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            _write(root / "a.txt")
            _write(root / ".hidden")
            _write(root / "sub" / "b.txt")
            _write(root / ".config" / "c.txt")

            items, done_calls = _walk(ScanOptions(), [root])
            self.assertEqual(_relative(items, root), {"a.txt", "sub/b.txt"})
            self.assertEqual(done_calls, 1)

            items, _ = _walk(ScanOptions(hidden=True), [root])
            self.assertEqual(_relative(items, root), {"a.txt", ".hidden", "sub/b.txt", ".config/c.txt"})

    def test_items_are_absolute_files_with_basename(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            _write(root / "sub" / "b.txt")

            items, _ = _walk(ScanOptions(), [root])

        self.assertEqual(len(items), 1)
        self.assertTrue(items[0].path.is_absolute())
        self.assertEqual(items[0].name, "b.txt")
        self.assertIs(items[0].kind, ItemKind.FILE)

    def test_max_depth_counts_root_files_as_depth_one(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            current = root
            for level in range(5):
                _write(current / f"f{level}")
                current = current / f"d{level + 1}"

            items, _ = _walk(ScanOptions(max_depth=2), [root])
            self.assertEqual(_relative(items, root), {"f0", "d1/f1"})

            items, _ = _walk(ScanOptions(max_depth=1), [root])
            self.assertEqual(_relative(items, root), {"f0"})

            items, done_calls = _walk(ScanOptions(max_depth=0), [root])
            self.assertEqual(items, [])
            self.assertEqual(done_calls, 1)

    def test_default_and_custom_excludes_prune_subtrees(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            _write(root / "keep.txt")
            _write(root / "node_modules" / "dep.js")
            _write(root / "__pycache__" / "mod.pyc")
            _write(root / "build" / "out.bin")
            _write(root / "notes.log")
            _write(root / "my-file.txt")

            items, _ = _walk(ScanOptions(excludes=("build", "*.log")), [root])

        self.assertEqual(_relative(items, root), {"keep.txt", "my-file.txt"})

    def test_gitignore_lines_are_honored_per_directory(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            _write(root / ".gitignore", "dist/\n*.tmp\n!keep.tmp\n")
            _write(root / "src" / "main.c")
            _write(root / "dist" / "bundle.js")
            _write(root / "scratch.tmp")
            _write(root / "keep.tmp")

            items, _ = _walk(ScanOptions(), [root])
            self.assertEqual(_relative(items, root), {"src/main.c"})

            items, _ = _walk(ScanOptions(respect_gitignore=False), [root])
            self.assertEqual(
                _relative(items, root),
                {"src/main.c", "dist/bundle.js", "scratch.tmp", "keep.tmp"},
            )

    def test_symlinks_are_skipped_when_not_following(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            _write(root / "real" / "a.txt")
            os.symlink(root / "real", root / "linked_dir")
            os.symlink(root / "real" / "a.txt", root / "linked_file.txt")

            items, _ = _walk(ScanOptions(), [root])

        self.assertEqual(_relative(items, root), {"real/a.txt"})

    def test_symlink_loop_terminates_and_emits_each_file_once(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            _write(root / "a" / "file.txt")
            _write(root / "top.txt")
            os.symlink(root, root / "a" / "loop")
            os.symlink(root / "top.txt", root / "alias.txt")

            items, done_calls = _walk(ScanOptions(follow_symlinks=True), [root])

        real_paths = [os.path.realpath(item.path) for item in items]
        self.assertEqual(len(real_paths), len(set(real_paths)))
        self.assertEqual({os.path.basename(path) for path in real_paths}, {"file.txt", "top.txt"})
        self.assertEqual(done_calls, 1)

    def test_followed_file_link_is_reported_as_symlink(self) -> None:
        with tempfile.TemporaryDirectory() as tmp_target, tempfile.TemporaryDirectory() as tmp_root:
            target = _write(Path(tmp_target).resolve() / "outside.txt")
            root = Path(tmp_root).resolve()
            os.symlink(target, root / "link.txt")

            items, _ = _walk(ScanOptions(follow_symlinks=True), [root])

        self.assertEqual([item.kind for item in items], [ItemKind.SYMLINK])
        self.assertEqual(items[0].path, root / "link.txt")

    @unittest.skipIf(hasattr(os, "geteuid") and os.geteuid() == 0, "root can read any directory")
    def test_unreadable_directory_is_skipped(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            _write(root / "ok.txt")
            locked = root / "locked"
            _write(locked / "secret.txt")
            locked.chmod(0)
            try:
                items, done_calls = _walk(ScanOptions(), [root])
            finally:
                locked.chmod(0o755)

        self.assertEqual(_relative(items, root), {"ok.txt"})
        self.assertEqual(done_calls, 1)

    def test_missing_root_completes_without_items(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            items, done_calls = _walk(ScanOptions(), [Path(tmp) / "missing"])
        self.assertEqual(items, [])
        self.assertEqual(done_calls, 1)

    def test_zero_roots_completes_immediately(self) -> None:
        items, done_calls = _walk(ScanOptions(), [])
        self.assertEqual(items, [])
        self.assertEqual(done_calls, 1)

    def test_multiple_roots_share_one_completion(self) -> None:
        with tempfile.TemporaryDirectory() as tmp_a, tempfile.TemporaryDirectory() as tmp_b:
            root_a = Path(tmp_a).resolve()
            root_b = Path(tmp_b).resolve()
            _write(root_a / "one.txt")
            _write(root_b / "nested" / "two.txt")

            items, done_calls = _walk(ScanOptions(), [root_a, root_b])

        self.assertEqual({item.path for item in items}, {root_a / "one.txt", root_b / "nested" / "two.txt"})
        self.assertEqual(done_calls, 1)

    def test_wide_tree_is_fully_walked(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            expected = set()
            for index in range(40):
                _write(root / f"dir{index:02d}" / "inner" / f"file{index}.txt")
                expected.add(f"dir{index:02d}/inner/file{index}.txt")

            items, done_calls = _walk(ScanOptions(), [root])

        self.assertEqual(_relative(items, root), expected)
        self.assertEqual(done_calls, 1)

    def test_cancel_from_item_callback_stops_walk(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            for index in range(30):
                _write(root / f"dir{index:02d}" / f"file{index}.txt")

            items: list[DiscoveredItem] = []
            done = threading.Event()
            first = threading.Event()
            cancel_holder: list = []
            ready = threading.Event()

            def on_item(item: DiscoveredItem) -> None:
                items.append(item)
                ready.wait(timeout=5.0)
                cancel_holder[0]()
                first.set()

            cancel_holder.append(build_walk_scanner(ScanOptions(), [root])(on_item, done.set))
            ready.set()
            self.assertTrue(first.wait(timeout=10.0))
            self.assertFalse(done.wait(timeout=0.5))

        self.assertEqual(len(items), 1)


if __name__ == "__main__":
    unittest.main()
