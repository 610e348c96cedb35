"""External-tool backends: one ``fd``/``rg`` process per root, streamed.

Each process writes newline-delimited paths relative to its root. A reader
thread per process turns those lines into absolute ``DiscoveredItem``
callbacks routed through the shared ``ScanSession``.
"""

from __future__ import annotations

import logging
import os
import subprocess
import threading
from collections.abc import Callable, Sequence
from pathlib import Path

from .session import ScanSession
from .types import DiscoveredItem, ItemKind, ScanFunction, ScanOptions

logger = logging.getLogger(__name__)

READ_CHUNK_SIZE = 64 * 1024


class LineBuffer:
    """Split a byte stream into lines across arbitrary chunk boundaries.

    Bytes are only decoded once a full line is assembled, so multi-byte
    UTF-8 sequences split across reads survive intact.
    """

    def __init__(self) -> None:
        self._pending = b""

    @staticmethod
    def _decode(raw: bytes) -> str:
        return raw.rstrip(b"\r").decode("utf-8", errors="surrogateescape")

    def feed(self, chunk: bytes) -> list[str]:
        """Return complete non-empty lines; keep the trailing partial line."""
        if not chunk:
            return []
        data = self._pending + chunk
        parts = data.split(b"\n")
        self._pending = parts.pop()
        lines: list[str] = []
        for raw in parts:
            line = self._decode(raw)
            if line:
                lines.append(line)
        return lines

    def flush(self) -> list[str]:
        """Return the unterminated remainder at end of stream, if any."""
        raw = self._pending
        self._pending = b""
        line = self._decode(raw)
        return [line] if line else []


def fd_args(options: ScanOptions) -> list[str]:
    args = ["--type", "f", "--color", "never"]
    if options.hidden:
        args.append("--hidden")
    if options.follow_symlinks:
        args.append("--follow")
    args.extend(["--max-depth", str(options.max_depth)])
    if not options.respect_gitignore:
        args.extend(["--no-ignore", "--no-ignore-vcs"])
    for pattern in options.excludes:
        args.extend(["--exclude", pattern])
    args.extend(options.extra_fd_args)
    args.append(".")
    return args


def rg_args(options: ScanOptions) -> list[str]:
    args = ["--files", "--color", "never"]
    if options.hidden:
        args.append("--hidden")
    if options.follow_symlinks:
        args.append("--follow")
    args.extend(["--max-depth", str(options.max_depth)])
    if not options.respect_gitignore:
        args.extend(["--no-ignore", "--no-ignore-vcs"])
    for pattern in options.excludes:
        args.extend(["--glob", f"!{pattern}"])
    args.extend(options.extra_rg_args)
    args.append(".")
    return args


def spawn_streaming(
    argv: Sequence[str],
    cwd: Path,
    on_line: Callable[[str], None],
    on_exit: Callable[[int | None], None],
) -> Callable[[], None]:
    """Run ``argv`` in ``cwd`` and stream stdout lines to ``on_line``.

    ``on_exit`` receives the exit status exactly once, or ``None`` when the
    process could not be started. The returned callable terminates the
    process and stops line delivery; calling it again is harmless.
    """
    try:
        proc = subprocess.Popen(
            list(argv),
            cwd=cwd,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.DEVNULL,
            bufsize=0,
        )
    except (OSError, ValueError) as exc:
        logger.debug("failed to spawn %s in %s: %s", argv[0], cwd, exc)
        on_exit(None)
        return lambda: None

    cancelled = threading.Event()

    def reader() -> None:
        buffer = LineBuffer()
        stdout = proc.stdout
        assert stdout is not None
        try:
            while not cancelled.is_set():
                chunk = stdout.read(READ_CHUNK_SIZE)
                if not chunk:
                    break
                for line in buffer.feed(chunk):
                    if cancelled.is_set():
                        break
                    on_line(line)
            if not cancelled.is_set():
                for line in buffer.flush():
                    on_line(line)
        except OSError:
            logger.debug("read from %s failed", argv[0], exc_info=True)
        finally:
            stdout.close()
            code = proc.wait()
            on_exit(code)

    def cancel() -> None:
        if cancelled.is_set():
            return
        cancelled.set()
        if proc.poll() is None:
            try:
                proc.terminate()
            except OSError:
                pass

    worker = threading.Thread(
        target=reader,
        name=f"lazyfinder-{Path(argv[0]).name}-reader",
        daemon=True,
    )
    worker.start()
    return cancel


def _absolute_line_path(root: Path, line: str) -> Path:
    return Path(os.path.normpath(os.path.join(root, line)))


def stream_roots(argv: Sequence[str], roots: Sequence[Path], session: ScanSession) -> None:
    """Run ``argv`` once per root, routing absolute paths through ``session``.

    Every root reports completion to the session whatever its exit status.
    """
    if not roots:
        session.finish()
        return

    def start_root(root: Path) -> None:
        def on_line(line: str) -> None:
            if session.finished:
                return
            session.emit(DiscoveredItem.for_path(_absolute_line_path(root, line), ItemKind.FILE))

        def on_exit(code: int | None) -> None:
            if code:
                logger.debug("%s exited with status %s in %s", argv[0], code, root)
            session.root_done()

        session.add_cancel_hook(spawn_streaming(argv, root, on_line, on_exit))

    for root in roots:
        if session.cancelled:
            break
        start_root(root)


def build_process_scanner(executable: str, args: Sequence[str], roots: Sequence[Path]) -> ScanFunction:
    """Return a scan function running ``executable args`` once per root."""
    argv = [executable, *args]
    scan_roots = list(roots)

    def scan(on_item, on_done):
        session = ScanSession(on_item, on_done, len(scan_roots))
        stream_roots(argv, scan_roots, session)
        return session.cancel

    return scan


def build_fd_scanner(options: ScanOptions, roots: Sequence[Path], executable: str = "fd") -> ScanFunction:
    return build_process_scanner(executable, fd_args(options), roots)


def build_rg_scanner(options: ScanOptions, roots: Sequence[Path], executable: str = "rg") -> ScanFunction:
    return build_process_scanner(executable, rg_args(options), roots)


__all__ = [
    "READ_CHUNK_SIZE",
    "LineBuffer",
    "fd_args",
    "rg_args",
    "spawn_streaming",
    "stream_roots",
    "build_process_scanner",
    "build_fd_scanner",
    "build_rg_scanner",
]
