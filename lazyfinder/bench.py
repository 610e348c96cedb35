"""Backend benchmark: scan one directory with each backend and compare.

This is the only place that waits on a scan with a deadline; the scanner
itself never times out.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, replace
from pathlib import Path

from .scanner.select import BACKENDS, BACKEND_WALK, build_scanner, select_backend
from .scanner.types import ScanOptions

BENCH_TIMEOUT_SECONDS = 30.0


@dataclass(frozen=True)
class BenchResult:
    backend: str
    available: bool
    duration_ms: float = 0.0
    file_count: int = 0
    timed_out: bool = False

    @property
    def files_per_second(self) -> int:
        if self.duration_ms <= 0:
            return 0
        return int(self.file_count / (self.duration_ms / 1000.0))


def run_backend(
    backend: str,
    root: Path,
    options: ScanOptions,
    timeout_seconds: float = BENCH_TIMEOUT_SECONDS,
) -> BenchResult:
    """Time one backend over ``root``; unavailable tools are reported, not run."""
    if select_backend(options, force_backend=backend)[0] != backend:
        return BenchResult(backend=backend, available=False)

    count_lock = threading.Lock()
    file_count = 0
    done = threading.Event()

    def on_item(_item) -> None:
        nonlocal file_count
        with count_lock:
            file_count += 1

    scan = build_scanner(options, [root], force_backend=backend)
    started = time.perf_counter()
    cancel = scan(on_item, done.set)
    finished = done.wait(timeout_seconds)
    duration_ms = (time.perf_counter() - started) * 1000.0
    if not finished:
        cancel()
        return BenchResult(
            backend=backend,
            available=True,
            duration_ms=timeout_seconds * 1000.0,
            timed_out=True,
        )
    with count_lock:
        total = file_count
    return BenchResult(backend=backend, available=True, duration_ms=duration_ms, file_count=total)


def profile_backends(
    root: Path,
    options: ScanOptions | None = None,
    timeout_seconds: float = BENCH_TIMEOUT_SECONDS,
) -> list[BenchResult]:
    base = options if options is not None else ScanOptions()
    # Status preloading would only add noise to the timings.
    base = replace(base, git_status=False)
    return [run_backend(backend, root, base, timeout_seconds) for backend in BACKENDS]


def _sort_key(result: BenchResult) -> tuple[int, float, str]:
    if not result.available:
        return (2, 0.0, result.backend)
    if result.timed_out:
        return (1, 0.0, result.backend)
    return (0, result.duration_ms, result.backend)


def format_bench_results(root: Path, results: list[BenchResult]) -> str:
    lines = ["=== Scanner Benchmark ===", f"Path: {root}", ""]
    for result in sorted(results, key=_sort_key):
        if not result.available:
            lines.append(f"{result.backend:>5}: not available")
        elif result.timed_out:
            lines.append(f"{result.backend:>5}: timed out after {result.duration_ms / 1000.0:.0f}s")
        else:
            lines.append(
                f"{result.backend:>5}: {result.duration_ms:8.1f} ms  "
                f"{result.file_count:>8} files  {result.files_per_second:>10} files/s"
            )
    fastest = next((r for r in sorted(results, key=_sort_key) if r.available and not r.timed_out), None)
    if fastest is not None and fastest.backend != BACKEND_WALK:
        lines.extend(["", f"Fastest: {fastest.backend}"])
    elif fastest is not None:
        lines.extend(["", "Fastest: walk (install fd or ripgrep for faster scans)"])
    return "\n".join(lines)


__all__ = [
    "BENCH_TIMEOUT_SECONDS",
    "BenchResult",
    "run_backend",
    "profile_backends",
    "format_bench_results",
]
