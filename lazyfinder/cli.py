"""Command-line front door for lazyfinder.

Parses CLI options, validates scan roots, and streams discovered files to
stdout. Also hosts the ``--health`` and ``--bench`` reports.
"""

from __future__ import annotations

import argparse
import logging
import sys
import threading
from dataclasses import replace
from pathlib import Path

from .bench import BENCH_TIMEOUT_SECONDS, format_bench_results, profile_backends
from .config import load_scan_options
from .git_status import StatusCache, StatusKind
from .health import LEVEL_WARN, check_tools, format_health
from .roots import normalize_roots, validate_root
from .scanner import DiscoveredItem, ScanOptions, backend_name, build_scanner

STATUS_BADGES: dict[StatusKind, str] = {
    StatusKind.UNMERGED: "U",
    StatusKind.STAGED: "S",
    StatusKind.DELETED: "D",
    StatusKind.MODIFIED: "M",
    StatusKind.ADDED: "A",
    StatusKind.RENAMED: "R",
    StatusKind.COPIED: "C",
    StatusKind.UNTRACKED: "?",
    StatusKind.IGNORED: "!",
}


def _positive_int(value: str) -> int:
    """argparse type for positive integer values."""
    try:
        parsed = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid integer value: {value!r}") from exc
    if parsed <= 0:
        raise argparse.ArgumentTypeError("value must be >= 1")
    return parsed


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lazyfinder",
        description="List files under one or more directories using fd, ripgrep, or a built-in walker.",
    )
    parser.add_argument("roots", nargs="*", help="Directories to scan. Defaults to the current directory.")
    parser.add_argument("--hidden", action="store_true", default=None, help="Include hidden files.")
    parser.add_argument("--follow", action="store_true", default=None, help="Follow symbolic links.")
    parser.add_argument("--no-ignore", action="store_true", help="Do not respect .gitignore files.")
    parser.add_argument("--no-fd", action="store_true", help="Never use fd.")
    parser.add_argument("--no-rg", action="store_true", help="Never use ripgrep.")
    parser.add_argument(
        "--exclude",
        action="append",
        default=[],
        metavar="PATTERN",
        help="Exclude entries by name or pattern (repeatable).",
    )
    parser.add_argument("--max-depth", type=_positive_int, default=None, help="Maximum directory depth.")
    parser.add_argument("--git-status", action="store_true", default=None, help="Append git status badges.")
    parser.add_argument("--limit", type=_positive_int, default=None, help="Stop after N files.")
    parser.add_argument("--sort", action="store_true", help="Sort output after the scan completes.")
    parser.add_argument("--health", action="store_true", help="Report available tools and exit.")
    parser.add_argument("--bench", action="store_true", help="Benchmark every backend on the first root and exit.")
    parser.add_argument(
        "--bench-timeout",
        type=_positive_int,
        default=int(BENCH_TIMEOUT_SECONDS),
        help="Per-backend benchmark timeout in seconds.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log debug details to stderr.")
    return parser


def scan_options_from_args(args: argparse.Namespace, base: ScanOptions | None = None) -> ScanOptions:
    """Overlay explicit CLI flags onto configured defaults."""
    options = base if base is not None else ScanOptions()
    updates: dict[str, object] = {}
    if args.hidden:
        updates["hidden"] = True
    if args.follow:
        updates["follow_symlinks"] = True
    if args.no_ignore:
        updates["respect_gitignore"] = False
    if args.no_fd:
        updates["use_fd"] = False
    if args.no_rg:
        updates["use_rg"] = False
    if args.exclude:
        updates["excludes"] = (*options.excludes, *args.exclude)
    if args.max_depth is not None:
        updates["max_depth"] = args.max_depth
    if args.git_status:
        updates["git_status"] = True
    return replace(options, **updates)


def format_item(item: DiscoveredItem, status_cache: StatusCache | None) -> str:
    if status_cache is None:
        return str(item.path)
    kind = status_cache.get_status_sync(item.path)
    badge = STATUS_BADGES.get(kind) if kind is not None else None
    if badge is None:
        return str(item.path)
    return f"{item.path} [{badge}]"


def _warm_status(status_cache: StatusCache, roots: list[Path]) -> None:
    """Load status for every root's repository before output starts."""
    for root in roots:
        repo_root = status_cache.repo_root_for(root)
        if repo_root is not None and status_cache.entry(repo_root) is None:
            status_cache.refresh(repo_root)


def run_scan(
    roots: list[Path],
    options: ScanOptions,
    *,
    limit: int | None = None,
    sort_output: bool = False,
    out=None,
) -> int:
    """Stream matching files to ``out``; returns the number printed."""
    out = sys.stdout if out is None else out
    status_cache = StatusCache() if options.git_status else None
    collected: list[DiscoveredItem] = []
    lock = threading.Lock()
    done = threading.Event()
    printed = 0

    def on_item(item: DiscoveredItem) -> None:
        nonlocal printed
        with lock:
            if limit is not None and printed >= limit:
                done.set()
                return
            printed += 1
            if sort_output:
                collected.append(item)
            else:
                out.write(format_item(item, status_cache) + "\n")
            if limit is not None and printed >= limit:
                done.set()

    try:
        if status_cache is not None:
            _warm_status(status_cache, roots)
        # Status is already warm; a one-shot scan needs no repository watches.
        scan = build_scanner(options, roots)
        cancel = scan(on_item, done.set)
        try:
            while not done.wait(0.1):
                pass
        except KeyboardInterrupt:
            cancel()
            raise
        cancel()
        if sort_output:
            for item in sorted(collected, key=lambda entry: str(entry.path)):
                out.write(format_item(item, status_cache) + "\n")
        out.flush()
    finally:
        if status_cache is not None:
            status_cache.close()
    return printed


def main(argv: list[str] | None = None) -> None:
    """Parse CLI arguments and scan the requested roots."""
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s - %(levelname)s - %(message)s",
        datefmt="%H:%M:%S",
    )

    options = scan_options_from_args(args, load_scan_options())

    if args.health:
        checks = check_tools(options)
        sys.stdout.write(format_health(checks) + "\n")
        sys.stdout.write(f"selected backend: {backend_name(options)}\n")
        if any(check.level == LEVEL_WARN for check in checks):
            raise SystemExit(1)
        return

    if args.bench:
        target = Path(args.roots[0]) if args.roots else Path.cwd()
        bench_root = validate_root(target)
        if bench_root is None:
            raise SystemExit(f"Path is not a directory: {target}")
        results = profile_backends(bench_root, options, timeout_seconds=float(args.bench_timeout))
        sys.stdout.write(format_bench_results(bench_root, results) + "\n")
        return

    roots = normalize_roots(args.roots or None)
    try:
        run_scan(roots, options, limit=args.limit, sort_output=args.sort)
    except KeyboardInterrupt:
        raise SystemExit(130)


if __name__ == "__main__":
    main()
