"""Name filters used by the fallback walker.

Two deliberately small matchers live here:

- exclude patterns: plain names match exactly, patterns containing regex/glob
  characters are matched against the basename;
- ``.gitignore`` lines: exact-name matching, or substring matching of the
  literal part for lines containing ``*``, per directory, with no negation
  or anchoring support. External tools handle real ignore rules.
"""

from __future__ import annotations

import fnmatch
import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from pathlib import Path

DEFAULT_EXCLUDES = (".git", "node_modules", ".venv", "__pycache__", ".DS_Store")
IGNORE_FILE_NAME = ".gitignore"

# ``.`` and ``-`` are left out: they are common in plain file names.
_PATTERN_CHARS = frozenset("*?[]^$()+{}|\\")


def has_pattern_chars(pattern: str) -> bool:
    return any(char in _PATTERN_CHARS for char in pattern)


def _compile_name_pattern(pattern: str) -> Callable[[str], bool]:
    """Return a basename predicate; regex first, glob when not a valid regex."""
    try:
        regex = re.compile(pattern)
    except re.error:
        return lambda name: fnmatch.fnmatchcase(name, pattern)
    return lambda name: regex.search(name) is not None


@dataclass(frozen=True)
class ExcludeMatcher:
    exact_names: frozenset[str]
    predicates: tuple[Callable[[str], bool], ...]

    @classmethod
    def from_patterns(cls, patterns: Iterable[str]) -> ExcludeMatcher:
        exact: set[str] = set()
        predicates: list[Callable[[str], bool]] = []
        for pattern in patterns:
            if not pattern:
                continue
            if has_pattern_chars(pattern):
                predicates.append(_compile_name_pattern(pattern))
            else:
                exact.add(pattern)
        return cls(exact_names=frozenset(exact), predicates=tuple(predicates))

    def matches(self, name: str) -> bool:
        if name in self.exact_names:
            return True
        return any(predicate(name) for predicate in self.predicates)


def parse_ignore_lines(text: str) -> tuple[str, ...]:
    """Reduce ignore-file text to simple name patterns.

    Comments, blank lines and negations are dropped; leading/trailing
    slashes are stripped since matching only looks at basenames.
    """
    patterns: list[str] = []
    for raw in text.splitlines():
        line = raw.strip()
        if not line or line.startswith("#") or line.startswith("!"):
            continue
        line = line.strip("/")
        if line:
            patterns.append(line)
    return tuple(patterns)


def load_ignore_patterns(directory: Path) -> tuple[str, ...]:
    """Return patterns from ``directory/.gitignore`` or ``()`` when unreadable."""
    try:
        text = (directory / IGNORE_FILE_NAME).read_text(encoding="utf-8", errors="replace")
    except OSError:
        return ()
    return parse_ignore_lines(text)


def matches_ignore_patterns(name: str, patterns: Iterable[str]) -> bool:
    """Exact match for plain lines; wildcard lines match their literal part as a substring."""
    for pattern in patterns:
        if name == pattern:
            return True
        if "*" not in pattern:
            continue
        literal = pattern.replace("*", "")
        if literal and literal in name:
            return True
    return False


class IgnorePatternCache:
    """Per-walk memo of ``.gitignore`` patterns keyed by directory."""

    def __init__(self) -> None:
        self._patterns: dict[str, tuple[str, ...]] = {}

    def patterns_for(self, directory: Path) -> tuple[str, ...]:
        key = str(directory)
        cached = self._patterns.get(key)
        if cached is None:
            cached = load_ignore_patterns(directory)
            self._patterns[key] = cached
        return cached

    def clear(self) -> None:
        self._patterns.clear()


__all__ = [
    "DEFAULT_EXCLUDES",
    "IGNORE_FILE_NAME",
    "has_pattern_chars",
    "ExcludeMatcher",
    "parse_ignore_lines",
    "load_ignore_patterns",
    "matches_ignore_patterns",
    "IgnorePatternCache",
]
