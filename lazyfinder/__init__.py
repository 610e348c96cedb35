"""Public package surface for lazyfinder.

Exports ``main`` for programmatic CLI invocation.
The scanner lives in ``lazyfinder.scanner`` and git status caching in
``lazyfinder.git_status``.
"""

from __future__ import annotations


def main(*args, **kwargs):
    """Lazily import CLI entrypoint to keep package imports lightweight."""
    from .cli import main as _main

    return _main(*args, **kwargs)

__all__ = ["main"]
