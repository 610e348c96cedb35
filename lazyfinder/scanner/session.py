"""Shared cancellation scope and completion accounting for one scan."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable

from .types import DiscoveredItem, OnDone, OnItem

logger = logging.getLogger(__name__)


class ScanSession:
    """Fan-in point for every per-root sub-scan of one ``ScanFunction`` call.

    Item delivery and completion go through one reentrant lock, so once
    ``cancel()`` returns no further ``on_item`` call can start and
    ``on_done`` has fired at most once. Consumers may call ``cancel()`` from
    inside their own callbacks.
    """

    def __init__(self, on_item: OnItem, on_done: OnDone, root_count: int) -> None:
        self._on_item = on_item
        self._on_done = on_done
        self._lock = threading.RLock()
        self._remaining = root_count
        self._finished = False
        self._cancelled = False
        self._cancel_hooks: list[Callable[[], None]] = []

    @property
    def finished(self) -> bool:
        return self._finished

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def remaining(self) -> int:
        return self._remaining

    def emit(self, item: DiscoveredItem) -> bool:
        """Deliver ``item`` unless the session already finished."""
        with self._lock:
            if self._finished:
                return False
            try:
                self._on_item(item)
            except Exception:
                logger.exception("scan item callback failed for %s", item.path)
            return True

    def root_done(self) -> None:
        """Record completion of one root; the last one completes the session."""
        with self._lock:
            if self._finished:
                return
            self._remaining -= 1
            if self._remaining > 0:
                return
            self._finished = True
        self._fire_done()

    def finish(self) -> None:
        """Complete the whole session regardless of remaining roots."""
        with self._lock:
            if self._finished:
                return
            self._finished = True
        self._fire_done()

    def _fire_done(self) -> None:
        try:
            self._on_done()
        except Exception:
            logger.exception("scan completion callback failed")

    def add_cancel_hook(self, hook: Callable[[], None]) -> None:
        """Register teardown work; runs immediately when already cancelled."""
        with self._lock:
            if not self._cancelled:
                self._cancel_hooks.append(hook)
                return
        self._run_hook(hook)

    def cancel(self) -> None:
        """Stop delivery and tear down sub-scans. Repeated calls are no-ops."""
        with self._lock:
            if self._cancelled:
                return
            self._cancelled = True
            self._finished = True
            hooks = list(self._cancel_hooks)
            self._cancel_hooks.clear()
        for hook in hooks:
            self._run_hook(hook)

    @staticmethod
    def _run_hook(hook: Callable[[], None]) -> None:
        try:
            hook()
        except Exception:
            logger.debug("scan cancel hook failed", exc_info=True)


__all__ = ["ScanSession"]
