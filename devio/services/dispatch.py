"""
devio.services.dispatch — Fire-and-Forget Side Effects
=======================================================

Notifications, post-vote Aura awards and achievement rewards run *after*
the economy transaction that caused them has committed.  They are
best-effort: the ledger is the source of truth, so a failed side effect is
logged and dropped, never propagated back to the vote / accept / spend
that triggered it.

The dispatcher owns a small thread pool.  Tests construct it with
``inline=True`` so effects run synchronously (and still never raise).
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any

logger = logging.getLogger(__name__)


class SideEffectDispatcher:
    """Run callables in the background, logging and swallowing failures."""

    def __init__(self, max_workers: int = 4, *, inline: bool = False) -> None:
        self.max_workers = max_workers
        self.inline = inline
        self._executor: ThreadPoolExecutor | None = None
        self._closed = False
        self._lock = threading.Lock()

    def _get_executor(self) -> ThreadPoolExecutor | None:
        with self._lock:
            if self._closed:
                return None
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self.max_workers,
                    thread_name_prefix="devio-side-effect",
                )
            return self._executor

    @staticmethod
    def _run(label: str, func: Callable[..., Any], args: tuple, kwargs: dict) -> None:
        try:
            func(*args, **kwargs)
        except Exception:
            logger.exception("Side effect failed: %s", label)

    def submit(
        self, label: str, func: Callable[..., Any], *args: Any, **kwargs: Any
    ) -> Future | None:
        """Schedule ``func(*args, **kwargs)``; returns the future (``None`` inline)."""
        if self.inline:
            self._run(label, func, args, kwargs)
            return None
        executor = self._get_executor()
        if executor is None:
            logger.warning("Dispatcher is shut down; dropping side effect: %s", label)
            return None
        return executor.submit(self._run, label, func, args, kwargs)

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting work; with *wait*, drain queued effects first.

        Follow-ups queued by effects that are still running are dropped with
        a warning.
        """
        with self._lock:
            self._closed = True
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=wait)


# ---------------------------------------------------------------------------
# Process-wide instance
# ---------------------------------------------------------------------------
_dispatcher: SideEffectDispatcher | None = None
_dispatcher_lock = threading.Lock()


def get_dispatcher() -> SideEffectDispatcher:
    """Return the shared dispatcher, creating it on first use."""
    global _dispatcher
    with _dispatcher_lock:
        if _dispatcher is None:
            _dispatcher = SideEffectDispatcher()
        return _dispatcher


def configure_dispatcher(max_workers: int = 4, *, inline: bool = False) -> SideEffectDispatcher:
    """Replace the shared dispatcher (draining the previous one)."""
    global _dispatcher
    with _dispatcher_lock:
        previous, _dispatcher = _dispatcher, SideEffectDispatcher(max_workers, inline=inline)
        current = _dispatcher
    if previous is not None:
        previous.shutdown(wait=True)
    return current


def shutdown_dispatcher() -> None:
    """Drain and drop the shared dispatcher. Call on application shutdown."""
    global _dispatcher
    with _dispatcher_lock:
        previous, _dispatcher = _dispatcher, None
    if previous is not None:
        previous.shutdown(wait=True)
