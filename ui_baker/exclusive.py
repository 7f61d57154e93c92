"""FIFO-fair exclusive section shared by the render session."""

from __future__ import annotations

import threading
from collections import deque
from collections.abc import Callable
from typing import Any, TypeVar

T = TypeVar("T")


class ExclusiveSection:
    """Single-owner mutual exclusion served in arrival order.

    Not reentrant: a thread that already holds the section and acquires it
    again blocks forever.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._held = False
        self._waiters: deque[object] = deque()

    @property
    def locked(self) -> bool:
        with self._cond:
            return self._held

    def acquire(self) -> Callable[[], None]:
        """Block until the section is ours; return the release callable."""
        with self._cond:
            if not self._held and not self._waiters:
                self._held = True
                return self._make_release()

            ticket = object()
            self._waiters.append(ticket)
            while self._held or self._waiters[0] is not ticket:
                self._cond.wait()
            self._waiters.popleft()
            self._held = True
            return self._make_release()

    def _make_release(self) -> Callable[[], None]:
        released = False

        def release() -> None:
            nonlocal released
            with self._cond:
                if released:
                    return
                released = True
                self._held = False
                self._cond.notify_all()

        return release

    def run_exclusive(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        release = self.acquire()
        try:
            return fn(*args, **kwargs)
        finally:
            release()

    def __enter__(self) -> ExclusiveSection:
        self._release = self.acquire()
        return self

    def __exit__(self, *exc: object) -> None:
        release = self._release
        del self._release
        release()


__all__ = ["ExclusiveSection"]
