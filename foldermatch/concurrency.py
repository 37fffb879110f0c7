"""Cooperative cancellation and bounded worker budgets."""
from __future__ import annotations

import os
import threading
import time
from typing import Iterable, Optional

from .errors import AnalysisCancelled


def default_worker_count() -> int:
    return max(1, (os.cpu_count() or 1) - 1)


class CancellationToken:
    """Thread-safe cancellation flag with optional parents and deadline.

    A token is cancelled when :meth:`cancel` was called on it, when any of its
    parents is cancelled, or once its deadline has passed. Linked tokens never
    cancel their parents.
    """

    def __init__(self, parents: Iterable["CancellationToken"] = (), timeout: Optional[float] = None) -> None:
        self._event = threading.Event()
        self._parents = tuple(parents)
        self._deadline = time.monotonic() + timeout if timeout is not None else None
        self.reason = ""

    @classmethod
    def linked(cls, *parents: Optional["CancellationToken"], timeout: Optional[float] = None) -> "CancellationToken":
        return cls([p for p in parents if p is not None], timeout=timeout)

    def cancel(self, reason: str = "Operation cancelled") -> None:
        self.reason = reason
        self._event.set()

    @property
    def timed_out(self) -> bool:
        return self._deadline is not None and time.monotonic() >= self._deadline

    @property
    def is_cancelled(self) -> bool:
        if self._event.is_set() or self.timed_out:
            return True
        return any(parent.is_cancelled for parent in self._parents)

    def raise_if_cancelled(self) -> None:
        if not self.is_cancelled:
            return
        if self._event.is_set():
            raise AnalysisCancelled(self.reason or "Operation cancelled")
        if self.timed_out:
            raise AnalysisCancelled("Operation timed out")
        for parent in self._parents:
            parent.raise_if_cancelled()


def check_cancelled(token: Optional[CancellationToken]) -> None:
    if token is not None:
        token.raise_if_cancelled()


class WorkerBudget:
    """Counting semaphore whose limit can only shrink (never below one)."""

    def __init__(self, limit: int) -> None:
        self._limit = max(1, int(limit))
        self._active = 0
        self._cond = threading.Condition()

    @property
    def limit(self) -> int:
        with self._cond:
            return self._limit

    def acquire(self, token: Optional[CancellationToken] = None) -> None:
        with self._cond:
            while self._active >= self._limit:
                check_cancelled(token)
                self._cond.wait(timeout=0.1)
            check_cancelled(token)
            self._active += 1

    def release(self) -> None:
        with self._cond:
            self._active = max(0, self._active - 1)
            self._cond.notify()

    def reduce(self) -> int:
        with self._cond:
            self._limit = max(1, self._limit - 1)
            return self._limit
