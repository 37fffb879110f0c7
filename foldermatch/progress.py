from __future__ import annotations

from threading import Lock
from typing import Callable, Dict, Optional

from .models import AnalysisPhase, AnalysisProgress

# Callback type aliases (kept local for loose coupling)
ProgressCallback = Callable[[AnalysisProgress], None]
LogCallback = Callable[[str], None]


def _emit(cb: Optional[Callable[..., None]], *args, **kwargs) -> None:
    if not cb:
        return
    try:
        cb(*args, **kwargs)
    except Exception:
        pass


def emit_log(log_cb: Optional[LogCallback], message: str) -> None:
    print(message)
    _emit(log_cb, message)


class ProgressReporter:
    """Forwards progress records to an optional sink.

    Safe to call from worker threads. ``current`` never goes backwards
    within a phase, so out-of-order reports from parallel workers are
    clamped to the highest value already sent.
    """

    def __init__(self, progress_cb: Optional[ProgressCallback] = None) -> None:
        self._cb = progress_cb
        self._lock = Lock()
        self._last: Dict[AnalysisPhase, int] = {}

    def report(
        self,
        phase: AnalysisPhase,
        current: int = 0,
        maximum: int = 0,
        message: str = "",
        indeterminate: bool = False,
    ) -> None:
        with self._lock:
            current = max(current, self._last.get(phase, 0))
            self._last[phase] = current
            _emit(self._cb, AnalysisProgress(phase, current, max(maximum, 0), message, indeterminate))

    def complete(self, message: str, current: int = 0, maximum: int = 0) -> None:
        self.report(AnalysisPhase.COMPLETE, current, maximum, message)
