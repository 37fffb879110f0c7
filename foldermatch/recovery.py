"""Error recovery policy for flaky file access.

The policy only *advises*. It classifies a failure, records it in the shared
:class:`~foldermatch.models.ErrorSummary` and returns a
:class:`~foldermatch.models.RecoveryAction`; the scanner and duplicate finder
decide what to do with it. None of the handlers raise.
"""
from __future__ import annotations

import gc
import os
import socket
import time
from datetime import datetime, timezone
from threading import Lock
from typing import Optional

from .config import RecoveryConfig
from .errors import classify_error, resource_constraint
from .models import ErrorKind, ErrorSummary, RecoveryAction, RecoveryActionType, ResourceConstraintType
from .progress import LogCallback, emit_log

SMB_PORT = 445
DRIVE_REMOTE = 4  # GetDriveTypeW


def _unc_server(path: str) -> Optional[str]:
    if not (path.startswith("\\\\") or path.startswith("//")):
        return None
    server = path[2:].replace("/", "\\").split("\\", 1)[0]
    return server or None


def _is_mapped_network_drive(path: str) -> bool:
    if os.name != "nt" or len(path) < 2 or path[1] != ":":
        return False
    import ctypes

    try:
        return ctypes.windll.kernel32.GetDriveTypeW(f"{path[0]}:\\") == DRIVE_REMOTE  # type: ignore[attr-defined]
    except (AttributeError, OSError):
        return False


def is_network_path(path: str) -> bool:
    return _unc_server(path) is not None or _is_mapped_network_drive(path)


class ErrorRecoveryPolicy:
    def __init__(self, cfg: Optional[RecoveryConfig] = None, log_cb: Optional[LogCallback] = None) -> None:
        self.cfg = cfg or RecoveryConfig()
        self.log_cb = log_cb
        self._summary = ErrorSummary()
        self._lock = Lock()

    def _record(self, message: str, counter: Optional[str] = None) -> None:
        with self._lock:
            if counter:
                setattr(self._summary, counter, getattr(self._summary, counter) + 1)
            self._summary.error_messages.append(message)
            self._summary.last_error_time = datetime.now(tz=timezone.utc)

    def advise(self, path: str, error: BaseException) -> RecoveryAction:
        """Route any filesystem failure to the matching handler."""
        constraint = resource_constraint(error)
        if constraint is not None:
            return self.handle_resource_constraint_error(constraint, error)
        return self.handle_file_access_error(path, error)

    def handle_file_access_error(self, path: str, error: BaseException) -> RecoveryAction:
        kind = classify_error(error)
        if kind is ErrorKind.ACCESS_DENIED:
            self._record(f"File access error: {path} - {error}", "permission_errors")
            return RecoveryAction(
                RecoveryActionType.RETRY_WITH_ELEVATION,
                f"Access denied to '{path}'",
                "Run with elevated privileges or check file/folder permissions. The item will be skipped for now.",
                should_retry=False,
            )
        self._record(f"File access error: {path} - {error}")
        if kind is ErrorKind.NOT_FOUND:
            return RecoveryAction(
                RecoveryActionType.SKIP,
                f"Not found: '{path}'",
                "The item may have been moved or deleted during analysis. Skipping it.",
            )
        if kind is ErrorKind.LOCKED:
            return RecoveryAction(
                RecoveryActionType.RETRY,
                f"File is locked or in use: '{path}'",
                "The file is being used by another application. Retry after a short delay.",
                should_retry=True,
                retry_delay=self.cfg.locked_retry_delay,
            )
        if kind is ErrorKind.PATH_TOO_LONG:
            return RecoveryAction(
                RecoveryActionType.SKIP,
                f"Path too long: '{path}'",
                "The path exceeds the platform length limit. Consider moving files to shorter paths.",
            )
        if isinstance(error, OSError) and (kind is ErrorKind.NETWORK_UNREACHABLE or is_network_path(path)):
            return self.handle_network_error(path, error)
        return RecoveryAction(
            RecoveryActionType.SKIP,
            f"File error: '{path}' - {error}",
            "An unexpected file system error occurred. The item will be skipped.",
        )

    def handle_network_error(self, path: str, error: BaseException) -> RecoveryAction:
        self._record(f"Network error: {path} - {error}", "network_errors")
        if is_network_path(path) and not self.is_network_path_reachable(path):
            return RecoveryAction(
                RecoveryActionType.PAUSE_AND_WAIT,
                f"Network path '{path}' is not reachable",
                "Check network connectivity and that the share is available.",
                should_retry=True,
                retry_delay=self.cfg.network_pause_delay,
            )
        return RecoveryAction(
            RecoveryActionType.RETRY,
            f"Network error accessing '{path}'",
            "The network connection may be temporarily unavailable.",
            should_retry=True,
            retry_delay=self.cfg.network_retry_delay,
        )

    def is_network_path_reachable(self, path: str) -> bool:
        server = _unc_server(path)
        if server is not None:
            try:
                with socket.create_connection((server, SMB_PORT), timeout=self.cfg.probe_timeout):
                    return True
            except OSError:
                return False
        return os.path.isdir(path)

    def handle_resource_constraint_error(self, kind: ResourceConstraintType, error: BaseException) -> RecoveryAction:
        self._record(f"Resource constraint ({kind.value}): {error}", "resource_errors")
        if kind is ResourceConstraintType.MEMORY:
            gc.collect()
            time.sleep(self.cfg.memory_settle_seconds)
            return RecoveryAction(
                RecoveryActionType.REDUCE_PARALLELISM,
                "System memory usage is high",
                "Reducing parallelism to conserve memory. Consider closing other applications.",
                should_retry=True,
                retry_delay=2.0,
            )
        if kind is ResourceConstraintType.DISK_SPACE:
            emit_log(self.log_cb, f"[RECOVERY] Insufficient disk space: {error}")
            return RecoveryAction(
                RecoveryActionType.ABORT,
                "Insufficient disk space",
                "Free up disk space and restart the analysis. The operation cannot continue.",
            )
        if kind is ResourceConstraintType.NETWORK_BANDWIDTH:
            return RecoveryAction(
                RecoveryActionType.PAUSE_AND_WAIT,
                "Network bandwidth constraint",
                "Pausing to let network congestion clear.",
                should_retry=True,
                retry_delay=self.cfg.bandwidth_pause_delay,
            )
        message = "Too many open file handles" if kind is ResourceConstraintType.FILE_HANDLES else "High CPU usage detected"
        return RecoveryAction(
            RecoveryActionType.REDUCE_PARALLELISM,
            message,
            "Reducing parallelism to limit concurrent work.",
            should_retry=True,
            retry_delay=1.0,
        )

    def log_skipped_item(self, path: str, reason: str) -> None:
        with self._lock:
            self._summary.skipped_files += 1
            self._summary.skipped_paths.append(path)
            self._summary.error_messages.append(f"Skipped: {path} - {reason}")
            self._summary.last_error_time = datetime.now(tz=timezone.utc)

    def get_summary(self) -> ErrorSummary:
        with self._lock:
            return self._summary.copy()

    def clear_summary(self) -> None:
        with self._lock:
            self._summary = ErrorSummary()
