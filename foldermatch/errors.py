"""Exception types and the filesystem error classifier."""
from __future__ import annotations

import errno
from typing import Optional

from .models import ErrorKind, ResourceConstraintType

# Windows error codes surfaced through OSError.winerror
_WIN_SHARING_VIOLATION = 32
_WIN_LOCK_VIOLATION = 33
_WIN_DISK_FULL = 112
_WIN_FILENAME_EXCED_RANGE = 206
_WIN_BAD_NETPATH = 53
_WIN_NETNAME_DELETED = 64
_WIN_UNEXP_NET_ERR = 59
_WIN_TOO_MANY_OPEN_FILES = 4


def _errnos(*names: str) -> frozenset:
    return frozenset(getattr(errno, name) for name in names if hasattr(errno, name))


_LOCKED_ERRNOS = _errnos("EBUSY", "ETXTBSY", "EAGAIN", "EDEADLK")
_NETWORK_ERRNOS = _errnos(
    "ENETDOWN", "ENETUNREACH", "ENETRESET", "EHOSTUNREACH", "EHOSTDOWN",
    "ETIMEDOUT", "ECONNRESET", "ECONNABORTED", "ECONNREFUSED", "ESTALE",
)
_DISK_FULL_ERRNOS = _errnos("ENOSPC", "EDQUOT")
_HANDLE_ERRNOS = _errnos("EMFILE", "ENFILE")


class FolderMatchError(Exception):
    """Base class for errors raised by foldermatch."""


class AnalysisCancelled(FolderMatchError):
    """Cancellation was requested (by the caller or a timeout)."""


class AnalysisAborted(FolderMatchError):
    """The recovery policy decided the whole operation must stop."""

    def __init__(self, message: str, path: Optional[str] = None) -> None:
        super().__init__(message)
        self.path = path


class ProjectError(FolderMatchError):
    """A project file could not be saved or loaded."""


def resource_constraint(error: BaseException) -> Optional[ResourceConstraintType]:
    if isinstance(error, MemoryError):
        return ResourceConstraintType.MEMORY
    if not isinstance(error, OSError):
        return None
    winerror = getattr(error, "winerror", None)
    if error.errno in _DISK_FULL_ERRNOS or winerror == _WIN_DISK_FULL:
        return ResourceConstraintType.DISK_SPACE
    if error.errno in _HANDLE_ERRNOS or winerror == _WIN_TOO_MANY_OPEN_FILES:
        return ResourceConstraintType.FILE_HANDLES
    if error.errno == errno.ENOMEM:
        return ResourceConstraintType.MEMORY
    return None


def classify_error(error: BaseException) -> ErrorKind:
    if isinstance(error, AnalysisCancelled):
        return ErrorKind.CANCELLED
    if resource_constraint(error) is not None:
        return ErrorKind.RESOURCE_CONSTRAINED
    if isinstance(error, PermissionError):
        return ErrorKind.ACCESS_DENIED
    if isinstance(error, (FileNotFoundError, NotADirectoryError)):
        return ErrorKind.NOT_FOUND
    if not isinstance(error, OSError):
        return ErrorKind.UNKNOWN
    winerror = getattr(error, "winerror", None)
    if winerror in (_WIN_SHARING_VIOLATION, _WIN_LOCK_VIOLATION) or error.errno in _LOCKED_ERRNOS:
        return ErrorKind.LOCKED
    if winerror == _WIN_FILENAME_EXCED_RANGE or error.errno == errno.ENAMETOOLONG:
        return ErrorKind.PATH_TOO_LONG
    if winerror in (_WIN_BAD_NETPATH, _WIN_NETNAME_DELETED, _WIN_UNEXP_NET_ERR) or error.errno in _NETWORK_ERRNOS:
        return ErrorKind.NETWORK_UNREACHABLE
    return ErrorKind.UNKNOWN
