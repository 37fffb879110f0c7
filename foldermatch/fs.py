"""Filesystem access used by the scanner, finder and project loader.

Every call may fail with the usual ``OSError`` family. Callers that need to
decide what to do with a failure go through :func:`attempt`, which turns the
exception into an explicit :class:`FsResult` carrying the classified
:class:`~foldermatch.models.ErrorKind`.
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import BinaryIO, Callable, Generic, List, Optional, Protocol, TypeVar

from .errors import AnalysisCancelled, classify_error
from .models import ErrorKind, FileMetadata
from .util import file_name, utc

T = TypeVar("T")


class FileSystem(Protocol):
    def exists_dir(self, path: str) -> bool: ...

    def list_dirs(self, path: str) -> List[str]: ...

    def list_files(self, path: str) -> List[str]: ...

    def stat(self, path: str) -> FileMetadata: ...

    def open_read(self, path: str) -> BinaryIO: ...


class LocalFileSystem:
    """Direct access to the local (or mounted network) filesystem."""

    def exists_dir(self, path: str) -> bool:
        return os.path.isdir(path)

    def list_dirs(self, path: str) -> List[str]:
        # symlinked directories are not followed to avoid cycles
        with os.scandir(path) as it:
            return sorted(e.path for e in it if e.is_dir(follow_symlinks=False))

    def list_files(self, path: str) -> List[str]:
        with os.scandir(path) as it:
            return sorted(e.path for e in it if e.is_file())

    def stat(self, path: str) -> FileMetadata:
        st = os.stat(path)
        return FileMetadata(file_name=file_name(path), size=st.st_size, last_write_time=utc(st.st_mtime))

    def open_read(self, path: str) -> BinaryIO:
        return open(path, "rb", buffering=1024 * 64)


@dataclass(frozen=True)
class FsResult(Generic[T]):
    value: Optional[T] = None
    error: Optional[BaseException] = None
    kind: Optional[ErrorKind] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def attempt(call: Callable[..., T], *args) -> FsResult[T]:
    """Run a filesystem call, returning failures instead of raising them.

    Cancellation is never captured.
    """
    try:
        return FsResult(value=call(*args))
    except AnalysisCancelled:
        raise
    except (OSError, MemoryError, ValueError) as e:
        return FsResult(error=e, kind=classify_error(e))
