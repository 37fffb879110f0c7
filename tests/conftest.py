from __future__ import annotations

import os
import threading
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

import pytest

from foldermatch.fs import LocalFileSystem
from foldermatch.models import AnalysisPhase, AnalysisProgress, FileMetadata
from foldermatch.util import file_name

Content = Union[bytes, str]


class CountingFileSystem(LocalFileSystem):
    """Local filesystem that counts calls and can fail on chosen names."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.calls: Dict[str, int] = {"list_dirs": 0, "list_files": 0, "stat": 0, "open_read": 0}
        self.fail_stat: Dict[str, BaseException] = {}
        self.fail_list_files: Dict[str, BaseException] = {}
        self.fail_open: Dict[str, BaseException] = {}

    def _count(self, name: str) -> None:
        with self._lock:
            self.calls[name] += 1

    def list_dirs(self, path: str) -> List[str]:
        self._count("list_dirs")
        return super().list_dirs(path)

    def list_files(self, path: str) -> List[str]:
        self._count("list_files")
        if file_name(path) in self.fail_list_files:
            raise self.fail_list_files[file_name(path)]
        return super().list_files(path)

    def stat(self, path: str) -> FileMetadata:
        self._count("stat")
        if file_name(path) in self.fail_stat:
            raise self.fail_stat[file_name(path)]
        return super().stat(path)

    def open_read(self, path: str):
        self._count("open_read")
        if file_name(path) in self.fail_open:
            raise self.fail_open[file_name(path)]
        return super().open_read(path)


class ProgressCollector:
    """Thread-safe progress sink that keeps every report."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.reports: List[AnalysisProgress] = []

    def __call__(self, progress: AnalysisProgress) -> None:
        with self._lock:
            self.reports.append(progress)

    def phases(self) -> List[AnalysisPhase]:
        with self._lock:
            return [r.phase for r in self.reports]

    @property
    def last(self) -> Optional[AnalysisProgress]:
        with self._lock:
            return self.reports[-1] if self.reports else None

    def is_monotonic(self) -> bool:
        seen: Dict[AnalysisPhase, int] = {}
        with self._lock:
            for r in self.reports:
                if r.current < seen.get(r.phase, 0):
                    return False
                seen[r.phase] = r.current
        return True


@pytest.fixture
def make_tree(tmp_path: Path) -> Callable[..., Path]:
    """Create files from ``{"rel/path.txt": content}``; returns the root.

    ``mtimes`` optionally maps the same relative paths to POSIX timestamps.
    """

    def _make(files: Dict[str, Content], root: str = "root", mtimes: Optional[Dict[str, float]] = None) -> Path:
        base = tmp_path / root
        base.mkdir(parents=True, exist_ok=True)
        for rel, content in files.items():
            target = base / rel
            if rel.endswith("/"):
                target.mkdir(parents=True, exist_ok=True)
                continue
            target.parent.mkdir(parents=True, exist_ok=True)
            data = content.encode("utf-8") if isinstance(content, str) else content
            target.write_bytes(data)
        for rel, ts in (mtimes or {}).items():
            os.utime(base / rel, (ts, ts))
        return base

    return _make


@pytest.fixture
def counting_fs() -> CountingFileSystem:
    return CountingFileSystem()


@pytest.fixture
def progress() -> ProgressCollector:
    return ProgressCollector()
