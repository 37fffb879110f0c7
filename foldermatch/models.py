"""Value types shared by the scanner, duplicate finder, aggregator and project store."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from .util import as_utc, folder_key, parent_dir


class AnalysisPhase(Enum):
    IDLE = "idle"
    COUNTING_FOLDERS = "counting_folders"
    SCANNING_FOLDERS = "scanning_folders"
    BUILDING_FILE_INDEX = "building_file_index"
    COMPARING_FILES = "comparing_files"
    AGGREGATING_RESULTS = "aggregating_results"
    COMPLETE = "complete"


class RecoveryActionType(Enum):
    SKIP = "skip"
    RETRY = "retry"
    RETRY_WITH_ELEVATION = "retry_with_elevation"
    REDUCE_PARALLELISM = "reduce_parallelism"
    PAUSE_AND_WAIT = "pause_and_wait"
    ABORT = "abort"


class ResourceConstraintType(Enum):
    MEMORY = "memory"
    DISK_SPACE = "disk_space"
    FILE_HANDLES = "file_handles"
    NETWORK_BANDWIDTH = "network_bandwidth"
    CPU_USAGE = "cpu_usage"


class ErrorKind(Enum):
    ACCESS_DENIED = "access_denied"
    NOT_FOUND = "not_found"
    LOCKED = "locked"
    PATH_TOO_LONG = "path_too_long"
    NETWORK_UNREACHABLE = "network_unreachable"
    RESOURCE_CONSTRAINED = "resource_constrained"
    CANCELLED = "cancelled"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class FileMetadata:
    file_name: str
    size: int
    last_write_time: datetime


@dataclass(frozen=True)
class FolderInfo:
    files: List[str] = field(default_factory=list)
    total_size: int = 0
    latest_modification_date: Optional[datetime] = None

    @property
    def file_count(self) -> int:
        return len(self.files)


@dataclass(frozen=True)
class FileMatch:
    """Two content-identical files living in different folders."""

    path_a: str
    path_b: str

    @classmethod
    def create(cls, first: str, second: str) -> "FileMatch":
        """Build a match whose folder order is canonical.

        The folder of ``path_a`` always sorts before the folder of ``path_b``
        (compared by normalised key), so aggregating on
        ``(dir(path_a), dir(path_b))`` never splits one folder pair in two.
        """
        key_first = (folder_key(parent_dir(first)), folder_key(first))
        key_second = (folder_key(parent_dir(second)), folder_key(second))
        if key_second < key_first:
            first, second = second, first
        return cls(first, second)

    @property
    def folder_a(self) -> str:
        return parent_dir(self.path_a)

    @property
    def folder_b(self) -> str:
        return parent_dir(self.path_b)


def jaccard_similarity(duplicate_count: int, left_count: int, right_count: int) -> float:
    """Percentage of shared files over the union of both folders' files."""
    union = left_count + right_count - duplicate_count
    if union <= 0:
        return 0.0
    value = duplicate_count / float(union) * 100.0
    return max(0.0, min(100.0, value))


@dataclass(frozen=True)
class FolderMatch:
    left_folder: str
    right_folder: str
    duplicate_files: List[FileMatch]
    total_left_files: int
    total_right_files: int
    folder_size_bytes: int = 0
    latest_modification_date: Optional[datetime] = None

    @property
    def similarity_percentage(self) -> float:
        return jaccard_similarity(len(self.duplicate_files), self.total_left_files, self.total_right_files)


@dataclass(frozen=True)
class FilterCriteria:
    min_similarity_percent: float = 50.0
    min_size_bytes: int = 1024 * 1024
    min_date: Optional[datetime] = None
    max_date: Optional[datetime] = None

    def matches(self, match: FolderMatch) -> bool:
        if match.similarity_percentage < self.min_similarity_percent:
            return False
        if match.folder_size_bytes < self.min_size_bytes:
            return False
        when = as_utc(match.latest_modification_date)
        if self.min_date is not None and (when is None or when < as_utc(self.min_date)):
            return False
        if self.max_date is not None and (when is None or when > as_utc(self.max_date)):
            return False
        return True


@dataclass
class RecoveryAction:
    type: RecoveryActionType
    message: str = ""
    suggested_solution: str = ""
    should_retry: bool = False
    retry_delay: float = 0.0  # seconds


@dataclass
class ErrorSummary:
    skipped_files: int = 0
    permission_errors: int = 0
    network_errors: int = 0
    resource_errors: int = 0
    skipped_paths: List[str] = field(default_factory=list)
    error_messages: List[str] = field(default_factory=list)
    last_error_time: Optional[datetime] = None

    @property
    def has_errors(self) -> bool:
        return bool(self.skipped_files or self.permission_errors or self.network_errors or self.resource_errors)

    @property
    def total_errors(self) -> int:
        return self.permission_errors + self.network_errors + self.resource_errors

    def copy(self) -> "ErrorSummary":
        return ErrorSummary(
            skipped_files=self.skipped_files,
            permission_errors=self.permission_errors,
            network_errors=self.network_errors,
            resource_errors=self.resource_errors,
            skipped_paths=list(self.skipped_paths),
            error_messages=list(self.error_messages),
            last_error_time=self.last_error_time,
        )


@dataclass(frozen=True)
class AnalysisProgress:
    phase: AnalysisPhase
    current: int = 0
    maximum: int = 0
    message: str = ""
    indeterminate: bool = False


@dataclass
class FileSide:
    file_name: str
    full_path: str
    size_bytes: Optional[int] = None
    modified: Optional[datetime] = None

    @property
    def available(self) -> bool:
        return self.size_bytes is not None


@dataclass
class FileDetail:
    is_duplicate: bool
    left: Optional[FileSide] = None
    right: Optional[FileSide] = None

    @property
    def primary_file_name(self) -> str:
        side = self.left or self.right
        return side.file_name if side else ""


@dataclass
class ProjectData:
    scan_folders: List[str] = field(default_factory=list)
    folder_info: Dict[str, FolderInfo] = field(default_factory=dict)
    folder_files: Dict[str, List[str]] = field(default_factory=dict)
    file_hashes: Dict[str, str] = field(default_factory=dict)
    created_date: Optional[datetime] = None
    version: str = "1.0"
    application_name: str = ""


__all__ = [
    "AnalysisPhase",
    "AnalysisProgress",
    "ErrorKind",
    "ErrorSummary",
    "FileDetail",
    "FileMatch",
    "FileMetadata",
    "FileSide",
    "FilterCriteria",
    "FolderInfo",
    "FolderMatch",
    "ProjectData",
    "RecoveryAction",
    "RecoveryActionType",
    "ResourceConstraintType",
    "jaccard_similarity",
]
