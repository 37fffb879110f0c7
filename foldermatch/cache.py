"""In-memory cache of scanned folders, file metadata and content hashes.

One :class:`CacheStore` lives for one analysis session. It is shared by all
scanner and hashing workers, so every map carries its own lock; there is no
lock spanning the whole store.
"""
from __future__ import annotations

from datetime import datetime, timezone
from threading import RLock
from typing import Dict, Generic, Iterable, List, Optional, Tuple, TypeVar

from .fs import FileSystem, LocalFileSystem, attempt
from .models import FileMetadata, FolderInfo, ProjectData
from .util import folder_key, is_within

V = TypeVar("V")


class _PathMap(Generic[V]):
    """Case-insensitive path -> value map that remembers the original spelling."""

    def __init__(self) -> None:
        self._data: Dict[str, Tuple[str, V]] = {}
        self._lock = RLock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)

    def __contains__(self, path: str) -> bool:
        with self._lock:
            return folder_key(path) in self._data

    def set(self, path: str, value: V) -> None:
        with self._lock:
            self._data[folder_key(path)] = (path, value)

    def get(self, path: str) -> Optional[V]:
        with self._lock:
            entry = self._data.get(folder_key(path))
        return entry[1] if entry else None

    def items(self) -> List[Tuple[str, V]]:
        with self._lock:
            return list(self._data.values())

    def remove_under(self, root_key: str) -> int:
        with self._lock:
            doomed = [k for k in self._data if is_within(k, root_key)]
            for k in doomed:
                del self._data[k]
        return len(doomed)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()


class CacheStore:
    def __init__(self, fs: Optional[FileSystem] = None) -> None:
        self.fs = fs or LocalFileSystem()
        self._folder_info: _PathMap[FolderInfo] = _PathMap()
        self._folder_files: _PathMap[List[str]] = _PathMap()
        self._file_hashes: _PathMap[str] = _PathMap()
        self._file_metadata: _PathMap[FileMetadata] = _PathMap()

    # folders
    def is_cached(self, folder: str) -> bool:
        return folder in self._folder_info

    def put(self, folder: str, info: FolderInfo) -> None:
        self._folder_info.set(folder, info)
        self._folder_files.set(folder, list(info.files))

    def get(self, folder: str) -> Optional[FolderInfo]:
        return self._folder_info.get(folder)

    def get_folder_files(self, folder: str) -> List[str]:
        return list(self._folder_files.get(folder) or [])

    def get_folder_size(self, folder: str) -> int:
        info = self.get(folder)
        return info.total_size if info else 0

    def folders(self) -> List[str]:
        return [path for path, _ in self._folder_files.items()]

    # files
    def put_hash(self, path: str, digest: str) -> None:
        self._file_hashes.set(path, digest)

    def get_hash(self, path: str) -> Optional[str]:
        return self._file_hashes.get(path)

    def put_metadata(self, path: str, metadata: FileMetadata) -> None:
        self._file_metadata.set(path, metadata)

    def get_metadata(self, path: str) -> Optional[FileMetadata]:
        return self._file_metadata.get(path)

    @property
    def folder_count(self) -> int:
        return len(self._folder_info)

    @property
    def hash_count(self) -> int:
        return len(self._file_hashes)

    @property
    def metadata_count(self) -> int:
        return len(self._file_metadata)

    def remove_subtree(self, root: str) -> int:
        """Drop every entry at or below ``root``; returns the folders removed."""
        root_key = folder_key(root)
        removed = self._folder_info.remove_under(root_key)
        self._folder_files.remove_under(root_key)
        self._file_hashes.remove_under(root_key)
        self._file_metadata.remove_under(root_key)
        return removed

    def clear(self) -> None:
        self._folder_info.clear()
        self._folder_files.clear()
        self._file_hashes.clear()
        self._file_metadata.clear()

    # persistence
    def export_snapshot(self, scan_roots: Iterable[str]) -> ProjectData:
        """Copy folder info, folder files and hashes into a :class:`ProjectData`.

        File metadata is left out; :meth:`import_snapshot` rebuilds it by
        re-statting every file, so sizes and dates reflect the disk at load time.
        """
        return ProjectData(
            scan_folders=list(scan_roots),
            folder_info=dict(self._folder_info.items()),
            folder_files={path: list(files) for path, files in self._folder_files.items()},
            file_hashes=dict(self._file_hashes.items()),
            created_date=datetime.now(tz=timezone.utc),
        )

    def import_snapshot(self, data: ProjectData) -> None:
        """Replace the cache with a snapshot and re-stat its files.

        Files that no longer exist or cannot be read are left without
        metadata; that is not an error.
        """
        self.clear()
        for path, files in data.folder_files.items():
            self._folder_files.set(path, list(files))
        for path, info in data.folder_info.items():
            self._folder_info.set(path, info)
            if path not in self._folder_files:
                self._folder_files.set(path, list(info.files))
        for path, digest in data.file_hashes.items():
            self._file_hashes.set(path, digest)

        for _, info in self._folder_info.items():
            for path in info.files:
                result = attempt(self.fs.stat, path)
                if result.ok:
                    self._file_metadata.set(path, result.value)
