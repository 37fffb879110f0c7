# foldermatch/compare.py
from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from .cache import CacheStore
from .fs import attempt
from .models import FileDetail, FileMatch, FileSide
from .util import file_name


def _first_by_name(paths: Iterable[str]) -> Dict[str, str]:
    found: Dict[str, str] = {}
    for path in paths:
        found.setdefault(file_name(path).casefold(), path)
    return found


def _side(path: Optional[str], cache: CacheStore) -> Optional[FileSide]:
    if path is None:
        return None
    metadata = cache.get_metadata(path)
    if metadata is None:
        result = attempt(cache.fs.stat, path)
        metadata = result.value if result.ok else None
    if metadata is None:
        return FileSide(file_name=file_name(path), full_path=path)
    return FileSide(
        file_name=file_name(path),
        full_path=path,
        size_bytes=metadata.size,
        modified=metadata.last_write_time,
    )


def build_file_details(
    left_folder: str,
    right_folder: str,
    duplicate_files: Iterable[FileMatch],
    cache: CacheStore,
) -> List[FileDetail]:
    """One row per file name found in either folder, ordered by name.

    Names are compared case-insensitively. A row is a duplicate when its
    name appears in ``duplicate_files``.
    """
    left = _first_by_name(cache.get_folder_files(left_folder))
    right = _first_by_name(cache.get_folder_files(right_folder))
    duplicate_names = set()
    for match in duplicate_files:
        duplicate_names.add(file_name(match.path_a).casefold())
        duplicate_names.add(file_name(match.path_b).casefold())

    details: List[FileDetail] = []
    for name in sorted(set(left) | set(right)):
        details.append(
            FileDetail(
                is_duplicate=name in duplicate_names,
                left=_side(left.get(name), cache),
                right=_side(right.get(name), cache),
            )
        )
    return details


def filter_file_details(details: Iterable[FileDetail], include_unique: bool) -> List[FileDetail]:
    details = list(details)
    if include_unique:
        return details
    return [d for d in details if d.is_duplicate]


def format_size(size: Optional[int]) -> str:
    if size is None:
        return "N/A"
    for unit, shift in (("GB", 30), ("MB", 20), ("KB", 10)):
        if size >= 1 << shift:
            return f"{size / (1 << shift):,.1f} {unit}"
    return f"{size} B"
