# foldermatch/session.py
"""One interactive analysis session: roots, cache, results.

:class:`AnalysisSession` wires the cache, recovery policy, scanner, finder
and aggregator together the way a front end uses them: add or remove roots,
run a comparison over everything scanned so far, narrow the results with
filters, expand one folder pair, and save or load the whole state.
"""
from __future__ import annotations

from pathlib import Path
from threading import Lock
from typing import List, Optional, Union

from .aggregate import aggregate_folder_matches, apply_filters
from .cache import CacheStore
from .compare import build_file_details, filter_file_details
from .concurrency import CancellationToken, check_cancelled
from .config import AnalysisConfig
from .dedupe import DuplicateFinder
from .fs import FileSystem, LocalFileSystem
from .models import ErrorSummary, FileDetail, FilterCriteria, FolderMatch
from .progress import LogCallback, ProgressCallback, emit_log
from .project import load_project, save_project
from .recovery import ErrorRecoveryPolicy
from .scan import FolderScanner
from .util import folder_key, is_within

MIN_FOLDERS_TO_COMPARE = 2


class AnalysisSession:
    def __init__(
        self,
        cfg: Optional[AnalysisConfig] = None,
        fs: Optional[FileSystem] = None,
        log_cb: Optional[LogCallback] = None,
    ) -> None:
        self.cfg = cfg or AnalysisConfig()
        self.fs = fs or LocalFileSystem()
        self.log_cb = log_cb
        self.cache = CacheStore(self.fs)
        self.policy = ErrorRecoveryPolicy(self.cfg.recovery, log_cb=log_cb)
        self.scanner = FolderScanner(self.cache, self.policy, self.cfg.scanner, self.fs, log_cb=log_cb)
        self.finder = DuplicateFinder(
            self.cache,
            self.policy,
            self.cfg.dedupe,
            self.fs,
            max_workers=self.cfg.scanner.max_workers,
            log_cb=log_cb,
        )
        self.scan_roots: List[str] = []
        self.all_matches: List[FolderMatch] = []
        self.filtered_matches: List[FolderMatch] = []
        self._current: Optional[CancellationToken] = None
        self._lock = Lock()

    def _has_root(self, path: str) -> bool:
        key = folder_key(path)
        return any(folder_key(root) == key for root in self.scan_roots)

    def _begin(self, token: Optional[CancellationToken], timeout: Optional[float] = None) -> CancellationToken:
        linked = CancellationToken.linked(token, timeout=timeout)
        with self._lock:
            self._current = linked
        return linked

    def _end(self) -> None:
        with self._lock:
            self._current = None

    def cancel_operation(self) -> None:
        with self._lock:
            if self._current is not None:
                self._current.cancel()

    def add_folder(
        self,
        path: str,
        progress_cb: Optional[ProgressCallback] = None,
        token: Optional[CancellationToken] = None,
    ) -> List[str]:
        """Scan ``path`` and add it as a root; returns the folders found.

        Empty paths are ignored (``[]``). A root added before is scanned again
        so new subfolders are picked up; cached folders are not re-analysed and
        the root is not listed twice. A new root is only recorded once its scan
        finished.
        """
        check_cancelled(token)
        if not path or not path.strip():
            return []
        known = self._has_root(path)
        linked = self._begin(token, timeout=self.cfg.scanner.timeout_seconds)
        try:
            subfolders = self.scanner.scan_hierarchy(path, progress_cb, linked)
        finally:
            self._end()
        if known:
            emit_log(self.log_cb, f"[SCAN] Rescanned {path}: {len(subfolders):,} folders")
        else:
            self.scan_roots.append(path)
            emit_log(self.log_cb, f"[SCAN] Added {path} with {len(subfolders):,} folders")
        return subfolders

    def remove_folder(self, path: str) -> None:
        key = folder_key(path)
        kept = [root for root in self.scan_roots if folder_key(root) != key]
        if len(kept) == len(self.scan_roots):
            return
        self.scan_roots = kept
        removed = self.cache.remove_subtree(path)
        emit_log(self.log_cb, f"[SCAN] Removed {path} ({removed:,} cached folders dropped)")

    def folders_under_roots(self) -> List[str]:
        root_keys = [folder_key(root) for root in self.scan_roots]
        return [
            folder
            for folder in self.cache.folders()
            if any(is_within(folder_key(folder), root_key) for root_key in root_keys)
        ]

    def run_comparison(
        self,
        progress_cb: Optional[ProgressCallback] = None,
        token: Optional[CancellationToken] = None,
    ) -> List[FolderMatch]:
        check_cancelled(token)
        folders = self.folders_under_roots()
        if len(folders) < MIN_FOLDERS_TO_COMPARE:
            emit_log(self.log_cb, "[WARN] Need at least 2 folders to compare")
            return []

        linked = self._begin(token)
        try:
            file_matches = self.finder.find_duplicate_files(folders, progress_cb, linked)
            matches = aggregate_folder_matches(
                file_matches,
                self.cache,
                progress_cb,
                linked,
                report_every=self.cfg.aggregate.report_every,
                log_cb=self.log_cb,
            )
        finally:
            self._end()
        self.all_matches = matches
        self.apply_filters()
        emit_log(self.log_cb, f"[DONE] Analysis complete: {len(matches):,} folder matches found")
        return matches

    def apply_filters(self, criteria: Optional[FilterCriteria] = None) -> List[FolderMatch]:
        if criteria is None:
            criteria = self.cfg.filters.to_criteria()
        self.filtered_matches = apply_filters(self.all_matches, criteria)
        return self.filtered_matches

    def file_details(self, match: FolderMatch, include_unique: bool = True) -> List[FileDetail]:
        details = build_file_details(match.left_folder, match.right_folder, match.duplicate_files, self.cache)
        return filter_file_details(details, include_unique)

    def save_project(self, path: Union[str, Path]) -> None:
        save_project(path, self.cache.export_snapshot(self.scan_roots))
        emit_log(self.log_cb, f"[PROJECT] Saved {self.cache.folder_count:,} folders to {path}")

    def load_project(self, path: Union[str, Path]) -> None:
        data = load_project(path)
        self.cache.import_snapshot(data)
        self.all_matches = []
        self.filtered_matches = []
        self.scan_roots = []
        for root in data.scan_folders:
            if self.fs.exists_dir(root):
                self.scan_roots.append(root)
            else:
                emit_log(self.log_cb, f"[WARN] Folder no longer exists: {root}")
        emit_log(self.log_cb, f"[PROJECT] Loaded {path}: {len(self.scan_roots)} folders available")

    def error_summary(self) -> ErrorSummary:
        return self.policy.get_summary()

    def clear_errors(self) -> None:
        self.policy.clear_summary()
