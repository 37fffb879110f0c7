# foldermatch/scan.py
"""Two-phase folder tree scanner.

Phase one walks the tree under a root and collects every directory. Phase two
analyses, in parallel, each directory that is not cached yet: its immediate
files are listed and stat'ed, per-file metadata goes into the cache, and the
folder's totals are stored as a :class:`~foldermatch.models.FolderInfo`.
"""
from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime
from typing import List, Optional

from .cache import CacheStore
from .concurrency import CancellationToken, WorkerBudget, check_cancelled
from .config import ScannerConfig
from .errors import AnalysisAborted, AnalysisCancelled
from .fs import FileSystem, attempt
from .models import AnalysisPhase, FolderInfo, RecoveryActionType
from .progress import LogCallback, ProgressCallback, ProgressReporter, emit_log
from .recovery import ErrorRecoveryPolicy


class FolderScanner:
    def __init__(
        self,
        cache: CacheStore,
        policy: ErrorRecoveryPolicy,
        cfg: Optional[ScannerConfig] = None,
        fs: Optional[FileSystem] = None,
        log_cb: Optional[LogCallback] = None,
    ) -> None:
        self.cache = cache
        self.policy = policy
        self.cfg = cfg or ScannerConfig()
        self.fs = fs or cache.fs
        self.log_cb = log_cb

    @property
    def max_workers(self) -> int:
        return max(1, self.cfg.max_workers)

    def _validate_root(self, root: str) -> None:
        if root is None or not str(root).strip():
            raise ValueError("Path cannot be empty or whitespace.")
        if not self.fs.exists_dir(root):
            raise FileNotFoundError(f"Directory not found: {root}")

    def _handle_failure(self, path: str, error: BaseException, reason: str, budget: Optional[WorkerBudget] = None) -> None:
        action = self.policy.advise(path, error)
        if action.type is RecoveryActionType.ABORT:
            raise AnalysisAborted(action.message, path)
        if action.type is RecoveryActionType.REDUCE_PARALLELISM and budget is not None:
            limit = budget.reduce()
            emit_log(self.log_cb, f"[WARN] {action.message}; scanning with {limit} workers")
        self.policy.log_skipped_item(path, f"{reason}: {error}")

    def scan_hierarchy(
        self,
        root: str,
        progress_cb: Optional[ProgressCallback] = None,
        token: Optional[CancellationToken] = None,
    ) -> List[str]:
        """Scan ``root`` and return every folder found under it (root included)."""
        self._validate_root(root)
        check_cancelled(token)
        reporter = ProgressReporter(progress_cb)

        subfolders = self._enumerate(root, reporter, token)
        check_cancelled(token)

        to_scan = [folder for folder in subfolders if not self.cache.is_cached(folder)]
        if not to_scan:
            emit_log(self.log_cb, f"[SCAN] {root}: all {len(subfolders)} folders already cached")
            reporter.complete("All folders already scanned", len(subfolders), len(subfolders))
            return subfolders

        emit_log(
            self.log_cb,
            f"[SCAN] {root}: analysing {len(to_scan)} of {len(subfolders)} folders with up to {self.max_workers} workers",
        )
        self._analyze_all(to_scan, reporter, token)
        reporter.complete(f"Scanned {len(to_scan)} folders", len(to_scan), len(to_scan))
        emit_log(self.log_cb, f"[DONE] {root}: scan complete")
        return subfolders

    def _enumerate(self, root: str, reporter: ProgressReporter, token: Optional[CancellationToken]) -> List[str]:
        every = max(1, self.cfg.enumeration_report_every)
        reporter.report(AnalysisPhase.COUNTING_FOLDERS, 0, 0, "Counting subfolders...", indeterminate=True)

        folders: List[str] = []
        stack = [root]
        while stack:
            check_cancelled(token)
            current = stack.pop()
            folders.append(current)
            result = attempt(self.fs.list_dirs, current)
            if not result.ok:
                self.policy.log_skipped_item(current, f"Subfolder listing failed ({result.kind.value}): {result.error}")
                continue
            stack.extend(reversed(result.value))
            if len(folders) % every == 0 or len(folders) == 1:
                reporter.report(
                    AnalysisPhase.COUNTING_FOLDERS,
                    len(folders),
                    0,
                    f"Found {len(folders)} subfolders...",
                    indeterminate=True,
                )
        return folders

    def _analyze_all(self, folders: List[str], reporter: ProgressReporter, token: Optional[CancellationToken]) -> None:
        total = len(folders)
        every = max(1, self.cfg.analysis_report_every)
        budget = WorkerBudget(self.max_workers)
        reporter.report(AnalysisPhase.SCANNING_FOLDERS, 0, total, f"Scanning {total} new folders...")

        with ThreadPoolExecutor(max_workers=self.max_workers) as ex:
            fut_map = {ex.submit(self._scan_one, folder, budget, token): folder for folder in folders}
            try:
                for i, fut in enumerate(as_completed(fut_map), 1):
                    fut.result()
                    if i % every == 0 or i == total:
                        reporter.report(
                            AnalysisPhase.SCANNING_FOLDERS,
                            i,
                            total,
                            f"Scanning folders: {i}/{total}...",
                        )
            except BaseException:
                for pending in fut_map:
                    pending.cancel()
                raise

    def _scan_one(self, folder: str, budget: WorkerBudget, token: Optional[CancellationToken]) -> None:
        budget.acquire(token)
        try:
            check_cancelled(token)
            try:
                info = self._analyze(folder, token, budget)
            except (AnalysisCancelled, AnalysisAborted):
                raise
            except Exception as e:
                # skip the folder whatever the advice, unless told to abort
                self._handle_failure(folder, e, "Folder scan failed", budget)
                return
            self.cache.put(folder, info)
        finally:
            budget.release()

    def analyze_folder(self, folder: str, token: Optional[CancellationToken] = None) -> FolderInfo:
        """List and stat the immediate files of ``folder`` (not recursive)."""
        self._validate_root(folder)
        return self._analyze(folder, token, None)

    def _analyze(self, folder: str, token: Optional[CancellationToken], budget: Optional[WorkerBudget]) -> FolderInfo:
        listing = attempt(self.fs.list_files, folder)
        if not listing.ok:
            self._handle_failure(folder, listing.error, "Folder listing failed", budget)
            return FolderInfo()

        total_size = 0
        latest: Optional[datetime] = None
        for path in listing.value:
            check_cancelled(token)
            result = attempt(self.fs.stat, path)
            if not result.ok:
                self._handle_failure(path, result.error, "File access failed", budget)
                continue
            metadata = result.value
            self.cache.put_metadata(path, metadata)
            total_size += metadata.size
            if latest is None or metadata.last_write_time > latest:
                latest = metadata.last_write_time

        return FolderInfo(files=list(listing.value), total_size=total_size, latest_modification_date=latest)

    def count_subfolders(self, root: str) -> int:
        """Best-effort count of folders under ``root`` (root included)."""
        self._validate_root(root)
        try:
            count = 0
            stack = [root]
            while stack:
                current = stack.pop()
                count += 1
                result = attempt(self.fs.list_dirs, current)
                if result.ok:
                    stack.extend(result.value)
            return count
        except Exception:
            return 1
