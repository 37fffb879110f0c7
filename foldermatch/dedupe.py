# foldermatch/dedupe.py
"""Cross-folder duplicate file detection over already-scanned folders.

Works from the cache only; the filesystem is touched solely to hash
candidate files whose digest is not cached yet.

Stage 1  index every cached file by (casefolded name, size), remembering the
         folders each key occurs in
Stage 2  expand the keys seen in more than one folder back into file paths,
         grouped by a name+size composite key
Stage 3  hash the files of each group in parallel and pair up the ones that
         live in different folders and share a digest
"""
from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Dict, Iterable, List, Optional, Tuple

from .cache import CacheStore
from .concurrency import CancellationToken, WorkerBudget, check_cancelled, default_worker_count
from .config import DedupeConfig
from .errors import AnalysisAborted
from .fs import FileSystem, attempt
from .models import AnalysisPhase, FileMatch, RecoveryActionType
from .progress import LogCallback, ProgressCallback, ProgressReporter, emit_log
from .recovery import ErrorRecoveryPolicy
from .util import ByteRateLimiter, folder_key, hash_stream

NETWORK_CHUNK_CAP = 256 * 1024
NETWORK_WORKER_CAP = 2

IndexKey = Tuple[str, int]
Candidate = Tuple[str, str]  # (folder, file path)


class DuplicateFinder:
    def __init__(
        self,
        cache: CacheStore,
        policy: ErrorRecoveryPolicy,
        cfg: Optional[DedupeConfig] = None,
        fs: Optional[FileSystem] = None,
        max_workers: Optional[int] = None,
        log_cb: Optional[LogCallback] = None,
    ) -> None:
        self.cache = cache
        self.policy = policy
        self.cfg = cfg or DedupeConfig()
        self.fs = fs or cache.fs
        self.log_cb = log_cb

        workers = self.cfg.max_workers or max_workers or default_worker_count()
        chunk_bytes = self.cfg.hash_chunk_bytes
        # Network-friendly mode reduces read sizes and concurrency bursts
        if self.cfg.network_friendly:
            chunk_bytes = min(chunk_bytes, NETWORK_CHUNK_CAP)
            if self.cfg.max_workers is None:
                workers = min(workers, NETWORK_WORKER_CAP)
        self.max_workers = max(1, workers)
        self.chunk_bytes = max(1, chunk_bytes)

        self.limiter: Optional[ByteRateLimiter] = None
        if self.cfg.io_bytes_per_sec and self.cfg.io_bytes_per_sec > 0:
            self.limiter = ByteRateLimiter(self.cfg.io_bytes_per_sec)

        self._budget: Optional[WorkerBudget] = None

    # hashing
    def _hash_file(self, path: str) -> str:
        with self.fs.open_read(path) as stream:
            return hash_stream(stream, self.cfg.hash_algorithm, self.chunk_bytes, self.limiter)

    def compute_file_hash(self, path: str) -> str:
        """Hash the full content of ``path``; ``""`` when it cannot be read."""
        result = attempt(self._hash_file, path)
        if result.ok:
            return result.value
        action = self.policy.advise(path, result.error)
        if action.type is RecoveryActionType.ABORT:
            raise AnalysisAborted(action.message, path)
        if action.type is RecoveryActionType.REDUCE_PARALLELISM and self._budget is not None:
            limit = self._budget.reduce()
            emit_log(self.log_cb, f"[WARN] {action.message}; hashing with {limit} workers")
        self.policy.log_skipped_item(path, f"Hash computation failed: {result.error}")
        return ""

    def get_or_compute_hash(self, path: str) -> str:
        cached = self.cache.get_hash(path)
        if cached:
            return cached
        digest = self.compute_file_hash(path)
        if digest:
            self.cache.put_hash(path, digest)
        return digest

    # pipeline
    def find_duplicate_files(
        self,
        folders: Iterable[str],
        progress_cb: Optional[ProgressCallback] = None,
        token: Optional[CancellationToken] = None,
    ) -> List[FileMatch]:
        check_cancelled(token)
        reporter = ProgressReporter(progress_cb)

        unique: Dict[str, str] = {}
        for folder in folders:
            unique.setdefault(folder_key(folder), folder)
        folder_list = list(unique.values())
        total_files = sum(len(self.cache.get_folder_files(f)) for f in folder_list)
        emit_log(
            self.log_cb,
            f"[DEDUPE] Comparing {total_files:,} files in {len(folder_list):,} folders "
            f"({self.cfg.hash_algorithm}, {self.max_workers} workers, chunk={self.chunk_bytes:,})",
        )

        buckets = self._build_index(folder_list, total_files, reporter, token)
        shared = {key: members for key, members in buckets.items() if len(members) > 1}
        emit_log(self.log_cb, f"[DEDUPE] {len(shared):,} name+size keys occur in more than one folder")
        if not shared:
            reporter.complete("No duplicate files found")
            return []

        groups = self._group_candidates(shared, total_files, reporter, token)
        emit_log(self.log_cb, f"[DEDUPE] {len(groups):,} candidate groups to hash")

        matches = self._confirm_groups(groups, reporter, token)
        matches.sort(key=lambda m: (folder_key(m.path_a), folder_key(m.path_b)))
        emit_log(self.log_cb, f"[DONE] Found {len(matches):,} duplicate files")
        reporter.complete(f"Found {len(matches)} duplicate files", len(groups), len(groups))
        return matches

    def _build_index(
        self,
        folders: List[str],
        total_files: int,
        reporter: ProgressReporter,
        token: Optional[CancellationToken],
    ) -> Dict[IndexKey, Dict[str, str]]:
        every = max(1, self.cfg.index_report_every)
        reporter.report(AnalysisPhase.BUILDING_FILE_INDEX, 0, total_files, "Building file index...")

        buckets: Dict[IndexKey, Dict[str, str]] = {}
        indexed = 0
        for folder in folders:
            check_cancelled(token)
            member_key = folder_key(folder)
            for path in self.cache.get_folder_files(folder):
                indexed += 1
                metadata = self.cache.get_metadata(path)
                if metadata is None:
                    self.policy.log_skipped_item(path, "No cached metadata")
                else:
                    key = (metadata.file_name.casefold(), metadata.size)
                    buckets.setdefault(key, {}).setdefault(member_key, folder)
                if indexed % every == 0:
                    reporter.report(
                        AnalysisPhase.BUILDING_FILE_INDEX,
                        indexed,
                        total_files,
                        f"Indexing files: {indexed}/{total_files}",
                    )
        return buckets

    def _group_candidates(
        self,
        shared: Dict[IndexKey, Dict[str, str]],
        total_files: int,
        reporter: ProgressReporter,
        token: Optional[CancellationToken],
    ) -> Dict[str, List[Candidate]]:
        every = max(1, self.cfg.group_report_every)
        # continues the index phase, so current/maximum carry on from stage 1
        maximum = total_files + len(shared)
        reporter.report(AnalysisPhase.BUILDING_FILE_INDEX, total_files, maximum, "Grouping potential duplicates...")

        groups: Dict[str, List[Candidate]] = {}
        for i, ((name, size), members) in enumerate(shared.items(), 1):
            check_cancelled(token)
            group_key = f"{name}_{size}"
            for folder in members.values():
                for path in self.cache.get_folder_files(folder):
                    metadata = self.cache.get_metadata(path)
                    if metadata and metadata.size == size and metadata.file_name.casefold() == name:
                        groups.setdefault(group_key, []).append((folder, path))
            if i % every == 0 or i == len(shared):
                reporter.report(
                    AnalysisPhase.BUILDING_FILE_INDEX,
                    total_files + i,
                    maximum,
                    f"Grouping potential duplicates: {i}/{len(shared)}",
                )
        return {key: files for key, files in groups.items() if len(files) > 1}

    def _confirm_groups(
        self,
        groups: Dict[str, List[Candidate]],
        reporter: ProgressReporter,
        token: Optional[CancellationToken],
    ) -> List[FileMatch]:
        total = len(groups)
        every = max(1, self.cfg.compare_report_every)
        reporter.report(AnalysisPhase.COMPARING_FILES, 0, total, f"Comparing {total} candidate groups...")

        matches: List[FileMatch] = []
        self._budget = WorkerBudget(self.max_workers)
        try:
            with ThreadPoolExecutor(max_workers=self.max_workers) as ex:
                futures = [ex.submit(self._confirm_group, files, token) for files in groups.values()]
                try:
                    for done, fut in enumerate(as_completed(futures), 1):
                        matches.extend(fut.result())
                        if done % every == 0 or done == total:
                            reporter.report(
                                AnalysisPhase.COMPARING_FILES,
                                done,
                                total,
                                f"Comparing files: {done}/{total} groups, {len(matches)} duplicates",
                            )
                except BaseException:
                    for pending in futures:
                        pending.cancel()
                    raise
        finally:
            self._budget = None
        return matches

    def _confirm_group(self, files: List[Candidate], token: Optional[CancellationToken]) -> List[FileMatch]:
        budget = self._budget
        if budget is not None:
            budget.acquire(token)
        try:
            check_cancelled(token)
            digests: Dict[str, str] = {}

            def digest_of(path: str) -> str:
                if path not in digests:
                    check_cancelled(token)
                    digests[path] = self.get_or_compute_hash(path)
                return digests[path]

            found: List[FileMatch] = []
            for i, (folder_i, path_i) in enumerate(files):
                for folder_j, path_j in files[i + 1:]:
                    if folder_key(folder_i) == folder_key(folder_j):
                        continue
                    first = digest_of(path_i)
                    if not first:
                        break
                    second = digest_of(path_j)
                    if second and first == second:
                        found.append(FileMatch.create(path_i, path_j))
            return found
        finally:
            if budget is not None:
                budget.release()
