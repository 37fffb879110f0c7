# foldermatch/aggregate.py
from __future__ import annotations

import asyncio
from typing import Dict, Iterable, List, Optional, Tuple

from .cache import CacheStore
from .concurrency import CancellationToken, check_cancelled
from .models import AnalysisPhase, FileMatch, FilterCriteria, FolderMatch
from .progress import LogCallback, ProgressCallback, ProgressReporter, emit_log
from .util import folder_key


def _group_by_folder_pair(file_matches: Iterable[FileMatch]) -> Dict[Tuple[str, str], Tuple[str, str, List[FileMatch]]]:
    groups: Dict[Tuple[str, str], Tuple[str, str, List[FileMatch]]] = {}
    for match in file_matches:
        left, right = match.folder_a, match.folder_b
        if not left or not right:
            continue
        key = (folder_key(left), folder_key(right))
        if key not in groups:
            groups[key] = (left, right, [])
        groups[key][2].append(match)
    return groups


async def aggregate_folder_matches_async(
    file_matches: Iterable[FileMatch],
    cache: CacheStore,
    progress_cb: Optional[ProgressCallback] = None,
    token: Optional[CancellationToken] = None,
    report_every: int = 25,
    log_cb: Optional[LogCallback] = None,
) -> List[FolderMatch]:
    """Turn file-level matches into folder pairs, most similar first.

    Counts, size and date come from the cached FolderInfo of each side;
    size and date are those of the left folder. Yields to the event loop
    whenever progress is reported.
    """
    check_cancelled(token)
    reporter = ProgressReporter(progress_cb)
    file_matches = list(file_matches)
    if not file_matches:
        reporter.complete("No folder matches")
        return []

    reporter.report(AnalysisPhase.AGGREGATING_RESULTS, 0, 0, "Grouping file matches by folders...", indeterminate=True)
    groups = _group_by_folder_pair(file_matches)
    total = len(groups)
    every = max(1, report_every)
    reporter.report(
        AnalysisPhase.AGGREGATING_RESULTS,
        0,
        total,
        f"Creating folder matches for {total:,} folder pairs...",
    )

    results: List[FolderMatch] = []
    for processed, (left, right, duplicates) in enumerate(groups.values(), 1):
        check_cancelled(token)
        left_info = cache.get(left)
        right_info = cache.get(right)
        results.append(
            FolderMatch(
                left_folder=left,
                right_folder=right,
                duplicate_files=duplicates,
                total_left_files=left_info.file_count if left_info else 0,
                total_right_files=right_info.file_count if right_info else 0,
                folder_size_bytes=left_info.total_size if left_info else 0,
                latest_modification_date=left_info.latest_modification_date if left_info else None,
            )
        )
        if processed % every == 0 or processed == total:
            reporter.report(
                AnalysisPhase.AGGREGATING_RESULTS,
                processed,
                total,
                f"Processed {processed:,} of {total:,} folder pairs...",
            )
            await asyncio.sleep(0)

    check_cancelled(token)
    results.sort(key=lambda m: m.similarity_percentage, reverse=True)
    emit_log(log_cb, f"[AGG] {len(file_matches):,} duplicate files across {total:,} folder pairs")
    reporter.complete(f"Found {total:,} similar folder pairs", total, total)
    return results


def aggregate_folder_matches(
    file_matches: Iterable[FileMatch],
    cache: CacheStore,
    progress_cb: Optional[ProgressCallback] = None,
    token: Optional[CancellationToken] = None,
    report_every: int = 25,
    log_cb: Optional[LogCallback] = None,
) -> List[FolderMatch]:
    """Blocking form of :func:`aggregate_folder_matches_async`.

    Must not be called from inside a running event loop.
    """
    return asyncio.run(
        aggregate_folder_matches_async(file_matches, cache, progress_cb, token, report_every, log_cb)
    )


def apply_filters(matches: Iterable[FolderMatch], criteria: FilterCriteria) -> List[FolderMatch]:
    return [m for m in matches if criteria.matches(m)]
