import asyncio
from datetime import datetime, timezone

import pytest

from foldermatch.aggregate import aggregate_folder_matches, aggregate_folder_matches_async, apply_filters
from foldermatch.cache import CacheStore
from foldermatch.concurrency import CancellationToken
from foldermatch.errors import AnalysisCancelled
from foldermatch.models import AnalysisPhase, FileMatch, FilterCriteria, FolderInfo

MB = 1024 * 1024
OLD = datetime(2019, 1, 1, tzinfo=timezone.utc)
NEW = datetime(2023, 1, 1, tzinfo=timezone.utc)


def _files(folder, count):
    return [f"{folder}/f{i}.txt" for i in range(count)]


@pytest.fixture
def cache():
    cache = CacheStore()
    cache.put("/r/A", FolderInfo(_files("/r/A", 7), 5 * MB, OLD))
    cache.put("/r/B", FolderInfo(_files("/r/B", 7), 3 * MB, NEW))
    cache.put("/r/C", FolderInfo(_files("/r/C", 3), 2 * MB, NEW))
    cache.put("/r/D", FolderInfo(_files("/r/D", 3), 512 * 1024, NEW))
    return cache


def _pairs(left, right, count):
    return [FileMatch.create(f"{left}/f{i}.txt", f"{right}/f{i}.txt") for i in range(count)]


def test_aggregate_computes_similarity_and_sorts(cache, progress):
    matches = _pairs("/r/A", "/r/B", 4) + _pairs("/r/C", "/r/D", 3)

    result = aggregate_folder_matches(matches, cache, progress)

    assert [(m.left_folder, m.right_folder) for m in result] == [("/r/C", "/r/D"), ("/r/A", "/r/B")]
    assert result[0].similarity_percentage == pytest.approx(100.0)
    assert result[1].similarity_percentage == pytest.approx(40.0)
    assert progress.last.phase is AnalysisPhase.COMPLETE
    assert AnalysisPhase.AGGREGATING_RESULTS in progress.phases()
    assert progress.is_monotonic()


def test_size_and_date_come_from_left_folder(cache):
    result = aggregate_folder_matches(_pairs("/r/A", "/r/B", 1), cache)
    assert result[0].folder_size_bytes == 5 * MB
    assert result[0].latest_modification_date == OLD
    assert (result[0].total_left_files, result[0].total_right_files) == (7, 7)


def test_reversed_pairs_land_in_one_group(cache):
    matches = [
        FileMatch.create("/r/B/f0.txt", "/r/A/f0.txt"),
        FileMatch.create("/r/A/f1.txt", "/r/B/f1.txt"),
    ]
    result = aggregate_folder_matches(matches, cache)
    assert len(result) == 1
    assert len(result[0].duplicate_files) == 2


def test_uncached_folders_count_as_empty(cache):
    result = aggregate_folder_matches([FileMatch.create("/r/A/f0.txt", "/elsewhere/f0.txt")], cache)
    assert result[0].left_folder == "/elsewhere"
    assert (result[0].total_left_files, result[0].total_right_files) == (0, 7)
    assert result[0].folder_size_bytes == 0


def test_empty_input():
    assert aggregate_folder_matches([], CacheStore()) == []


def test_async_form(cache):
    result = asyncio.run(aggregate_folder_matches_async(_pairs("/r/A", "/r/B", 4), cache))
    assert result[0].similarity_percentage == pytest.approx(40.0)


def test_cancelled(cache):
    token = CancellationToken()
    token.cancel()
    with pytest.raises(AnalysisCancelled):
        aggregate_folder_matches(_pairs("/r/A", "/r/B", 1), cache, None, token)


def test_apply_filters_is_pure(cache):
    result = aggregate_folder_matches(_pairs("/r/A", "/r/B", 4) + _pairs("/r/C", "/r/D", 3), cache)
    before = list(result)

    strict = apply_filters(result, FilterCriteria(min_similarity_percent=50.0, min_size_bytes=3 * MB))
    loose = apply_filters(result, FilterCriteria(min_similarity_percent=0.0, min_size_bytes=0))

    assert result == before
    assert strict == []
    assert loose == result
    assert loose is not result


def test_apply_filters_by_date_and_size(cache):
    result = aggregate_folder_matches(_pairs("/r/A", "/r/B", 4) + _pairs("/r/C", "/r/D", 3), cache)
    recent = apply_filters(result, FilterCriteria(0.0, 0, min_date=datetime(2020, 1, 1)))
    assert [m.left_folder for m in recent] == ["/r/C"]

    big = apply_filters(result, FilterCriteria(0.0, 4 * MB))
    assert [m.left_folder for m in big] == ["/r/A"]
