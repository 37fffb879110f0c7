import errno
import hashlib

import blake3
import pytest

from foldermatch.cache import CacheStore
from foldermatch.concurrency import CancellationToken
from foldermatch.config import DedupeConfig, ScannerConfig
from foldermatch.dedupe import DuplicateFinder
from foldermatch.errors import AnalysisCancelled
from foldermatch.models import AnalysisPhase, FileMetadata, FolderInfo
from foldermatch.recovery import ErrorRecoveryPolicy
from foldermatch.scan import FolderScanner

TREE = {
    "A/same.txt": "hello",
    "A/other.txt": "aaa",
    "B/same.txt": "hello",
    "B/SAME.TXT.bak": "hello",
    "B/unique.txt": "zzz",
    "C/Same.txt": "HELLO",
}


def _setup(fs, tree_root, cfg=None):
    cache = CacheStore(fs)
    policy = ErrorRecoveryPolicy()
    folders = FolderScanner(cache, policy, ScannerConfig(max_workers=2), fs).scan_hierarchy(str(tree_root))
    finder = DuplicateFinder(cache, policy, cfg or DedupeConfig(max_workers=2), fs)
    return finder, cache, policy, folders


def test_confirms_only_identical_content_across_folders(make_tree, counting_fs, progress):
    root = make_tree(TREE)
    finder, _, _, folders = _setup(counting_fs, root)

    matches = finder.find_duplicate_files(folders, progress)

    assert len(matches) == 1
    match = matches[0]
    assert match.path_a == str(root / "A" / "same.txt")
    assert match.path_b == str(root / "B" / "same.txt")
    assert match.folder_a != match.folder_b


def test_progress_covers_all_stages(make_tree, counting_fs, progress):
    root = make_tree(TREE)
    finder, _, _, folders = _setup(counting_fs, root)
    finder.find_duplicate_files(folders, progress)

    phases = progress.phases()
    assert AnalysisPhase.BUILDING_FILE_INDEX in phases
    assert AnalysisPhase.COMPARING_FILES in phases
    assert progress.last.phase is AnalysisPhase.COMPLETE
    assert progress.is_monotonic()


def test_hashes_are_cached_between_runs(make_tree, counting_fs):
    root = make_tree(TREE)
    finder, cache, _, folders = _setup(counting_fs, root)
    first = finder.find_duplicate_files(folders)
    opened = counting_fs.calls["open_read"]
    assert cache.get_hash(str(root / "A" / "same.txt")) == hashlib.sha256(b"hello").hexdigest()

    second = finder.find_duplicate_files(folders)

    assert second == first
    assert counting_fs.calls["open_read"] == opened


def test_no_shared_keys_short_circuits(make_tree, counting_fs, progress):
    root = make_tree({"A/one.txt": "1", "B/two.txt": "2"})
    finder, _, _, folders = _setup(counting_fs, root)

    assert finder.find_duplicate_files(folders, progress) == []
    assert counting_fs.calls["open_read"] == 0
    assert AnalysisPhase.COMPARING_FILES not in progress.phases()
    assert progress.last.phase is AnalysisPhase.COMPLETE


def test_matching_is_case_insensitive_on_names(make_tree, counting_fs):
    root = make_tree({"A/Report.PDF": "pdf", "B/report.pdf": "pdf"})
    finder, _, _, folders = _setup(counting_fs, root)
    assert len(finder.find_duplicate_files(folders)) == 1


def test_three_copies_give_three_pairs(make_tree, counting_fs):
    root = make_tree({"A/x.txt": "same", "B/x.txt": "same", "C/x.txt": "same"})
    finder, _, _, folders = _setup(counting_fs, root)
    pairs = {(m.folder_a, m.folder_b) for m in finder.find_duplicate_files(folders)}
    a, b, c = (str(root / n) for n in "ABC")
    assert pairs == {(a, b), (a, c), (b, c)}


def test_cancelled_before_work(make_tree, counting_fs):
    root = make_tree(TREE)
    finder, _, _, folders = _setup(counting_fs, root)
    token = CancellationToken()
    token.cancel()
    with pytest.raises(AnalysisCancelled):
        finder.find_duplicate_files(folders, None, token)
    assert counting_fs.calls["open_read"] == 0


def test_unreadable_file_contributes_no_matches(make_tree, counting_fs):
    root = make_tree({"A/x.txt": "same", "B/x.txt": "same", "C/x.txt": "same"})
    finder, _, policy, folders = _setup(counting_fs, root)
    counting_fs.fail_open["x.txt"] = PermissionError(errno.EACCES, "denied")

    assert finder.find_duplicate_files(folders) == []
    summary = policy.get_summary()
    assert summary.permission_errors >= 1
    assert summary.skipped_files >= 1


def test_compute_file_hash_returns_empty_on_failure(tmp_path):
    policy = ErrorRecoveryPolicy()
    finder = DuplicateFinder(CacheStore(), policy)
    missing = str(tmp_path / "missing.bin")

    assert finder.compute_file_hash(missing) == ""
    assert finder.get_or_compute_hash(missing) == ""
    assert finder.cache.get_hash(missing) is None
    assert missing in policy.get_summary().skipped_paths


def test_blake3_algorithm(tmp_path):
    target = tmp_path / "f.bin"
    target.write_bytes(b"hello")
    finder = DuplicateFinder(CacheStore(), ErrorRecoveryPolicy(), DedupeConfig(hash_algorithm="blake3"))
    assert finder.get_or_compute_hash(str(target)) == blake3.blake3(b"hello").hexdigest()
    assert finder.cache.get_hash(str(target)) == blake3.blake3(b"hello").hexdigest()


def test_network_friendly_caps_workers_and_chunks():
    finder = DuplicateFinder(CacheStore(), ErrorRecoveryPolicy(), DedupeConfig(network_friendly=True), max_workers=8)
    assert finder.max_workers == 2
    assert finder.chunk_bytes == 256 * 1024

    explicit = DuplicateFinder(CacheStore(), ErrorRecoveryPolicy(), DedupeConfig(network_friendly=True, max_workers=6))
    assert explicit.max_workers == 6


def test_rate_limiter_is_optional():
    assert DuplicateFinder(CacheStore(), ErrorRecoveryPolicy()).limiter is None
    limited = DuplicateFinder(CacheStore(), ErrorRecoveryPolicy(), DedupeConfig(io_bytes_per_sec=1024))
    assert limited.limiter is not None


def test_files_without_metadata_are_skipped():
    cache = CacheStore()
    policy = ErrorRecoveryPolicy()
    cache.put("/a", FolderInfo(files=["/a/ghost.txt"]))
    cache.put("/b", FolderInfo(files=["/b/ghost.txt"]))
    cache.put_metadata("/b/ghost.txt", FileMetadata("ghost.txt", 4, None))

    finder = DuplicateFinder(cache, policy)

    assert finder.find_duplicate_files(["/a", "/b"]) == []
    assert policy.get_summary().skipped_paths == ["/a/ghost.txt"]
