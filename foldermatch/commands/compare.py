"""CLI command for finding similar folders."""
from __future__ import annotations

import argparse
from argparse import _SubParsersAction
from datetime import datetime
from typing import List, Optional, Sequence

from ..compare import format_size
from ..concurrency import CancellationToken
from ..models import FilterCriteria, FolderMatch
from ._common import add_config_argument, cancel_on_sigint, load_cli_config, open_session, print_error_summary, print_progress


def _configure_parser(parser: argparse.ArgumentParser) -> None:
    add_config_argument(parser)
    parser.add_argument("--project", help="Project file to compare (default: project.path from config)")
    parser.add_argument("--root", action="append", help="Scan this root before comparing (may repeat)")
    parser.add_argument("--max-workers", type=int, help="Override worker thread count")
    parser.add_argument("--network-friendly", action="store_true", help="Reduce concurrency and read sizes while hashing")
    parser.add_argument("--blake3", action="store_true", help="Hash with BLAKE3 instead of SHA-256")
    parser.add_argument("--io-bytes-per-sec", type=int, help="Throttle hashing reads to this many bytes/sec (approximate)")
    parser.add_argument("--min-similarity", type=float, help="Minimum similarity percent (default from config)")
    parser.add_argument("--min-size-mb", type=float, help="Minimum folder size in MB (default from config)")
    parser.add_argument("--since", type=datetime.fromisoformat, help="Only folders modified at or after this ISO date")
    parser.add_argument("--until", type=datetime.fromisoformat, help="Only folders modified at or before this ISO date")
    parser.add_argument("--limit", type=int, default=50, help="Maximum number of folder pairs to print")


def add_parser(subparsers: _SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
    parser = subparsers.add_parser(
        "compare",
        help="Find similar folders",
        description="Confirm duplicate files by content hash and rank folder pairs by similarity.",
    )
    _configure_parser(parser)
    parser.set_defaults(handler=run_from_args)
    return parser


def build_parser(prog: Optional[str] = None) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog=prog or "foldermatch compare", description="Find similar folders")
    _configure_parser(parser)
    return parser


def criteria_from_args(args: argparse.Namespace, defaults: FilterCriteria) -> FilterCriteria:
    return FilterCriteria(
        min_similarity_percent=args.min_similarity if args.min_similarity is not None else defaults.min_similarity_percent,
        min_size_bytes=int(args.min_size_mb * 1024 * 1024) if args.min_size_mb is not None else defaults.min_size_bytes,
        min_date=args.since or defaults.min_date,
        max_date=args.until or defaults.max_date,
    )


def print_matches(matches: List[FolderMatch], limit: Optional[int]) -> None:
    shown = matches[:limit] if limit else matches
    for m in shown:
        when = m.latest_modification_date.strftime("%Y-%m-%d %H:%M") if m.latest_modification_date else "N/A"
        print(
            f"{m.similarity_percentage:6.2f}%  {len(m.duplicate_files):>5} dup  {format_size(m.folder_size_bytes):>10}  {when}\n"
            f"    {m.left_folder}\n"
            f"    {m.right_folder}"
        )
    if len(shown) < len(matches):
        print(f"... {len(matches) - len(shown):,} more")


def run_from_args(args: argparse.Namespace) -> int:
    cfg = load_cli_config(args)
    if args.max_workers is not None:
        cfg.scanner.max_workers = args.max_workers
        cfg.dedupe.max_workers = args.max_workers
    if args.network_friendly:
        cfg.dedupe.network_friendly = True
    if args.blake3:
        cfg.dedupe.hash_algorithm = "blake3"
    if args.io_bytes_per_sec is not None:
        cfg.dedupe.io_bytes_per_sec = args.io_bytes_per_sec

    project = args.project or (None if args.root else cfg.project.path)
    session = open_session(cfg, project)
    with cancel_on_sigint(CancellationToken()) as token:
        for root in args.root or []:
            print(f"[RUN] scanning root: {root}")
            session.add_folder(root, print_progress, token)
        matches = session.run_comparison(print_progress, token)

    filtered = session.apply_filters(criteria_from_args(args, cfg.filters.to_criteria()))
    print(f"[RESULT] {len(filtered):,} of {len(matches):,} folder pairs pass the filters")
    print_matches(filtered, args.limit)
    if project:
        # keeps the hashes computed during this run
        session.save_project(project)
    print_error_summary(session.error_summary())
    return 0


def run_cli(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    return run_from_args(args)


__all__ = ["add_parser", "build_parser", "criteria_from_args", "run_cli", "run_from_args"]
