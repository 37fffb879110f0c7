"""CLI command for listing the files of one folder pair side by side."""
from __future__ import annotations

import argparse
from argparse import _SubParsersAction
from typing import List, Optional, Sequence

from ..compare import format_size
from ..concurrency import CancellationToken
from ..models import FileDetail, FileSide, FolderMatch
from ..util import folder_key
from ._common import add_config_argument, cancel_on_sigint, load_cli_config, open_session


def _configure_parser(parser: argparse.ArgumentParser) -> None:
    add_config_argument(parser)
    parser.add_argument("--project", help="Project file (default: project.path from config)")
    parser.add_argument("--left", required=True, help="Left folder of the pair")
    parser.add_argument("--right", required=True, help="Right folder of the pair")
    parser.add_argument("--unique", action="store_true", help="Also list files present on one side only or not duplicated")


def add_parser(subparsers: _SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
    parser = subparsers.add_parser(
        "details",
        help="Compare the files of two folders",
        description="List the files of a folder pair, marking which ones are duplicates.",
    )
    _configure_parser(parser)
    parser.set_defaults(handler=run_from_args)
    return parser


def build_parser(prog: Optional[str] = None) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog=prog or "foldermatch details", description="Compare the files of two folders")
    _configure_parser(parser)
    return parser


def find_match(matches: List[FolderMatch], left: str, right: str) -> Optional[FolderMatch]:
    wanted = {folder_key(left), folder_key(right)}
    for m in matches:
        if {folder_key(m.left_folder), folder_key(m.right_folder)} == wanted:
            return m
    return None


def _describe(side: Optional[FileSide]) -> str:
    if side is None:
        return "-"
    when = side.modified.strftime("%Y-%m-%d %H:%M") if side.modified else "N/A"
    return f"{format_size(side.size_bytes)} {when}"


def print_details(details: List[FileDetail]) -> None:
    for d in details:
        marker = "=" if d.is_duplicate else " "
        print(f"{marker} {d.primary_file_name:<40} {_describe(d.left):>28} | {_describe(d.right):<28}")


def run_from_args(args: argparse.Namespace) -> int:
    cfg = load_cli_config(args)
    session = open_session(cfg, args.project or cfg.project.path)
    with cancel_on_sigint(CancellationToken()) as token:
        matches = session.run_comparison(None, token)

    match = find_match(matches, args.left, args.right)
    if match is None:
        print(f"[INFO] No duplicate files between {args.left} and {args.right}")
        match = FolderMatch(args.left, args.right, [], 0, 0)
    else:
        print(f"[RESULT] {match.similarity_percentage:.2f}% similar, {len(match.duplicate_files):,} duplicate files")
    print_details(session.file_details(match, include_unique=args.unique))
    return 0


def run_cli(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    return run_from_args(args)


__all__ = ["add_parser", "build_parser", "find_match", "run_cli", "run_from_args"]
