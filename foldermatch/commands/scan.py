"""CLI command for scanning folder trees into a project file."""
from __future__ import annotations

import argparse
from argparse import _SubParsersAction
from typing import Optional, Sequence

from ..concurrency import CancellationToken
from ._common import add_config_argument, cancel_on_sigint, load_cli_config, open_session, print_error_summary, print_progress


def _configure_parser(parser: argparse.ArgumentParser) -> None:
    add_config_argument(parser)
    parser.add_argument("--project", help="Project file to update (default: project.path from config)")
    parser.add_argument("--max-workers", type=int, help="Override scanner worker count")
    parser.add_argument("--root", action="append", help="Root folder to scan (may repeat)")


def add_parser(subparsers: _SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
    parser = subparsers.add_parser(
        "scan",
        help="Scan folder trees into a project file",
        description="Enumerate root folders, record per-folder file lists and sizes, and save them to a project file.",
    )
    _configure_parser(parser)
    parser.set_defaults(handler=run_from_args)
    return parser


def build_parser(prog: Optional[str] = None) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog=prog or "foldermatch scan", description="Scan folder trees into a project file")
    _configure_parser(parser)
    return parser


def run_from_args(args: argparse.Namespace) -> int:
    cfg = load_cli_config(args)
    if args.max_workers is not None:
        cfg.scanner.max_workers = args.max_workers

    roots = list(cfg.roots)
    if args.root:
        roots.extend(args.root)
    if not roots:
        raise SystemExit("No root paths configured. Provide --root or configure cfg.roots.")

    project = args.project or cfg.project.path
    session = open_session(cfg, project)
    with cancel_on_sigint(CancellationToken()) as token:
        for root in roots:
            print(f"[RUN] scanning root: {root}")
            session.add_folder(root, print_progress, token)

    session.save_project(project)
    print_error_summary(session.error_summary())
    return 0


def run_cli(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    return run_from_args(args)


__all__ = ["add_parser", "build_parser", "run_cli", "run_from_args"]
