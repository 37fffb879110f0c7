"""CLI command for exporting a project file to Parquet."""
from __future__ import annotations

import argparse
from argparse import _SubParsersAction
from typing import Optional, Sequence

from ..export import main as export_main
from ._common import add_config_argument, load_cli_config


def _configure_parser(parser: argparse.ArgumentParser) -> None:
    add_config_argument(parser)
    parser.add_argument("--project", help="Explicit path to the project file (default: project.path from config)")
    parser.add_argument("--out", default="data/parquet", help="Destination folder for Parquet files")


def add_parser(subparsers: _SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
    parser = subparsers.add_parser(
        "export",
        help="Export a project file to Parquet",
        description="Write the project tables to Parquet files for downstream analytics.",
    )
    _configure_parser(parser)
    parser.set_defaults(handler=run_from_args)
    return parser


def build_parser(prog: Optional[str] = None) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog=prog or "foldermatch export", description="Export a project file to Parquet")
    _configure_parser(parser)
    return parser


def run_from_args(args: argparse.Namespace) -> int:
    project = args.project
    if not project:
        project = load_cli_config(args).project.path
    export_main(["--project", project, "--out", args.out])
    return 0


def run_cli(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    return run_from_args(args)


__all__ = ["add_parser", "build_parser", "run_cli", "run_from_args"]
