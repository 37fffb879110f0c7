"""Helpers shared by the CLI commands."""
from __future__ import annotations

import argparse
import signal
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from ..concurrency import CancellationToken
from ..config import AnalysisConfig, DEFAULT_CONFIG_PATH, load_config
from ..models import AnalysisPhase, AnalysisProgress, ErrorSummary
from ..project import is_valid_project_file
from ..session import AnalysisSession


def add_config_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--config", default=DEFAULT_CONFIG_PATH, help="foldermatch configuration file")


def load_cli_config(args: argparse.Namespace) -> AnalysisConfig:
    path = Path(args.config)
    # the default file is optional, an explicit one is not
    if args.config == DEFAULT_CONFIG_PATH and not path.exists():
        return load_config()
    return load_config(path)


def print_progress(progress: AnalysisProgress) -> None:
    if progress.phase is AnalysisPhase.COMPLETE:
        print(f"[PROG] {progress.message}")
    elif progress.indeterminate or not progress.maximum:
        print(f"[PROG] {progress.phase.value}: {progress.message}")
    else:
        print(f"[PROG] {progress.phase.value} {progress.current:,}/{progress.maximum:,}: {progress.message}")


def open_session(cfg: AnalysisConfig, project: Optional[str]) -> AnalysisSession:
    session = AnalysisSession(cfg)
    if project and is_valid_project_file(project):
        session.load_project(project)
    return session


def print_error_summary(summary: ErrorSummary) -> None:
    if not summary.has_errors:
        return
    print(
        f"[WARN] {summary.skipped_files:,} items skipped | permission={summary.permission_errors:,} "
        f"network={summary.network_errors:,} resource={summary.resource_errors:,}"
    )


@contextmanager
def cancel_on_sigint(token: CancellationToken) -> Iterator[CancellationToken]:
    """Turn Ctrl+C into a cooperative cancellation of ``token``."""

    def _handle_sigint(signum, frame):  # noqa: ARG001
        token.cancel("Interrupted")

    try:
        previous = signal.signal(signal.SIGINT, _handle_sigint)
    except ValueError:
        # not on the main thread
        previous = None
    try:
        yield token
    finally:
        if previous is not None:
            signal.signal(signal.SIGINT, previous)
