"""Unified command-line interface for foldermatch."""
from __future__ import annotations

import argparse
import sys
from typing import Callable, Optional, Sequence

from .commands import COMMAND_MODULES
from .errors import AnalysisAborted, AnalysisCancelled, ProjectError

Handler = Callable[[argparse.Namespace], int]

EXIT_CANCELLED = 130
EXIT_FAILED = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="foldermatch",
        description="Find duplicate folders across backup trees",
    )
    subparsers = parser.add_subparsers(dest="command", metavar="command")
    for module in COMMAND_MODULES:
        module.add_parser(subparsers)
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    handler: Optional[Handler] = getattr(args, "handler", None)
    if handler is None:
        parser.print_help(sys.stderr)
        return 1
    try:
        return handler(args)
    except AnalysisCancelled as e:
        print(f"[CANCEL] {e}", file=sys.stderr)
        return EXIT_CANCELLED
    except (AnalysisAborted, ProjectError) as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        return EXIT_FAILED
    except (FileNotFoundError, ValueError) as e:
        # missing or blank root paths, invalid config values
        print(f"[ERROR] {e}", file=sys.stderr)
        return EXIT_FAILED


if __name__ == "__main__":
    raise SystemExit(main())
