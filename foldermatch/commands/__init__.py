"""Command registration for the foldermatch CLI."""
from __future__ import annotations

from typing import Iterable

from . import compare, details, export, scan

COMMAND_MODULES: Iterable = (scan, compare, details, export)

__all__ = ["COMMAND_MODULES"]
