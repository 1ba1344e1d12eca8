"""Build, run, test and debug Bazel targets from the command line."""
from __future__ import annotations

from .cli import main

__version__ = "0.1.0"

__all__ = ["main"]
