"""Helpers shared by the bazelcmd tool: command runners and configuration loading."""
from __future__ import annotations

from .command_runner import (
    CommandError,
    CommandResult,
    CommandRunner,
    RecordingCommandRunner,
    SubprocessCommandRunner,
)
from .config_loader import load_config_file, merge_mappings

__all__ = [
    "CommandError",
    "CommandResult",
    "CommandRunner",
    "RecordingCommandRunner",
    "SubprocessCommandRunner",
    "load_config_file",
    "merge_mappings",
]
