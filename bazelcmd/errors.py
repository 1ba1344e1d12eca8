"""Exception types raised by the command layer."""
from __future__ import annotations


class BazelCommandError(RuntimeError):
    """Base class for errors raised while building or running a Bazel command."""


class InvalidInvocation(BazelCommandError):
    """A command was invoked with arguments that violate its contract."""


class SelectionCancelled(BazelCommandError):
    """The user declined to choose a target from a prompt."""


class BuildFailure(BazelCommandError):
    """A build task finished with a non-zero exit code."""

    def __init__(self, exit_code: int, name: str = ""):
        label = f" '{name}'" if name else ""
        super().__init__(f"Build task{label} exited with code {exit_code}")
        self.exit_code = exit_code


class ArtifactNotFound(BazelCommandError):
    """A successful build produced no output file for the requested target."""

    def __init__(self, label: str):
        super().__init__(f"No output artifact found for target {label}")
        self.label = label


class ConfigurationError(ValueError):
    """Raised when a configuration file contains invalid settings."""


__all__ = [
    "ArtifactNotFound",
    "BazelCommandError",
    "BuildFailure",
    "ConfigurationError",
    "InvalidInvocation",
    "SelectionCancelled",
]
