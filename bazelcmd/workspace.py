"""Workspace discovery and query location helpers."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import re

WORKSPACE_MARKERS = ("MODULE.bazel", "REPO.bazel", "WORKSPACE.bazel", "WORKSPACE")


@dataclass(frozen=True, slots=True)
class WorkspaceInfo:
    """The root directory of a Bazel workspace."""

    bazel_workspace_path: Path

    @classmethod
    def from_directory(cls, directory: Path) -> "WorkspaceInfo | None":
        """Return the workspace enclosing ``directory``, or ``None``."""

        current = directory.resolve()
        for candidate in (current, *current.parents):
            if any((candidate / marker).is_file() for marker in WORKSPACE_MARKERS):
                return cls(bazel_workspace_path=candidate)
        return None


_LOCATION_RE = re.compile(r"^(?P<path>.*?)(?::(?P<line>\d+))?(?::(?P<column>\d+))?$")


@dataclass(frozen=True, slots=True)
class QueryLocation:
    """A ``path:line:column`` location as printed by ``bazel query``.

    Line and column are 1-based, zero when Bazel omitted them.
    """

    path: str
    line: int = 0
    column: int = 0

    @classmethod
    def parse(cls, text: str | None) -> "QueryLocation":
        if not text:
            return cls(path="")
        text = text.strip()
        match = _LOCATION_RE.match(text)
        if match is None:
            return cls(path=text)
        return cls(
            path=match.group("path"),
            line=int(match.group("line") or 0),
            column=int(match.group("column") or 0),
        )

    def __str__(self) -> str:
        if not self.line:
            return self.path
        if not self.column:
            return f"{self.path}:{self.line}"
        return f"{self.path}:{self.line}:{self.column}"


__all__ = ["QueryLocation", "WORKSPACE_MARKERS", "WorkspaceInfo"]
