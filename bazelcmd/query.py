"""Read-only Bazel queries: targets, packages and built output files."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import List, Sequence
import re
import xml.etree.ElementTree as ET

from core.command_runner import CommandRunner

from .workspace import QueryLocation

# Bazel declares version="1.1"; the declaration is dropped so the body parses as 1.0.
_XML_DECLARATION_RE = re.compile(r"^\s*<\?xml[^>]*\?>")


@dataclass(frozen=True, slots=True)
class Target:
    """A rule returned by ``bazel query``."""

    label: str
    rule_class: str
    location: QueryLocation

    @property
    def name(self) -> str:
        return self.label.rpartition(":")[2]

    @property
    def package(self) -> str:
        return self.label.partition(":")[0]


def parse_query_xml(text: str) -> List[Target]:
    """Extract the rules from ``bazel query --output=xml`` output.

    Source files, generated files and package groups are skipped.
    """

    if not text.strip():
        return []
    root = ET.fromstring(_XML_DECLARATION_RE.sub("", text, count=1))
    targets: List[Target] = []
    for rule in root.iter("rule"):
        name = rule.get("name")
        if not name:
            continue
        targets.append(
            Target(
                label=name,
                rule_class=rule.get("class", ""),
                location=QueryLocation.parse(rule.get("location")),
            )
        )
    return targets


class _BazelInvoker:
    def __init__(
        self,
        bazel_executable: str,
        workspace_path: Path,
        runner: CommandRunner,
        *,
        startup_options: Sequence[str] = (),
    ) -> None:
        self._bazel_executable = bazel_executable
        self._workspace_path = workspace_path
        self._runner = runner
        self._startup_options = list(startup_options)

    @property
    def workspace_path(self) -> Path:
        return self._workspace_path

    async def _run(self, args: Sequence[str]) -> str:
        command = [self._bazel_executable, *self._startup_options, *args]
        result = await self._runner.run(command, cwd=self._workspace_path)
        return result.stdout


class BazelQuery(_BazelInvoker):
    """Runs ``bazel query`` against the build graph of one workspace."""

    async def query_targets(self, expression: str, options: Sequence[str] = ()) -> List[Target]:
        stdout = await self._run(["query", expression, *options, "--output=xml"])
        return parse_query_xml(stdout)

    async def query_packages(self, expression: str = "...", options: Sequence[str] = ()) -> List[str]:
        """Return the package paths matched by ``expression`` without the ``//`` prefix."""

        stdout = await self._run(["query", expression, *options, "--output=package"])
        packages = {line.strip() for line in stdout.splitlines() if line.strip()}
        return sorted(packages)


class BazelCQuery(_BazelInvoker):
    """Runs ``bazel cquery`` to find what a configured target builds."""

    async def query_outputs(self, target: str, options: Sequence[str] = ()) -> List[str]:
        """Return absolute paths of the files ``target`` produces.

        ``options`` must carry the same configuration flags as the build (for
        example ``--compilation_mode dbg``) or the paths point at a different
        output tree.
        """

        stdout = await self._run(["cquery", target, *options, "--output=files"])
        outputs: List[str] = []
        for line in stdout.splitlines():
            path = line.strip()
            if not path:
                continue
            candidate = Path(path)
            if not candidate.is_absolute():
                candidate = self.workspace_path / candidate
            outputs.append(str(candidate))
        return outputs


__all__ = ["BazelCQuery", "BazelQuery", "Target", "parse_query_xml"]
