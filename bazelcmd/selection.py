"""Asking the user for a target or package when a command was given none."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Awaitable, Callable, List, Sequence, TextIO
import asyncio
import sys

from .errors import SelectionCancelled
from .options import CommandAdapter, CommandOptions
from .query import BazelQuery
from .workspace import WorkspaceInfo

BUILD_RULES_QUERY = "kind('.* rule', ...)"
TEST_RULES_QUERY = "kind('.*_test rule', ...)"


@dataclass(frozen=True, slots=True)
class QuickPickTarget(CommandAdapter):
    workspace_info: WorkspaceInfo
    label: str
    description: str = ""

    def get_bazel_command_options(self) -> CommandOptions:
        return CommandOptions(workspace_info=self.workspace_info, targets=[self.label])


@dataclass(frozen=True, slots=True)
class QuickPickPackage(CommandAdapter):
    workspace_info: WorkspaceInfo
    package_path: str

    @property
    def label(self) -> str:
        return f"//{self.package_path}"

    @property
    def description(self) -> str:
        return ""

    def get_bazel_command_options(self) -> CommandOptions:
        return CommandOptions(workspace_info=self.workspace_info, targets=[self.label])


QuickPickItem = QuickPickTarget | QuickPickPackage
Candidates = Callable[[], Awaitable[Sequence[QuickPickItem]]]


async def query_quick_pick_targets(query: BazelQuery, workspace_info: WorkspaceInfo, expression: str) -> List[QuickPickTarget]:
    targets = await query.query_targets(expression)
    return [
        QuickPickTarget(workspace_info=workspace_info, label=target.label, description=target.rule_class)
        for target in sorted(targets, key=lambda t: t.label)
    ]


async def query_quick_pick_packages(query: BazelQuery, workspace_info: WorkspaceInfo) -> List[QuickPickPackage]:
    packages = await query.query_packages()
    return [QuickPickPackage(workspace_info=workspace_info, package_path=package) for package in packages]


class Prompt:
    """Single-choice prompt interface."""

    async def show_single_choice(self, candidates: Candidates) -> QuickPickItem | None:
        """Return the chosen item; ``None`` or :class:`SelectionCancelled` means cancelled."""

        raise NotImplementedError


class ConsolePrompt(Prompt):
    """Numbered menu on a terminal.

    The answer may be the item number or its exact label. An empty answer or
    end of input cancels.
    """

    def __init__(
        self,
        *,
        input_func: Callable[[str], str] = input,
        output: TextIO | None = None,
    ) -> None:
        self._input = input_func
        self._output = output

    async def show_single_choice(self, candidates: Candidates) -> QuickPickItem | None:
        items = list(await candidates())
        output = self._output or sys.stdout
        if not items:
            print("No matching targets found.", file=output)
            return None

        for index, item in enumerate(items, start=1):
            suffix = f"  ({item.description})" if item.description else ""
            print(f"{index:>4}. {item.label}{suffix}", file=output)

        while True:
            try:
                answer = (await asyncio.to_thread(self._input, "Select a target: ")).strip()
            except (EOFError, KeyboardInterrupt) as exc:
                raise SelectionCancelled("no target selected") from exc
            if not answer:
                return None
            if answer.isdigit() and 1 <= int(answer) <= len(items):
                return items[int(answer) - 1]
            for item in items:
                if item.label == answer:
                    return item
            print(f"'{answer}' is not one of the listed choices.", file=output)


async def ensure_target(
    adapter: CommandAdapter | None,
    prompt: Prompt,
    candidates: Candidates,
) -> CommandAdapter | None:
    """Return ``adapter``, or ask the user for one when it is missing.

    The prompt is shown at most once. ``None`` means the user cancelled and
    the command should stop without reporting anything.
    """

    if adapter is not None:
        return adapter
    try:
        return await prompt.show_single_choice(candidates)
    except SelectionCancelled:
        return None


__all__ = [
    "BUILD_RULES_QUERY",
    "Candidates",
    "ConsolePrompt",
    "Prompt",
    "QuickPickItem",
    "QuickPickPackage",
    "QuickPickTarget",
    "TEST_RULES_QUERY",
    "ensure_target",
    "query_quick_pick_packages",
    "query_quick_pick_targets",
]
