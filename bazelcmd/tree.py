"""The workspace discovery tree: packages, targets and gtest cases.

Nodes are rebuilt from fresh queries every time their children are listed;
nothing is cached between expansions, so a rebuilt test binary shows its
current cases.
"""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import List, Sequence

from core.command_runner import CommandError, CommandRunner

from .gtest import GTEST_LIST_FLAG, SubTestDescriptor, parse_gtest_list
from .options import ALL_TARGETS, RECURSIVE, CommandAdapter, CommandOptions, apply_suffix
from .query import BazelCQuery, BazelQuery, Target
from .workspace import WorkspaceInfo

LISTABLE_TEST_RULES = frozenset({"cc_test"})


@dataclass(frozen=True, slots=True)
class TreeContext:
    """The collaborators tree nodes need to discover their children."""

    workspace_info: WorkspaceInfo
    query: BazelQuery
    cquery: BazelCQuery
    runner: CommandRunner


class TreeNode(CommandAdapter):
    def might_have_children(self) -> bool:
        return False

    async def get_children(self) -> List["TreeNode"]:
        return []

    def get_label(self) -> str:
        raise NotImplementedError

    def get_tooltip(self) -> str:
        return self.get_label()

    def get_context_value(self) -> str:
        raise NotImplementedError


def direct_subpackages(parent: str, packages: Sequence[str]) -> List[str]:
    """Return the packages in ``packages`` whose closest enclosing package is ``parent``."""

    prefix = f"{parent}/" if parent else ""
    nested = sorted(p for p in set(packages) if p != parent and p.startswith(prefix))
    children: List[str] = []
    for package in nested:
        if not any(package.startswith(f"{child}/") for child in children):
            children.append(package)
    return children


class PackageNode(TreeNode):
    """A package; builds and tests address it with ``:all`` or ``/...``."""

    def __init__(self, context: TreeContext, package_path: str) -> None:
        self._context = context
        self.package_path = package_path

    def might_have_children(self) -> bool:
        return True

    async def get_children(self) -> List[TreeNode]:
        query = self._context.query
        package_label = f"//{self.package_path}"
        packages = await query.query_packages(apply_suffix(package_label, RECURSIVE))
        children: List[TreeNode] = [
            PackageNode(self._context, package)
            for package in direct_subpackages(self.package_path, packages)
        ]
        targets = await query.query_targets(apply_suffix(package_label, ALL_TARGETS))
        children.extend(TargetNode(self._context, target) for target in sorted(targets, key=lambda t: t.label))
        return children

    def get_label(self) -> str:
        return f"//{self.package_path}"

    def get_context_value(self) -> str:
        return "package"

    def get_bazel_command_options(self) -> CommandOptions:
        return CommandOptions(
            workspace_info=self._context.workspace_info,
            targets=[f"//{self.package_path}"],
        )


class TargetNode(TreeNode):
    """A rule returned by a query."""

    def __init__(self, context: TreeContext, target: Target) -> None:
        self._context = context
        self.target = target

    def might_have_children(self) -> bool:
        return self.target.rule_class in LISTABLE_TEST_RULES

    async def get_children(self) -> List[TreeNode]:
        if not self.might_have_children():
            return []
        descriptors = await self.list_sub_tests()
        return [SubTestNode(self._context, self.target, descriptor) for descriptor in descriptors]

    async def list_sub_tests(self) -> List[SubTestDescriptor]:
        """Ask the built test binary for its cases.

        Yields nothing when the target has not been built, builds to more than
        one file, or the binary fails to list its tests.
        """

        try:
            outputs = await self._context.cquery.query_outputs(self.target.label)
        except CommandError:
            return []
        if len(outputs) != 1 or not Path(outputs[0]).is_file():
            return []
        try:
            result = await self._context.runner.run(
                [outputs[0], GTEST_LIST_FLAG],
                cwd=self._context.workspace_info.bazel_workspace_path,
            )
        except (CommandError, OSError):
            return []
        return parse_gtest_list(result.stdout)

    def get_label(self) -> str:
        return f":{self.target.name}  ({self.target.rule_class})"

    def get_tooltip(self) -> str:
        return self.target.label

    def get_context_value(self) -> str:
        rule_class = self.target.rule_class
        if rule_class.endswith("_test") or rule_class == "test_suite":
            return "testRule"
        return "rule"

    def get_bazel_command_options(self) -> CommandOptions:
        return CommandOptions(
            workspace_info=self._context.workspace_info,
            targets=[self.target.label],
        )


class SubTestNode(TreeNode):
    """One case inside a gtest binary, run through ``--gtest_filter``."""

    def __init__(self, context: TreeContext, target: Target, descriptor: SubTestDescriptor) -> None:
        self._context = context
        self.target = target
        self.descriptor = descriptor

    def get_label(self) -> str:
        return self.descriptor.qualified_name

    def get_tooltip(self) -> str:
        return self.descriptor.comment or self.descriptor.qualified_name

    def get_context_value(self) -> str:
        return "testRule"

    def get_bazel_command_options(self) -> CommandOptions:
        return CommandOptions(
            workspace_info=self._context.workspace_info,
            targets=[self.target.label],
            options=[self.descriptor.filter_flag()],
        )


__all__ = [
    "PackageNode",
    "SubTestNode",
    "TargetNode",
    "TreeContext",
    "TreeNode",
    "direct_subpackages",
]
