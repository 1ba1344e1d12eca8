"""Command line interface for bazelcmd."""
from __future__ import annotations

from argparse import ArgumentParser, Namespace
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List
import asyncio
import sys

from core.command_runner import CommandError, CommandRunner, RecordingCommandRunner, SubprocessCommandRunner

from .commands import NO_WORKSPACE_MESSAGE, CommandContext, WrapperCommands, command_ids, execute_command
from .configuration import Settings, load_settings
from .console import Console
from .debug import DebugLauncher, JsonDebugLauncher, LldbDebugLauncher
from .errors import ArtifactNotFound, ConfigurationError, InvalidInvocation
from .gtest import GTEST_FILTER_PREFIX
from .options import CommandAdapter, CommandOptions
from .query import BazelCQuery, BazelQuery
from .selection import ConsolePrompt
from .tasks import TaskRunner
from .tree import PackageNode, SubTestNode, TargetNode, TreeContext, TreeNode
from .workspace import WorkspaceInfo

# Only these commands pass options to a gtest binary.
TEST_COMMAND_PREFIXES = ("test", "debugTest")


@dataclass(frozen=True)
class CommandLineTarget(CommandAdapter):
    """A label typed on the command line, optionally narrowed to one gtest case."""

    workspace_info: WorkspaceInfo
    label: str
    options: tuple[str, ...] = field(default_factory=tuple)

    def get_bazel_command_options(self) -> CommandOptions:
        return CommandOptions(workspace_info=self.workspace_info, targets=[self.label], options=self.options)


def _parse_arguments(argv: Iterable[str]) -> Namespace:
    parser = ArgumentParser(prog="bazelcmd", description="Run Bazel build, test and debug commands against workspace targets")
    parser.add_argument("--config", type=Path, help="Additional configuration file, applied last")
    parser.add_argument("--dry-run", action="store_true", help="Print commands without executing them")
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("-v", "--verbose", action="store_true", help="Enable debug output")
    verbosity.add_argument("-q", "--quiet", action="store_true", help="Only report errors")
    subparsers = parser.add_subparsers(dest="command", required=True)

    for command_id in command_ids():
        sub = subparsers.add_parser(command_id, help=f"Run the '{command_id}' command")
        if command_id == "clean":
            continue
        sub.add_argument("target", nargs="?", help="Target or package label; prompts when omitted")
        if not command_id.startswith(TEST_COMMAND_PREFIXES):
            continue
        sub.add_argument("--test-filter", metavar="NAME", help="Restrict a gtest binary to one case (Group.Case)")

    tree_parser = subparsers.add_parser("tree", help="List packages, targets and test cases")
    tree_parser.add_argument("label", nargs="?", default="//", help="Package (//pkg) or target (//pkg:name) to expand")
    tree_parser.add_argument("--depth", type=int, default=1, help="Levels to expand (default: 1)")

    return parser.parse_args(list(argv))


def _console_level(args: Namespace, settings: Settings) -> str:
    if args.verbose:
        return "debug"
    if args.quiet:
        return "error"
    return settings.global_config.log_level


def _make_launcher(settings: Settings, *, dry_run: bool, runner: CommandRunner) -> DebugLauncher:
    if dry_run or settings.debug.debugger == "json":
        return JsonDebugLauncher()
    return LldbDebugLauncher(runner)


def _start_failure(exc: OSError) -> str:
    if exc.filename:
        return f"Could not start '{exc.filename}': {exc.strerror or exc}"
    return f"Could not start command: {exc}"


def _adapter_from_args(args: Namespace, workspace_info: WorkspaceInfo | None) -> CommandAdapter | None:
    label = getattr(args, "target", None)
    test_filter = getattr(args, "test_filter", None)
    if not label:
        if test_filter:
            raise InvalidInvocation("--test-filter requires a target")
        return None
    if workspace_info is None:
        raise InvalidInvocation(NO_WORKSPACE_MESSAGE)
    options = (GTEST_FILTER_PREFIX + test_filter,) if test_filter else ()
    return CommandLineTarget(workspace_info=workspace_info, label=label, options=options)


def main(argv: Iterable[str] | None = None) -> int:
    args = _parse_arguments(sys.argv[1:] if argv is None else argv)
    workspace_info = WorkspaceInfo.from_directory(Path.cwd())

    try:
        settings = load_settings(
            workspace_info.bazel_workspace_path if workspace_info else None,
            explicit=args.config,
        )
    except ConfigurationError as exc:
        print(f"[ERROR] {exc}", file=sys.stderr)
        return 1

    console = Console(_console_level(args, settings))
    for source in settings.sources:
        console.debug(f"Loaded configuration from {source}")

    if args.command == "tree":
        return asyncio.run(_handle_tree(args, workspace_info, settings, console))
    return asyncio.run(_handle_command(args, workspace_info, settings, console))


async def _handle_command(
    args: Namespace,
    workspace_info: WorkspaceInfo | None,
    settings: Settings,
    console: Console,
) -> int:
    query_runner = SubprocessCommandRunner()
    task_runner: CommandRunner = RecordingCommandRunner() if args.dry_run else SubprocessCommandRunner()
    tasks = TaskRunner(task_runner, console)
    context = CommandContext(
        workspace_info=workspace_info,
        settings=settings,
        console=console,
        prompt=ConsolePrompt(),
        tasks=tasks,
        query_runner=query_runner,
        launcher=_make_launcher(settings, dry_run=args.dry_run, runner=query_runner),
    )

    try:
        adapter = _adapter_from_args(args, workspace_info)
        await execute_command(WrapperCommands(context), args.command, adapter)
        codes = await tasks.drain()
    except (InvalidInvocation, ArtifactNotFound, CommandError) as exc:
        console.error(str(exc))
        return 1
    except OSError as exc:
        console.error(_start_failure(exc))
        return 1

    if isinstance(task_runner, RecordingCommandRunner):
        for line in task_runner.iter_formatted():
            print(line)
    return next((code for code in codes if code != 0), 0)


async def _handle_tree(
    args: Namespace,
    workspace_info: WorkspaceInfo | None,
    settings: Settings,
    console: Console,
) -> int:
    if workspace_info is None:
        console.error(NO_WORKSPACE_MESSAGE)
        return 1

    runner = SubprocessCommandRunner()
    config = settings.command_line
    root_path = workspace_info.bazel_workspace_path
    context = TreeContext(
        workspace_info=workspace_info,
        query=BazelQuery(config.executable, root_path, runner, startup_options=config.startup_options),
        cquery=BazelCQuery(config.executable, root_path, runner, startup_options=config.startup_options),
        runner=runner,
    )

    try:
        root = await _tree_root(context, args.label)
        if root is None:
            console.error(f"No target matches {args.label}")
            return 1
        lines: List[str] = []
        await _render_tree(root, depth=max(args.depth, 0), indent=0, lines=lines)
    except CommandError as exc:
        console.error(str(exc))
        return 1
    except OSError as exc:
        console.error(_start_failure(exc))
        return 1

    for line in lines:
        print(line)
    return 0


async def _tree_root(context: TreeContext, label: str) -> TreeNode | None:
    if ":" not in label:
        return PackageNode(context, label.strip("/"))
    targets = await context.query.query_targets(label)
    if not targets:
        return None
    return TargetNode(context, targets[0])


async def _render_tree(node: TreeNode, *, depth: int, indent: int, lines: List[str]) -> None:
    line = f"{'  ' * indent}{node.get_label()}"
    if isinstance(node, SubTestNode) and node.descriptor.comment:
        line = f"{line}  # {node.descriptor.comment}"
    lines.append(line)
    if depth <= 0 or not node.might_have_children():
        return
    for child in await node.get_children():
        await _render_tree(child, depth=depth - 1, indent=indent + 1, lines=lines)


__all__ = ["CommandLineTarget", "main"]
