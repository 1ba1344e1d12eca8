"""User-facing commands that wrap Bazel verbs.

Each command accepts an optional :class:`CommandAdapter`. When it is missing
the user is asked to pick a target or package first; cancelling that prompt
ends the command without output. Apart from the debug flow, commands submit
their task and return its handle without waiting for it.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Sequence

from core.command_runner import CommandRunner

from .configuration import Settings
from .console import Console
from .debug import DebugLauncher, DebugState, DebugTestFlow
from .options import ALL_TARGETS, RECURSIVE, CommandAdapter, CommandOptions, Verb, resolve
from .query import BazelCQuery, BazelQuery
from .selection import (
    BUILD_RULES_QUERY,
    TEST_RULES_QUERY,
    Candidates,
    Prompt,
    ensure_target,
    query_quick_pick_packages,
    query_quick_pick_targets,
)
from .tasks import CommandDispatcher, TaskHandle, TaskRunner
from .workspace import WorkspaceInfo

NO_WORKSPACE_MESSAGE = "Please open a Bazel workspace folder to use this command."

DBG_FLAG = "--compilation_mode=dbg"
ASAN_FLAG = "--config=clang-asan"
STARLARK_DEBUG_FLAG = "--experimental_skylark_debug"
STARLARK_DEBUG_PORT_FLAG = "--experimental_skylark_debug_server_port"


@dataclass(slots=True)
class CommandContext:
    workspace_info: WorkspaceInfo | None
    settings: Settings
    console: Console
    prompt: Prompt
    tasks: TaskRunner
    query_runner: CommandRunner
    launcher: DebugLauncher


class WrapperCommands:
    def __init__(self, context: CommandContext) -> None:
        self._context = context
        self._dispatcher = CommandDispatcher(context.settings.command_line, context.tasks)

    @property
    def dispatcher(self) -> CommandDispatcher:
        return self._dispatcher

    def _bazel_query(self, workspace_info: WorkspaceInfo) -> BazelQuery:
        config = self._context.settings.command_line
        return BazelQuery(
            config.executable,
            workspace_info.bazel_workspace_path,
            self._context.query_runner,
            startup_options=config.startup_options,
        )

    def _bazel_cquery(self, workspace_info: WorkspaceInfo) -> BazelCQuery:
        config = self._context.settings.command_line
        return BazelCQuery(
            config.executable,
            workspace_info.bazel_workspace_path,
            self._context.query_runner,
            startup_options=config.startup_options,
        )

    async def _pick(
        self,
        adapter: CommandAdapter | None,
        make_candidates: Callable[[WorkspaceInfo], Candidates],
    ) -> CommandAdapter | None:
        if adapter is not None:
            return adapter
        workspace_info = self._context.workspace_info
        if workspace_info is None:
            self._context.console.info(NO_WORKSPACE_MESSAGE)
            return None
        return await ensure_target(None, self._context.prompt, make_candidates(workspace_info))

    def _target_candidates(self, expression: str) -> Callable[[WorkspaceInfo], Candidates]:
        def make_candidates(workspace_info: WorkspaceInfo) -> Candidates:
            async def candidates():
                return await query_quick_pick_targets(self._bazel_query(workspace_info), workspace_info, expression)

            return candidates

        return make_candidates

    def _package_candidates(self, workspace_info: WorkspaceInfo) -> Candidates:
        async def candidates():
            return await query_quick_pick_packages(self._bazel_query(workspace_info), workspace_info)

        return candidates

    def _submit(self, verb: Verb, options: CommandOptions) -> TaskHandle:
        return self._dispatcher.dispatch(verb, options)

    async def build(self, adapter: CommandAdapter | None) -> TaskHandle | None:
        adapter = await self._pick(adapter, self._target_candidates(BUILD_RULES_QUERY))
        if adapter is None:
            return None
        return self._submit(Verb.BUILD, resolve(Verb.BUILD, adapter))

    async def build_with_debugging(self, adapter: CommandAdapter | None) -> TaskHandle | None:
        """Build with Bazel's Starlark debug server enabled."""

        adapter = await self._pick(adapter, self._target_candidates(BUILD_RULES_QUERY))
        if adapter is None:
            return None
        port = self._context.settings.debug.starlark_debug_port
        options = resolve(Verb.BUILD, adapter, [STARLARK_DEBUG_FLAG, f"{STARLARK_DEBUG_PORT_FLAG}={port}"])
        self._context.console.info(f"Starlark debug server will listen on port {port}")
        return self._submit(Verb.BUILD, options)

    async def build_package(self, adapter: CommandAdapter | None, suffix: str) -> TaskHandle | None:
        adapter = await self._pick(adapter, self._package_candidates)
        if adapter is None:
            return None
        return self._submit(Verb.BUILD, resolve(Verb.BUILD, adapter, suffix=suffix))

    async def run(self, adapter: CommandAdapter | None) -> TaskHandle | None:
        adapter = await self._pick(adapter, self._target_candidates(BUILD_RULES_QUERY))
        if adapter is None:
            return None
        return self._submit(Verb.RUN, resolve(Verb.RUN, adapter))

    async def test(self, adapter: CommandAdapter | None, verb: Verb, *extra_flags: str) -> TaskHandle | None:
        adapter = await self._pick(adapter, self._target_candidates(TEST_RULES_QUERY))
        if adapter is None:
            return None
        return self._submit(verb, resolve(verb, adapter, extra_flags))

    async def test_package(self, adapter: CommandAdapter | None, suffix: str, verb: Verb) -> TaskHandle | None:
        adapter = await self._pick(adapter, self._package_candidates)
        if adapter is None:
            return None
        return self._submit(verb, resolve(verb, adapter, suffix=suffix))

    async def debug_test(self, adapter: CommandAdapter | None, *extra_flags: str) -> DebugState | None:
        adapter = await self._pick(adapter, self._target_candidates(TEST_RULES_QUERY))
        if adapter is None:
            return None
        workspace_info = adapter.get_bazel_command_options().workspace_info
        flow = DebugTestFlow(
            dispatcher=self._dispatcher,
            cquery=self._bazel_cquery(workspace_info),
            launcher=self._context.launcher,
            extra_source_mappings=self._context.settings.debug.extra_source_mappings,
            console=self._context.console,
        )
        return await flow.run(adapter, extra_flags)

    async def clean(self, adapter: CommandAdapter | None = None) -> TaskHandle | None:
        """Clean the current workspace; ``adapter`` is ignored."""

        workspace_info = self._context.workspace_info
        if workspace_info is None:
            self._context.console.info(NO_WORKSPACE_MESSAGE)
            return None
        return self._submit(Verb.CLEAN, CommandOptions(workspace_info=workspace_info))


CommandHandler = Callable[[WrapperCommands, "CommandAdapter | None"], Awaitable[object]]

WRAPPER_COMMANDS: Dict[str, CommandHandler] = {
    "build": lambda c, a: c.build(a),
    "buildWithDebugging": lambda c, a: c.build_with_debugging(a),
    "buildAll": lambda c, a: c.build_package(a, ALL_TARGETS),
    "buildAllRecursive": lambda c, a: c.build_package(a, RECURSIVE),
    "run": lambda c, a: c.run(a),
    "test": lambda c, a: c.test(a, Verb.TEST),
    "testDbg": lambda c, a: c.test(a, Verb.TEST, DBG_FLAG),
    "testAsan": lambda c, a: c.test(a, Verb.TEST, ASAN_FLAG),
    "testDbgAsan": lambda c, a: c.test(a, Verb.TEST, DBG_FLAG, ASAN_FLAG),
    "testWithCoverage": lambda c, a: c.test(a, Verb.COVERAGE),
    "debugTest": lambda c, a: c.debug_test(a),
    "debugTestAsan": lambda c, a: c.debug_test(a, ASAN_FLAG),
    "testAll": lambda c, a: c.test_package(a, ALL_TARGETS, Verb.TEST),
    "testAllRecursive": lambda c, a: c.test_package(a, RECURSIVE, Verb.TEST),
    "testAllRecursiveWithCoverage": lambda c, a: c.test_package(a, RECURSIVE, Verb.COVERAGE),
    "clean": lambda c, a: c.clean(a),
}
"""Command ids mapped to their handlers; each id fixes its verb and flags."""


async def execute_command(commands: WrapperCommands, command_id: str, adapter: CommandAdapter | None) -> object:
    handler = WRAPPER_COMMANDS.get(command_id)
    if handler is None:
        raise ValueError(f"Unknown command: {command_id}")
    return await handler(commands, adapter)


def command_ids() -> Sequence[str]:
    return tuple(WRAPPER_COMMANDS)


__all__ = [
    "ASAN_FLAG",
    "CommandContext",
    "DBG_FLAG",
    "NO_WORKSPACE_MESSAGE",
    "WRAPPER_COMMANDS",
    "WrapperCommands",
    "command_ids",
    "execute_command",
]
