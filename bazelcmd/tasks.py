"""Turning command options into Bazel command lines and running them as tasks."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import List, Sequence
import asyncio

from core.command_runner import CommandRunner

from .configuration import CommandLineConfig
from .console import Console
from .options import CommandOptions, TARGETED_VERBS, Verb

# Exit code reported when the executable itself could not be started.
EXIT_NOT_STARTED = 127


@dataclass(frozen=True, slots=True)
class BazelCommand:
    args: tuple[str, ...]
    cwd: Path
    name: str


def create_bazel_command(verb: Verb, options: CommandOptions, config: CommandLineConfig) -> BazelCommand:
    """Build the command line for ``verb``.

    Token order: executable, startup options, verb, configured command
    arguments (build, run, test and coverage only), targets, options.
    """

    command_args = list(config.command_args) if verb in TARGETED_VERBS else []
    args = (
        config.executable,
        *config.startup_options,
        verb.value,
        *command_args,
        *options.targets,
        *options.options,
    )
    name = " ".join([verb.value, *options.targets])
    return BazelCommand(args=tuple(args), cwd=options.workspace_info.bazel_workspace_path, name=name)


class TaskHandle:
    """A submitted task. Awaiting :meth:`wait` yields its exit code."""

    def __init__(self, command: BazelCommand, future: "asyncio.Future[int]") -> None:
        self.command = command
        self._future = future

    def done(self) -> bool:
        return self._future.done()

    async def wait(self) -> int:
        return await asyncio.shield(self._future)

    def __repr__(self) -> str:
        return f"TaskHandle({self.command.name!r}, done={self.done()})"


class TaskRunner:
    """Executes submitted commands concurrently on the running event loop.

    Submitting never waits; callers that need the outcome await the handle.
    No ordering or mutual exclusion is imposed between tasks.
    """

    def __init__(self, runner: CommandRunner, console: Console | None = None) -> None:
        self._runner = runner
        self._console = console or Console("none")
        self._handles: List[TaskHandle] = []

    @property
    def runner(self) -> CommandRunner:
        return self._runner

    @property
    def handles(self) -> Sequence[TaskHandle]:
        return tuple(self._handles)

    def submit(self, command: BazelCommand) -> TaskHandle:
        self._console.info(f"Starting task: {command.name}")
        self._console.debug(f"{self._runner.format_command(command.args)} (cwd={command.cwd})")
        future = asyncio.ensure_future(self._execute(command))
        handle = TaskHandle(command, future)
        self._handles.append(handle)
        return handle

    async def _execute(self, command: BazelCommand) -> int:
        try:
            result = await self._runner.run(
                command.args,
                cwd=command.cwd,
                check=False,
                note=command.name,
                stream=True,
            )
        except OSError as exc:
            self._console.error(f"Could not start '{command.args[0]}': {exc}")
            return EXIT_NOT_STARTED
        if result.returncode != 0:
            self._console.error(f"Task '{command.name}' exited with code {result.returncode}")
        else:
            self._console.debug(f"Task '{command.name}' finished")
        return result.returncode

    async def drain(self) -> List[int]:
        """Wait for every submitted task and return their exit codes in submission order."""

        codes: List[int] = []
        # Tasks may be submitted while earlier ones are being awaited.
        while len(codes) < len(self._handles):
            codes.append(await self._handles[len(codes)].wait())
        return codes


class CommandDispatcher:
    """Submits one Bazel command per call without waiting for it."""

    def __init__(self, config: CommandLineConfig, tasks: TaskRunner) -> None:
        self._config = config
        self._tasks = tasks

    def command_for(self, verb: Verb, options: CommandOptions) -> BazelCommand:
        return create_bazel_command(verb, options, self._config)

    def dispatch(self, verb: Verb, options: CommandOptions) -> TaskHandle:
        return self._tasks.submit(self.command_for(verb, options))


__all__ = [
    "BazelCommand",
    "CommandDispatcher",
    "EXIT_NOT_STARTED",
    "TaskHandle",
    "TaskRunner",
    "create_bazel_command",
]
