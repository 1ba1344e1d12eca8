"""Building a test target in debug mode and launching a debugger on it."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Mapping, Sequence, TextIO
import json
import sys

from core.command_runner import CommandRunner

from .console import Console
from .errors import ArtifactNotFound, BuildFailure, InvalidInvocation
from .options import CommandAdapter, CommandOptions, Verb
from .query import BazelCQuery
from .tasks import CommandDispatcher

DEBUG_COMPILATION_MODE = ("--compilation_mode", "dbg")
# Bazel compiles actions from the execution root, which sandboxes see as this path.
EXECROOT_ALIAS = "/proc/self/cwd"


@dataclass(slots=True)
class LaunchConfiguration:
    name: str
    program: str
    args: List[str]
    cwd: str
    source_map: Dict[str, str] = field(default_factory=dict)

    def to_launch_json(self) -> Dict[str, object]:
        """Render as a ``launch.json`` entry for the CodeLLDB adapter."""

        return {
            "name": self.name,
            "type": "lldb",
            "request": "launch",
            "program": self.program,
            "args": list(self.args),
            "cwd": self.cwd,
            "breakpointMode": "file",
            "sourceMap": dict(self.source_map),
            "internalConsoleOptions": "neverOpen",
            "externalConsole": False,
        }


def build_source_map(workspace_root: Path, extra: Mapping[str, str] | None = None) -> Dict[str, str]:
    """Map the execution root alias to the workspace, then apply ``extra``.

    Entries from ``extra`` replace the default on key collision.
    """

    source_map = {EXECROOT_ALIAS: str(workspace_root)}
    source_map.update(extra or {})
    return source_map


class DebugLauncher:
    async def launch(self, config: LaunchConfiguration) -> None:
        raise NotImplementedError


class LldbDebugLauncher(DebugLauncher):
    """Starts an interactive ``lldb`` session in the terminal."""

    def __init__(self, runner: CommandRunner, *, executable: str = "lldb") -> None:
        self._runner = runner
        self._executable = executable

    def command_for(self, config: LaunchConfiguration) -> List[str]:
        command = [self._executable]
        for source, destination in config.source_map.items():
            command.extend(["-o", f"settings append target.source-map {json.dumps(source)} {json.dumps(destination)}"])
        command.extend(["--", config.program, *config.args])
        return command

    async def launch(self, config: LaunchConfiguration) -> None:
        await self._runner.run(
            self.command_for(config),
            cwd=Path(config.cwd),
            check=False,
            note=config.name,
            stream=True,
        )


class JsonDebugLauncher(DebugLauncher):
    """Prints the configuration so an IDE can start the session itself."""

    def __init__(self, output: TextIO | None = None) -> None:
        self._output = output

    async def launch(self, config: LaunchConfiguration) -> None:
        output = self._output or sys.stdout
        json.dump(config.to_launch_json(), output, indent=2)
        output.write("\n")


class DebugState(str, Enum):
    IDLE = "idle"
    BUILDING = "building"
    BUILD_FAILED = "build-failed"
    BUILD_SUCCEEDED = "build-succeeded"
    ARTIFACT_RESOLVED = "artifact-resolved"
    LAUNCH_CONFIGURED = "launch-configured"
    DONE = "done"


class DebugTestFlow:
    """Build one target with ``--compilation_mode dbg``, then debug its binary.

    Options carried by the adapter (a ``--gtest_filter`` for a single case,
    for instance) are not passed to the build; they become the program
    arguments. A failed or cancelled build ends the flow quietly, the build
    output having already been shown by the task.
    """

    def __init__(
        self,
        *,
        dispatcher: CommandDispatcher,
        cquery: BazelCQuery,
        launcher: DebugLauncher,
        extra_source_mappings: Mapping[str, str] | None = None,
        console: Console | None = None,
    ) -> None:
        self._dispatcher = dispatcher
        self._cquery = cquery
        self._launcher = launcher
        self._extra_source_mappings = dict(extra_source_mappings or {})
        self._console = console or Console("none")
        self.state = DebugState.IDLE
        self.config: LaunchConfiguration | None = None

    async def run(self, adapter: CommandAdapter, extra_flags: Sequence[str] = ()) -> DebugState:
        options = adapter.get_bazel_command_options()
        if len(options.targets) != 1:
            raise InvalidInvocation("invalid number of targets passed to the debug test flow")
        target = options.targets[0]

        try:
            await self._build(options, extra_flags)
        except BuildFailure as exc:
            self._console.debug(str(exc))
            self.state = DebugState.BUILD_FAILED
            return self.state

        program = await self._resolve_artifact(target)
        self.config = LaunchConfiguration(
            name=f"Debug Test Target: {target}",
            program=program,
            args=list(options.options),
            cwd=str(options.workspace_info.bazel_workspace_path),
            source_map=build_source_map(options.workspace_info.bazel_workspace_path, self._extra_source_mappings),
        )
        self.state = DebugState.LAUNCH_CONFIGURED

        await self._launcher.launch(self.config)
        self.state = DebugState.DONE
        return self.state

    async def _build(self, options: CommandOptions, extra_flags: Sequence[str]) -> None:
        build_options = options.with_options([*DEBUG_COMPILATION_MODE, *extra_flags])
        handle = self._dispatcher.dispatch(Verb.BUILD, build_options)
        self.state = DebugState.BUILDING
        exit_code = await handle.wait()
        if exit_code != 0:
            raise BuildFailure(exit_code, handle.command.name)
        self.state = DebugState.BUILD_SUCCEEDED

    async def _resolve_artifact(self, target: str) -> str:
        outputs = await self._cquery.query_outputs(target, list(DEBUG_COMPILATION_MODE))
        if not outputs:
            raise ArtifactNotFound(target)
        if len(outputs) > 1:
            self._console.info(f"{target} produced {len(outputs)} files; debugging {outputs[0]}")
        self.state = DebugState.ARTIFACT_RESOLVED
        return outputs[0]


__all__ = [
    "DEBUG_COMPILATION_MODE",
    "DebugLauncher",
    "DebugState",
    "DebugTestFlow",
    "EXECROOT_ALIAS",
    "JsonDebugLauncher",
    "LaunchConfiguration",
    "LldbDebugLauncher",
    "build_source_map",
]
