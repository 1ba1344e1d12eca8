"""Configuration loading for bazelcmd."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping
import os

import yaml

from core.config_loader import find_config_file, load_config_file, merge_mappings, normalize_string_list

from .console import Console
from .errors import ConfigurationError

EXECUTABLE_ENV = "BAZELCMD_EXECUTABLE"
USER_CONFIG_STEM = "config"
WORKSPACE_CONFIG_STEM = ".bazelcmd"
DEBUGGERS = ("lldb", "json")


def _section(data: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    value = data.get(name, {})
    if not isinstance(value, Mapping):
        raise ConfigurationError(f"[{name}] must be a table")
    return value


def _string_list(value: Any, *, field_name: str) -> List[str]:
    try:
        return normalize_string_list(value, field_name=field_name)
    except TypeError as exc:
        raise ConfigurationError(str(exc)) from exc


@dataclass(slots=True)
class GlobalConfig:
    log_level: str = "info"

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "GlobalConfig":
        section = _section(data, "global")
        log_level = str(section.get("log_level", "info")).lower()
        if log_level not in Console.LEVELS:
            raise ConfigurationError(f"global.log_level must be one of {', '.join(Console.LEVELS)}")
        return cls(log_level=log_level)


@dataclass(slots=True)
class CommandLineConfig:
    executable: str = "bazel"
    startup_options: List[str] = field(default_factory=list)
    command_args: List[str] = field(default_factory=list)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "CommandLineConfig":
        section = _section(data, "command_line")
        executable = str(section.get("executable") or "bazel").strip()
        return cls(
            executable=executable or "bazel",
            startup_options=_string_list(section.get("startup_options"), field_name="command_line.startup_options"),
            command_args=_string_list(section.get("command_args"), field_name="command_line.command_args"),
        )


@dataclass(slots=True)
class DebugConfig:
    debugger: str = "lldb"
    starlark_debug_port: int = 7300
    extra_source_mappings: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "DebugConfig":
        section = _section(data, "debug")
        debugger = str(section.get("debugger", "lldb")).lower()
        if debugger not in DEBUGGERS:
            raise ConfigurationError(f"debug.debugger must be one of {', '.join(DEBUGGERS)}")

        port = section.get("starlark_debug_port", 7300)
        if isinstance(port, bool) or not isinstance(port, int) or not 0 < port < 65536:
            raise ConfigurationError("debug.starlark_debug_port must be a TCP port number")

        mappings_section = section.get("extra_source_mappings", {})
        if not isinstance(mappings_section, Mapping):
            raise ConfigurationError("debug.extra_source_mappings must be a table of strings")
        mappings: Dict[str, str] = {}
        for key, value in mappings_section.items():
            if not isinstance(value, str):
                raise ConfigurationError(f"debug.extra_source_mappings.{key} must be a string")
            mappings[str(key)] = value

        return cls(debugger=debugger, starlark_debug_port=port, extra_source_mappings=mappings)


@dataclass(slots=True)
class Settings:
    global_config: GlobalConfig = field(default_factory=GlobalConfig)
    command_line: CommandLineConfig = field(default_factory=CommandLineConfig)
    debug: DebugConfig = field(default_factory=DebugConfig)
    sources: List[Path] = field(default_factory=list)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], *, sources: List[Path] | None = None) -> "Settings":
        return cls(
            global_config=GlobalConfig.from_mapping(data),
            command_line=CommandLineConfig.from_mapping(data),
            debug=DebugConfig.from_mapping(data),
            sources=list(sources or []),
        )


def user_config_dir(env: Mapping[str, str] | None = None) -> Path:
    env = os.environ if env is None else env
    base = env.get("XDG_CONFIG_HOME")
    root = Path(base) if base else Path.home() / ".config"
    return root / "bazelcmd"


def load_settings(
    workspace: Path | None,
    *,
    explicit: Path | None = None,
    env: Mapping[str, str] | None = None,
) -> Settings:
    """Merge the user, workspace and explicit configuration files, in that order.

    Later files override earlier ones key by key. ``BAZELCMD_EXECUTABLE``
    overrides ``command_line.executable`` from any file.
    """

    env = os.environ if env is None else env
    candidates: List[Path] = []

    lookups = [(user_config_dir(env), USER_CONFIG_STEM)]
    if workspace is not None:
        lookups.append((workspace, WORKSPACE_CONFIG_STEM))
    for directory, stem in lookups:
        try:
            found = find_config_file(directory, stem)
        except ValueError as exc:
            raise ConfigurationError(str(exc)) from exc
        if found:
            candidates.append(found)
    if explicit is not None:
        if not explicit.is_file():
            raise ConfigurationError(f"Configuration file not found: {explicit}")
        candidates.append(explicit)

    merged: Dict[str, Any] = {}
    for path in candidates:
        try:
            data = load_config_file(path)
        except (TypeError, ValueError, yaml.YAMLError) as exc:
            raise ConfigurationError(f"{path}: {exc}") from exc
        merged = merge_mappings(merged, data)

    settings = Settings.from_mapping(merged, sources=candidates)
    executable = env.get(EXECUTABLE_ENV, "").strip()
    if executable:
        settings.command_line.executable = executable
    return settings


__all__ = [
    "CommandLineConfig",
    "DebugConfig",
    "EXECUTABLE_ENV",
    "GlobalConfig",
    "Settings",
    "load_settings",
    "user_config_dir",
]
