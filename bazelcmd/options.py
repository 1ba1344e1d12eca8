"""Command options and the resolver that prepares them for a Bazel verb.

Every node that can be built, run or tested (a package, a target, a single
sub-test, or an item picked from a prompt) is a :class:`CommandAdapter`: it
knows how to describe itself as :class:`CommandOptions`. The functions in this
module derive the options a specific verb needs from that description. They
never modify their input; each step returns a new value so two commands built
from the same node cannot observe each other.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Iterable, Sequence

from .errors import InvalidInvocation
from .workspace import WorkspaceInfo


class Verb(str, Enum):
    BUILD = "build"
    RUN = "run"
    TEST = "test"
    COVERAGE = "coverage"
    CLEAN = "clean"


TARGETED_VERBS = frozenset({Verb.BUILD, Verb.RUN, Verb.TEST, Verb.COVERAGE})
TEST_VERBS = frozenset({Verb.TEST, Verb.COVERAGE})

ALL_TARGETS = ":all"
RECURSIVE = "/..."

TEST_ARG_PREFIX = "--test_arg="


@dataclass(frozen=True, slots=True)
class CommandOptions:
    """Targets, flags and workspace for one Bazel invocation."""

    workspace_info: WorkspaceInfo
    targets: tuple[str, ...] = field(default_factory=tuple)
    options: tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        # Accept lists from callers but store tuples.
        object.__setattr__(self, "targets", tuple(self.targets))
        object.__setattr__(self, "options", tuple(self.options))

    def with_targets(self, targets: Iterable[str]) -> "CommandOptions":
        return replace(self, targets=tuple(targets))

    def with_options(self, options: Iterable[str]) -> "CommandOptions":
        return replace(self, options=tuple(options))

    def extend(self, other: "CommandOptions") -> "CommandOptions":
        """Append the targets and options of ``other``.

        Both values must belong to the same workspace; a command line can only
        run in one workspace root.
        """

        if other.workspace_info != self.workspace_info:
            raise InvalidInvocation(
                "cannot combine targets from workspaces "
                f"{self.workspace_info.bazel_workspace_path} and {other.workspace_info.bazel_workspace_path}"
            )
        return replace(
            self,
            targets=self.targets + other.targets,
            options=self.options + other.options,
        )


class CommandAdapter:
    """Something that can describe itself as :class:`CommandOptions`."""

    def get_bazel_command_options(self) -> CommandOptions:
        raise NotImplementedError


def apply_suffix(label: str, suffix: str) -> str:
    """Append a package suffix such as ``:all`` or ``/...`` to ``label``."""

    # The root package is "//", whose recursive form is "//...".
    if suffix.startswith("/") and label.endswith("/"):
        return label + suffix[1:]
    return label + suffix


def with_suffix(options: CommandOptions, suffix: str) -> CommandOptions:
    return options.with_targets(apply_suffix(target, suffix) for target in options.targets)


def with_test_args(options: CommandOptions, extra_flags: Sequence[str] = ()) -> CommandOptions:
    """Forward existing options to the test binary, then append Bazel flags.

    ``extra_flags`` are flags for Bazel itself and are not wrapped.
    """

    wrapped = [TEST_ARG_PREFIX + option for option in options.options]
    return options.with_options([*wrapped, *extra_flags])


def require_targets(verb: Verb, options: CommandOptions) -> None:
    if verb in TARGETED_VERBS and not options.targets:
        raise InvalidInvocation(f"bazel {verb.value} requires at least one target")


def resolve(
    verb: Verb,
    adapter: CommandAdapter,
    extra_flags: Sequence[str] = (),
    *,
    suffix: str | None = None,
) -> CommandOptions:
    """Produce the options for running ``verb`` against ``adapter``."""

    options = adapter.get_bazel_command_options()
    if suffix:
        options = with_suffix(options, suffix)
    if verb in TEST_VERBS:
        options = with_test_args(options, extra_flags)
    elif extra_flags:
        options = options.with_options([*options.options, *extra_flags])
    require_targets(verb, options)
    return options


__all__ = [
    "ALL_TARGETS",
    "CommandAdapter",
    "CommandOptions",
    "RECURSIVE",
    "TEST_ARG_PREFIX",
    "Verb",
    "apply_suffix",
    "require_targets",
    "resolve",
    "with_suffix",
    "with_test_args",
]
