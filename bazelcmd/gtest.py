"""Parsing of ``--gtest_list_tests`` output."""
from __future__ import annotations

from dataclasses import dataclass
from typing import List

GTEST_LIST_FLAG = "--gtest_list_tests"
GTEST_FILTER_PREFIX = "--gtest_filter="


@dataclass(frozen=True, slots=True)
class SubTestDescriptor:
    qualified_name: str
    comment: str | None = None

    def filter_flag(self) -> str:
        return GTEST_FILTER_PREFIX + self.qualified_name


def parse_gtest_list(text: str) -> List[SubTestDescriptor]:
    """Turn the listing printed by a gtest binary into sub-test descriptors.

    The listing looks like::

        GroupA.
          Case1
          Case2  # GetParam() = 4
        GroupB/0.  # TypeParam = int
          Case3

    Unindented lines name a group (the trailing dot is part of the name);
    lines indented by two spaces name a case in the current group. Anything
    after the first ``#`` is kept as the display comment. Unexpected lines are
    never an error: a case before any group simply has no group prefix.
    """

    current_group = ""
    tests: List[SubTestDescriptor] = []
    for line in text.split("\n"):
        if not line.startswith("  "):
            current_group = line.strip()
            continue
        case = line.strip()
        # A blank case line would yield the bare group name as a test, which
        # no --gtest_filter run can select; such lines are dropped.
        if not case:
            continue
        name, sep, comment = case.partition("#")
        if sep:
            tests.append(SubTestDescriptor(current_group + name.strip(), comment.strip()))
        else:
            tests.append(SubTestDescriptor(current_group + case))
    return tests


__all__ = ["GTEST_FILTER_PREFIX", "GTEST_LIST_FLAG", "SubTestDescriptor", "parse_gtest_list"]
