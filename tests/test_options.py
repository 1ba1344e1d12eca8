from __future__ import annotations

from pathlib import Path
import unittest

from bazelcmd.errors import InvalidInvocation
from bazelcmd.options import (
    ALL_TARGETS,
    RECURSIVE,
    CommandAdapter,
    CommandOptions,
    Verb,
    apply_suffix,
    resolve,
    with_suffix,
    with_test_args,
)
from bazelcmd.workspace import WorkspaceInfo


class StaticAdapter(CommandAdapter):
    def __init__(self, options: CommandOptions) -> None:
        self.options = options

    def get_bazel_command_options(self) -> CommandOptions:
        return self.options


class CommandOptionsTests(unittest.TestCase):
    def setUp(self) -> None:
        self.workspace = WorkspaceInfo(Path("/work/main"))

    def test_lists_are_stored_as_tuples(self) -> None:
        options = CommandOptions(workspace_info=self.workspace, targets=["//a:b"], options=["--x"])
        self.assertEqual(options.targets, ("//a:b",))
        self.assertEqual(options.options, ("--x",))

    def test_extend_same_workspace(self) -> None:
        first = CommandOptions(workspace_info=self.workspace, targets=["//a:b"], options=["--x"])
        second = CommandOptions(workspace_info=WorkspaceInfo(Path("/work/main")), targets=["//c:d"])
        merged = first.extend(second)
        self.assertEqual(merged.targets, ("//a:b", "//c:d"))
        self.assertEqual(merged.options, ("--x",))
        self.assertEqual(first.targets, ("//a:b",))

    def test_extend_rejects_other_workspace(self) -> None:
        first = CommandOptions(workspace_info=self.workspace, targets=["//a:b"])
        other = CommandOptions(workspace_info=WorkspaceInfo(Path("/work/other")), targets=["//c:d"])
        with self.assertRaises(InvalidInvocation):
            first.extend(other)


class SuffixTests(unittest.TestCase):
    def setUp(self) -> None:
        self.workspace = WorkspaceInfo(Path("/work/main"))

    def test_apply_suffix(self) -> None:
        self.assertEqual(apply_suffix("//pkg", ALL_TARGETS), "//pkg:all")
        self.assertEqual(apply_suffix("//pkg", RECURSIVE), "//pkg/...")
        self.assertEqual(apply_suffix("//", ALL_TARGETS), "//:all")
        self.assertEqual(apply_suffix("//", RECURSIVE), "//...")

    def test_with_suffix_returns_new_value_each_time(self) -> None:
        source = CommandOptions(workspace_info=self.workspace, targets=["//pkg", "//other"], options=["--k"])
        first = with_suffix(source, ALL_TARGETS)
        second = with_suffix(source, ALL_TARGETS)
        self.assertEqual(first, second)
        self.assertEqual(first.targets, ("//pkg:all", "//other:all"))
        self.assertEqual(source.targets, ("//pkg", "//other"))

    def test_resolve_build_all_twice_is_identical(self) -> None:
        adapter = StaticAdapter(CommandOptions(workspace_info=self.workspace, targets=["//pkg"]))
        first = resolve(Verb.BUILD, adapter, suffix=ALL_TARGETS)
        second = resolve(Verb.BUILD, adapter, suffix=ALL_TARGETS)
        self.assertEqual(first, second)
        self.assertEqual(adapter.options.targets, ("//pkg",))


class TestArgumentTests(unittest.TestCase):
    def setUp(self) -> None:
        self.workspace = WorkspaceInfo(Path("/work/main"))

    def test_existing_options_wrapped_before_extra_flags(self) -> None:
        source = CommandOptions(workspace_info=self.workspace, targets=["//x:y"], options=["--foo"])
        result = with_test_args(source, ["--config=clang-asan"])
        self.assertEqual(result.options, ("--test_arg=--foo", "--config=clang-asan"))
        self.assertEqual(result.targets, ("//x:y",))
        self.assertEqual(source.options, ("--foo",))

    def test_resolve_test_verb_wraps(self) -> None:
        adapter = StaticAdapter(
            CommandOptions(workspace_info=self.workspace, targets=["//x:y"], options=["--gtest_filter=A.B"])
        )
        result = resolve(Verb.TEST, adapter, ["--compilation_mode=dbg", "--config=clang-asan"])
        self.assertEqual(
            result.options,
            ("--test_arg=--gtest_filter=A.B", "--compilation_mode=dbg", "--config=clang-asan"),
        )

    def test_resolve_coverage_wraps(self) -> None:
        adapter = StaticAdapter(CommandOptions(workspace_info=self.workspace, targets=["//x:y"], options=["--v"]))
        self.assertEqual(resolve(Verb.COVERAGE, adapter).options, ("--test_arg=--v",))

    def test_resolve_build_appends_without_wrapping(self) -> None:
        adapter = StaticAdapter(CommandOptions(workspace_info=self.workspace, targets=["//x:y"], options=["--v"]))
        self.assertEqual(resolve(Verb.BUILD, adapter, ["--k"]).options, ("--v", "--k"))


class TargetCountTests(unittest.TestCase):
    def setUp(self) -> None:
        self.empty = StaticAdapter(CommandOptions(workspace_info=WorkspaceInfo(Path("/work/main"))))

    def test_targeted_verbs_need_targets(self) -> None:
        for verb in (Verb.BUILD, Verb.RUN, Verb.TEST, Verb.COVERAGE):
            with self.subTest(verb=verb):
                with self.assertRaises(InvalidInvocation):
                    resolve(verb, self.empty)

    def test_clean_accepts_no_targets(self) -> None:
        self.assertEqual(resolve(Verb.CLEAN, self.empty).targets, ())


if __name__ == "__main__":
    unittest.main()
