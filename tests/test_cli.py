from __future__ import annotations

from pathlib import Path
from unittest import mock
import io
import os
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout

from core.command_runner import RecordingCommandRunner
from bazelcmd.cli import main


class CliTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.root = Path(self.temp_dir.name).resolve()
        self.workspace = self.root / "workspace"
        (self.workspace / "pkg").mkdir(parents=True)
        (self.workspace / "MODULE.bazel").write_text("")
        self.previous_cwd = Path.cwd()
        os.chdir(self.workspace / "pkg")
        env_patch = mock.patch.dict(
            os.environ, {"XDG_CONFIG_HOME": str(self.root / "xdg")}, clear=False
        )
        env_patch.start()
        os.environ.pop("BAZELCMD_EXECUTABLE", None)
        self.addCleanup(env_patch.stop)

    def tearDown(self) -> None:
        os.chdir(self.previous_cwd)
        self.temp_dir.cleanup()

    def run_main(self, *argv: str) -> tuple[int, str, str]:
        stdout = io.StringIO()
        stderr = io.StringIO()
        with redirect_stdout(stdout), redirect_stderr(stderr):
            code = main(list(argv))
        return code, stdout.getvalue(), stderr.getvalue()

    def test_dry_run_build(self) -> None:
        code, stdout, _ = self.run_main("--dry-run", "-q", "build", "//pkg:app")
        self.assertEqual(code, 0)
        self.assertEqual(
            stdout.strip().splitlines(),
            [f"[dry-run] build //pkg:app (cwd={self.workspace}) bazel build //pkg:app"],
        )

    def test_dry_run_test_filter_uses_configured_args(self) -> None:
        (self.workspace / ".bazelcmd.toml").write_text(
            '[command_line]\nexecutable = "bazelisk"\ncommand_args = ["--config=ci"]\n'
        )
        code, stdout, _ = self.run_main(
            "--dry-run", "-q", "testDbg", "//pkg:unit_test", "--test-filter", "Math.Adds"
        )
        self.assertEqual(code, 0)
        self.assertIn(
            "bazelisk test --config=ci //pkg:unit_test --test_arg=--gtest_filter=Math.Adds "
            "--compilation_mode=dbg",
            stdout,
        )

    def test_dry_run_clean(self) -> None:
        code, stdout, _ = self.run_main("--dry-run", "-q", "clean")
        self.assertEqual(code, 0)
        self.assertIn("bazel clean", stdout)

    def test_info_output(self) -> None:
        code, stdout, _ = self.run_main("--dry-run", "buildAll", "//pkg")
        self.assertEqual(code, 0)
        self.assertIn("[INFO] Starting task: build //pkg:all", stdout)

    def test_test_filter_requires_target(self) -> None:
        code, _, stderr = self.run_main("--dry-run", "test", "--test-filter", "Math.Adds")
        self.assertEqual(code, 1)
        self.assertIn("--test-filter requires a target", stderr)

    def test_invalid_configuration(self) -> None:
        (self.workspace / ".bazelcmd.toml").write_text('[debug]\ndebugger = "gdb"\n')
        code, _, stderr = self.run_main("--dry-run", "clean")
        self.assertEqual(code, 1)
        self.assertIn("[ERROR] debug.debugger", stderr)

    def test_outside_workspace(self) -> None:
        os.chdir(self.root)
        with mock.patch("bazelcmd.cli.WorkspaceInfo.from_directory", return_value=None):
            code, stdout, stderr = self.run_main("--dry-run", "build", "//pkg:app")
        self.assertEqual(code, 1)
        self.assertIn("Please open a Bazel workspace folder", stderr)

        with mock.patch("bazelcmd.cli.WorkspaceInfo.from_directory", return_value=None):
            code, stdout, _ = self.run_main("--dry-run", "clean")
        self.assertEqual(code, 0)
        self.assertIn("Please open a Bazel workspace folder", stdout)

    def test_unknown_command_rejected(self) -> None:
        with redirect_stderr(io.StringIO()):
            with self.assertRaises(SystemExit):
                main(["format"])

    def test_test_filter_only_for_test_commands(self) -> None:
        for command_id in ("build", "buildAll", "buildWithDebugging", "run"):
            with self.subTest(command=command_id):
                with redirect_stderr(io.StringIO()):
                    with self.assertRaises(SystemExit):
                        main(["--dry-run", command_id, "//pkg:app", "--test-filter", "Math.Adds"])

        code, stdout, _ = self.run_main("--dry-run", "-q", "testAll", "//pkg", "--test-filter", "Math.Adds")
        self.assertEqual(code, 0)
        self.assertIn("bazel test //pkg:all --test_arg=--gtest_filter=Math.Adds", stdout)

    def test_missing_bazel_executable(self) -> None:
        os.environ["BAZELCMD_EXECUTABLE"] = "/nonexistent/bazel"
        invocations = {
            "debug artifact lookup": ("--dry-run", "-q", "debugTest", "//pkg:t"),
            "tree expansion": ("tree",),
            "target prompt": ("-q", "build"),
        }
        for name, argv in invocations.items():
            with self.subTest(case=name):
                code, _, stderr = self.run_main(*argv)
                self.assertEqual(code, 1)
                self.assertIn("[ERROR] Could not start", stderr)
                self.assertIn("/nonexistent/bazel", stderr)


PACKAGE_XML = """\
<?xml version="1.1" encoding="UTF-8" standalone="no"?>
<query version="2">
    <rule class="cc_test" location="/w/pkg/BUILD:3:8" name="//pkg:unit_test"/>
    <rule class="cc_library" location="/w/pkg/BUILD:1:11" name="//pkg:lib"/>
</query>"""

TARGET_XML = """\
<?xml version="1.1" encoding="UTF-8" standalone="no"?>
<query version="2">
    <rule class="cc_test" location="/w/pkg/BUILD:3:8" name="//pkg:unit_test"/>
</query>"""

GTEST_LISTING = "Math.\n  Adds\n  Divides  # GetParam() = 3\n"


class CliTreeTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.root = Path(self.temp_dir.name).resolve()
        self.workspace = self.root / "workspace"
        binary = self.workspace / "bazel-out" / "bin" / "pkg" / "unit_test"
        binary.parent.mkdir(parents=True)
        binary.write_text("")
        (self.workspace / "MODULE.bazel").write_text("")
        self.previous_cwd = Path.cwd()
        os.chdir(self.workspace)
        env_patch = mock.patch.dict(os.environ, {"XDG_CONFIG_HOME": str(self.root / "xdg")})
        env_patch.start()
        os.environ.pop("BAZELCMD_EXECUTABLE", None)
        self.addCleanup(env_patch.stop)

        self.runner = RecordingCommandRunner(
            {
                "bazel query //pkg:unit_test ": TARGET_XML,
                "bazel query //pkg:missing ": "",
                "//:all": "",
                "//pkg:all": PACKAGE_XML,
                "--output=package": "pkg\npkg/sub\n",
                "--output=files": "bazel-out/bin/pkg/unit_test\n",
                "--gtest_list_tests": GTEST_LISTING,
            }
        )
        runner_patch = mock.patch("bazelcmd.cli.SubprocessCommandRunner", return_value=self.runner)
        runner_patch.start()
        self.addCleanup(runner_patch.stop)

    def tearDown(self) -> None:
        os.chdir(self.previous_cwd)
        self.temp_dir.cleanup()

    def run_tree(self, *argv: str) -> tuple[int, list[str], str]:
        stdout = io.StringIO()
        stderr = io.StringIO()
        with redirect_stdout(stdout), redirect_stderr(stderr):
            code = main(["-q", "tree", *argv])
        return code, stdout.getvalue().splitlines(), stderr.getvalue()

    def test_workspace_root(self) -> None:
        code, lines, _ = self.run_tree()
        self.assertEqual(code, 0)
        self.assertEqual(lines, ["//", "  //pkg"])

    def test_package_one_level(self) -> None:
        code, lines, _ = self.run_tree("//pkg")
        self.assertEqual(code, 0)
        self.assertEqual(
            lines,
            ["//pkg", "  //pkg/sub", "  :lib  (cc_library)", "  :unit_test  (cc_test)"],
        )
        formatted = [self.runner.format_command(record.command) for record in self.runner.commands]
        self.assertFalse(any("--gtest_list_tests" in command for command in formatted))

    def test_package_two_levels_lists_test_cases(self) -> None:
        code, lines, _ = self.run_tree("//pkg", "--depth", "2")
        self.assertEqual(code, 0)
        self.assertEqual(
            lines,
            [
                "//pkg",
                "  //pkg/sub",
                "  :lib  (cc_library)",
                "  :unit_test  (cc_test)",
                "    Math.Adds",
                "    Math.Divides  # GetParam() = 3",
            ],
        )

    def test_target_root(self) -> None:
        code, lines, _ = self.run_tree("//pkg:unit_test")
        self.assertEqual(code, 0)
        self.assertEqual(
            lines,
            [":unit_test  (cc_test)", "  Math.Adds", "  Math.Divides  # GetParam() = 3"],
        )

    def test_depth_zero_prints_root_only(self) -> None:
        code, lines, _ = self.run_tree("//pkg:unit_test", "--depth", "0")
        self.assertEqual(code, 0)
        self.assertEqual(lines, [":unit_test  (cc_test)"])

    def test_unknown_target(self) -> None:
        code, lines, stderr = self.run_tree("//pkg:missing")
        self.assertEqual(code, 1)
        self.assertEqual(lines, [])
        self.assertIn("No target matches //pkg:missing", stderr)


if __name__ == "__main__":
    unittest.main()
