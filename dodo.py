import subprocess
import sys

from doit.task import Task

FORMATTERS: list[tuple[list[str], list[str], set[int]]] = [
    (["autoflake", "-r", "-i", "src", "test"], ["--check"], {0}),
    (["isort", "."], ["--check-only"], {0}),
    # docformatter exits with 3 when it rewrites files
    (["docformatter", "-r", "-i", "src", "test"], ["--check"], {0, 3}),
    (["black", "."], ["--check"], {0}),
    (["toml-sort", "-i", "pyproject.toml"], ["--check"], {0}),
]
"""
Formatter commands, the flags which turn them into checks, and accepted exit codes.
"""


def task_format() -> Task:
    """
    Format sources and tests in place.
    """
    return Task(
        "format",
        actions=[(_run, (cmd, rcs)) for cmd, _, rcs in FORMATTERS],
        targets=[],
        file_dep=[],
    )


def task_check() -> Task:
    """
    Check formatting without modifying files.
    """
    return Task(
        "check",
        actions=[(_run, (_as_check(cmd, flags),)) for cmd, flags, _ in FORMATTERS],
        targets=[],
        file_dep=[],
    )


def task_test() -> Task:
    """
    Run tests.
    """
    return Task(
        "test",
        actions=[(_run, (["pytest", "test"],))],
        targets=[],
        file_dep=[],
    )


def _as_check(cmd: list[str], flags: list[str]) -> list[str]:
    return [cmd[0], *flags, *(a for a in cmd[1:] if a != "-i")]


def _run(cmd: list[str], expect_rcs: set[int] | None = None):
    print(f"=== Running: {' '.join(cmd)}")
    rc = subprocess.call(cmd)
    if rc not in (expect_rcs or {0}):
        sys.exit(f"{cmd[0]} failed: rc={rc}, cmd={cmd}")
