import subprocess
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from git_monitor.git_wrapper import CommandFailure, GitExecutor, GitRepo

from conftest import FakeExecutor, failure


def test_executor_runs_git_in_directory_with_merged_output(
    mocker: MagicMock, tmp_path: Path
) -> None:
    """Verifies pathspecs are read literally and stderr is merged into stdout."""
    mock_run = mocker.patch("subprocess.run")
    mock_run.return_value.stdout = b"ok\n"

    output = GitExecutor(timeout=30).run(tmp_path, "fetch", "origin")

    assert output == b"ok\n"
    mock_run.assert_called_once_with(
        ["git", "--literal-pathspecs", "-C", str(tmp_path), "fetch", "origin"],
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
        check=True,
        timeout=30,
    )


def test_executor_wraps_non_zero_exit(mocker: MagicMock, tmp_path: Path) -> None:
    """Verifies a failing command surfaces its captured output."""
    error = subprocess.CalledProcessError(
        128, ["git"], output=b"fatal: not a git repository"
    )
    mocker.patch("subprocess.run", side_effect=error)

    with pytest.raises(CommandFailure) as exc_info:
        GitExecutor().run(tmp_path, "status")

    assert exc_info.value.cause is error
    assert exc_info.value.output == b"fatal: not a git repository"
    assert "not a git repository" in str(exc_info.value)


def test_executor_wraps_timeout_and_missing_binary(
    mocker: MagicMock, tmp_path: Path
) -> None:
    """Verifies timeouts and launch errors become CommandFailure too."""
    mocker.patch(
        "subprocess.run", side_effect=subprocess.TimeoutExpired(["git"], timeout=1)
    )
    with pytest.raises(CommandFailure) as exc_info:
        GitExecutor(timeout=1).run(tmp_path, "fetch", "origin")
    assert isinstance(exc_info.value.cause, subprocess.TimeoutExpired)

    mocker.patch("subprocess.run", side_effect=FileNotFoundError("git"))
    with pytest.raises(CommandFailure):
        GitExecutor().run(tmp_path, "fetch", "origin")


def test_command_failure_is_a_runtime_error() -> None:
    assert isinstance(failure(), RuntimeError)


def test_list_tree_splits_nul_separated_paths(tmp_path: Path) -> None:
    """Verifies that paths with spaces and newlines survive enumeration."""
    executor = FakeExecutor(
        {("ls-tree",): b"a.txt\0dir/with space.md\0odd\nname\0 \0"}
    )
    repo = GitRepo(tmp_path, executor)

    assert repo.list_tree("origin/HEAD") == [
        "a.txt",
        "dir/with space.md",
        "odd\nname",
        " ",
    ]
    assert executor.calls == [("ls-tree", "-r", "-z", "--name-only", "origin/HEAD")]


def test_list_tree_empty_tree(tmp_path: Path) -> None:
    repo = GitRepo(tmp_path, FakeExecutor({("ls-tree",): b""}))
    assert repo.list_tree("origin/HEAD") == []


def test_diff_and_checkout_use_path_boundary(tmp_path: Path) -> None:
    """Verifies per-file commands separate the ref from the path with '--'."""
    executor = FakeExecutor()
    repo = GitRepo(tmp_path, executor)

    repo.diff("origin/HEAD", "-weird-name")
    repo.checkout_path("origin/HEAD", "-weird-name")

    assert executor.calls == [
        ("diff", "--no-color", "--no-ext-diff", "origin/HEAD", "--", "-weird-name"),
        ("checkout", "origin/HEAD", "--", "-weird-name"),
    ]


def test_is_work_tree_probe(tmp_path: Path) -> None:
    assert GitRepo(tmp_path, FakeExecutor()).is_work_tree() is True
    assert (
        GitRepo(tmp_path, FakeExecutor({("rev-parse",): failure()})).is_work_tree()
        is False
    )


def test_remote_url_is_stripped(tmp_path: Path) -> None:
    executor = FakeExecutor(
        {("remote", "get-url", "origin"): b"  https://example.com/repo.git\n"}
    )
    assert GitRepo(tmp_path, executor).remote_url("origin") == (
        "https://example.com/repo.git"
    )
