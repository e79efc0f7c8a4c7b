"""Shared fixtures: a scripted command executor and throwaway git repositories."""

import shutil
import subprocess
from collections.abc import Callable
from pathlib import Path

import pytest

from git_monitor.git_wrapper import CommandFailure

requires_git = pytest.mark.skipif(
    shutil.which("git") is None, reason="git executable not available"
)


class FakeExecutor:
    """Records git invocations and answers them from a script.

    `responses` maps an argument tuple to either bytes (returned) or an
    exception (raised). Lookup tries the full tuple first, then the
    subcommand alone. Unscripted commands succeed with empty output.
    """

    def __init__(self, responses: dict | None = None):
        self.responses = dict(responses or {})
        self.calls: list[tuple[str, ...]] = []

    def run(self, directory: Path, *args: str) -> bytes:
        self.calls.append(args)
        outcome = self.responses.get(args, self.responses.get((args[0],), b""))
        if isinstance(outcome, BaseException):
            raise outcome
        if callable(outcome):
            return outcome(directory, *args)
        return outcome

    def commands(self) -> list[str]:
        """The subcommand of each recorded call, in order."""
        return [c[0] for c in self.calls]


def failure(message: str = "exit status 128") -> CommandFailure:
    return CommandFailure(subprocess.CalledProcessError(128, ["git"]), message.encode())


class RecordingNotifier:
    def __init__(self, error: Exception | None = None):
        self.messages: list[str] = []
        self.error = error

    def send(self, message: str) -> None:
        self.messages.append(message)
        if self.error is not None:
            raise self.error


def git(cwd: Path, *args: str) -> str:
    """Runs git with a fixed identity so commits work on bare CI machines."""
    res = subprocess.run(
        [
            "git",
            "-c",
            "user.name=Monitor Test",
            "-c",
            "user.email=monitor@example.com",
            "-c",
            "commit.gpgsign=false",
            *args,
        ],
        cwd=cwd,
        check=True,
        capture_output=True,
        text=True,
    )
    return res.stdout


def commit_all(repo: Path, message: str) -> None:
    git(repo, "add", "-A")
    git(repo, "commit", "-q", "-m", message)


@pytest.fixture
def fake_executor() -> FakeExecutor:
    return FakeExecutor()


@pytest.fixture
def recording_notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def upstream(tmp_path: Path) -> Path:
    """An upstream repository holding a.txt and b.txt at 'v1'."""
    repo = tmp_path / "upstream"
    repo.mkdir()
    git(repo, "init", "-q")
    git(repo, "checkout", "-q", "-b", "main")
    (repo / "a.txt").write_text("v1")
    (repo / "b.txt").write_text("v1")
    commit_all(repo, "initial")
    return repo


@pytest.fixture
def write_upstream(upstream: Path) -> Callable[..., None]:
    """Applies file writes/removals to the upstream repository and commits."""

    def apply(
        files: dict[str, str] | None = None,
        remove: tuple[str, ...] = (),
        message: str = "update",
    ) -> None:
        for name, content in (files or {}).items():
            target = upstream / name
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content)
        for name in remove:
            (upstream / name).unlink()
        commit_all(upstream, message)

    return apply
