"""Startup classification of the local directory.

The monitor only starts once the local path is a git working tree whose
tracking remote is the configured upstream. Anything else either gets fixed
here (clone, or adopt when the policy allows it) or stops the process.
"""

import logging
from enum import Enum
from pathlib import Path

from .config import InitPolicy, SyncConfig
from .constants import APP_NAME
from .git_wrapper import CommandExecutor, CommandFailure, GitExecutor, GitRepo

logger = logging.getLogger(APP_NAME)


class FatalInitError(RuntimeError):
    """The local directory could not be brought into a synchronized state."""


class NotARepository(FatalInitError):
    """The local path exists but is not a git working tree."""

    def __init__(self, path: Path):
        self.path = path
        super().__init__(f"Directory {path} is not a valid git repository.")


class RemoteMismatch(FatalInitError):
    """The local repository tracks a different upstream than configured."""

    def __init__(self, configured: str, actual: str):
        self.configured = configured
        self.actual = actual
        super().__init__(
            "Remote URL mismatch\n"
            f"  configured: {configured}\n"
            f"  actual:     {actual}"
        )


class RepoState(Enum):
    ABSENT = "absent"
    NOT_A_REPOSITORY = "not_a_repository"
    REPOSITORY = "repository"


def classify_state(path: Path, repo: GitRepo) -> RepoState:
    """Determines which startup state the local path is in.

    Args:
        path (Path): The configured local directory.
        repo (GitRepo): A repository handle rooted at `path`.

    Returns:
        RepoState: The detected state.

    Raises:
        FatalInitError: If the path exists but is not a directory.
    """
    if not path.exists():
        return RepoState.ABSENT
    if not path.is_dir():
        raise FatalInitError(f"Local path {path} exists and is not a directory.")
    if not repo.is_work_tree():
        return RepoState.NOT_A_REPOSITORY
    return RepoState.REPOSITORY


def _clone(config: SyncConfig, repo: GitRepo) -> None:
    logger.info(
        f"CLONE: {config.local_path} missing, cloning {config.remote_location}"
    )
    try:
        config.local_path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise FatalInitError(
            f"Failed to create directory {config.local_path}: {e}"
        ) from e
    try:
        repo.clone(config.remote_location)
    except CommandFailure as e:
        raise FatalInitError(f"Failed to clone repository: {e}") from e
    logger.info(f"SUCCESS: cloned into {config.local_path}")


def _adopt(config: SyncConfig, repo: GitRepo) -> None:
    logger.warning(
        f"ADOPT: {config.local_path} is not a git repository, initializing in place"
    )
    steps = [
        ("init", repo.init),
        (
            "add remote",
            lambda: repo.add_remote(config.remote_name, config.remote_location),
        ),
        ("fetch", lambda: repo.fetch(config.remote_name)),
        ("set remote HEAD", lambda: repo.set_remote_head(config.remote_name)),
        ("reset", lambda: repo.reset_hard(config.tracking_ref)),
    ]
    for label, step in steps:
        try:
            step()
        except CommandFailure as e:
            raise FatalInitError(f"Failed to adopt repository ({label}): {e}") from e
    logger.info(f"SUCCESS: {config.local_path} initialized and synchronized")


def _verify_remote(config: SyncConfig, repo: GitRepo) -> None:
    try:
        actual = repo.remote_url(config.remote_name)
    except CommandFailure as e:
        raise FatalInitError(
            f"Failed to read remote '{config.remote_name}': {e}"
        ) from e
    if actual != config.remote_location.strip():
        raise RemoteMismatch(config.remote_location, actual)


def initialize(
    config: SyncConfig, executor: CommandExecutor | None = None
) -> RepoState:
    """Brings the local directory into a synchronized, trackable state.

    Runs once before scheduling starts. There is no retry; any failure is
    fatal for the process.

    Args:
        config (SyncConfig): The monitor settings.
        executor (CommandExecutor | None): Command runner. Defaults to a
                                           subprocess executor using the
                                           configured timeout.

    Returns:
        RepoState: The state the directory was found in.

    Raises:
        FatalInitError: If the directory cannot be made ready. The subclasses
                        NotARepository and RemoteMismatch identify refusals.
    """
    executor = executor or GitExecutor(timeout=config.command_timeout)
    repo = GitRepo(config.local_path, executor)
    state = classify_state(config.local_path, repo)

    if state is RepoState.ABSENT:
        _clone(config, repo)
    elif state is RepoState.NOT_A_REPOSITORY:
        if config.init_policy is not InitPolicy.ADOPT:
            raise NotARepository(config.local_path)
        _adopt(config, repo)
    else:
        _verify_remote(config, repo)

    return state
