import logging
import subprocess
from pathlib import Path
from typing import Protocol

from .constants import APP_NAME, DEFAULT_COMMAND_TIMEOUT

logger = logging.getLogger(APP_NAME)


class CommandFailure(RuntimeError):
    """Raised when a git command exits non-zero, times out, or cannot start.

    Attributes:
        cause (BaseException): The underlying subprocess error.
        output (bytes): Merged stdout/stderr captured before the failure.
    """

    def __init__(self, cause: BaseException, output: bytes = b""):
        self.cause = cause
        self.output = output or b""
        detail = self.output.decode("utf-8", errors="replace").strip()
        message = f"Git error: {cause}"
        if detail:
            message += f"\n{detail}"
        super().__init__(message)


class CommandExecutor(Protocol):
    """Runs a version-control command rooted at a directory."""

    def run(self, directory: Path, *args: str) -> bytes:
        """Returns merged stdout/stderr, raising CommandFailure on error."""
        ...


class GitExecutor:
    """Executes `git -C <directory> ...` in a short-lived subprocess.

    Attributes:
        timeout (float | None): Seconds each command may run before it is killed.
    """

    def __init__(self, timeout: float | None = DEFAULT_COMMAND_TIMEOUT):
        self.timeout = timeout

    def run(self, directory: Path, *args: str) -> bytes:
        """Executes a git command and returns its merged output.

        Args:
            directory (Path): The directory git operates in (`git -C`).
            *args (str): The git subcommand and its arguments.

        Returns:
            bytes: Combined stdout and stderr of the command.

        Raises:
            CommandFailure: If git exits non-zero, exceeds the timeout, or
                            cannot be started.
        """
        cmd = ["git", "--literal-pathspecs", "-C", str(directory), *args]
        logger.debug(f"RUN {' '.join(cmd)}")
        try:
            res = subprocess.run(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                check=True,
                timeout=self.timeout,
            )
            return res.stdout
        except subprocess.CalledProcessError as e:
            raise CommandFailure(e, e.output) from e
        except subprocess.TimeoutExpired as e:
            raise CommandFailure(e, e.output or b"") from e
        except OSError as e:
            raise CommandFailure(e) from e


class GitRepo:
    """Named git operations for the mirrored repository.

    Every call goes through the injected executor, so tests can replace the
    subprocess layer with canned output.

    Attributes:
        path (Path): The local working directory.
        executor (CommandExecutor): The command runner.
    """

    def __init__(self, path: Path, executor: CommandExecutor | None = None):
        self.path = path
        self.executor = executor or GitExecutor()

    def _run(self, *args: str) -> bytes:
        return self.executor.run(self.path, *args)

    def is_work_tree(self) -> bool:
        """Checks whether the directory is inside a git working tree.

        Returns:
            bool: True if `rev-parse --is-inside-work-tree` succeeds.
        """
        try:
            self._run("rev-parse", "--is-inside-work-tree")
            return True
        except CommandFailure as e:
            logger.debug(f"Work tree probe failed for {self.path}: {e}")
            return False

    def remote_url(self, remote: str) -> str:
        """Returns the registered URL of a remote, stripped of whitespace.

        Raises:
            CommandFailure: If the remote does not exist.
        """
        return self._run("remote", "get-url", remote).decode("utf-8").strip()

    def clone(self, url: str) -> None:
        """Clones `url` into the (empty) repository directory."""
        self._run("clone", url, ".")

    def init(self) -> None:
        """Creates an empty repository in the working directory."""
        self._run("init")

    def add_remote(self, name: str, url: str) -> None:
        """Registers `url` as remote `name`."""
        self._run("remote", "add", name, url)

    def fetch(self, remote: str) -> bytes:
        """Updates remote tracking refs without touching the working tree."""
        return self._run("fetch", remote)

    def set_remote_head(self, remote: str) -> None:
        """Points `<remote>/HEAD` at the remote's default branch."""
        self._run("remote", "set-head", remote, "--auto")

    def reset_hard(self, ref: str) -> None:
        """Resets the index and working tree to `ref`."""
        self._run("reset", "--hard", ref)

    def list_tree(self, ref: str) -> list[str]:
        """Lists every file path in a tree, recursively.

        Uses NUL-separated output so paths with unusual characters are
        returned verbatim.

        Args:
            ref (str): The tree-ish to enumerate (e.g., 'origin/HEAD').

        Returns:
            list[str]: Relative file paths in git's listing order.
        """
        output = self._run("ls-tree", "-r", "-z", "--name-only", ref)
        return [
            p.decode("utf-8", errors="surrogateescape")
            for p in output.split(b"\0")
            if p
        ]

    def diff(self, ref: str, file: str) -> bytes:
        """Diffs one working-tree file against a reference.

        Args:
            ref (str): The reference to compare against.
            file (str): The path relative to the repository root.

        Returns:
            bytes: The diff text; empty when the contents are identical.
        """
        return self._run("diff", "--no-color", "--no-ext-diff", ref, "--", file)

    def checkout_path(self, ref: str, file: str) -> None:
        """Overwrites a single file with its version at `ref`."""
        self._run("checkout", ref, "--", file)
