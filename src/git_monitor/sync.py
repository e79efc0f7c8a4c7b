"""One-directional mirroring of the remote tree into the working copy.

Each tick fetches the tracking remote, walks every file in the remote tree and
forces any file whose working copy differs back to the remote version. Files
that only exist locally are never looked at, so local additions survive and
remote deletions are never propagated.
"""

import datetime
import logging
import os
from dataclasses import dataclass, field
from typing import Protocol

from .config import SyncConfig
from .constants import APP_NAME
from .git_wrapper import CommandExecutor, CommandFailure, GitExecutor, GitRepo
from .notifier import NotificationError, WebhookNotifier

logger = logging.getLogger(APP_NAME)


class Notifier(Protocol):
    def send(self, message: str) -> None: ...


@dataclass
class SyncResult:
    """Outcome of one tick.

    Attributes:
        updated_paths (set[str]): Existing files overwritten with the remote version.
        new_paths (set[str]): Files that were missing locally and got created.
        failed_paths (set[str]): Files whose diff or checkout failed.
        notified (bool): Whether a new-file notification was delivered.
    """

    updated_paths: set[str] = field(default_factory=set)
    new_paths: set[str] = field(default_factory=set)
    failed_paths: set[str] = field(default_factory=set)
    notified: bool = False

    @property
    def any_change(self) -> bool:
        return bool(self.updated_paths or self.new_paths)


def format_file_list(paths: list[str]) -> str:
    """Renders paths as a bulleted list, one per line."""
    return "\n".join(f"- {p}" for p in paths)


def format_new_files_message(paths: set[str]) -> str:
    return f"New files synced:\n{format_file_list(sorted(paths))}"


class SyncEngine:
    """Mirrors additions and modifications from the remote reference.

    Attributes:
        config (SyncConfig): The monitor settings.
        repo (GitRepo): Handle on the local repository.
        notifier (Notifier | None): Destination for new-file alerts. None
                                    disables notifications.
    """

    def __init__(
        self,
        config: SyncConfig,
        executor: CommandExecutor | None = None,
        notifier: Notifier | None = None,
    ):
        self.config = config
        self.repo = GitRepo(
            config.local_path, executor or GitExecutor(timeout=config.command_timeout)
        )
        if notifier is None and config.notifications_enabled:
            notifier = WebhookNotifier(
                config.notification_endpoint,
                config.notification_secret,
                timeout=config.http_timeout,
            )
        self.notifier = notifier

    def tick(self) -> SyncResult | None:
        """Runs one synchronization pass.

        Returns:
            SyncResult | None: The per-path outcome, or None when the fetch or
                               the remote listing failed and the tick was
                               abandoned.
        """
        ref = self.config.tracking_ref
        logger.info(f"CHECK: {datetime.datetime.now():%Y-%m-%d %H:%M:%S}")

        try:
            self.repo.fetch(self.config.remote_name)
        except CommandFailure as e:
            logger.error(f"FETCH ERROR: {e}")
            return None

        try:
            remote_files = self.repo.list_tree(ref)
        except CommandFailure as e:
            logger.error(f"LIST ERROR: could not enumerate {ref}: {e}")
            return None

        result = SyncResult()
        for path in remote_files:
            self._sync_path(ref, path, result)

        if not result.any_change:
            if result.failed_paths:
                logger.warning(
                    f"INCOMPLETE: {len(result.failed_paths)} file(s) "
                    "could not be synced."
                )
            else:
                logger.info("UP TO DATE: repository is already current.")
            return result

        logger.info(
            f"DONE: {len(result.new_paths)} new, {len(result.updated_paths)} updated, "
            f"{len(result.failed_paths)} failed."
        )
        if result.new_paths and self.notifier is not None:
            result.notified = self._notify(result.new_paths)
        return result

    def _sync_path(self, ref: str, path: str, result: SyncResult) -> None:
        try:
            if not self.repo.diff(ref, path):
                return
        except CommandFailure as e:
            logger.error(f"DIFF ERROR {path}: {e}")
            result.failed_paths.add(path)
            return

        local_file = self.config.local_path / path
        is_new = not os.path.lexists(local_file)

        try:
            local_file.parent.mkdir(parents=True, exist_ok=True)
            self.repo.checkout_path(ref, path)
        except (CommandFailure, OSError) as e:
            logger.error(f"CHECKOUT ERROR {path}: {e}")
            result.failed_paths.add(path)
            return

        if is_new:
            result.new_paths.add(path)
            logger.info(f"SYNCED (new) {path}")
        else:
            result.updated_paths.add(path)
            logger.info(f"SYNCED {path}")

    def _notify(self, new_paths: set[str]) -> bool:
        try:
            self.notifier.send(format_new_files_message(new_paths))
        except NotificationError as e:
            logger.error(f"NOTIFY ERROR: {e}")
            return False
        logger.info("NOTIFIED: new-file alert sent.")
        return True
