import logging
import os
import re
import tomllib
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Any

from .constants import (
    APP_NAME,
    CONFIG_FILE,
    DEFAULT_COMMAND_TIMEOUT,
    DEFAULT_HTTP_TIMEOUT,
    DEFAULT_INTERVAL,
    DEFAULT_REMOTE,
    ENV_SECRET,
    ENV_WEBHOOK,
    MAX_LOG_SIZE,
)

logger = logging.getLogger(APP_NAME)


class ConfigError(ValueError):
    """Raised when a configuration value cannot be used to start the monitor."""


def parse_size(value: int | str) -> int:
    """Converts human-readable size strings (e.g., '100MB') to bytes."""
    if isinstance(value, int):
        return value
    match = re.match(r"^(\d+(?:\.\d+)?)\s*([kmg]b?)$", str(value).strip().lower())
    if not match:
        raise ValueError(f"Invalid size format '{value}'")
    num, unit = float(match.group(1)), match.group(2)
    multiplier = {
        "k": 1024,
        "kb": 1024,
        "m": 1024**2,
        "mb": 1024**2,
        "g": 1024**3,
        "gb": 1024**3,
    }
    return int(num * multiplier[unit])


def parse_time(value: int | str) -> int:
    """Converts human-readable time strings (e.g., '1hr', '30m', '300') to seconds."""
    if isinstance(value, int):
        return value
    text = str(value).strip().lower()
    if text.isdigit():
        return int(text)
    match = re.match(r"^(\d+(?:\.\d+)?)\s*(s|sec|m|min|h|hr|hour)s?$", text)
    if not match:
        raise ValueError(f"Invalid time format '{value}'")
    num, unit = float(match.group(1)), match.group(2)
    multiplier = {
        "s": 1,
        "sec": 1,
        "m": 60,
        "min": 60,
        "h": 3600,
        "hr": 3600,
        "hour": 3600,
    }
    return int(num * multiplier[unit])


class InitPolicy(str, Enum):
    """What to do when the local path exists but is not a git repository.

    STRICT refuses to touch the directory. ADOPT initializes a repository in
    place and hard-resets it to the remote default branch.
    """

    STRICT = "strict"
    ADOPT = "adopt"


@dataclass(frozen=True)
class SyncConfig:
    """Immutable settings for one monitored repository.

    Attributes:
        remote_location (str): URL or path of the upstream repository.
        local_path (Path): The local directory kept in sync.
        check_interval (int): Seconds between sync ticks.
        notification_endpoint (str | None): Webhook URL for new-file alerts.
        notification_secret (str | None): Shared secret used to sign alerts.
        command_timeout (int): Seconds a git subprocess may run.
        http_timeout (int): Seconds the webhook POST may take.
        init_policy (InitPolicy): Handling of an existing non-repository path.
        remote_name (str): Name of the tracking remote.
        remote_ref (str | None): Reference to mirror. Defaults to
                                 '<remote_name>/HEAD'.
    """

    remote_location: str
    local_path: Path
    check_interval: int = DEFAULT_INTERVAL
    notification_endpoint: str | None = None
    notification_secret: str | None = None
    command_timeout: int = DEFAULT_COMMAND_TIMEOUT
    http_timeout: int = DEFAULT_HTTP_TIMEOUT
    init_policy: InitPolicy = InitPolicy.STRICT
    remote_name: str = DEFAULT_REMOTE
    remote_ref: str | None = None

    def __post_init__(self) -> None:
        if not self.remote_location or not self.remote_location.strip():
            raise ConfigError("Remote repository location must not be empty.")
        if not str(self.local_path).strip():
            raise ConfigError("Local path must not be empty.")
        if self.check_interval < 1:
            raise ConfigError(
                f"Check interval must be at least 1s (got {self.check_interval}s)."
            )
        if self.command_timeout < 1 or self.http_timeout < 1:
            raise ConfigError("Timeouts must be at least 1s.")
        if not isinstance(self.init_policy, InitPolicy):
            try:
                object.__setattr__(self, "init_policy", InitPolicy(self.init_policy))
            except ValueError as e:
                raise ConfigError(
                    f"Unknown init policy '{self.init_policy}'. "
                    "Use 'strict' or 'adopt'."
                ) from e
        object.__setattr__(self, "local_path", Path(self.local_path).expanduser())

    @property
    def tracking_ref(self) -> str:
        """The remote reference whose tree is mirrored into the working copy."""
        return self.remote_ref or f"{self.remote_name}/HEAD"

    @property
    def notifications_enabled(self) -> bool:
        """Whether new files should be announced through the webhook."""
        return bool(self.notification_endpoint)


@dataclass
class MonitorConfig:
    """Sync loop settings.

    Attributes:
        interval (int): Seconds between sync ticks.
        init_policy (str): 'strict' or 'adopt'.
        command_timeout (int): Seconds a git subprocess may run.
        remote_name (str): Name of the tracking remote.
        remote_ref (str | None): Reference to mirror.
    """

    interval: int = DEFAULT_INTERVAL
    init_policy: str = InitPolicy.STRICT.value
    command_timeout: int = DEFAULT_COMMAND_TIMEOUT
    remote_name: str = DEFAULT_REMOTE
    remote_ref: str | None = None


@dataclass
class NotifyConfig:
    """Webhook notification settings.

    Attributes:
        webhook (str | None): Endpoint URL. Notifications are off when unset.
        secret (str | None): Signing secret. Requests are unsigned when unset.
        timeout (int): Seconds the POST may take.
    """

    webhook: str | None = None
    secret: str | None = None
    timeout: int = DEFAULT_HTTP_TIMEOUT


@dataclass
class LogConfig:
    """Log file settings.

    Attributes:
        file (str | None): Log file path. Defaults to the state directory.
        max_size (int): Max bytes for the log file before rotation.
    """

    file: str | None = None
    max_size: int = MAX_LOG_SIZE


@dataclass
class Config:
    """Global configuration aggregator.

    Attributes:
        monitor (MonitorConfig): Sync loop settings.
        notify (NotifyConfig): Webhook settings.
        log (LogConfig): Log file settings.
    """

    monitor: MonitorConfig = field(default_factory=MonitorConfig)
    notify: NotifyConfig = field(default_factory=NotifyConfig)
    log: LogConfig = field(default_factory=LogConfig)

    @classmethod
    def load(cls, path: Path | None = None) -> "Config":
        """Loads configuration from defaults, a TOML file, and the environment.

        Args:
            path (Path | None): An explicit config file. Defaults to the global
                                config file, which may be absent.

        Returns:
            Config: The merged configuration object.

        Raises:
            ConfigError: If an explicitly requested file does not exist.
        """
        instance = cls()

        if path is not None:
            if not path.exists():
                raise ConfigError(f"Config file not found: {path}")
            instance._merge_from_file(path)
        elif CONFIG_FILE.exists():
            instance._merge_from_file(CONFIG_FILE)

        # Credentials from the environment win over the file.
        if webhook := os.environ.get(ENV_WEBHOOK):
            instance.notify.webhook = webhook
        if secret := os.environ.get(ENV_SECRET):
            instance.notify.secret = secret

        return instance

    def _merge_from_file(self, path: Path) -> None:
        """Parses a TOML file and merges it into the current instance.

        Args:
            path (Path): Path to the TOML file.
        """
        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)

            if "monitor" in data:
                self.monitor = self._update_dataclass(
                    "monitor", self.monitor, data["monitor"]
                )
            if "notify" in data:
                self.notify = self._update_dataclass(
                    "notify", self.notify, data["notify"]
                )
            if "log" in data:
                self.log = self._update_dataclass("log", self.log, data["log"])

        except tomllib.TOMLDecodeError as e:
            logger.error(f"Config syntax error in {path}: {e}")
        except Exception as e:
            logger.warning(f"Failed to load config from {path}: {e}")

    @staticmethod
    def _update_dataclass(section_name: str, instance: Any, updates: dict) -> Any:
        """Updates a dataclass, warning on unknown keys and parsing durations."""
        valid_keys = instance.__dataclass_fields__.keys()
        filtered_updates = {}

        invalid_keys = set(updates.keys()) - set(valid_keys)
        if invalid_keys:
            logger.warning(
                f"Unknown config keys in [{section_name}]: "
                f"{', '.join(sorted(invalid_keys))}. Ignoring."
            )

        for k, v in updates.items():
            if k not in valid_keys:
                continue

            try:
                if k == "max_size":
                    filtered_updates[k] = parse_size(v)
                elif k in ["interval", "command_timeout", "timeout"]:
                    filtered_updates[k] = parse_time(v)
                else:
                    filtered_updates[k] = v
            except ValueError as e:
                logger.warning(
                    f"Config error in [{section_name}].{k}: {e}. "
                    "Falling back to default."
                )

        return replace(instance, **filtered_updates)

    def to_sync_config(
        self, remote_location: str, local_path: str | Path, **overrides: Any
    ) -> SyncConfig:
        """Builds the immutable per-repository settings.

        Keyword overrides (typically CLI flags) take precedence over the
        loaded values; overrides set to None are ignored.

        Raises:
            ConfigError: If the resulting settings are invalid.
        """
        values: dict[str, Any] = {
            "check_interval": self.monitor.interval,
            "notification_endpoint": self.notify.webhook,
            "notification_secret": self.notify.secret,
            "command_timeout": self.monitor.command_timeout,
            "http_timeout": self.notify.timeout,
            "init_policy": self.monitor.init_policy,
            "remote_name": self.monitor.remote_name,
            "remote_ref": self.monitor.remote_ref,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return SyncConfig(
            remote_location=remote_location,
            local_path=local_path,
            **values,
        )
