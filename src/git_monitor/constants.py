import os
from pathlib import Path

"""Global constants and path definitions for Git Monitor.

This module defines the filesystem layout (adhering to XDG standards where applicable),
the application identifier, and the git defaults used by the sync engine.
"""

# --- Identity ---
APP_NAME = "git-monitor"
"""str: The human-readable application name, also used as the logger name."""

# --- Paths ---
_XDG_STATE = os.environ.get("XDG_STATE_HOME")
_BASE_STATE = Path(_XDG_STATE) if _XDG_STATE else Path.home() / ".local/state"

STATE_DIR = _BASE_STATE / "git-monitor"
"""Path: The directory for runtime state data (logs)."""

LOG_FILE = STATE_DIR / "monitor.log"
"""Path: The default file path for the daemon logs."""

_XDG_CONFIG = os.environ.get("XDG_CONFIG_HOME")
CONFIG_DIR: Path = (
    Path(_XDG_CONFIG) if _XDG_CONFIG else Path.home() / ".config"
) / "git-monitor"
"""Path: The directory for user configuration files."""

CONFIG_FILE: Path = CONFIG_DIR / "config.toml"
"""Path: The main configuration file path."""

# --- Environment ---
ENV_WEBHOOK = "GIT_MONITOR_WEBHOOK"
"""str: Environment variable holding the notification endpoint."""

ENV_SECRET = "GIT_MONITOR_SECRET"
"""str: Environment variable holding the notification signing secret."""

# --- Git / Logic Constants ---
DEFAULT_INTERVAL = 300
"""int: Default seconds between sync ticks."""

DEFAULT_REMOTE = "origin"
"""str: The git remote registered for the mirrored repository."""

DEFAULT_REMOTE_REF = f"{DEFAULT_REMOTE}/HEAD"
"""str: The remote tracking reference whose tree is mirrored."""

DEFAULT_COMMAND_TIMEOUT = 600
"""int: Seconds a single git subprocess may run before it is abandoned."""

DEFAULT_HTTP_TIMEOUT = 10
"""int: Seconds the notification POST may take."""

MAX_LOG_SIZE = 5 * 1024 * 1024
"""int: Bytes written to the log file before it is rotated."""
