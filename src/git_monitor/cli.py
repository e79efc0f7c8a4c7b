import argparse
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

from . import daemon, initializer
from .config import Config, ConfigError, InitPolicy, SyncConfig, parse_time
from .constants import APP_NAME, ENV_SECRET, ENV_WEBHOOK, LOG_FILE

logger = logging.getLogger(APP_NAME)
console = Console()
err_console = Console(stderr=True)

USAGE = f"""Usage:
  git-monitor -u https://github.com/user/repo.git -p /path/to/dir [-t 10s|10m|10h]

  -u URL        Remote repository to mirror (required).
  -p PATH       Local directory kept in sync (required).
  -t DURATION   Check interval, e.g. 30s, 10m, 1h (default: 5m).

Notifications:
  --webhook URL     Webhook for new-file alerts (or {ENV_WEBHOOK}).
  --secret SECRET   Signing secret for the webhook (or {ENV_SECRET}).

Other:
  --adopt           Initialize an existing non-git directory in place.
  --once            Run a single sync and exit.
  --config FILE     Read settings from FILE instead of the global config.
  --log-file FILE   Write logs to FILE.
"""


def build_parser() -> argparse.ArgumentParser:
    """Builds the argument parser. Required flags are validated by the caller."""
    parser = argparse.ArgumentParser(prog=APP_NAME, usage=argparse.SUPPRESS)
    parser.add_argument("-u", dest="url", help="Remote repository URL")
    parser.add_argument("-p", dest="path", help="Local directory path")
    parser.add_argument("-t", dest="interval", help="Check interval (e.g. 10s, 1m)")
    parser.add_argument("--webhook", help="Notification webhook URL")
    parser.add_argument("--secret", help="Notification signing secret")
    parser.add_argument(
        "--adopt",
        action="store_true",
        help="Initialize an existing non-git directory in place",
    )
    parser.add_argument("--once", action="store_true", help="Run one sync and exit")
    parser.add_argument("--config", type=Path, help="Path to a TOML config file")
    parser.add_argument("--log-file", type=Path, help="Log file path")
    parser.add_argument(
        "--command-timeout", help="Max duration of a git command (default: 10m)"
    )
    parser.add_argument(
        "--http-timeout", help="Max duration of a webhook request (default: 10s)"
    )
    return parser


def _optional_time(value: str | None) -> int | None:
    return parse_time(value) if value is not None else None


def load_sync_config(args: argparse.Namespace) -> tuple[Config, SyncConfig]:
    """Merges the config file, environment, and CLI flags.

    Raises:
        ConfigError: If a value is missing, malformed, or out of range.
    """
    settings = Config.load(args.config)
    try:
        overrides = {
            "check_interval": _optional_time(args.interval),
            "command_timeout": _optional_time(args.command_timeout),
            "http_timeout": _optional_time(args.http_timeout),
        }
    except ValueError as e:
        raise ConfigError(str(e)) from e

    return settings, settings.to_sync_config(
        args.url,
        args.path,
        notification_endpoint=args.webhook,
        notification_secret=args.secret,
        init_policy=InitPolicy.ADOPT if args.adopt else None,
        **overrides,
    )


def _print_banner(config: SyncConfig) -> None:
    lines = [
        f"Remote:   [cyan]{escape(config.remote_location)}[/cyan]",
        f"Local:    [cyan]{escape(str(config.local_path))}[/cyan]",
        f"Interval: {config.check_interval}s",
        f"Notify:   {'on' if config.notifications_enabled else 'off'}",
    ]
    console.print(
        Panel("\n".join(lines), title="Monitoring repository", border_style="blue")
    )


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the Git Monitor CLI."""
    args = build_parser().parse_args(argv)

    if not args.url or not args.path:
        console.print(USAGE, markup=False, highlight=False)
        sys.exit(1)

    try:
        settings, config = load_sync_config(args)
    except ConfigError as e:
        err_console.print(f"[bold red]ERROR:[/bold red] {escape(str(e))}")
        sys.exit(1)

    log_file = args.log_file
    if log_file is None and settings.log.file:
        log_file = Path(settings.log.file).expanduser()
    if log_file is None and not args.once:
        log_file = LOG_FILE
    daemon.setup_logging(args.once, log_file, settings.log.max_size)

    try:
        initializer.initialize(config)
    except initializer.FatalInitError as e:
        err_console.print(
            f"[bold red]ERROR:[/bold red] Repository initialization failed: "
            f"{escape(str(e))}"
        )
        sys.exit(1)

    if args.once:
        result = daemon.run_once(config)
        sys.exit(0 if result is not None else 1)

    _print_banner(config)
    daemon.main(config)


if __name__ == "__main__":
    main()
