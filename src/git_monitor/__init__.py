"""Git Monitor: one-way mirroring of a remote git repository into a local directory.

This package provides the command-line launcher, the startup initializer, the
periodic sync engine, and the signed webhook notifier. Additions and
modifications flow from the remote into the working copy; deletions never do.
"""

from . import (
    cli,
    config,
    constants,
    daemon,
    git_wrapper,
    initializer,
    notifier,
    sync,
)

__all__ = [
    "cli",
    "config",
    "constants",
    "daemon",
    "git_wrapper",
    "initializer",
    "notifier",
    "sync",
]
