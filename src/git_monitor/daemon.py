import logging
import math
import signal
import sys
import threading
import time
from collections.abc import Callable
from logging.handlers import RotatingFileHandler
from pathlib import Path
from types import FrameType

from .config import SyncConfig
from .constants import APP_NAME, MAX_LOG_SIZE
from .sync import SyncEngine, SyncResult

logger = logging.getLogger(APP_NAME)
logger.setLevel(logging.INFO)


def setup_logging(
    interactive: bool,
    log_file: Path | None = None,
    max_bytes: int = MAX_LOG_SIZE,
) -> None:
    """Configures the logging subsystem.

    Args:
        interactive (bool): If True, logs to stdout. If False, logs to stderr.
        log_file (Path | None): When set, also logs to this file with rotation.
        max_bytes (int): Size at which the log file is rotated.
    """
    formatter = logging.Formatter(
        "[%(asctime)s] %(levelname)s: %(message)s", "%Y-%m-%d %H:%M:%S"
    )

    stream_handler = logging.StreamHandler(
        sys.stderr if not interactive else sys.stdout
    )
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)

    if log_file is not None:
        try:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                log_file,
                maxBytes=max_bytes,
                backupCount=5,
            )
        except OSError as e:
            logger.warning(f"Could not open log file {log_file}: {e}")
            return
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)


class Scheduler:
    """Fires a job on a fixed interval, one run at a time.

    A run that overruns its slot delays the next one to the following interval
    boundary. Missed slots are dropped, never queued.

    Attributes:
        interval (float): Seconds between scheduled runs.
        job (Callable[[], object]): The work performed on each tick.
    """

    def __init__(
        self,
        interval: float,
        job: Callable[[], object],
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], object] | None = None,
    ):
        self.interval = interval
        self.job = job
        self.clock = clock
        self._stop = threading.Event()
        self.sleep = sleep or self._stop.wait

    def stop(self) -> None:
        """Ends the loop after the current tick."""
        self._stop.set()

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def next_fire(self, scheduled: float, now: float) -> float:
        """Returns the first slot after `scheduled` that has not yet passed."""
        slots = max(1, math.ceil((now - scheduled) / self.interval))
        if slots > 1:
            logger.warning(
                f"OVERRUN: tick took too long, skipping {slots - 1} slot(s)."
            )
        return scheduled + slots * self.interval

    def run(self, max_ticks: int | None = None) -> int:
        """Runs the loop until stopped or `max_ticks` runs have completed.

        The first run happens one interval after the loop starts.

        Returns:
            int: The number of completed runs.
        """
        ticks = 0
        scheduled = self.clock() + self.interval
        while not self.stopped and (max_ticks is None or ticks < max_ticks):
            delay = scheduled - self.clock()
            if delay > 0:
                self.sleep(delay)
                if self.stopped:
                    break
            try:
                self.job()
            except Exception:
                logger.exception("LOOP ERROR: tick failed unexpectedly")
            ticks += 1
            scheduled = self.next_fire(scheduled, self.clock())
        return ticks


def run_once(
    config: SyncConfig, engine: SyncEngine | None = None
) -> SyncResult | None:
    """Runs a single synchronization tick immediately."""
    return (engine or SyncEngine(config)).tick()


def main(
    config: SyncConfig,
    engine: SyncEngine | None = None,
    max_ticks: int | None = None,
) -> None:
    """The main daemon execution loop.

    Runs sync ticks every `config.check_interval` seconds until the process
    receives SIGTERM or SIGINT.

    Args:
        config (SyncConfig): The monitor settings.
        engine (SyncEngine | None): A prepared engine. Built from `config` if None.
        max_ticks (int | None): Stop after this many ticks. Runs forever if None.
    """
    engine = engine or SyncEngine(config)
    scheduler = Scheduler(config.check_interval, engine.tick)

    def stop_handler(signum: int, _frame: FrameType | None) -> None:
        logger.info(f"STOP: received signal {signum}, shutting down.")
        scheduler.stop()

    if threading.current_thread() is threading.main_thread():
        signal.signal(signal.SIGTERM, stop_handler)

    try:
        scheduler.run(max_ticks=max_ticks)
    except KeyboardInterrupt:
        logger.info("STOP: interrupted, shutting down.")
