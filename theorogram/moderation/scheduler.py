"""Fixed-interval background runner for the rescan job."""

import threading

from theorogram.config.settings import settings
from theorogram.moderation.rescan import Rescanner
from theorogram.logger import get_logger

logger = get_logger(__name__)


class RescanScheduler:
    """Calls Rescanner.run_once every interval on a daemon thread until stopped."""

    def __init__(
        self,
        rescanner: Rescanner,
        interval_seconds: float | None = None,
        run_immediately: bool = False,
    ):
        self.rescanner = rescanner
        self.interval = (
            settings.rescan_interval_hours * 3600 if interval_seconds is None else interval_seconds
        )
        self.run_immediately = run_immediately
        self.runs = 0
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self.run_forever, name="RescanScheduler", daemon=True)
        self._thread.start()
        logger.info("rescan_scheduled", interval_seconds=self.interval)

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    def run_forever(self) -> None:
        if self.run_immediately:
            self._tick()
        while not self._stop_event.wait(self.interval):
            self._tick()

    def _tick(self) -> None:
        try:
            self.rescanner.run_once()
        except Exception:
            logger.exception("rescan_run_crashed")
        finally:
            self.runs += 1
