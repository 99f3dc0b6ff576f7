"""Periodic background runner for the event sync."""
import logging
import signal
import threading
from typing import Optional

from lambda_function import build_synchronizer, setup_logging
from processor.event_sync import EventSynchronizer
from settings import SyncSettings

logger = logging.getLogger(__name__)


class EventSyncScheduler:
    """
    Runs a sync pass immediately, then again every ``interval`` seconds.

    The wait is relative to the end of the previous pass, so runs drift
    rather than aligning to the wall clock. ``stop()`` sets the cancellation
    event, which the synchronizer also checks between sources and events.
    """

    def __init__(self, synchronizer: EventSynchronizer, interval: float):
        """
        Args:
            synchronizer: Synchronizer to run
            interval: Seconds to wait between passes
        """
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        self.synchronizer = synchronizer
        self.interval = interval
        self.cancel_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    def start(self) -> None:
        """Start the scheduler on a daemon thread."""
        with self._lock:
            if self._thread is not None and self._thread.is_alive():
                logger.info("Event sync scheduler already running")
                return
            self.cancel_event.clear()
            self._thread = threading.Thread(
                target=self.run, name='event-sync', daemon=True
            )
            self._thread.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        """Signal cancellation and wait for the current pass to wind down."""
        self.cancel_event.set()
        with self._lock:
            thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)

    def is_running(self) -> bool:
        with self._lock:
            return self._thread is not None and self._thread.is_alive()

    def run(self) -> None:
        """Run passes until cancelled. Blocks the calling thread."""
        logger.info("Event sync starting", extra={'interval_seconds': self.interval})

        while not self.cancel_event.is_set():
            self._run_once()
            if self.cancel_event.wait(self.interval):
                break

        logger.info("Event sync stopped")

    def _run_once(self) -> None:
        try:
            self.synchronizer.sync_all_sources(self.cancel_event)
        except Exception as e:
            logger.error(
                f"Event sync pass failed: {e}",
                extra={'error_type': type(e).__name__},
                exc_info=True
            )


def main() -> None:
    """Run the event sync as a long-lived worker until SIGINT or SIGTERM."""
    settings = SyncSettings.from_env()
    setup_logging(settings.log_level)

    if not settings.organizer_ids:
        logger.info("Event sync disabled (AUTO_ORGANISERS_IDS not set)")
        return

    scheduler = EventSyncScheduler(
        build_synchronizer(settings), settings.sync_interval
    )

    def _shutdown(signum, frame):
        logger.info(f"Received signal {signum}, stopping event sync")
        scheduler.cancel_event.set()

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)

    scheduler.run()


if __name__ == '__main__':
    main()
