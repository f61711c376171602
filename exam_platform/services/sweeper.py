"""
Background expiry sweep.

Runs ``AttemptService.run_expiry_sweep`` on a fixed interval in a daemon
thread, each pass in its own session. Several sweepers (or a sweeper and a
cron run of ``scripts/sweep_expired_attempts.py``) may run at once: every
timeout is a conditional update, so an attempt is only ever closed once.
"""

import logging
import threading
from typing import Optional

from exam_platform.core.clock import SystemClock
from exam_platform.core.config import Settings, settings as default_settings
from exam_platform.schemas.attempt import SweepResult
from exam_platform.services.attempt_service import AttemptService

logger = logging.getLogger(__name__)


class ExpirySweeper:
    def __init__(self, session_factory, settings: Optional[Settings] = None, clock=None,
                 interval_seconds: Optional[float] = None, batch_size: Optional[int] = None):
        self.session_factory = session_factory
        self.settings = settings or default_settings
        self.clock = clock or SystemClock()
        self.interval_seconds = interval_seconds or self.settings.SWEEP_INTERVAL_SECONDS
        self.batch_size = batch_size or self.settings.SWEEP_BATCH_SIZE
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def run_once(self) -> SweepResult:
        db = self.session_factory()
        try:
            service = AttemptService(db, settings=self.settings, clock=self.clock)
            return service.run_expiry_sweep(batch_size=self.batch_size)
        finally:
            db.close()

    def start(self) -> None:
        if self.running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, name="expiry-sweeper", daemon=True)
        self._thread.start()
        logger.info(f"Expiry sweeper started (interval={self.interval_seconds}s, batch_size={self.batch_size})")

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.info("Expiry sweeper stopped")

    def _loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                result = self.run_once()
                # a full batch means there is probably more to do right away
                if result.processed_count >= self.batch_size:
                    continue
            except Exception:
                logger.exception("Expiry sweep failed; retrying on the next interval")
            self._stop_event.wait(self.interval_seconds)
