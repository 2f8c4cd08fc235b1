"""
SweepScheduler -- in-process polling scheduler for the auto-approval sweep.

Contract:
    Runs ``AutoApprovalSweep.run()`` every ``interval_seconds`` on a daemon
    thread.  ``tick()`` runs one sweep and never raises.

Architecture: cleanops_batch.  Sits above cleanops_services; nothing in
    the kernel, engines or services imports from here.

Invariants enforced:
    - The sweep date comes from the injected Clock.
    - Graceful shutdown: ``stop()`` signals the loop, which exits after
      the sweep in progress.
"""

from __future__ import annotations

import threading

from cleanops_kernel.domain.clock import Clock, SystemClock
from cleanops_kernel.logging_config import get_logger
from cleanops_services.auto_approval import AutoApprovalSweep, SweepResult

logger = get_logger("batch.scheduler")


class SweepScheduler:
    """Polling scheduler for the auto-approval sweep.

    Non-goals:
        - NOT a distributed scheduler (no leader election).  Several
          instances are safe, only wasteful: the sweep is race-tolerant.
    """

    def __init__(
        self,
        sweep: AutoApprovalSweep,
        clock: Clock | None = None,
        interval_seconds: float = 300.0,
    ):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")
        self._sweep = sweep
        self._clock = clock or SystemClock()
        self._interval = interval_seconds
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self.last_result: SweepResult | None = None

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def tick(self) -> SweepResult | None:
        """Run one sweep (public for testing). Returns None if it failed."""
        try:
            result = self._sweep.run(self._clock.today())
        except Exception:
            logger.exception("scheduler_tick_failed")
            return None
        self.last_result = result
        return result

    def start(self) -> None:
        """Start the scheduler in a background thread."""
        if self._thread is not None and self._thread.is_alive():
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run_loop,
            name="sweep-scheduler",
            daemon=True,
        )
        self._thread.start()
        logger.info("scheduler_started", extra={"interval_seconds": self._interval})

    def stop(self, timeout: float = 30.0) -> None:
        """Signal stop and wait for the scheduler to finish.

        Args:
            timeout: Max seconds to wait for the thread to finish.
        """
        self._stop_event.set()
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=timeout)
        logger.info("scheduler_stopped")

    def wait(self, timeout: float | None = None) -> bool:
        """Block until ``stop()`` is called. Returns True if stopped."""
        return self._stop_event.wait(timeout)

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _run_loop(self) -> None:
        """Background polling loop. Exits when stop_event is set."""
        while not self._stop_event.is_set():
            self.tick()
            self._stop_event.wait(timeout=self._interval)
