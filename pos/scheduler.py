"""
Recurring closing-time check for the cash session gate.

run() polls the gate every few seconds (never less often than once a
minute) until SIGINT/SIGTERM. Each tick re-reads the gate state before
acting, so a closing minute visited several times closes the till once.
"""
import logging
import signal
import time
from datetime import datetime
from typing import Callable, Optional

from models.cash_session import CashSession
from .cash_session import CashSessionGate

logger = logging.getLogger(__name__)


class AutoCloseScheduler:
    """Drives CashSessionGate.check_auto_close on a fixed interval."""

    def __init__(
        self,
        gate: CashSessionGate,
        interval: int = 30,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.gate = gate
        self.interval = max(1, min(int(interval), 60))
        self._sleep = sleep
        self._shutdown = False
        self.closed_sessions: list[CashSession] = []

    def tick(self, now: Optional[datetime] = None) -> Optional[CashSession]:
        """One evaluation of the closing-time guard."""
        closed = self.gate.check_auto_close(now)
        if closed is not None:
            self.closed_sessions.append(closed)
        else:
            logger.debug("Auto-close check: nothing to do (open=%s)", self.gate.is_open)
        return closed

    def stop(self) -> None:
        self._shutdown = True

    def run(self, max_ticks: Optional[int] = None, install_signals: bool = True) -> None:
        """
        Poll until stopped. max_ticks bounds the loop (None = forever).

        Press Ctrl-C (or send SIGINT/SIGTERM) for a graceful shutdown.
        """
        if install_signals:
            def _request_shutdown(signum, frame):  # noqa: ANN001
                self._shutdown = True
                logger.info("Shutdown signal received — stopping auto-close checks.")

            signal.signal(signal.SIGINT, _request_shutdown)
            signal.signal(signal.SIGTERM, _request_shutdown)

        logger.info(
            "Auto-close watch started — closing_time=%s  enabled=%s  interval=%ds",
            self.gate.settings.closing_time, self.gate.settings.auto_cash_close, self.interval,
        )
        ticks = 0
        try:
            while not self._shutdown:
                self.tick()
                ticks += 1
                if max_ticks is not None and ticks >= max_ticks:
                    break

                # Interruptible sleep: check the shutdown flag every second
                remaining = float(self.interval)
                while remaining > 0 and not self._shutdown:
                    step = min(1.0, remaining)
                    self._sleep(step)
                    remaining -= step
        finally:
            logger.info(
                "Auto-close watch stopped after %d check(s), %d automatic close(s).",
                ticks, len(self.closed_sessions),
            )
