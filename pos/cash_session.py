"""
Cash drawer session gate.

Two states, Open and Closed. The starting state is whatever the store API
reports as the current session; open and close are delegated to the API
and the returned session is adopted. Selling is allowed only while Open.

The automatic close is a guarded check, not a one-shot timer: it fires
when the wall clock shows the configured closing minute AND the store API
still reports a session open, so re-running it after the close is a no-op.
"""
import logging
from datetime import datetime
from typing import Callable, Optional

from models.cash_session import CashSession, StoreSettings
from .client import StoreApiClient
from .errors import InvalidAmount, InvalidTransition, RemoteServiceError, SessionClosed

logger = logging.getLogger(__name__)

AUTO_CLOSE_NOTE = "Automatic close at store closing time"

SessionListener = Callable[[Optional[CashSession]], None]


class CashSessionGate:
    """
    Tracks the till's cash session and decides whether selling is allowed.

    Usage:
        gate = CashSessionGate(api, config.store_settings())
        gate.refresh()
        if gate.is_selling_allowed(): ...
    """

    def __init__(
        self,
        api: StoreApiClient,
        settings: Optional[StoreSettings] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.api = api
        self.settings = settings or StoreSettings()
        self.clock = clock
        self.session: Optional[CashSession] = None
        self.last_closed: Optional[CashSession] = None
        self._listeners: list[SessionListener] = []

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def is_open(self) -> bool:
        return self.session is not None and self.session.is_open

    def is_selling_allowed(self) -> bool:
        return self.is_open

    def require_open(self) -> CashSession:
        """Return the open session or raise SessionClosed."""
        if not self.is_open:
            raise SessionClosed("No cash session is open — open the till before selling")
        return self.session

    def add_listener(self, listener: SessionListener) -> None:
        """Register a callable notified with the session after every change."""
        self._listeners.append(listener)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def refresh(self) -> Optional[CashSession]:
        """
        Adopt the store API's current session. If it cannot be fetched the
        gate falls back to Closed and the error is re-raised.
        """
        try:
            session = self.api.current_cash_session()
        except RemoteServiceError:
            logger.error("Could not fetch the current cash session — selling blocked")
            self._adopt(None)
            raise
        self._adopt(session if session and session.is_open else None)
        return self.session

    def open_session(self, opening_amount: float, notes: Optional[str] = None) -> CashSession:
        if opening_amount is None or opening_amount < 0:
            raise InvalidAmount("Opening amount must be zero or positive", field="opening_amount")
        if self.is_open:
            raise InvalidTransition(f"Cash session #{self.session.id} is already open")

        session = self.api.open_cash_session(opening_amount, notes or None)
        logger.info("Cash session #%d opened with %.2f", session.id, session.opening_amount)
        self._adopt(session)
        return session

    def close_session(self, closing_amount: float, notes: Optional[str] = None) -> CashSession:
        if closing_amount is None or closing_amount < 0:
            raise InvalidAmount("Closing amount must be zero or positive", field="closing_amount")
        current = self.session
        if current is None or not current.is_open:
            raise InvalidTransition("There is no open cash session to close")

        closed = self.api.close_cash_session(current.id, closing_amount, notes or None)
        self.last_closed = closed
        logger.info(
            "Cash session #%d closed: counted=%s expected=%s discrepancy=%s",
            closed.id, closed.closing_amount, closed.expected_amount, closed.discrepancy,
        )
        self._adopt(None)
        return closed

    # ------------------------------------------------------------------
    # Automatic close
    # ------------------------------------------------------------------

    def _closing_minute(self, now: datetime) -> bool:
        if not (self.settings.auto_cash_close and self.settings.closing_time):
            return False
        return now.strftime("%H:%M") == self.settings.closing_time

    def auto_close_due(self, now: Optional[datetime] = None) -> bool:
        """True when auto-close is enabled, a session is open and it is closing time."""
        return self._closing_minute(now or self.clock()) and self.is_open

    def check_auto_close(self, now: Optional[datetime] = None) -> Optional[CashSession]:
        """
        Close the open session with a zero count if it is closing time.

        On the closing minute the session is re-read from the store API
        first, so a till opened or closed from another terminal is seen.
        Safe to call any number of times: once closed there is nothing to do.
        A failed refresh or close is logged and retried on the next check.
        """
        now = now or self.clock()
        if not self._closing_minute(now):
            return None
        try:
            self.refresh()
        except RemoteServiceError as exc:
            logger.error("Automatic cash close skipped, session state unknown: %s", exc)
            return None
        if not self.is_open:
            return None
        logger.info("Closing time %s reached — closing cash session automatically",
                    self.settings.closing_time)
        try:
            return self.close_session(0, AUTO_CLOSE_NOTE)
        except RemoteServiceError as exc:
            logger.error("Automatic cash close failed: %s", exc)
            return None

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def history(self, limit: int = 30) -> list[CashSession]:
        return self.api.cash_sessions(limit)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _adopt(self, session: Optional[CashSession]) -> None:
        changed = _state_key(self.session) != _state_key(session)
        self.session = session
        if not changed:
            return
        for listener in list(self._listeners):
            try:
                listener(session)
            except Exception as exc:
                logger.warning("Cash session listener %r failed: %s", listener, exc)


def _state_key(session: Optional[CashSession]):
    if session is None:
        return None
    return session.id, session.closed_at
