"""
Payment Monitor for the Clothing Store backend
==============================================
Watches one QR payment until it completes, expires or the watcher is closed.

Each monitoring session owns a single CancellationToken. The countdown and
the status polling both end through it, so closing a session never leaves a
poller running.
"""

import threading
import time
from typing import Callable, Dict, Any, NamedTuple, Optional
from django.conf import settings
import logging
import requests

from apps.base.core.system.exceptions import StoreBaseException

logger = logging.getLogger(__name__)

TERMINAL_STATES = {'completed', 'cancelled', 'expired', 'failed'}
CLOSED = 'closed'


class CancellationToken:
    """Stops a monitoring session; the first reason wins."""

    def __init__(self):
        self._event = threading.Event()
        self.reason = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = CLOSED):
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    def wait(self, timeout: float) -> bool:
        """Sleep up to ``timeout`` seconds; returns early once cancelled."""
        return self._event.wait(timeout)


class MonitorResult(NamedTuple):
    state: str
    polls: int
    seconds_left: int


class PaymentMonitor:
    """
    Poll ``status_fetcher(order_number)`` until a terminal state.

    Args:
        order_number: order being paid
        status_fetcher: callable returning a dict with at least ``status``
        poll_interval: seconds between polls
        timeout: countdown length in seconds
        clock: monotonic time source
        token: cancellation token; a new one is created when omitted
    """

    def __init__(
        self,
        order_number: str,
        status_fetcher: Callable[[str], Dict[str, Any]],
        poll_interval: float = None,
        timeout: float = None,
        clock: Callable[[], float] = time.monotonic,
        token: Optional[CancellationToken] = None
    ):
        self.order_number = order_number
        self.status_fetcher = status_fetcher
        if poll_interval is None:
            poll_interval = settings.STORE_CONFIG.get('QR_POLL_INTERVAL_SECONDS', 5)
        if timeout is None:
            timeout = settings.STORE_CONFIG.get('QR_PAYMENT_TIMEOUT_MINUTES', 15) * 60
        self.poll_interval = poll_interval
        self.timeout = timeout
        self.clock = clock
        self.token = token or CancellationToken()
        self.polls = 0
        self.last_status = None
        self._deadline = None

    @property
    def seconds_left(self) -> int:
        if self._deadline is None:
            return int(self.timeout)
        return max(int(self._deadline - self.clock()), 0)

    def _result(self, state: str) -> MonitorResult:
        return MonitorResult(state=state, polls=self.polls, seconds_left=self.seconds_left)

    def _poll(self) -> Optional[str]:
        self.polls += 1
        try:
            self.last_status = self.status_fetcher(self.order_number)
        except (StoreBaseException, requests.RequestException, OSError) as e:
            # Next poll tries again
            logger.warning(f"Payment status check failed for {self.order_number}: {e}")
            return None
        return self.last_status.get('status')

    def run(self) -> MonitorResult:
        """Block until the session ends and report how it ended."""
        self._deadline = self.clock() + self.timeout

        while True:
            if self.token.cancelled:
                return self._result(self.token.reason)

            remaining = self._deadline - self.clock()
            if remaining <= 0:
                self.token.cancel('expired')
                return self._result('expired')

            state = self._poll()
            if state in TERMINAL_STATES:
                self.token.cancel(state)
                logger.info(f"Payment monitor for {self.order_number} finished: {state}")
                return self._result(state)

            self.token.wait(min(self.poll_interval, remaining))

    def retry(self) -> Optional[str]:
        """Manual status check outside the poll cadence."""
        if self.token.cancelled:
            return self.token.reason
        state = self._poll()
        if state in TERMINAL_STATES:
            self.token.cancel(state)
        return state

    def close(self):
        self.token.cancel(CLOSED)
