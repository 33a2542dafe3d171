"""Cancellation token threaded from the entry point down to the transport."""

from __future__ import annotations

import logging
import threading
import time

from .errors import OperationAborted

logger = logging.getLogger(__name__)


class AbortToken:
    """Signal that outstanding wallet calls should not be dispatched.

    A token fires either when :meth:`abort` is called (for example from a
    signal handler) or once its optional deadline passes. The transport checks
    the token before every request and caps its request timeout to the time
    remaining.
    """

    def __init__(self, timeout: float | None = None) -> None:
        self._event = threading.Event()
        self._reason: str | None = None
        self._deadline = time.monotonic() + timeout if timeout is not None else None

    def abort(self, reason: str = "aborted") -> None:
        if not self._event.is_set():
            logger.info("Abort requested: %s", reason)
            self._reason = reason
            self._event.set()

    @property
    def is_aborted(self) -> bool:
        if self._event.is_set():
            return True
        if self._deadline is not None and time.monotonic() >= self._deadline:
            self.abort("deadline exceeded")
            return True
        return False

    @property
    def reason(self) -> str | None:
        return self._reason

    def remaining(self) -> float | None:
        """Seconds left before the deadline, or ``None`` without one."""

        if self._deadline is None:
            return None
        return max(self._deadline - time.monotonic(), 0.0)

    def check(self, operation: str) -> None:
        if self.is_aborted:
            raise OperationAborted(
                f"{operation} aborted: {self._reason or 'aborted'}", operation=operation
            )
