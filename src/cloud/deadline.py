"""
Request-level deadline independent of the transport's own timeouts.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Optional, Tuple

from .errors import RequestTimeoutError, UploadCancelledError

_DONE = "done"
_ERROR = "error"
_TIMEOUT = "timeout"
_CANCELLED = "cancelled"


class RequestDeadline:
    """
    Runs a blocking call on a worker thread with a one-shot deadline.

    The first of {completion, deadline expiry, cancellation} settles the call
    exactly once. When the call completes first the timer is cancelled; a
    completion arriving after expiry or cancellation is discarded.

    Example:
        response = RequestDeadline(300.0, cancel_event).call(
            lambda: client.post("/api/scans", files=files)
        )
    """

    def __init__(
        self,
        timeout_s: float,
        cancel_event: Optional[threading.Event] = None,
        poll_interval_s: float = 0.05,
    ):
        self.timeout_s = timeout_s
        self._cancel_event = cancel_event
        self._poll_interval_s = poll_interval_s
        self._lock = threading.Lock()
        self._settled = threading.Event()
        self._outcome: Optional[Tuple[str, Any]] = None
        self.timeouts_fired = 0

    @property
    def settled(self) -> bool:
        return self._settled.is_set()

    def _settle(self, kind: str, value: Any = None) -> bool:
        with self._lock:
            if self._outcome is not None:
                return False
            self._outcome = (kind, value)
            if kind == _TIMEOUT:
                self.timeouts_fired += 1
        self._settled.set()
        return True

    def _expire(self) -> None:
        if self._settle(_TIMEOUT):
            logging.warning(f"Request deadline of {self.timeout_s:g}s expired")

    def call(self, fn: Callable[[], Any]) -> Any:
        if self._outcome is not None:
            raise RuntimeError("RequestDeadline is single-use")

        def worker():
            try:
                value = fn()
            except Exception as e:
                self._settle(_ERROR, e)
                return
            if not self._settle(_DONE, value):
                close = getattr(value, "close", None)
                if callable(close):
                    close()
                logging.debug("Discarded late request completion")

        timer = threading.Timer(self.timeout_s, self._expire)
        timer.daemon = True
        thread = threading.Thread(target=worker, name="request-worker")
        thread.daemon = True
        thread.start()
        timer.start()
        try:
            while not self._settled.wait(self._poll_interval_s):
                if self._cancel_event is not None and self._cancel_event.is_set():
                    self._settle(_CANCELLED)
        finally:
            timer.cancel()

        kind, value = self._outcome
        if kind == _DONE:
            return value
        if kind == _ERROR:
            raise value
        if kind == _TIMEOUT:
            raise RequestTimeoutError(self.timeout_s)
        raise UploadCancelledError()
