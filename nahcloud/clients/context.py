"""Caller-supplied cancellation and deadline signal for client calls."""

import threading
import time
from typing import Callable, Optional


class CallContext:
    """Cancellation signal with an optional deadline.

    A context can be shared between several calls; cancelling it aborts
    every call still waiting on it. Deadlines use the monotonic clock.

    Usage:
        ctx = CallContext.with_timeout(5)
        client.get_project("p1", ctx=ctx)

        # from another thread
        ctx.cancel()
    """

    def __init__(self, deadline: Optional[float] = None):
        """Initialize call context.

        Args:
            deadline: Absolute time.monotonic() value after which calls fail
        """
        self.deadline = deadline
        self._cancelled = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: list[Callable[[], None]] = []

    @classmethod
    def with_timeout(cls, seconds: float) -> "CallContext":
        """Create a context whose deadline is `seconds` from now."""
        return cls(deadline=time.monotonic() + seconds)

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def expired(self) -> bool:
        return self.deadline is not None and time.monotonic() >= self.deadline

    def remaining(self) -> Optional[float]:
        """Seconds left until the deadline, or None when there is none."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def cancel(self) -> None:
        """Cancel the context and wake every waiting call."""
        with self._lock:
            if self._cancelled.is_set():
                return
            self._cancelled.set()
            callbacks = list(self._callbacks)
            self._callbacks.clear()
        for callback in callbacks:
            callback()

    def add_cancel_callback(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Register a callback run on cancel.

        Runs immediately if the context is already cancelled.

        Returns:
            Function that unregisters the callback
        """
        with self._lock:
            if not self._cancelled.is_set():
                self._callbacks.append(callback)

                def remove() -> None:
                    with self._lock:
                        if callback in self._callbacks:
                            self._callbacks.remove(callback)

                return remove
        callback()
        return lambda: None
