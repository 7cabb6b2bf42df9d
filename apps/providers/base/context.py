"""
Cancellation scope shared between the hub and provider adapters.

A CallContext is handed to every adapter operation. It carries an optional
deadline (monotonic clock) and a cancellation flag. Children inherit the
parent's deadline and observe the parent's cancellation, but cancelling a
child leaves the parent untouched.
"""
import threading
import time
from typing import Optional

from .exceptions import CallCancelledError, DeadlineExceededError

MIN_REQUEST_TIMEOUT = 0.01


class CallContext:
    """Deadline and cancellation flag for one logical operation."""

    def __init__(self, deadline: Optional[float] = None, parent: Optional["CallContext"] = None):
        if parent is not None and parent.deadline is not None:
            deadline = parent.deadline if deadline is None else min(deadline, parent.deadline)
        self.deadline = deadline
        self._parent = parent
        self._cancelled = threading.Event()

    @classmethod
    def with_timeout(cls, seconds: Optional[float], parent: Optional["CallContext"] = None) -> "CallContext":
        deadline = None if seconds is None else time.monotonic() + seconds
        return cls(deadline=deadline, parent=parent)

    def child(self, timeout: Optional[float] = None) -> "CallContext":
        return CallContext.with_timeout(timeout, parent=self)

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        if self._cancelled.is_set():
            return True
        return self._parent is not None and self._parent.cancelled

    @property
    def expired(self) -> bool:
        return self.deadline is not None and time.monotonic() >= self.deadline

    @property
    def done(self) -> bool:
        return self.cancelled or self.expired

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, or None when there is no deadline."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def request_timeout(self, default: float) -> float:
        """Cap an HTTP timeout so it never outlives the deadline."""
        remaining = self.remaining()
        if remaining is None:
            return default
        # requests rejects a zero timeout
        return max(MIN_REQUEST_TIMEOUT, min(default, remaining))

    def check(self) -> None:
        """Raise if the context has been cancelled or has run out of time."""
        if self.cancelled:
            raise CallCancelledError("operation cancelled by caller")
        if self.expired:
            raise DeadlineExceededError("operation deadline exceeded")


def ensure_context(context: Optional[CallContext]) -> CallContext:
    """Return the given context, or an unbounded one when none was supplied."""
    return context if context is not None else CallContext()
