"""
Cancellable, deadline-carrying execution context.

One `CallContext` is created per top-level call and handed down through the
conversation engine, every provider adapter, and every nested sub-agent.
Derived contexts inherit cancellation from their parent and may tighten the
deadline, never extend it.
"""

from __future__ import annotations

import threading
import time
from typing import Callable, List, Optional

Clock = Callable[[], float]
CancelCallback = Callable[[], None]

CANCELED = "context canceled"
DEADLINE_EXCEEDED = "context deadline exceeded"


class CallContext:
    """
    Execution context for one call tree.

    Example:
        >>> ctx = CallContext.background()
        >>> sub = ctx.with_timeout(30)
        >>> sub.remaining() <= 30
        True
        >>> ctx.cancel()
        >>> sub.err()
        'context canceled'
    """

    def __init__(
        self,
        deadline: Optional[float] = None,
        parent: Optional["CallContext"] = None,
        clock: Optional[Clock] = None,
    ):
        self._parent = parent
        self._clock: Clock = clock or (parent._clock if parent else time.monotonic)
        if parent is not None and parent.deadline is not None:
            deadline = parent.deadline if deadline is None else min(deadline, parent.deadline)
        self.deadline = deadline
        self._cancelled = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: List[CancelCallback] = []
        self._detach: Optional[Callable[[], None]] = None
        if parent is not None:
            self._detach = parent.on_cancel(self.cancel)

    @classmethod
    def background(cls, clock: Optional[Clock] = None) -> "CallContext":
        """Root context with no deadline."""
        return cls(clock=clock)

    def with_timeout(self, seconds: float) -> "CallContext":
        """Derive a child context that expires `seconds` from now."""
        return CallContext(deadline=self._clock() + seconds, parent=self)

    def child(self) -> "CallContext":
        """Derive a child context that can be cancelled independently."""
        return CallContext(parent=self)

    def on_cancel(self, callback: CancelCallback) -> Callable[[], None]:
        """
        Run `callback` once when this context (or any ancestor) is cancelled.

        Runs it immediately when the context is already cancelled.

        Returns:
            A function that unregisters the callback.
        """
        with self._lock:
            if not self._cancelled.is_set():
                self._callbacks.append(callback)
                return lambda: self._unregister(callback)
        callback()
        return lambda: None

    def cancel(self) -> None:
        """Cancel this context and every context derived from it. Idempotent."""
        with self._lock:
            if self._cancelled.is_set():
                return
            self._cancelled.set()
            callbacks, self._callbacks = self._callbacks, []
        if self._detach is not None:
            self._detach()
            self._detach = None
        for callback in callbacks:
            callback()

    def cancelled(self) -> bool:
        if self._cancelled.is_set():
            return True
        return self._parent.cancelled() if self._parent is not None else False

    def expired(self) -> bool:
        return self.deadline is not None and self._clock() >= self.deadline

    def err(self) -> Optional[str]:
        """Return why the context is done, or None while it is still live."""
        if self.cancelled():
            return CANCELED
        if self.expired():
            return DEADLINE_EXCEEDED
        return None

    def remaining(self) -> Optional[float]:
        """Seconds until the deadline (never negative), or None without one."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - self._clock())

    def _unregister(self, callback: CancelCallback) -> None:
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)


__all__ = ["CallContext", "CancelCallback", "Clock", "CANCELED", "DEADLINE_EXCEEDED"]
