"""Observable cells — mutable state that reports its reads and writes.

A read emits a get event on the cell's runtime, so an open capture window
records the cell as a dependency. A write that changes the value emits a
set event through the runtime's transactional emitter.

Thread safety: call set_scheduler() once from the thread that owns the
reactive graph. After that, any .set() from another thread is marshaled
through the scheduler. Owner-thread .set() remains synchronous.
"""

from __future__ import annotations

import threading
from typing import Generic, TypeVar

from lifeline.observers import Property
from lifeline.runtime import Runtime, get_runtime

T = TypeVar("T")

# ─── Auto-marshal ────────────────────────────────────────────────────────────
_scheduler = None
_scheduler_thread = None


def set_scheduler(scheduler) -> None:
    """Set the global thread scheduler for cross-thread Observable writes.

    Call once from the owning thread:
        lifeline.set_scheduler(loop.call_soon_threadsafe)

    After this, any Observable.set() from another thread is handed to
    scheduler as a zero-argument callable. Owner-thread writes stay direct.
    Pass None to remove the scheduler.
    """
    global _scheduler, _scheduler_thread
    _scheduler = scheduler
    _scheduler_thread = threading.current_thread() if scheduler is not None else None


class Observable(Property, Generic[T]):
    """A single mutable value whose reads and writes are tracked."""

    __slots__ = ("_value", "_runtime")

    def __init__(self, value: T, *, runtime: Runtime | None = None) -> None:
        super().__init__()
        self._value = value
        self._runtime = runtime if runtime is not None else get_runtime()

    def get(self) -> T:
        """Read the value. Inside a capture window, records this cell."""
        self._runtime.get_observer.emit_get_value(self)
        return self._value

    def set(self, value: T) -> None:
        """Write a new value. Auto-marshals from foreign threads."""
        if _scheduler is not None and threading.current_thread() != _scheduler_thread:
            _scheduler(lambda v=value: self._set_direct(v))
        else:
            self._set_direct(value)

    value = property(get, set)

    def _set_direct(self, value: T) -> None:
        old = self._value
        if old is not value and old != value:
            self._value = value
            self._runtime.set_emitter.emit_set_value(self)

    def __repr__(self) -> str:
        return f"Observable({self._value!r})"


def observable(value: T, *, runtime: Runtime | None = None) -> Observable[T]:
    """Factory for Observable.

    Usage:
        count = observable(0)
        count.set(count.get() + 1)
    """
    return Observable(value, runtime=runtime)
