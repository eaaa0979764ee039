"""Runtime — the set of registries cells and reactions talk to.

One default Runtime lives for the whole process. Tests and embedders can
build their own and activate it with use_runtime(); cells, computeds and
reactions bind to whichever runtime is active when they are created.
"""

from __future__ import annotations

import contextvars
from contextlib import contextmanager
from typing import Iterator

from lifeline.observers import (
    PropertyGetObserver,
    PropertySetObserver,
    TransactionalPropertySetEmitter,
)


class Runtime:
    """A get observer plus a transactional set emitter over a set observer."""

    __slots__ = ("get_observer", "set_emitter")

    def __init__(
        self,
        get_observer: PropertyGetObserver | None = None,
        set_emitter: TransactionalPropertySetEmitter | None = None,
    ) -> None:
        self.get_observer = get_observer if get_observer is not None else PropertyGetObserver()
        self.set_emitter = (
            set_emitter if set_emitter is not None else TransactionalPropertySetEmitter()
        )

    @property
    def set_observer(self) -> PropertySetObserver:
        return self.set_emitter.observer

    def __repr__(self) -> str:
        return f"Runtime(observed={len(self.set_observer)})"


default_runtime = Runtime()

_current: contextvars.ContextVar[Runtime | None] = contextvars.ContextVar(
    "current_runtime", default=None
)


def get_runtime() -> Runtime:
    """The runtime active in the current context."""
    runtime = _current.get()
    return runtime if runtime is not None else default_runtime


@contextmanager
def use_runtime(runtime: Runtime) -> Iterator[Runtime]:
    """Make runtime the active one for the duration of the block.

    Usage:
        with use_runtime(Runtime()):
            count = Observable(0)  # bound to the isolated registries
    """
    token = _current.set(runtime)
    try:
        yield runtime
    finally:
        _current.reset(token)
