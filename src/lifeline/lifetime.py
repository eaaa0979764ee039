"""Lifetimes — cancellation scopes forming a tree.

A Lifetime collects cleanup callbacks and runs them, once and in
registration order, when it is terminated. Nested lifetimes terminate with
their parent. Every subscription in lifeline is scoped by a lifetime: the
subscription is removed when the lifetime it was registered under ends.

Usage:
    with Lifetime() as lifetime:
        autorun(lifetime, lambda: print(counter.get()))
        counter.set(1)
    # autorun stopped, subscriptions released
"""

from __future__ import annotations

from typing import Callable, Iterator, Protocol, TypeVar, runtime_checkable

from lifeline import _anchor
from lifeline._dispatch import call_each

T = TypeVar("T")

Handler = Callable[[], object]

_ALIVE = 0
_TERMINATING = 1
_TERMINATED = 2


@runtime_checkable
class Lifetimed(Protocol):
    """Anything that owns a lifetime. A Lifetime is Lifetimed by itself."""

    @property
    def lifetime(self) -> Lifetime: ...


class Lifetime:
    """A node in the cancellation tree."""

    __slots__ = ("_handlers", "_state")

    def __init__(self) -> None:
        self._handlers: dict[int, Handler] = {}
        self._state = _ALIVE

    @property
    def lifetime(self) -> Lifetime:
        return self

    @property
    def is_terminated(self) -> bool:
        """True from the moment terminate() starts. Never goes back to False."""
        return self._state != _ALIVE

    def on_terminate(self, handler: Handler) -> None:
        """Register a cleanup callback.

        On an already terminated lifetime the handler runs immediately,
        so a late registration never silently leaks what it was meant to free.
        Handlers registered while termination is in progress run in the same
        pass, after the ones already queued.
        """
        self._add(handler)

    when_terminated = on_terminate

    def terminate(self) -> None:
        """Run all cleanups exactly once. Calling it again is a no-op.

        If cleanups raise, the remaining ones still run and the first
        exception propagates afterwards.
        """
        if self._state != _ALIVE:
            return
        self._state = _TERMINATING
        try:
            call_each(self._drain())
        finally:
            self._state = _TERMINATED

    def nested(self) -> Lifetime:
        """A child lifetime terminated together with this one.

        Terminating the child does not affect the parent; the child just
        unregisters itself.
        """
        child = Lifetime()
        token = self._add(child.terminate)
        if token is not None:
            child._add(lambda: self._discard(token))
        return child

    def _add(self, handler: Handler) -> int | None:
        if self._state == _TERMINATED:
            handler()
            return None
        token = _anchor.new_id()
        self._handlers[token] = handler
        return token

    def _discard(self, token: int) -> None:
        self._handlers.pop(token, None)

    def _drain(self) -> Iterator[Handler]:
        while self._handlers:
            token = next(iter(self._handlers))
            yield self._handlers.pop(token)

    def __enter__(self) -> Lifetime:
        return self

    def __exit__(self, *exc_info) -> None:
        self.terminate()

    def __repr__(self) -> str:
        state = ("alive", "terminating", "terminated")[self._state]
        return f"Lifetime({state}, handlers={len(self._handlers)})"


def lifetimed(block: Callable[[Lifetime], T]) -> T:
    """Run block with a fresh lifetime and terminate it when block returns or raises."""
    lifetime = Lifetime()
    try:
        return block(lifetime)
    finally:
        lifetime.terminate()


class SequentialLifetimes:
    """Hands out one child lifetime at a time.

    Each next() terminates the previous child before creating the new one,
    which releases everything the previous run subscribed to.

    Usage:
        renders = SequentialLifetimes(component)
        def render():
            once(renders.next(), build_tree, schedule_render)
    """

    __slots__ = ("lifetime", "_current")

    def __init__(self, owner: Lifetimed) -> None:
        self.lifetime = owner.lifetime
        self._current: Lifetime | None = None

    @property
    def current(self) -> Lifetime | None:
        return self._current

    def next(self) -> Lifetime:
        previous, self._current = self._current, None
        if previous is not None:
            previous.terminate()
        self._current = self.lifetime.nested()
        return self._current

    def __repr__(self) -> str:
        return f"SequentialLifetimes(current={self._current!r})"
