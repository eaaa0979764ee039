"""Actions and transactions — batched state mutations.

Wrapping mutations in an @action or `with transaction()` defers every
reaction until the outermost scope exits, and each reaction runs once no
matter how many of its dependencies were written. Writes themselves apply
immediately, so code inside the block always reads current values.
"""

from __future__ import annotations

import functools
from contextlib import contextmanager
from typing import Callable, Iterator, ParamSpec, TypeVar

from lifeline.observers import TransactionalPropertySetEmitter
from lifeline.runtime import get_runtime

P = ParamSpec("P")
R = TypeVar("R")


def _resolve(emitter: TransactionalPropertySetEmitter | None) -> TransactionalPropertySetEmitter:
    return emitter if emitter is not None else get_runtime().set_emitter


def action(fn: Callable[P, R] | None = None, *, emitter: TransactionalPropertySetEmitter | None = None):
    """Decorator: batch all observable mutations inside fn.

    Reactions only fire after fn returns, not during. Without emitter the
    runtime active at call time is used.

    Usage:
        counter_a = Observable(0)
        counter_b = Observable(0)

        @action
        def swap():
            a, b = counter_a.get(), counter_b.get()
            counter_a.set(b)
            counter_b.set(a)
            # reactions see both changes at once, not one at a time
    """

    def decorate(fn: Callable[P, R]) -> Callable[P, R]:
        @functools.wraps(fn)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            with _resolve(emitter).batch():
                return fn(*args, **kwargs)

        return wrapper

    if fn is None:
        return decorate
    return decorate(fn)


@contextmanager
def transaction(emitter: TransactionalPropertySetEmitter | None = None) -> Iterator[None]:
    """Context manager for batching mutations.

    Usage:
        with transaction():
            counter_a.set(1)
            counter_b.set(2)
            # reactions fire here, after both are set
    """
    with _resolve(emitter).batch():
        yield
