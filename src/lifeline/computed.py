"""Computed values — derived state with automatic dependency tracking.

A Computed wraps an expression. When read with no cached result it runs the
expression inside a capture window, subscribes to every property the
expression read, and caches the result. The first write to any of those
properties drops the cache and announces a write on the computed itself, so
anything depending on the computed is invalidated in turn.

Computed values are lazy: they only recompute when read.
"""

from __future__ import annotations

from typing import Callable, Generic, TypeVar, overload

from lifeline.errors import CycleError
from lifeline.lifetime import Lifetimed, SequentialLifetimes
from lifeline.observers import Property
from lifeline.runtime import Runtime, get_runtime

T = TypeVar("T")


class CachedResult(Generic[T]):
    """The last result of a computed. Its absence means "needs evaluation"."""

    __slots__ = ("value",)

    def __init__(self, value: T) -> None:
        self.value = value

    def __repr__(self) -> str:
        return f"CachedResult({self.value!r})"


class Computed(Property, Generic[T]):
    """A derived value that tracks its dependencies and caches the result.

    Dependency subscriptions live under owner's lifetime. Once it terminates
    the computed keeps its last cached result and is never invalidated again.

    The expression must be pure: it may read cells but not write them.
    Dependencies are subscribed once the expression returns, so a write to
    one of its own inputs leaves the stale result cached.
    """

    __slots__ = ("lifetime", "_expression", "_runtime", "_cache", "_runs", "_evaluating")

    def __init__(
        self, owner: Lifetimed, expression: Callable[[], T], *, runtime: Runtime | None = None
    ) -> None:
        super().__init__()
        self.lifetime = owner.lifetime
        self._expression = expression
        self._runtime = runtime if runtime is not None else get_runtime()
        self._cache: CachedResult[T] | None = None
        self._runs = SequentialLifetimes(self.lifetime)
        self._evaluating = False

    @property
    def is_cached(self) -> bool:
        return self._cache is not None

    def get(self) -> T:
        """Read the computed value. Re-evaluates only if invalidated."""
        self._runtime.get_observer.emit_get_value(self)
        cache = self._cache
        if cache is None:
            cache = self._recompute()
        return cache.value

    value = property(get)

    def _recompute(self) -> CachedResult[T]:
        if self._evaluating:
            raise CycleError(f"{self!r} was read while computing its own value")
        self._evaluating = True
        try:
            dependencies, result = self._runtime.get_observer.get_expression_dependencies(
                self._expression
            )
        finally:
            self._evaluating = False

        # Dropping the previous run's subscriptions keeps a computed with
        # conditional reads subscribed to what it read last, nothing more.
        run = self._runs.next()
        set_observer = self._runtime.set_observer
        for dependency in dependencies:
            set_observer.on_set_value(run, dependency, self._invalidate)

        cache = self._cache = CachedResult(result)
        return cache

    def _invalidate(self) -> None:
        # Only the first write after an evaluation counts.
        if self._cache is not None:
            self._cache = None
            self._runtime.set_observer.emit_set_value(self)

    def __repr__(self) -> str:
        name = getattr(self._expression, "__name__", "expression")
        state = f"cached={self._cache.value!r}" if self._cache is not None else "dirty"
        return f"Computed({name}, {state})"


@overload
def computed(owner: Lifetimed, expression: Callable[[], T], *, runtime: Runtime | None = None) -> Computed[T]: ...


@overload
def computed(
    owner: Lifetimed, *, runtime: Runtime | None = None
) -> Callable[[Callable[[], T]], Computed[T]]: ...


def computed(owner, expression=None, *, runtime=None):
    """Factory/decorator to create a Computed owned by owner.

    Usage:
        count = Observable(0)

        @computed(lifetime)
        def doubled():
            return count.get() * 2

        doubled.get()  # 0
        count.set(5)
        doubled.get()  # 10
    """
    if expression is None:
        return lambda fn: Computed(owner, fn, runtime=runtime)
    return Computed(owner, expression, runtime=runtime)
