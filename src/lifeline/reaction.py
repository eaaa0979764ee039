"""Reactions — side effects triggered by observable state changes.

- reaction(owner, source, handler): call handler whenever source changes.
  source is a ReactionDependency, or an expression whose reads (captured
  once, up front) become the dependency set.
- once(owner, expression, handler): the same, but fires at most once.
- autorun(owner, handler): run handler now and again after every change to
  anything it read, re-capturing its dependencies on every run.

Everything a reaction subscribes lives under a lifetime nested in owner's,
so terminating the owner stops it.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import AbstractSet, Callable, Protocol, runtime_checkable

from lifeline.lifetime import Lifetime, Lifetimed, SequentialLifetimes
from lifeline.observers import Property, PropertyGetObserver, PropertySetEmitter
from lifeline.runtime import get_runtime

Handler = Callable[[], object]


@dataclass(frozen=True)
class ReactionOptions:
    initial_reaction: bool = False
    once: bool = False


DEFAULT_OPTIONS = ReactionOptions()
ONCE_OPTIONS = ReactionOptions(once=True)


@runtime_checkable
class ReactionDependency(Protocol):
    """Something a reaction can wait on."""

    def on_change(self, lifetime: Lifetime, handler: Handler) -> None: ...


class DependencySet:
    """A fixed set of properties observed through one set emitter."""

    __slots__ = ("_emitter", "dependencies")

    def __init__(self, emitter: PropertySetEmitter, dependencies: AbstractSet[Property]) -> None:
        self._emitter = emitter
        self.dependencies = frozenset(dependencies)

    def on_change(self, lifetime: Lifetime, handler: Handler) -> None:
        for dependency in self.dependencies:
            self._emitter.on_set_value(lifetime, dependency, handler)

    def __repr__(self) -> str:
        return f"DependencySet({len(self.dependencies)} properties)"


def reaction(
    owner: Lifetimed,
    source: ReactionDependency | Callable[[], object],
    handler: Handler,
    *,
    options: ReactionOptions = DEFAULT_OPTIONS,
    set_emitter: PropertySetEmitter | None = None,
    get_observer: PropertyGetObserver | None = None,
) -> Lifetime:
    """Call handler whenever source changes. Returns the subscription's lifetime.

    An expression source runs once, immediately, to find what it reads;
    only those properties are watched. Terminate the returned lifetime (or
    owner's) to stop.

    Usage:
        first = Observable("Ada")
        seen = []
        reaction(lifetime, lambda: first.get(), lambda: seen.append(first.get()))
        first.set("Grace")
        # seen == ["Grace"]
    """
    if not isinstance(source, ReactionDependency):
        runtime = get_runtime()
        get_observer = get_observer if get_observer is not None else runtime.get_observer
        set_emitter = set_emitter if set_emitter is not None else runtime.set_emitter
        dependencies, _ = get_observer.get_expression_dependencies(source)
        source = DependencySet(set_emitter, dependencies)

    if options.initial_reaction:
        handler()

    nested = owner.lifetime.nested()

    def _react() -> None:
        try:
            handler()
        finally:
            if options.once:
                nested.terminate()

    source.on_change(nested, _react)
    return nested


def once(
    owner: Lifetimed,
    expression: ReactionDependency | Callable[[], object],
    handler: Handler,
    *,
    options: ReactionOptions = ONCE_OPTIONS,
    set_emitter: PropertySetEmitter | None = None,
    get_observer: PropertyGetObserver | None = None,
) -> Lifetime:
    """reaction() that fires at most once, then unsubscribes."""
    return reaction(
        owner,
        expression,
        handler,
        options=options,
        set_emitter=set_emitter,
        get_observer=get_observer,
    )


class AutorunState(enum.Enum):
    IDLE = "idle"
    SCHEDULED = "scheduled"
    RUNNING = "running"
    DISPOSED = "disposed"


class Autorun:
    """A handler re-run after every change to what its last run read.

    Each run releases the previous run's subscriptions and subscribes, once,
    to exactly what the new run read. Dependencies read before the handler
    raised are still subscribed, so the autorun recovers on the next change.
    """

    __slots__ = ("lifetime", "state", "_handler", "_set_emitter", "_get_observer", "_runs")

    def __init__(
        self,
        owner: Lifetimed,
        handler: Handler,
        *,
        set_emitter: PropertySetEmitter | None = None,
        get_observer: PropertyGetObserver | None = None,
    ) -> None:
        runtime = get_runtime()
        self._handler = handler
        self._set_emitter = set_emitter if set_emitter is not None else runtime.set_emitter
        self._get_observer = get_observer if get_observer is not None else runtime.get_observer
        self.state = AutorunState.IDLE
        self.lifetime = owner.lifetime.nested()
        self._runs = SequentialLifetimes(self.lifetime)
        self.lifetime.on_terminate(self._disposed)

    def run(self) -> None:
        """Run the handler now and resubscribe to what it reads."""
        if self.state is AutorunState.DISPOSED:
            return
        self.state = AutorunState.RUNNING
        run = self._runs.next()
        dependencies: set[Property] = set()
        try:
            with self._get_observer.capture() as dependencies:
                self._handler()
        finally:
            # The handler may have disposed us; then there is nothing to watch.
            if self.state is AutorunState.RUNNING:
                self.state = AutorunState.IDLE
                once(run, DependencySet(self._set_emitter, dependencies), self._schedule)

    def dispose(self) -> None:
        """Stop re-running. The owner's lifetime is left alone."""
        self.lifetime.terminate()

    def _schedule(self) -> None:
        if self.state is not AutorunState.IDLE:
            return
        self.state = AutorunState.SCHEDULED
        self.run()

    def _disposed(self) -> None:
        self.state = AutorunState.DISPOSED

    def __repr__(self) -> str:
        name = getattr(self._handler, "__name__", "handler")
        return f"Autorun({name}, {self.state.value})"


def autorun(
    owner: Lifetimed,
    handler: Handler,
    *,
    set_emitter: PropertySetEmitter | None = None,
    get_observer: PropertyGetObserver | None = None,
) -> Autorun:
    """Run handler immediately, then re-run whenever anything it read changes.

    Returns the Autorun (call .dispose() to stop it early).

    Usage:
        counter = Observable(0)
        log = []

        with Lifetime() as lifetime:
            autorun(lifetime, lambda: log.append(counter.get()))
            # log == [0] — ran immediately
            counter.set(1)
            # log == [0, 1] — re-ran because counter changed

        counter.set(2)
        # log == [0, 1] — lifetime terminated, stopped
    """
    runner = Autorun(owner, handler, set_emitter=set_emitter, get_observer=get_observer)
    runner.run()
    return runner
