"""Dependency observers — the read and write registries.

PropertyGetObserver hears about every read of a tracked property and records
reads into the innermost open capture window. PropertySetObserver fans a
write on one property out to the handlers subscribed to that property.
TransactionalPropertySetEmitter sits on top of a PropertySetObserver and
defers the fan-out to the end of a transaction, calling each handler once.

Every subscription is scoped by a Lifetime and removed when it terminates.
"""

from __future__ import annotations

import functools
import logging
from contextlib import contextmanager
from typing import Callable, Iterator, Protocol, TypeVar

from lifeline import _anchor, _tracking
from lifeline._dispatch import call_each
from lifeline.errors import CycleError
from lifeline.lifetime import Lifetime

logger = logging.getLogger(__name__)

T = TypeVar("T")

Handler = Callable[[], object]
GetHandler = Callable[["Property"], object]


class Property:
    """Identity token for anything whose reads and writes are tracked.

    Two properties are never equal unless they are the same object.
    """

    __slots__ = ("_id",)

    def __init__(self) -> None:
        self._id = _anchor.new_id()


class PropertyGetEmitter(Protocol):
    def on_get_value(self, lifetime: Lifetime, handler: GetHandler) -> None: ...


class PropertySetEmitter(Protocol):
    def on_set_value(self, lifetime: Lifetime, property: Property, handler: Handler) -> None: ...


class _Subscribers:
    """Handlers subscribed to one property, in subscription order."""

    __slots__ = ("property", "handlers", "collector")

    def __init__(self, property: Property) -> None:
        self.property = property
        self.handlers: dict[int, Handler] = {}
        # Transactional emitter only: scopes the dirty-marking hook.
        self.collector: Lifetime | None = None


def _handler_key(handler: Handler) -> object:
    try:
        hash(handler)
    except TypeError:
        return ("id", id(handler))
    return handler


def _live(handlers: dict, *args) -> Iterator[Handler]:
    """Yield handlers subscribed when the emission started and still subscribed now."""
    for token in list(handlers):
        handler = handlers.get(token)
        if handler is not None:
            yield functools.partial(handler, *args) if args else handler


class PropertyGetObserver:
    """Registry of read events."""

    def __init__(self) -> None:
        self._handlers: dict[int, GetHandler] = {}

    def on_get_value(self, lifetime: Lifetime, handler: GetHandler) -> None:
        """Call handler(property) on every read until lifetime terminates."""
        token = _anchor.new_id()
        self._handlers[token] = handler
        lifetime.on_terminate(lambda: self._handlers.pop(token, None))

    def emit_get_value(self, property: Property) -> None:
        dependencies = _tracking.innermost(self)
        if dependencies is not None:
            dependencies.add(property)
        if self._handlers:
            call_each(_live(self._handlers, property))

    @contextmanager
    def capture(self) -> Iterator[set[Property]]:
        """Record every property read inside the block.

        Windows nest: a read is attributed to the innermost window only, so a
        computed evaluated inside another capture does not leak its inputs
        to the outer one.
        """
        with _tracking.push_frame(self) as dependencies:
            yield dependencies

    def get_expression_dependencies(
        self, expression: Callable[[], T]
    ) -> tuple[frozenset[Property], T]:
        """Run expression once and return (properties it read, its result)."""
        with self.capture() as dependencies:
            result = expression()
        return frozenset(dependencies), result


class PropertySetObserver:
    """Registry of write events, keyed by property identity."""

    def __init__(self) -> None:
        self._records: dict[int, _Subscribers] = {}

    def on_set_value(self, lifetime: Lifetime, property: Property, handler: Handler) -> None:
        """Call handler on every write to property until lifetime terminates."""
        record = self._records.get(property._id)
        if record is None:
            record = self._records[property._id] = _Subscribers(property)
        token = _anchor.new_id()
        record.handlers[token] = handler
        lifetime.on_terminate(lambda: self._unsubscribe(record, token))

    def _unsubscribe(self, record: _Subscribers, token: int) -> None:
        record.handlers.pop(token, None)
        if not record.handlers and self._records.get(record.property._id) is record:
            del self._records[record.property._id]

    def emit_set_value(self, property: Property) -> None:
        record = self._records.get(property._id)
        if record is not None:
            call_each(_live(record.handlers))

    def subscriber_count(self, property: Property) -> int:
        """Number of live subscriptions on property. Useful for testing."""
        record = self._records.get(property._id)
        return len(record.handlers) if record is not None else 0

    def __len__(self) -> int:
        """Number of properties with at least one subscriber."""
        return len(self._records)


class TransactionalPropertySetEmitter:
    """Batches write notifications so each handler runs once per transaction.

    Writes still reach the underlying observer immediately; only the
    handlers registered here are deferred. A write outside any transaction
    is its own one-write transaction.

    Nested transactions merge into the outermost one, which owns the flush.
    """

    def __init__(self, observer: PropertySetObserver | None = None, max_rounds: int = 100) -> None:
        self.observer = observer if observer is not None else PropertySetObserver()
        self.max_rounds = max_rounds
        self._records: dict[int, _Subscribers] = {}
        self._dirty: dict[int, Property] = {}
        self._depth = 0

    @property
    def in_transaction(self) -> bool:
        return self._depth > 0

    def on_set_value(self, lifetime: Lifetime, property: Property, handler: Handler) -> None:
        record = self._records.get(property._id)
        if record is None:
            record = self._records[property._id] = _Subscribers(property)
            record.collector = Lifetime()
            self.observer.on_set_value(
                record.collector, property, functools.partial(self._mark_dirty, property)
            )
        token = _anchor.new_id()
        record.handlers[token] = handler
        lifetime.on_terminate(lambda: self._unsubscribe(record, token))

    def _unsubscribe(self, record: _Subscribers, token: int) -> None:
        record.handlers.pop(token, None)
        if not record.handlers and self._records.get(record.property._id) is record:
            del self._records[record.property._id]
            record.collector.terminate()

    def _mark_dirty(self, property: Property) -> None:
        self._dirty[property._id] = property

    def emit_set_value(self, property: Property) -> None:
        """Emit a write on the underlying observer and flush if not inside a transaction."""
        with self.batch():
            self.observer.emit_set_value(property)

    def transaction(self, action: Callable[[], T]) -> T:
        """Run action, then notify each handler of every written property once."""
        with self.batch():
            return action()

    @contextmanager
    def batch(self) -> Iterator[None]:
        """Context-manager form of transaction().

        The flush also runs when the block raises, since its writes are
        already applied; the block's exception is the one that propagates.
        If that flush raises as well, its exception only goes to the log.
        """
        self._depth += 1
        try:
            yield
        except BaseException:
            self._depth -= 1
            if self._depth == 0:
                try:
                    self._flush()
                except Exception:
                    logger.exception("Flush after a failed transaction raised")
            raise
        self._depth -= 1
        if self._depth == 0:
            self._flush()

    def subscriber_count(self, property: Property) -> int:
        record = self._records.get(property._id)
        return len(record.handlers) if record is not None else 0

    def _flush(self) -> None:
        # Writes made by handlers land in the next round instead of flushing
        # recursively.
        self._depth += 1
        first: Exception | None = None
        rounds = 0
        try:
            while self._dirty:
                rounds += 1
                if rounds > self.max_rounds:
                    self._dirty.clear()
                    raise CycleError(
                        f"transaction flush did not settle after {self.max_rounds} rounds"
                    )
                pending = self._collect()
                logger.debug("Flushing %d handlers", len(pending))
                try:
                    with _tracking.untracked():
                        call_each(self._still_subscribed(pending))
                except Exception as exc:
                    if first is None:
                        first = exc
                    else:
                        logger.error("Flush handler failed after an earlier failure", exc_info=exc)
        finally:
            self._depth -= 1
        if first is not None:
            raise first

    def _collect(self) -> dict[object, tuple[Handler, list[tuple[_Subscribers, int]]]]:
        """Union of the handlers of every dirty property; clears the dirty set.

        Handlers that compare equal (bound methods of one object) count once.
        Unhashable callables are told apart by identity.
        """
        dirty = list(self._dirty.values())
        self._dirty.clear()
        pending: dict[object, tuple[Handler, list[tuple[_Subscribers, int]]]] = {}
        for property in dirty:
            record = self._records.get(property._id)
            if record is None:
                continue
            for token, handler in record.handlers.items():
                entry = pending.setdefault(_handler_key(handler), (handler, []))
                entry[1].append((record, token))
        return pending

    @staticmethod
    def _still_subscribed(pending) -> Iterator[Handler]:
        for handler, entries in pending.values():
            if any(token in record.handlers for record, token in entries):
                yield handler
