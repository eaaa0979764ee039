"""Descriptors that put cells behind plain attribute access.

    class Counter:
        count = observable_field(0)
        doubled = computed_field(lambda self: self.count * 2)

        def __init__(self):
            self.lifetime = Lifetime()

Each instance gets its own cell, created on first access. A computed_field
is owned by the instance's `lifetime`, so the owning class must be
Lifetimed.
"""

from __future__ import annotations

from typing import Any, Callable, Generic, TypeVar, overload

from lifeline.computed import Computed
from lifeline.observable import Observable

T = TypeVar("T")


class _CellField:
    def __set_name__(self, owner: type, name: str) -> None:
        self._attr = f"_lifeline_{name}"

    def _cell(self, instance: Any, factory: Callable[[], Any]) -> Any:
        cell = instance.__dict__.get(self._attr)
        if cell is None:
            cell = instance.__dict__[self._attr] = factory()
        return cell


class observable_field(_CellField, Generic[T]):
    """Attribute backed by a per-instance Observable.

    The default is shared by reference between instances, as with any
    class-level default.
    """

    def __init__(self, default: T) -> None:
        self.default = default

    def cell(self, instance: Any) -> Observable[T]:
        """The Observable backing this attribute on instance."""
        return self._cell(instance, lambda: Observable(self.default))

    @overload
    def __get__(self, instance: None, owner: type) -> observable_field[T]: ...

    @overload
    def __get__(self, instance: Any, owner: type) -> T: ...

    def __get__(self, instance, owner=None):
        if instance is None:
            return self
        return self.cell(instance).get()

    def __set__(self, instance: Any, value: T) -> None:
        self.cell(instance).set(value)


class computed_field(_CellField, Generic[T]):
    """Read-only attribute backed by a per-instance Computed."""

    def __init__(self, fn: Callable[[Any], T]) -> None:
        self.fn = fn
        self.__doc__ = getattr(fn, "__doc__", None)

    def cell(self, instance: Any) -> Computed[T]:
        """The Computed backing this attribute on instance."""
        return self._cell(instance, lambda: Computed(instance, lambda: self.fn(instance)))

    @overload
    def __get__(self, instance: None, owner: type) -> computed_field[T]: ...

    @overload
    def __get__(self, instance: Any, owner: type) -> T: ...

    def __get__(self, instance, owner=None):
        if instance is None:
            return self
        return self.cell(instance).get()

    def __set__(self, instance: Any, value: Any) -> None:
        raise AttributeError(f"{self._attr[len('_lifeline_'):]} is computed and cannot be set")
