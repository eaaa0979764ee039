"""Tests for Observable cells and cross-thread marshaling."""

import threading

from lifeline import Observable, autorun, observable, set_scheduler
import importlib

_obs_mod = importlib.import_module("lifeline.observable")


class TestObservable:
    def test_get_set(self):
        o = Observable(42)
        assert o.get() == 42
        o.set(100)
        assert o.get() == 100

    def test_value_property(self):
        o = observable("a")
        o.value = "b"
        assert o.value == "b"

    def test_dedup(self, lifetime):
        """Setting an equal value should not notify."""
        o = Observable(42)
        log = []
        autorun(lifetime, lambda: log.append(o.get()))
        assert log == [42]
        o.set(42)
        assert log == [42]

    def test_equal_but_not_identical_is_noop(self, runtime, lifetime):
        o = Observable([1, 2])
        log = []
        runtime.set_observer.on_set_value(lifetime, o, lambda: log.append("set"))
        o.set([1, 2])
        assert log == []
        o.set([1, 2, 3])
        assert log == ["set"]

    def test_one_notification_per_write(self, runtime, lifetime):
        o = Observable(0)
        log = []
        runtime.set_emitter.on_set_value(lifetime, o, lambda: log.append(o.get()))
        o.set(1)
        o.set(2)
        assert log == [1, 2]

    def test_read_is_recorded(self, runtime):
        o = Observable(1)
        dependencies, result = runtime.get_observer.get_expression_dependencies(o.get)
        assert dependencies == {o}
        assert result == 1

    def test_distinct_cells_are_distinct(self, runtime):
        a, b = Observable(1), Observable(1)
        dependencies, _ = runtime.get_observer.get_expression_dependencies(
            lambda: a.get() + b.get()
        )
        assert dependencies == {a, b}

    def test_binds_to_explicit_runtime(self):
        from lifeline import Runtime

        other = Runtime()
        o = Observable(0, runtime=other)
        dependencies, _ = other.get_observer.get_expression_dependencies(o.get)
        assert dependencies == {o}

    def test_repr(self):
        assert "Observable(5)" in repr(Observable(5))


class TestAutoMarshal:
    """Observable.set() marshals writes from foreign threads."""

    def teardown_method(self):
        set_scheduler(None)

    def test_owner_thread_is_synchronous(self):
        calls = []
        set_scheduler(lambda f: (calls.append(f), f()))
        v = Observable(0)
        v.set(42)
        assert v.get() == 42
        assert calls == []

    def test_background_thread_marshals(self):
        calls = []
        set_scheduler(lambda f: (calls.append(f), f()))
        v = Observable(0)
        done = threading.Event()

        def bg():
            v.set(99)
            done.set()

        threading.Thread(target=bg).start()
        done.wait(timeout=2)
        assert len(calls) == 1
        assert v.get() == 99

    def test_no_scheduler_is_direct(self):
        assert _obs_mod._scheduler is None
        v = Observable(0)
        v.set(42)
        assert v.get() == 42
