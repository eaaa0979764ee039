"""Tests for reaction, once and autorun."""

import pytest

from lifeline import (
    Autorun,
    AutorunState,
    DependencySet,
    Lifetime,
    Observable,
    ReactionOptions,
    SequentialLifetimes,
    autorun,
    once,
    reaction,
)


class TestReaction:
    def test_no_initial_reaction(self, lifetime):
        o = Observable("a")
        log = []
        reaction(lifetime, o.get, lambda: log.append(o.get()))
        assert log == []

    def test_fires_on_change(self, lifetime):
        o = Observable("a")
        log = []
        reaction(lifetime, o.get, lambda: log.append(o.get()))
        o.set("b")
        o.set("c")
        assert log == ["b", "c"]

    def test_initial_reaction(self, lifetime):
        o = Observable("a")
        log = []
        reaction(
            lifetime,
            o.get,
            lambda: log.append(o.get()),
            options=ReactionOptions(initial_reaction=True),
        )
        assert log == ["a"]

    def test_watches_only_what_expression_read(self, lifetime):
        flag = Observable(False)
        a = Observable(1)
        b = Observable(2)
        log = []
        reaction(lifetime, lambda: a.get() if flag.get() else b.get(), lambda: log.append("x"))
        a.set(10)
        assert log == []
        b.set(20)
        assert log == ["x"]

    def test_dependency_source(self, runtime, lifetime):
        a = Observable(1)
        b = Observable(2)
        log = []
        reaction(lifetime, DependencySet(runtime.set_emitter, {a, b}), lambda: log.append("x"))
        a.set(5)
        b.set(6)
        assert log == ["x", "x"]

    def test_returned_lifetime_stops_reaction(self, lifetime):
        o = Observable(1)
        log = []
        sub = reaction(lifetime, o.get, lambda: log.append(o.get()))
        o.set(2)
        sub.terminate()
        o.set(3)
        assert log == [2]
        assert not lifetime.is_terminated

    def test_owner_termination_stops_reaction(self, runtime):
        o = Observable(1)
        log = []
        owner = Lifetime()
        reaction(owner, o.get, lambda: log.append(o.get()))
        owner.terminate()
        o.set(2)
        assert log == []
        assert runtime.set_emitter.subscriber_count(o) == 0

    def test_once_option_through_reaction(self, lifetime):
        o = Observable(1)
        log = []
        reaction(lifetime, o.get, lambda: log.append(o.get()), options=ReactionOptions(once=True))
        o.set(2)
        o.set(3)
        assert log == [2]

    def test_accepts_lifetimed_owner(self):
        class Component:
            def __init__(self):
                self.lifetime = Lifetime()

        o = Observable(1)
        log = []
        component = Component()
        reaction(component, o.get, lambda: log.append(o.get()))
        o.set(2)
        component.lifetime.terminate()
        o.set(3)
        assert log == [2]


class TestOnce:
    def test_fires_at_most_once(self, runtime, lifetime):
        o = Observable(1)
        log = []
        once(lifetime, o.get, lambda: log.append(o.get()))
        o.set(2)
        o.set(3)
        assert log == [2]
        assert runtime.set_emitter.subscriber_count(o) == 0

    def test_cleans_up_when_handler_raises(self, runtime, lifetime):
        o = Observable(1)

        def boom():
            raise RuntimeError("boom")

        once(lifetime, o.get, boom)
        with pytest.raises(RuntimeError):
            o.set(2)
        assert runtime.set_emitter.subscriber_count(o) == 0
        o.set(3)  # no handler left to raise


class TestAutorun:
    def test_runs_immediately(self, lifetime):
        o = Observable(10)
        log = []
        autorun(lifetime, lambda: log.append(o.get()))
        assert log == [10]

    def test_runs_n_plus_one_times(self, lifetime):
        o = Observable(0)
        log = []
        autorun(lifetime, lambda: log.append(o.get()))
        for i in range(1, 6):
            o.set(i)
        assert log == [0, 1, 2, 3, 4, 5]

    def test_owner_termination_stops(self, runtime):
        o = Observable(0)
        log = []
        owner = Lifetime()
        runner = autorun(owner, lambda: log.append(o.get()))
        o.set(1)
        owner.terminate()
        o.set(2)
        o.set(3)
        assert log == [0, 1]
        assert runner.state is AutorunState.DISPOSED
        assert runtime.set_emitter.subscriber_count(o) == 0

    def test_dispose_keeps_owner(self, lifetime):
        o = Observable(0)
        log = []
        runner = autorun(lifetime, lambda: log.append(o.get()))
        runner.dispose()
        o.set(1)
        assert log == [0]
        assert not lifetime.is_terminated

    def test_drops_stale_dependencies(self, runtime, lifetime):
        flag = Observable(True)
        a = Observable("a")
        b = Observable("b")
        log = []
        autorun(lifetime, lambda: log.append(a.get() if flag.get() else b.get()))
        flag.set(False)
        assert log == ["a", "b"]
        a.set("A")
        assert log == ["a", "b"]
        assert runtime.set_emitter.subscriber_count(a) == 0
        b.set("B")
        assert log == ["a", "b", "B"]

    def test_subscriptions_do_not_accumulate(self, runtime, lifetime):
        o = Observable(0)
        autorun(lifetime, o.get)
        for i in range(1, 20):
            o.set(i)
        assert runtime.set_emitter.subscriber_count(o) == 1
        assert runtime.set_observer.subscriber_count(o) == 1

    def test_state_is_idle_between_runs(self, lifetime):
        states = []
        o = Observable(0)
        runner = Autorun(lifetime, lambda: (o.get(), states.append(runner.state)))
        runner.run()
        o.set(1)
        assert states == [AutorunState.RUNNING, AutorunState.RUNNING]
        assert runner.state is AutorunState.IDLE

    def test_handler_terminating_owner(self, runtime):
        o = Observable(0)
        owner = Lifetime()
        log = []

        def handler():
            log.append(o.get())
            if o.get() == 1:
                owner.terminate()

        autorun(owner, handler)
        o.set(1)
        o.set(2)
        assert log == [0, 1]
        assert runtime.set_emitter.subscriber_count(o) == 0

    def test_recovers_after_handler_error(self, lifetime):
        o = Observable(0)
        log = []

        def handler():
            value = o.get()
            if value == 1:
                raise RuntimeError("bad value")
            log.append(value)

        autorun(lifetime, handler)
        with pytest.raises(RuntimeError):
            o.set(1)
        o.set(2)
        assert log == [0, 2]

    def test_write_inside_autorun_does_not_loop(self, lifetime):
        source = Observable(1)
        target = Observable(0)
        log = []

        def handler():
            target.set(source.get() * 2)
            log.append(target.get())

        autorun(lifetime, handler)
        source.set(2)
        assert log == [2, 4]

    def test_autorun_on_terminated_owner_never_runs(self):
        owner = Lifetime()
        owner.terminate()
        log = []
        autorun(owner, lambda: log.append("ran"))
        assert log == []

    def test_repr(self, lifetime):
        def render():
            pass

        assert "Autorun(render, idle)" == repr(autorun(lifetime, render))


class TestRenderLoop:
    """One lifetime per owned unit, one child lifetime per render cycle."""

    def test_rerender_on_change(self, runtime):
        title = Observable("first")
        component = Lifetime()
        renders = SequentialLifetimes(component)
        output = []

        def render():
            once(renders.next(), lambda: output.append(title.get()), render)

        render()
        title.set("second")
        title.set("third")
        assert output == ["first", "second", "third"]
        component.terminate()
        title.set("fourth")
        assert output == ["first", "second", "third"]
        assert runtime.set_emitter.subscriber_count(title) == 0
