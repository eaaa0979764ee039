import pytest

from lifeline import Lifetime, Runtime, use_runtime


@pytest.fixture(autouse=True)
def runtime():
    """Every test gets its own registries."""
    with use_runtime(Runtime()) as rt:
        yield rt


@pytest.fixture
def lifetime():
    lt = Lifetime()
    yield lt
    lt.terminate()
