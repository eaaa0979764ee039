"""Capture-window stack — which dependency capture is currently recording.

Uses contextvars so each execution context carries its own stack. Entering a
capture window pushes a frame; reads consult only the innermost frame that
belongs to the emitting observer; leaving the window pops it.
"""

from __future__ import annotations

import contextvars
from contextlib import contextmanager
from typing import TYPE_CHECKING, Iterator

if TYPE_CHECKING:
    from lifeline.observers import Property, PropertyGetObserver

    Frame = tuple[PropertyGetObserver, set[Property]]

capture_frames: contextvars.ContextVar[tuple[Frame, ...]] = contextvars.ContextVar(
    "capture_frames", default=()
)


@contextmanager
def push_frame(observer: PropertyGetObserver) -> Iterator[set[Property]]:
    """Open a capture window for observer; yields the set reads are added to."""
    dependencies: set[Property] = set()
    token = capture_frames.set(capture_frames.get() + ((observer, dependencies),))
    try:
        yield dependencies
    finally:
        capture_frames.reset(token)


def innermost(observer: PropertyGetObserver) -> set[Property] | None:
    """The dependency set of the innermost window opened by observer, if any."""
    for owner, dependencies in reversed(capture_frames.get()):
        if owner is observer:
            return dependencies
    return None


@contextmanager
def untracked() -> Iterator[None]:
    """Hide every open capture window for the duration of the block.

    Handlers fired from a transaction flush run here, so their reads never
    leak into a capture that happened to be open when the write occurred.
    """
    token = capture_frames.set(())
    try:
        yield
    finally:
        capture_frames.reset(token)
