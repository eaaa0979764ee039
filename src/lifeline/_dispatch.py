"""Handler invocation with a single failure policy.

Every handler gets called. The first exception is re-raised once the loop
is done; later ones are logged, since only one can propagate.
"""

from __future__ import annotations

import logging
from typing import Callable, Iterable

logger = logging.getLogger(__name__)


def call_each(handlers: Iterable[Callable[[], object]]) -> None:
    """Call every handler yielded by handlers, then re-raise the first failure.

    handlers may be a lazy iterable; it is consumed one item at a time so
    it can reflect subscriptions that change while the loop runs.
    """
    first: Exception | None = None
    for handler in handlers:
        try:
            handler()
        except Exception as exc:
            if first is None:
                first = exc
            else:
                logger.error("Handler %r failed after an earlier failure", handler, exc_info=exc)
    if first is not None:
        raise first
