"""Identity anchor — stable integer handles for cells and subscriptions.

Registries key their records by these handles instead of by the objects
themselves, so a cell's identity never depends on how it compares or hashes.
"""

import itertools

# itertools.count is thread-safe (C-level GIL atomic)
_id_counter = itertools.count(1)


def new_id() -> int:
    return next(_id_counter)
