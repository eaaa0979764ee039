"""lifeline: lifetime-scoped reactive dependency tracking for Python."""

from importlib.metadata import version as _version

__version__ = _version("lifeline")

from lifeline.errors import LifelineError, CycleError
from lifeline.lifetime import Lifetime, Lifetimed, SequentialLifetimes, lifetimed
from lifeline.observers import (
    Property,
    PropertyGetObserver,
    PropertySetObserver,
    TransactionalPropertySetEmitter,
)
from lifeline.runtime import Runtime, get_runtime, use_runtime
from lifeline.observable import Observable, observable, set_scheduler
from lifeline.computed import CachedResult, Computed, computed
from lifeline.reaction import (
    DEFAULT_OPTIONS,
    ONCE_OPTIONS,
    Autorun,
    AutorunState,
    DependencySet,
    ReactionDependency,
    ReactionOptions,
    autorun,
    once,
    reaction,
)
from lifeline.action import action, transaction
from lifeline._tracking import untracked
from lifeline.fields import observable_field, computed_field

__all__ = [
    "LifelineError",
    "CycleError",
    "Lifetime",
    "Lifetimed",
    "SequentialLifetimes",
    "lifetimed",
    "Property",
    "PropertyGetObserver",
    "PropertySetObserver",
    "TransactionalPropertySetEmitter",
    "Runtime",
    "get_runtime",
    "use_runtime",
    "Observable",
    "observable",
    "set_scheduler",
    "CachedResult",
    "Computed",
    "computed",
    "ReactionOptions",
    "DEFAULT_OPTIONS",
    "ONCE_OPTIONS",
    "ReactionDependency",
    "DependencySet",
    "reaction",
    "once",
    "Autorun",
    "AutorunState",
    "autorun",
    "action",
    "transaction",
    "untracked",
    "observable_field",
    "computed_field",
]
