"""Exceptions raised by lifeline."""


class LifelineError(Exception):
    """Base class for every error raised by lifeline itself."""


class CycleError(LifelineError):
    """A re-entrancy the engine refuses to resolve.

    Raised when a computed value is read while it is being evaluated, and
    when a transaction flush keeps producing new writes for too many rounds.
    """
