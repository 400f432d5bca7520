"""Exception hierarchy for PoolGuard."""


class PoolGuardError(Exception):
    """Base class for all PoolGuard errors."""


class InvalidChemicalError(PoolGuardError, ValueError):
    """Raised when a chemical type or reading value violates a precondition.

    This is a programmer error (unknown chemical name, NaN reading),
    never a user-facing validation outcome.
    """


class QueueStorageError(PoolGuardError):
    """Raised when the queue store cannot be read or written.

    The queue's durability guarantee no longer holds, so this is
    always propagated to the caller.
    """


class TransportError(PoolGuardError):
    """Raised when the remote transport cannot attempt a send."""
