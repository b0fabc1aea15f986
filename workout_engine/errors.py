"""Exceptions raised by the workout session engine."""


class ValidationError(ValueError):
    """Raised when a set is logged with a non-positive weight or rep count."""


class InvalidTransition(ValueError):
    """Raised when an event is not allowed in the session's current phase."""


class PersistenceError(Exception):
    """Raised when the key-value store cannot be read or written."""


class CompletionRefused(ValueError):
    """Raised when finalising a session the completion gate has blocked."""
