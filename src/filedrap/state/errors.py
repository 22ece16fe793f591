"""State management errors."""

from filedrap.errors import PersistenceError


class StateError(PersistenceError):
    """Base exception for key-value store operations."""


class CorruptStateError(StateError):
    """Raised when a persisted blob exists but cannot be decoded."""
