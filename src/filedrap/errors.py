"""Exception hierarchy shared by FileDrap components."""


class FiledrapError(Exception):
    """Base exception for recoverable FileDrap failures."""


class PersistenceError(FiledrapError):
    """Raised when persisted bookmarks or recents cannot be read or written."""


class AccessError(FiledrapError):
    """Raised when a scoped access grant cannot be resolved or opened."""


class ScanError(FiledrapError):
    """Raised when a directory cannot be enumerated."""


class ScanCancelled(FiledrapError):
    """Raised inside a worker when a scan observes its cancellation token."""


class ValidationError(FiledrapError):
    """Raised when a requested operation is rejected before touching the filesystem."""


class MutationError(FiledrapError):
    """Raised when a rename, trash, or launch call fails at the OS level."""


class ConfinementViolation(FiledrapError):
    """Raised when the browsing path escaped or vanished from the folder root."""


__all__ = [
    "FiledrapError",
    "PersistenceError",
    "AccessError",
    "ScanError",
    "ScanCancelled",
    "ValidationError",
    "MutationError",
    "ConfinementViolation",
]
