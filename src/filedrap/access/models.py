"""Data carried between the access grant and its callers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
from uuid import UUID


@dataclass(slots=True, frozen=True)
class ResolvedToken:
    """Outcome of resolving a persisted token with an access provider.

    Attributes:
        path: Path the token currently points at.
        stale: Whether the provider requires a freshly derived token.
    """

    path: str
    stale: bool = False


@dataclass(slots=True, frozen=True)
class ResolvedAccess:
    """Accessible location for a registered folder.

    Attributes:
        path: Path to browse, either the token target or the raw folder path.
        refreshed_token: Replacement token the caller must persist, if any.
    """

    path: str
    refreshed_token: Optional[bytes] = None


@dataclass(slots=True)
class AccessSession:
    """The single open access window.

    Attributes:
        folder_id: Folder the window was opened for.
        opened_path: Path passed to the provider when opening.
        is_open: Whether the provider reported a successful open.
    """

    folder_id: UUID
    opened_path: str
    is_open: bool


__all__ = ["ResolvedToken", "ResolvedAccess", "AccessSession"]
