"""Lifecycle of the single scoped access window."""

from __future__ import annotations

import logging
from typing import Optional
from uuid import UUID

from filedrap.errors import AccessError

from .models import AccessSession, ResolvedAccess
from .providers import AccessProvider, PassthroughAccessProvider

LOGGER = logging.getLogger(__name__)


class ScopedAccessGrant:
    """Resolve persisted tokens and keep at most one access window open.

    Opening a window for a folder closes whichever window was open before, so
    open/close calls to the provider always stay balanced.
    """

    def __init__(self, provider: AccessProvider | None = None) -> None:
        self._provider: AccessProvider = provider or PassthroughAccessProvider()
        self._session: Optional[AccessSession] = None

    @property
    def session(self) -> Optional[AccessSession]:
        """Return the current access window, if one exists."""
        return self._session

    def is_open_for(self, folder_id: UUID) -> bool:
        """Return whether the current window belongs to ``folder_id``.

        Args:
            folder_id: Folder identifier to compare against.

        Returns:
            bool: True when a window exists for the folder, even a degraded one.
        """
        return self._session is not None and self._session.folder_id == folder_id

    def derive_token(self, path: str) -> Optional[bytes]:
        """Derive a persistable token for ``path`` on a best-effort basis.

        Args:
            path: Canonical folder path.

        Returns:
            Optional[bytes]: Token, or ``None`` when the provider cannot derive one.
        """
        try:
            return self._provider.derive_token(path)
        except (AccessError, OSError) as exc:
            LOGGER.warning("Could not derive access token for %s: %s", path, exc)
            return None

    def resolve(self, path: str, token: Optional[bytes]) -> ResolvedAccess:
        """Resolve the accessible location for a folder.

        Args:
            path: Canonical folder path recorded at registration.
            token: Persisted token, if any.

        Returns:
            ResolvedAccess: Path to use plus a refreshed token when the stored
            one went stale.
        """
        if token is None:
            return ResolvedAccess(path=path)
        try:
            resolved = self._provider.resolve_token(token)
        except (AccessError, OSError) as exc:
            LOGGER.warning("Falling back to raw path for %s: %s", path, exc)
            return ResolvedAccess(path=path)

        refreshed: Optional[bytes] = None
        if resolved.stale:
            refreshed = self.derive_token(resolved.path)
        return ResolvedAccess(path=resolved.path, refreshed_token=refreshed)

    def open(self, folder_id: UUID, path: str) -> bool:
        """Open an access window for ``path``, closing any previous window first.

        Args:
            folder_id: Folder the window belongs to.
            path: Accessible path returned by :meth:`resolve`.

        Returns:
            bool: True when the provider granted access. False means callers
            continue with plain filesystem access.
        """
        self.close()
        try:
            opened = bool(self._provider.open_access(path))
        except (AccessError, OSError) as exc:
            LOGGER.warning("Scoped access failed for %s: %s", path, exc)
            opened = False
        if not opened:
            LOGGER.info("Continuing without scoped access for %s", path)
        self._session = AccessSession(folder_id=folder_id, opened_path=path, is_open=opened)
        return opened

    def close(self) -> None:
        """Close the current window; calling it with no window open does nothing."""
        session = self._session
        self._session = None
        if session is None or not session.is_open:
            return
        try:
            self._provider.close_access(session.opened_path)
        except (AccessError, OSError) as exc:
            LOGGER.warning("Failed to close scoped access for %s: %s", session.opened_path, exc)


__all__ = ["ScopedAccessGrant"]
