"""Access providers wrapping platform authorization primitives."""

from __future__ import annotations

import os
from typing import Protocol

from filedrap.errors import AccessError

from .models import ResolvedToken


class AccessProvider(Protocol):
    """Platform primitive for persistent, explicitly opened folder access."""

    def derive_token(self, path: str) -> bytes:
        """Return a persistable token granting access to ``path``."""

    def resolve_token(self, token: bytes) -> ResolvedToken:
        """Resolve ``token`` against the current authorization state."""

    def open_access(self, path: str) -> bool:
        """Begin an access window for ``path``; return False when refused."""

    def close_access(self, path: str) -> None:
        """End the access window previously opened for ``path``."""


class PassthroughAccessProvider:
    """Provider for platforms without scoped access: the token is the path itself."""

    def derive_token(self, path: str) -> bytes:
        return os.fsencode(path)

    def resolve_token(self, token: bytes) -> ResolvedToken:
        try:
            return ResolvedToken(path=os.fsdecode(token))
        except UnicodeDecodeError as exc:
            raise AccessError(f"Access token is not a valid path: {exc}") from exc

    def open_access(self, path: str) -> bool:
        return True

    def close_access(self, path: str) -> None:
        return None


__all__ = ["AccessProvider", "PassthroughAccessProvider"]
