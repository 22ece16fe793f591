"""Scoped filesystem access grants for registered folders."""

from .grant import ScopedAccessGrant
from .models import AccessSession, ResolvedAccess, ResolvedToken
from .providers import AccessProvider, PassthroughAccessProvider

__all__ = [
    "ScopedAccessGrant",
    "AccessProvider",
    "PassthroughAccessProvider",
    "AccessSession",
    "ResolvedAccess",
    "ResolvedToken",
]
