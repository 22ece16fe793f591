"""Folder session engine."""

from .engine import SessionEngine, canonicalize_path, is_within
from .models import BrowsingState, FolderPicker, SessionSnapshot

__all__ = [
    "SessionEngine",
    "BrowsingState",
    "FolderPicker",
    "SessionSnapshot",
    "canonicalize_path",
    "is_within",
]
