"""Persistence helpers for registered folders and recently used files."""

from __future__ import annotations

from .bookmarks import BOOKMARKS_KEY, BookmarkStore
from .errors import CorruptStateError, StateError
from .models import RegisteredFolder
from .recents import MAX_RECENT_FILES, RECENTS_KEY, RecentFilesLedger
from .store import JsonFileStore, KeyValueStore, MemoryStore

DEFAULT_STATE_PATH = "~/.filedrap/state.json"

__all__ = [
    "BookmarkStore",
    "BOOKMARKS_KEY",
    "RecentFilesLedger",
    "RECENTS_KEY",
    "MAX_RECENT_FILES",
    "RegisteredFolder",
    "KeyValueStore",
    "JsonFileStore",
    "MemoryStore",
    "StateError",
    "CorruptStateError",
    "DEFAULT_STATE_PATH",
]
