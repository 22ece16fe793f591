"""Persistence of the registered folder list."""

from __future__ import annotations

import logging
from typing import List, Sequence

from pydantic import TypeAdapter, ValidationError
from pydantic_core import PydanticSerializationError

from .errors import StateError
from .models import RegisteredFolder
from .store import KeyValueStore

LOGGER = logging.getLogger(__name__)

BOOKMARKS_KEY = "savedFoldersV1"

_FOLDER_LIST = TypeAdapter(List[RegisteredFolder])


class BookmarkStore:
    """Serialize registered folders to and from a key-value blob.

    The blob is an advisory cache: a missing or unreadable blob loads as an
    empty list and write failures are logged rather than raised.
    """

    def __init__(self, store: KeyValueStore, *, key: str = BOOKMARKS_KEY) -> None:
        self._store = store
        self._key = key

    @property
    def key(self) -> str:
        """Return the blob key used for the folder list."""
        return self._key

    def load(self) -> list[RegisteredFolder]:
        """Return the persisted folders in their saved order.

        Returns:
            list[RegisteredFolder]: Decoded folders, or an empty list when no
            usable data is stored.
        """
        try:
            blob = self._store.get(self._key)
        except StateError as exc:
            LOGGER.warning("Ignoring unreadable folder list: %s", exc)
            return []
        if not blob:
            return []
        try:
            return _FOLDER_LIST.validate_json(blob)
        except ValidationError as exc:
            LOGGER.warning("Ignoring corrupt folder list (%d errors).", exc.error_count())
            return []

    def save(self, folders: Sequence[RegisteredFolder]) -> None:
        """Persist ``folders`` in order, ignoring storage failures.

        Args:
            folders: Folders to serialize.
        """
        try:
            payload = _FOLDER_LIST.dump_json(list(folders), exclude_none=True)
            self._store.set(self._key, payload)
        except (StateError, PydanticSerializationError) as exc:
            LOGGER.warning("Failed to persist folder list: %s", exc)


__all__ = ["BookmarkStore", "BOOKMARKS_KEY"]
