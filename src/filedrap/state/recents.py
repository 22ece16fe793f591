"""Most-recently-used ledger of file paths."""

from __future__ import annotations

import json
import logging
import os

from .errors import StateError
from .store import KeyValueStore

LOGGER = logging.getLogger(__name__)

RECENTS_KEY = "recentFilesV1"
MAX_RECENT_FILES = 30


def _is_within(path: str, ancestor: str) -> bool:
    return path == ancestor or path.startswith(ancestor.rstrip(os.sep) + os.sep)


class RecentFilesLedger:
    """Bounded, deduplicated list of file paths ordered most-recent-first.

    Every mutation is persisted immediately on a best-effort basis.
    """

    def __init__(
        self,
        store: KeyValueStore,
        *,
        key: str = RECENTS_KEY,
        limit: int = MAX_RECENT_FILES,
    ) -> None:
        self._store = store
        self._key = key
        self._limit = max(1, limit)
        self._entries: list[str] = []

    @property
    def entries(self) -> tuple[str, ...]:
        """Return the ledger contents, most recent first."""
        return tuple(self._entries)

    @property
    def limit(self) -> int:
        """Return the maximum number of retained entries."""
        return self._limit

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, path: object) -> bool:
        return path in self._entries

    def load(self) -> tuple[str, ...]:
        """Replace in-memory entries with the persisted ledger.

        Returns:
            tuple[str, ...]: Loaded entries; empty when nothing usable is stored.
        """
        self._entries = self._read()
        return self.entries

    def mark_used(self, path: str) -> None:
        """Move ``path`` to the front, inserting it if absent, and evict the oldest.

        Args:
            path: Absolute path of the file that was used.
        """
        self._entries = [entry for entry in self._entries if entry != path]
        self._entries.insert(0, path)
        del self._entries[self._limit :]
        self._persist()

    def replace(self, old_path: str, new_path: str) -> bool:
        """Rewrite entries at or below ``old_path`` to live under ``new_path``.

        Args:
            old_path: Path that was renamed.
            new_path: Path it was renamed to.

        Returns:
            bool: True when at least one entry changed.
        """
        changed = False
        rewritten: list[str] = []
        for entry in self._entries:
            if _is_within(entry, old_path):
                entry = new_path + entry[len(old_path) :]
                changed = True
            if entry not in rewritten:
                rewritten.append(entry)
        if changed:
            self._entries = rewritten
            self._persist()
        return changed

    def remove(self, path: str) -> bool:
        """Drop entries at or below ``path``.

        Args:
            path: Path that no longer exists.

        Returns:
            bool: True when at least one entry was removed.
        """
        kept = [entry for entry in self._entries if not _is_within(entry, path)]
        if len(kept) == len(self._entries):
            return False
        self._entries = kept
        self._persist()
        return True

    def clear(self) -> None:
        """Forget every entry."""
        self._entries = []
        self._persist()

    def _read(self) -> list[str]:
        try:
            blob = self._store.get(self._key)
        except StateError as exc:
            LOGGER.warning("Ignoring unreadable recents ledger: %s", exc)
            return []
        if not blob:
            return []
        try:
            data = json.loads(blob.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            LOGGER.warning("Ignoring corrupt recents ledger: %s", exc)
            return []
        if not isinstance(data, list):
            LOGGER.warning("Ignoring recents ledger that is not a list.")
            return []
        entries: list[str] = []
        for item in data:
            if isinstance(item, str) and item not in entries:
                entries.append(item)
        return entries[: self._limit]

    def _persist(self) -> None:
        payload = json.dumps(self._entries).encode("utf-8")
        try:
            self._store.set(self._key, payload)
        except StateError as exc:
            LOGGER.warning("Failed to persist recents ledger: %s", exc)


__all__ = ["RecentFilesLedger", "RECENTS_KEY", "MAX_RECENT_FILES"]
