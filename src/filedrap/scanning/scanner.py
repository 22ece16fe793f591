"""Single-level directory listing with filtering and locale-aware sorting."""

from __future__ import annotations

import locale
import logging
from typing import Iterable, Optional

from filedrap.errors import ScanError
from filedrap.filesystem import FileSystem, LocalFileSystem, describe_os_error

from .cancellation import CancellationToken
from .models import FileEntry, ScanOptions, ScanResult

LOGGER = logging.getLogger(__name__)


def collation_key(name: str) -> tuple[str, str]:
    """Return a case-insensitive, locale-aware sort key for a file name.

    Names that collate identically are ordered by their raw spelling so the
    result never depends on listing order.
    """
    return (locale.strxfrm(name.casefold()), name)


def matches_query(name: str, query: str) -> bool:
    """Return whether ``name`` contains the trimmed ``query``, ignoring case."""
    needle = query.strip()
    if not needle:
        return True
    return needle.casefold() in name.casefold()


def sort_and_filter(
    entries: Iterable[FileEntry],
    query: str = "",
    sort_ascending: bool = True,
) -> list[FileEntry]:
    """Filter entries by name and sort them.

    Args:
        entries: Entries to arrange.
        query: Substring filter; blank queries keep every entry.
        sort_ascending: Direction of the name ordering.

    Returns:
        list[FileEntry]: New list of matching entries in display order.
    """
    matching = [entry for entry in entries if matches_query(entry.name, query)]
    return sorted(
        matching,
        key=lambda entry: collation_key(entry.name),
        reverse=not sort_ascending,
    )


class DirectoryScanner:
    """List the immediate children of a directory for display."""

    def __init__(self, filesystem: FileSystem | None = None) -> None:
        self._filesystem: FileSystem = filesystem or LocalFileSystem()

    def scan(
        self,
        root: str,
        options: ScanOptions,
        token: Optional[CancellationToken] = None,
    ) -> ScanResult:
        """List ``root`` and apply hidden-file, search, and sort options.

        Args:
            root: Directory to list. Only one level is read.
            options: Display options for the scan.
            token: Cancellation token checked between stages.

        Returns:
            ScanResult: Presented entries plus the unfiltered listing.

        Raises:
            ScanError: If the directory cannot be enumerated.
            ScanCancelled: If ``token`` was cancelled at a checkpoint.
        """
        token = token or CancellationToken()
        try:
            children = self._filesystem.list_directory(root)
        except OSError as exc:
            raise ScanError(f"Failed to load files: {describe_os_error(exc)}") from exc
        token.raise_if_cancelled()

        listing: list[FileEntry] = []
        for child in children:
            if not options.show_hidden and self._filesystem.is_hidden(child.path):
                continue
            listing.append(FileEntry(path=child.path, is_directory=child.is_directory))
        filtered = [entry for entry in listing if matches_query(entry.name, options.search_query)]
        token.raise_if_cancelled()

        entries = sort_and_filter(filtered, "", options.sort_ascending)
        LOGGER.debug("Scanned %s: %d listed, %d shown", root, len(listing), len(entries))
        return ScanResult(root=root, entries=entries, listing=listing)


__all__ = ["DirectoryScanner", "sort_and_filter", "collation_key", "matches_query"]
