"""Value types produced and consumed by directory scans."""

from __future__ import annotations

import os
from dataclasses import dataclass, field


@dataclass(slots=True, frozen=True)
class FileEntry:
    """A file or directory listed inside the browsing path.

    Attributes:
        path: Absolute path of the child inside the listed directory, which
            doubles as the entry identity. Symlinks are not resolved.
        is_directory: Whether the entry is a directory.
    """

    path: str
    is_directory: bool = False

    @property
    def id(self) -> str:
        """Return the identity of the entry."""
        return self.path

    @property
    def name(self) -> str:
        """Return the final path component."""
        return os.path.basename(self.path.rstrip(os.sep)) or self.path


@dataclass(slots=True, frozen=True)
class ScanOptions:
    """Display options applied while scanning.

    Attributes:
        show_hidden: Include entries the OS reports as hidden.
        sort_ascending: Sort names ascending when True, descending otherwise.
        search_query: Case-insensitive substring filter on entry names.
    """

    show_hidden: bool = False
    sort_ascending: bool = True
    search_query: str = ""


@dataclass(slots=True)
class ScanResult:
    """Completed scan of one directory.

    Attributes:
        root: Directory that was listed.
        entries: Entries after search filtering and sorting.
        listing: Every entry that survived the hidden-file filter, before search.
    """

    root: str
    entries: list[FileEntry] = field(default_factory=list)
    listing: list[FileEntry] = field(default_factory=list)


__all__ = ["FileEntry", "ScanOptions", "ScanResult"]
