"""State published by the session engine."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol
from uuid import UUID

from filedrap.scanning import FileEntry
from filedrap.state import RegisteredFolder


@dataclass(slots=True)
class BrowsingState:
    """Where the user is browsing.

    Attributes:
        selected_folder_id: Folder being browsed, if any.
        root_path: Accessible root of the selected folder.
        current_path: Directory being listed; always ``root_path`` or below it.
    """

    selected_folder_id: Optional[UUID] = None
    root_path: str = ""
    current_path: str = ""


@dataclass(slots=True, frozen=True)
class SessionSnapshot:
    """Read-only copy of everything a presentation layer renders."""

    folders: tuple[RegisteredFolder, ...]
    selected_folder_id: Optional[UUID]
    root_path: str
    current_path: str
    entries: tuple[FileEntry, ...]
    is_loading: bool
    error_message: Optional[str]
    recent_files: tuple[str, ...]
    show_hidden_files: bool
    sort_ascending: bool
    search_query: str
    can_go_to_parent_directory: bool


class FolderPicker(Protocol):
    """Native directory chooser."""

    def pick(self) -> Optional[str]:
        """Return the chosen directory path, or ``None`` when cancelled."""


__all__ = ["BrowsingState", "SessionSnapshot", "FolderPicker"]
