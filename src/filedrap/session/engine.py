"""Folder session engine: bookmarks, confined browsing, background scans, and file actions."""

from __future__ import annotations

import logging
import os
import queue
import time
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from functools import partial
from pathlib import Path
from typing import Callable, Optional
from uuid import UUID

from filedrap.access import AccessProvider, AccessSession, ScopedAccessGrant
from filedrap.errors import (
    ConfinementViolation,
    FiledrapError,
    MutationError,
    ScanCancelled,
    ScanError,
    ValidationError,
)
from filedrap.filesystem import FileSystem, LocalFileSystem, describe_os_error
from filedrap.scanning import (
    CancellationToken,
    DirectoryScanner,
    FileEntry,
    ScanOptions,
    ScanResult,
    sort_and_filter,
)
from filedrap.state import (
    MAX_RECENT_FILES,
    BookmarkStore,
    KeyValueStore,
    RecentFilesLedger,
    RegisteredFolder,
)

from .models import BrowsingState, FolderPicker, SessionSnapshot

LOGGER = logging.getLogger(__name__)


def canonicalize_path(path: str | os.PathLike[str]) -> str:
    """Return the absolute, user-expanded, symlink-resolved form of ``path``."""
    return str(Path(path).expanduser().resolve())


def is_within(path: str, root: str) -> bool:
    """Return whether ``path`` equals ``root`` or lies below it, comparing normalized paths."""
    path = os.path.normpath(path)
    root = os.path.normpath(root)
    if path == root:
        return True
    return path.startswith(root.rstrip(os.sep) + os.sep)


@dataclass(slots=True, eq=False)
class _ScanHandle:
    """Identity of one dispatched scan; compared with ``is``."""

    folder_id: UUID
    path: str
    options: ScanOptions
    token: CancellationToken = field(default_factory=CancellationToken)
    future: Optional[Future[ScanResult]] = None


class SessionEngine:
    """Own the registered folders and the browsing session built on top of them.

    Every public method must be called from a single owner thread. Directory
    scans run on ``executor``; their results are queued and only applied when
    the owner calls :meth:`process_completions` or :meth:`wait_for_scan`.
    ``on_update`` is invoked from the worker thread whenever a result is
    queued, so an event loop can schedule a drain.
    """

    def __init__(
        self,
        store: KeyValueStore,
        *,
        filesystem: FileSystem | None = None,
        access_provider: AccessProvider | None = None,
        picker: FolderPicker | None = None,
        scanner: DirectoryScanner | None = None,
        executor: Executor | None = None,
        on_update: Callable[[], None] | None = None,
        show_hidden_files: bool = False,
        sort_ascending: bool = True,
        recents_limit: int = MAX_RECENT_FILES,
        scan_workers: int = 2,
    ) -> None:
        self._filesystem: FileSystem = filesystem or LocalFileSystem()
        self._bookmarks = BookmarkStore(store)
        self._recents = RecentFilesLedger(store, limit=recents_limit)
        self._grant = ScopedAccessGrant(access_provider)
        self._scanner = scanner or DirectoryScanner(self._filesystem)
        self._picker = picker
        self._owns_executor = executor is None
        self._executor: Executor = executor or ThreadPoolExecutor(
            max_workers=max(1, scan_workers), thread_name_prefix="filedrap-scan"
        )
        self._on_update = on_update
        self._completions: queue.Queue[tuple[_ScanHandle, Future[ScanResult]]] = queue.Queue()

        self._folders: list[RegisteredFolder] = self._bookmarks.load()
        self._recents.load()
        self._browsing = BrowsingState()
        self._scan: Optional[_ScanHandle] = None
        self._listing: list[FileEntry] = []
        self._entries: list[FileEntry] = []
        self._is_loading = False
        self._error_message: Optional[str] = None
        self._last_error: Optional[FiledrapError] = None
        self._advisory: Optional[ConfinementViolation] = None
        self._show_hidden_files = show_hidden_files
        self._sort_ascending = sort_ascending
        self._search_query = ""

    def __enter__(self) -> "SessionEngine":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ------------------------------------------------------------------ #
    # Published state                                                    #
    # ------------------------------------------------------------------ #

    @property
    def folders(self) -> tuple[RegisteredFolder, ...]:
        """Return registered folders in display order."""
        return tuple(self._folders)

    @property
    def selected_folder_id(self) -> Optional[UUID]:
        return self._browsing.selected_folder_id

    @property
    def selected_folder(self) -> Optional[RegisteredFolder]:
        folder_id = self._browsing.selected_folder_id
        if folder_id is None:
            return None
        return next((folder for folder in self._folders if folder.id == folder_id), None)

    @property
    def root_path(self) -> str:
        return self._browsing.root_path

    @property
    def current_path(self) -> str:
        return self._browsing.current_path

    @property
    def entries(self) -> tuple[FileEntry, ...]:
        """Return the filtered, sorted entries of the current directory."""
        return tuple(self._entries)

    @property
    def is_loading(self) -> bool:
        return self._is_loading

    @property
    def error_message(self) -> Optional[str]:
        return self._error_message

    @property
    def last_error(self) -> Optional[FiledrapError]:
        """Return the exception behind :attr:`error_message`, if any."""
        return self._last_error

    @property
    def recent_files(self) -> tuple[str, ...]:
        return self._recents.entries

    @property
    def show_hidden_files(self) -> bool:
        return self._show_hidden_files

    @property
    def sort_ascending(self) -> bool:
        return self._sort_ascending

    @property
    def search_query(self) -> str:
        return self._search_query

    @property
    def access_session(self) -> Optional[AccessSession]:
        return self._grant.session

    @property
    def can_go_to_parent_directory(self) -> bool:
        """Return whether the browsing path is strictly below the folder root."""
        if self._browsing.selected_folder_id is None or not self._browsing.current_path:
            return False
        return os.path.normpath(self._browsing.current_path) != os.path.normpath(
            self._browsing.root_path
        )

    def snapshot(self) -> SessionSnapshot:
        """Return an immutable copy of the published state."""
        return SessionSnapshot(
            folders=self.folders,
            selected_folder_id=self.selected_folder_id,
            root_path=self.root_path,
            current_path=self.current_path,
            entries=self.entries,
            is_loading=self._is_loading,
            error_message=self._error_message,
            recent_files=self.recent_files,
            show_hidden_files=self._show_hidden_files,
            sort_ascending=self._sort_ascending,
            search_query=self._search_query,
            can_go_to_parent_directory=self.can_go_to_parent_directory,
        )

    def folder_for_path(self, path: str) -> Optional[RegisteredFolder]:
        """Return the registered folder whose canonical path equals ``path``."""
        return next((folder for folder in self._folders if folder.path == path), None)

    # ------------------------------------------------------------------ #
    # Folder list                                                        #
    # ------------------------------------------------------------------ #

    def start(self) -> None:
        """Select the first registered folder when nothing is selected yet."""
        if self._browsing.selected_folder_id is None and self._folders:
            self.select_folder(self._folders[0].id)

    def add_folder(self, path: str | os.PathLike[str] | None = None) -> Optional[RegisteredFolder]:
        """Register a folder, or re-select it when already registered.

        Args:
            path: Directory to add. When omitted the folder picker is asked.

        Returns:
            Optional[RegisteredFolder]: The added or re-selected folder, or
            ``None`` when the picker was cancelled or the path is not a directory.
        """
        if path is None:
            if self._picker is None:
                return None
            path = self._picker.pick()
            if path is None:
                return None

        canonical = canonicalize_path(path)
        existing = self.folder_for_path(canonical)
        if existing is not None:
            self.select_folder(existing.id)
            return existing

        if not self._filesystem.is_directory(canonical):
            self._reject(ValidationError(f"Not a folder: {canonical}"))
            return None

        folder = RegisteredFolder(
            name=os.path.basename(canonical) or canonical,
            path=canonical,
            access_token=self._grant.derive_token(canonical),
        )
        self._folders.append(folder)
        self._persist_folders()
        LOGGER.info("Registered folder %s", canonical)
        self.select_folder(folder.id)
        return folder

    def remove_folder(self, folder_id: Optional[UUID] = None) -> bool:
        """Unregister a folder, defaulting to the selected one.

        When the selected folder is removed the previous folder in the list is
        selected, or the selection is cleared when none remain.

        Args:
            folder_id: Folder to remove.

        Returns:
            bool: False when nothing was selected and no id was given.

        Raises:
            KeyError: If ``folder_id`` is not registered.
        """
        if folder_id is None:
            folder_id = self._browsing.selected_folder_id
            if folder_id is None:
                return False
        index = self._index_of(folder_id)

        if self._grant.is_open_for(folder_id):
            self._grant.close()
        was_selected = folder_id == self._browsing.selected_folder_id

        removed = self._folders.pop(index)
        self._persist_folders()
        LOGGER.info("Removed folder %s", removed.path)

        if was_selected:
            if self._folders:
                self.select_folder(self._folders[max(0, index - 1)].id)
            else:
                self._clear_selection()
        return True

    def select_folder(self, folder_id: Optional[UUID]) -> None:
        """Browse ``folder_id`` from its root, or clear the selection for ``None``.

        Raises:
            KeyError: If ``folder_id`` is not registered.
        """
        if folder_id is None:
            self._clear_selection()
            return
        folder = self._folders[self._index_of(folder_id)]
        self._browsing = BrowsingState(
            selected_folder_id=folder.id,
            root_path=folder.path,
            current_path=folder.path,
        )
        self._advisory = None
        self.refresh()

    # ------------------------------------------------------------------ #
    # Scanning                                                           #
    # ------------------------------------------------------------------ #

    def refresh(self) -> None:
        """Cancel any running scan and rescan the current browsing path."""
        self._cancel_scan()
        folder = self.selected_folder
        if folder is None:
            self._listing = []
            self._entries = []
            return

        root = self._open_access(folder)
        if root != self._browsing.root_path:
            LOGGER.info("Folder %s now resolves to %s", folder.path, root)
            if self._browsing.current_path == self._browsing.root_path:
                self._browsing.current_path = root
            self._browsing.root_path = root
        self._enforce_confinement()

        options = self._current_options()
        handle = _ScanHandle(folder_id=folder.id, path=self._browsing.current_path, options=options)
        self._scan = handle
        self._is_loading = True
        handle.future = self._executor.submit(
            self._scanner.scan, handle.path, options, handle.token
        )
        handle.future.add_done_callback(partial(self._post_completion, handle))

    def process_completions(self) -> int:
        """Apply every queued scan result without blocking.

        Returns:
            int: Number of results that were applied rather than discarded.
        """
        applied = 0
        while True:
            try:
                handle, future = self._completions.get_nowait()
            except queue.Empty:
                return applied
            if self._apply_completion(handle, future):
                applied += 1

    def wait_for_scan(self, timeout: Optional[float] = None) -> bool:
        """Block until the current scan has been applied.

        Args:
            timeout: Maximum seconds to wait; ``None`` waits indefinitely.

        Returns:
            bool: True when no scan is pending anymore.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        while self._scan is not None:
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            try:
                handle, future = self._completions.get(timeout=remaining)
            except queue.Empty:
                return False
            self._apply_completion(handle, future)
        self.process_completions()
        return True

    # ------------------------------------------------------------------ #
    # Navigation and display options                                     #
    # ------------------------------------------------------------------ #

    def enter_directory(self, entry: FileEntry) -> None:
        """Browse into ``entry`` when it is a directory."""
        if not entry.is_directory or self._browsing.selected_folder_id is None:
            return
        self._browsing.current_path = os.path.normpath(entry.path)
        self.refresh()

    def go_to_parent_directory(self) -> None:
        """Browse one level up; does nothing at the folder root."""
        if not self.can_go_to_parent_directory:
            return
        self._browsing.current_path = os.path.dirname(
            os.path.normpath(self._browsing.current_path)
        )
        self.refresh()

    def set_search_query(self, query: str) -> None:
        """Filter the cached listing by name without rescanning."""
        if query == self._search_query:
            return
        self._search_query = query
        self._rederive_entries()

    def set_sort_ascending(self, ascending: bool) -> None:
        """Re-sort the cached listing without rescanning."""
        if ascending == self._sort_ascending:
            return
        self._sort_ascending = ascending
        self._rederive_entries()

    def toggle_sort_order(self) -> None:
        self.set_sort_ascending(not self._sort_ascending)

    def set_show_hidden_files(self, show: bool) -> None:
        """Change hidden-file visibility and rescan, since the listing itself changes."""
        if show == self._show_hidden_files:
            return
        self._show_hidden_files = show
        if self._browsing.selected_folder_id is not None:
            self.refresh()

    def toggle_show_hidden(self) -> None:
        self.set_show_hidden_files(not self._show_hidden_files)

    # ------------------------------------------------------------------ #
    # File actions                                                       #
    # ------------------------------------------------------------------ #

    def rename_entry(self, entry: FileEntry, new_name: str) -> bool:
        """Rename ``entry`` within its directory.

        Args:
            entry: Entry to rename.
            new_name: Requested name; surrounding whitespace is ignored.

        Returns:
            bool: True on success, including renaming to the current name.
        """
        name = new_name.strip()
        if not name:
            return self._reject(ValidationError("Name cannot be empty."))
        if name in (".", "..") or os.sep in name or (os.altsep and os.altsep in name):
            return self._reject(ValidationError(f"'{name}' is not a valid name."))
        if name == entry.name:
            self._clear_error()
            return True

        destination = os.path.join(os.path.dirname(entry.path), name)
        if self._filesystem.exists(destination):
            return self._reject(ValidationError(f"An item named '{name}' already exists."))

        try:
            self._filesystem.rename(entry.path, destination)
        except OSError as exc:
            return self._reject(MutationError(f"Rename failed: {describe_os_error(exc)}"))

        LOGGER.info("Renamed %s to %s", entry.path, destination)
        self._recents.replace(entry.path, destination)
        self._clear_error()
        self.refresh()
        return True

    def move_to_trash(self, entry: FileEntry) -> bool:
        """Move ``entry`` to the OS trash.

        Returns:
            bool: True when the entry was trashed.
        """
        try:
            self._filesystem.trash(entry.path)
        except OSError as exc:
            return self._reject(MutationError(f"Move to Trash failed: {describe_os_error(exc)}"))

        LOGGER.info("Moved %s to trash", entry.path)
        self._recents.remove(entry.path)
        self._clear_error()
        self.refresh()
        return True

    def mark_file_used(self, path: str | os.PathLike[str]) -> None:
        """Promote ``path`` to the front of the recents ledger."""
        self._recents.mark_used(canonicalize_path(path))

    def open_entry(self, entry: FileEntry) -> bool:
        """Enter directories; open files with their default application.

        Returns:
            bool: False when the file could not be opened.
        """
        if entry.is_directory:
            self.enter_directory(entry)
            return True
        if not self._launch(entry.path, locate=False):
            return False
        self.mark_file_used(entry.path)
        return True

    def reveal_entry(self, entry: FileEntry) -> bool:
        """Show ``entry`` in the platform file manager."""
        if not self._launch(entry.path, locate=True):
            return False
        self.mark_file_used(entry.path)
        return True

    def reveal_current_folder(self) -> bool:
        """Show the current browsing directory in the platform file manager."""
        if self._browsing.selected_folder_id is None:
            return False
        return self._launch(self._browsing.current_path, locate=False)

    def close(self) -> None:
        """Cancel pending work and release the access window and worker pool."""
        self._cancel_scan()
        self._grant.close()
        if self._owns_executor:
            self._executor.shutdown(wait=False, cancel_futures=True)

    # ------------------------------------------------------------------ #
    # Internal helpers                                                   #
    # ------------------------------------------------------------------ #

    def _index_of(self, folder_id: UUID) -> int:
        for index, folder in enumerate(self._folders):
            if folder.id == folder_id:
                return index
        raise KeyError(f"Unknown folder id: {folder_id}")

    def _persist_folders(self) -> None:
        self._bookmarks.save(self._folders)

    def _clear_selection(self) -> None:
        self._cancel_scan()
        self._grant.close()
        self._browsing = BrowsingState()
        self._listing = []
        self._entries = []
        self._advisory = None
        self._clear_error()

    def _open_access(self, folder: RegisteredFolder) -> str:
        """Return the accessible root for ``folder``, opening its access window if needed."""
        session = self._grant.session
        if session is not None and self._grant.is_open_for(folder.id):
            return session.opened_path

        resolved = self._grant.resolve(folder.path, folder.access_token)
        if resolved.refreshed_token is not None:
            folder.access_token = resolved.refreshed_token
            self._persist_folders()
        path = os.path.normpath(resolved.path)
        self._grant.open(folder.id, path)
        return path

    def _enforce_confinement(self) -> None:
        root = self._browsing.root_path
        current = self._browsing.current_path
        if os.path.normpath(current) == os.path.normpath(root):
            return
        if is_within(current, root) and self._filesystem.is_directory(current):
            return
        self._browsing.current_path = root
        violation = ConfinementViolation(f"{current} is no longer available; showing {root}.")
        LOGGER.warning("%s", violation)
        self._advisory = violation
        self._record_error(violation)

    def _cancel_scan(self) -> None:
        handle = self._scan
        self._scan = None
        self._is_loading = False
        if handle is None:
            return
        handle.token.cancel()
        if handle.future is not None:
            handle.future.cancel()

    def _post_completion(self, handle: _ScanHandle, future: Future[ScanResult]) -> None:
        # Runs on the worker thread (or inline when the future was cancelled).
        self._completions.put((handle, future))
        if self._on_update is not None:
            self._on_update()

    def _apply_completion(self, handle: _ScanHandle, future: Future[ScanResult]) -> bool:
        if handle is not self._scan or handle.folder_id != self._browsing.selected_folder_id:
            LOGGER.debug("Discarding stale scan of %s", handle.path)
            return False
        self._scan = None
        self._is_loading = False
        if future.cancelled():
            return False

        exc = future.exception()
        if exc is None:
            result = future.result()
            self._listing = list(result.listing)
            if handle.options == self._current_options():
                self._entries = list(result.entries)
            else:
                self._rederive_entries()
            advisory, self._advisory = self._advisory, None
            if advisory is not None:
                self._record_error(advisory)
            else:
                self._clear_error()
            return True

        if isinstance(exc, ScanCancelled):
            return False
        if not isinstance(exc, ScanError):
            LOGGER.error("Unexpected failure scanning %s", handle.path, exc_info=exc)
            exc = ScanError(f"Failed to load files: {exc}")
        self._listing = []
        self._entries = []
        self._advisory = None
        self._record_error(exc)
        return True

    def _current_options(self) -> ScanOptions:
        return ScanOptions(
            show_hidden=self._show_hidden_files,
            sort_ascending=self._sort_ascending,
            search_query=self._search_query,
        )

    def _rederive_entries(self) -> None:
        self._entries = sort_and_filter(self._listing, self._search_query, self._sort_ascending)

    def _record_error(self, error: FiledrapError) -> None:
        self._last_error = error
        self._error_message = str(error)

    def _clear_error(self) -> None:
        self._last_error = None
        self._error_message = None

    def _reject(self, error: FiledrapError) -> bool:
        LOGGER.info("%s", error)
        self._record_error(error)
        return False

    def _launch(self, path: str, *, locate: bool) -> bool:
        try:
            self._filesystem.launch(path, locate=locate)
        except OSError as exc:
            action = "reveal" if locate else "open"
            message = f"Could not {action} {path}: {describe_os_error(exc)}"
            return self._reject(MutationError(message))
        return True


__all__ = ["SessionEngine", "canonicalize_path", "is_within"]
