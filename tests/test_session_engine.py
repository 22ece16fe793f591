"""Tests for the folder session engine."""

from __future__ import annotations

import os
import queue
import shutil
import sys
import threading
from pathlib import Path
from typing import Optional
from uuid import uuid4

import pytest

from filedrap.access import ResolvedToken
from filedrap.errors import ConfinementViolation, MutationError, ScanError, ValidationError
from filedrap.filesystem import LocalFileSystem
from filedrap.scanning import (
    CancellationToken,
    DirectoryScanner,
    FileEntry,
    ScanOptions,
    ScanResult,
)
from filedrap.session import SessionEngine, canonicalize_path
from filedrap.state import BookmarkStore, MemoryStore

WAIT = 5.0


class GatedScanner(DirectoryScanner):
    """Scanner that blocks each directory until the test opens its gate."""

    def __init__(self) -> None:
        super().__init__()
        self._lock = threading.Lock()
        self._gates: dict[str, threading.Event] = {}
        self._started: dict[str, threading.Event] = {}

    def _event(self, table: dict[str, threading.Event], root: str) -> threading.Event:
        with self._lock:
            return table.setdefault(root, threading.Event())

    def release(self, root: str) -> None:
        self._event(self._gates, root).set()

    def wait_started(self, root: str) -> bool:
        return self._event(self._started, root).wait(WAIT)

    def scan(
        self,
        root: str,
        options: ScanOptions,
        token: Optional[CancellationToken] = None,
    ) -> ScanResult:
        self._event(self._started, root).set()
        self._event(self._gates, root).wait(WAIT)
        # Ignore cancellation so a superseded scan still produces a result.
        return super().scan(root, options, None)


class CountingScanner(DirectoryScanner):
    """Scanner that counts how often the filesystem is listed."""

    def __init__(self) -> None:
        super().__init__()
        self.calls = 0

    def scan(
        self,
        root: str,
        options: ScanOptions,
        token: Optional[CancellationToken] = None,
    ) -> ScanResult:
        self.calls += 1
        return super().scan(root, options, token)


class FakeFileSystem(LocalFileSystem):
    """Local filesystem whose trash and launch calls are recorded instead of performed."""

    def __init__(self) -> None:
        self.trashed: list[str] = []
        self.launched: list[tuple[str, bool]] = []
        self.fail_trash = False
        self.fail_launch = False
        self.fail_rename = False

    def rename(self, source: str, destination: str) -> None:
        if self.fail_rename:
            raise PermissionError(13, "Permission denied", source)
        super().rename(source, destination)

    def trash(self, path: str) -> None:
        if self.fail_trash:
            raise PermissionError(13, "Permission denied", path)
        if os.path.isdir(path):
            shutil.rmtree(path)
        else:
            os.remove(path)
        self.trashed.append(path)

    def launch(self, path: str, *, locate: bool = False) -> None:
        if self.fail_launch:
            raise OSError("no application registered")
        self.launched.append((path, locate))


class RecordingAccessProvider:
    """Access provider that reports every token as stale once and records windows."""

    def __init__(self) -> None:
        self.derived = 0
        self.opened: list[str] = []
        self.closed: list[str] = []

    def derive_token(self, path: str) -> bytes:
        self.derived += 1
        return f"{self.derived}|{path}".encode("utf-8")

    def resolve_token(self, token: bytes) -> ResolvedToken:
        generation, _, path = token.decode("utf-8").partition("|")
        return ResolvedToken(path=path, stale=generation == "1")

    def open_access(self, path: str) -> bool:
        self.opened.append(path)
        return True

    def close_access(self, path: str) -> None:
        self.closed.append(path)


def _make_tree(tmp_path: Path) -> Path:
    """Create a folder with a few files, one hidden file, and a subdirectory.

    Args:
        tmp_path: Temporary directory provided by pytest.

    Returns:
        Path: Root of the created folder.
    """
    root = tmp_path / "X"
    root.mkdir()
    for name in ("Gamma", "alpha", "Beta"):
        (root / name).write_text(name, encoding="utf-8")
    (root / ".hidden").write_text("secret", encoding="utf-8")
    (root / "docs").mkdir()
    (root / "docs" / "inner.txt").write_text("inner", encoding="utf-8")
    return root


def _names(engine: SessionEngine) -> list[str]:
    return [entry.name for entry in engine.entries]


def _entry(engine: SessionEngine, name: str):
    return next(entry for entry in engine.entries if entry.name == name)


def test_add_folder_scans_sorted_and_skips_hidden(tmp_path: Path) -> None:
    root = _make_tree(tmp_path)

    with SessionEngine(MemoryStore()) as engine:
        folder = engine.add_folder(str(root))
        assert engine.wait_for_scan(WAIT)

        assert folder is not None
        assert folder.name == "X"
        assert folder.path == canonicalize_path(root)
        assert engine.selected_folder_id == folder.id
        assert engine.current_path == folder.path
        assert _names(engine) == ["alpha", "Beta", "docs", "Gamma"]
        assert _entry(engine, "docs").is_directory
        assert engine.error_message is None
        assert not engine.is_loading


def test_folders_persist_across_engines(tmp_path: Path) -> None:
    root = _make_tree(tmp_path)
    other = tmp_path / "Other"
    other.mkdir()
    store = MemoryStore()

    with SessionEngine(store) as engine:
        engine.add_folder(str(root))
        engine.add_folder(str(other))
        engine.wait_for_scan(WAIT)
        expected = engine.folders

    with SessionEngine(store) as engine:
        assert engine.folders == expected
        assert engine.selected_folder_id is None

        engine.start()
        engine.wait_for_scan(WAIT)

        assert engine.selected_folder_id == expected[0].id
        assert "alpha" in _names(engine)


def test_adding_registered_path_reselects_without_duplicate(tmp_path: Path) -> None:
    root = _make_tree(tmp_path)
    other = tmp_path / "Other"
    other.mkdir()

    with SessionEngine(MemoryStore()) as engine:
        first = engine.add_folder(str(root))
        engine.add_folder(str(other))
        again = engine.add_folder(str(root / "docs" / ".."))
        engine.wait_for_scan(WAIT)

        assert again == first
        assert len(engine.folders) == 2
        assert engine.selected_folder_id == first.id


def test_add_folder_rejects_non_directory(tmp_path: Path) -> None:
    target = tmp_path / "file.txt"
    target.write_text("x", encoding="utf-8")

    with SessionEngine(MemoryStore()) as engine:
        assert engine.add_folder(str(target)) is None
        assert engine.folders == ()
        assert isinstance(engine.last_error, ValidationError)


def test_add_folder_uses_picker_and_handles_cancel(tmp_path: Path) -> None:
    root = _make_tree(tmp_path)
    choices: list[Optional[str]] = [None, str(root)]

    class Picker:
        def pick(self) -> Optional[str]:
            return choices.pop(0)

    with SessionEngine(MemoryStore(), picker=Picker()) as engine:
        assert engine.add_folder() is None
        assert engine.folders == ()

        folder = engine.add_folder()
        engine.wait_for_scan(WAIT)

        assert folder is not None
        assert folder.path == canonicalize_path(root)


def test_remove_selected_folder_selects_previous(tmp_path: Path) -> None:
    paths = []
    for name in ("A", "B", "C"):
        path = tmp_path / name
        path.mkdir()
        paths.append(path)

    with SessionEngine(MemoryStore()) as engine:
        folders = [engine.add_folder(str(path)) for path in paths]
        engine.wait_for_scan(WAIT)
        assert engine.selected_folder_id == folders[2].id

        assert engine.remove_folder()
        engine.wait_for_scan(WAIT)

        assert [folder.name for folder in engine.folders] == ["A", "B"]
        assert engine.selected_folder_id == folders[1].id


def test_remove_first_and_last_folders(tmp_path: Path) -> None:
    first = tmp_path / "A"
    second = tmp_path / "B"
    first.mkdir()
    second.mkdir()

    with SessionEngine(MemoryStore()) as engine:
        a = engine.add_folder(str(first))
        b = engine.add_folder(str(second))
        engine.select_folder(a.id)
        engine.remove_folder(a.id)
        engine.wait_for_scan(WAIT)
        assert engine.selected_folder_id == b.id

        engine.remove_folder(b.id)

        assert engine.folders == ()
        assert engine.selected_folder_id is None
        assert engine.entries == ()
        assert engine.access_session is None
        assert not engine.remove_folder()


def test_unknown_folder_id_raises_key_error() -> None:
    with SessionEngine(MemoryStore()) as engine:
        with pytest.raises(KeyError):
            engine.select_folder(uuid4())
        with pytest.raises(KeyError):
            engine.remove_folder(uuid4())


def test_navigation_stays_within_folder(tmp_path: Path) -> None:
    root = _make_tree(tmp_path)

    with SessionEngine(MemoryStore()) as engine:
        engine.add_folder(str(root))
        engine.wait_for_scan(WAIT)
        assert not engine.can_go_to_parent_directory

        engine.go_to_parent_directory()
        assert engine.current_path == canonicalize_path(root)

        engine.enter_directory(_entry(engine, "alpha"))
        assert engine.current_path == canonicalize_path(root)

        engine.enter_directory(_entry(engine, "docs"))
        engine.wait_for_scan(WAIT)
        assert engine.current_path == canonicalize_path(root / "docs")
        assert engine.can_go_to_parent_directory
        assert _names(engine) == ["inner.txt"]

        engine.go_to_parent_directory()
        engine.wait_for_scan(WAIT)
        assert engine.current_path == canonicalize_path(root)
        assert "docs" in _names(engine)


def test_entering_directory_outside_folder_resets_to_root(tmp_path: Path) -> None:
    root = _make_tree(tmp_path)

    with SessionEngine(MemoryStore()) as engine:
        engine.add_folder(str(root))
        engine.wait_for_scan(WAIT)

        engine.enter_directory(FileEntry(path=str(tmp_path), is_directory=True))
        engine.wait_for_scan(WAIT)

        assert engine.current_path == canonicalize_path(root)
        assert isinstance(engine.last_error, ConfinementViolation)
        assert _names(engine) == ["alpha", "Beta", "docs", "Gamma"]


def test_vanished_subdirectory_falls_back_to_root(tmp_path: Path) -> None:
    root = _make_tree(tmp_path)

    with SessionEngine(MemoryStore()) as engine:
        engine.add_folder(str(root))
        engine.wait_for_scan(WAIT)
        engine.enter_directory(_entry(engine, "docs"))
        engine.wait_for_scan(WAIT)

        shutil.rmtree(root / "docs")
        engine.refresh()
        engine.wait_for_scan(WAIT)

        assert engine.current_path == canonicalize_path(root)
        assert isinstance(engine.last_error, ConfinementViolation)
        assert _names(engine) == ["alpha", "Beta", "Gamma"]

        engine.refresh()
        engine.wait_for_scan(WAIT)
        assert engine.error_message is None


def test_missing_root_reports_scan_error(tmp_path: Path) -> None:
    root = _make_tree(tmp_path)

    with SessionEngine(MemoryStore()) as engine:
        engine.add_folder(str(root))
        engine.wait_for_scan(WAIT)

        shutil.rmtree(root)
        engine.refresh()
        engine.wait_for_scan(WAIT)

        assert isinstance(engine.last_error, ScanError)
        assert engine.error_message.startswith("Failed to load files")
        assert engine.entries == ()
        assert not engine.is_loading


def test_search_and_sort_reuse_cached_listing(tmp_path: Path) -> None:
    root = _make_tree(tmp_path)
    scanner = CountingScanner()

    with SessionEngine(MemoryStore(), scanner=scanner) as engine:
        engine.add_folder(str(root))
        engine.wait_for_scan(WAIT)
        assert scanner.calls == 1

        engine.set_search_query("  GA ")
        assert _names(engine) == ["Gamma"]

        engine.set_search_query("a")
        engine.toggle_sort_order()
        assert _names(engine) == ["Gamma", "Beta", "alpha"]
        assert not engine.sort_ascending

        engine.set_search_query("")
        assert _names(engine) == ["Gamma", "docs", "Beta", "alpha"]
        assert scanner.calls == 1


def test_show_hidden_files_triggers_rescan(tmp_path: Path) -> None:
    root = _make_tree(tmp_path)
    scanner = CountingScanner()

    with SessionEngine(MemoryStore(), scanner=scanner) as engine:
        engine.add_folder(str(root))
        engine.wait_for_scan(WAIT)

        engine.toggle_show_hidden()
        engine.wait_for_scan(WAIT)

        assert scanner.calls == 2
        assert engine.show_hidden_files
        assert _names(engine)[0] == ".hidden"


def test_superseded_scan_result_is_discarded(tmp_path: Path) -> None:
    first = tmp_path / "First"
    second = tmp_path / "Second"
    first.mkdir()
    second.mkdir()
    (first / "from-first.txt").write_text("1", encoding="utf-8")
    (second / "from-second.txt").write_text("2", encoding="utf-8")

    store = MemoryStore()
    with SessionEngine(store) as seeding:
        a = seeding.add_folder(str(first))
        b = seeding.add_folder(str(second))
        seeding.wait_for_scan(WAIT)

    scanner = GatedScanner()
    updates: queue.Queue[None] = queue.Queue()
    with SessionEngine(store, scanner=scanner, on_update=lambda: updates.put(None)) as engine:
        engine.select_folder(a.id)
        assert scanner.wait_started(a.path)

        engine.select_folder(b.id)
        scanner.release(b.path)
        assert engine.wait_for_scan(WAIT)
        assert _names(engine) == ["from-second.txt"]

        scanner.release(a.path)
        updates.get(timeout=WAIT)
        updates.get(timeout=WAIT)

        assert engine.process_completions() == 0
        assert engine.selected_folder_id == b.id
        assert _names(engine) == ["from-second.txt"]


def test_wait_for_scan_times_out_while_scan_is_blocked(tmp_path: Path) -> None:
    root = tmp_path / "Slow"
    root.mkdir()
    scanner = GatedScanner()

    with SessionEngine(MemoryStore(), scanner=scanner) as engine:
        engine.add_folder(str(root))

        assert not engine.wait_for_scan(0.05)
        assert engine.is_loading

        scanner.release(canonicalize_path(root))
        assert engine.wait_for_scan(WAIT)
        assert not engine.is_loading


def test_rename_collision_leaves_files_untouched(tmp_path: Path) -> None:
    root = tmp_path / "R"
    root.mkdir()
    (root / "a.txt").write_text("a", encoding="utf-8")
    (root / "b.txt").write_text("b", encoding="utf-8")

    with SessionEngine(MemoryStore()) as engine:
        engine.add_folder(str(root))
        engine.wait_for_scan(WAIT)

        assert not engine.rename_entry(_entry(engine, "a.txt"), "b.txt")

        assert isinstance(engine.last_error, ValidationError)
        assert engine.error_message == "An item named 'b.txt' already exists."
        assert (root / "a.txt").read_text(encoding="utf-8") == "a"
        assert (root / "b.txt").read_text(encoding="utf-8") == "b"


@pytest.mark.parametrize("bad_name", ["", "   ", ".", "..", "nested/name"])
def test_rename_rejects_invalid_names(tmp_path: Path, bad_name: str) -> None:
    root = tmp_path / "R"
    root.mkdir()
    (root / "a.txt").write_text("a", encoding="utf-8")

    with SessionEngine(MemoryStore()) as engine:
        engine.add_folder(str(root))
        engine.wait_for_scan(WAIT)

        assert not engine.rename_entry(_entry(engine, "a.txt"), bad_name)
        assert isinstance(engine.last_error, ValidationError)
        assert (root / "a.txt").exists()


def test_rename_same_name_is_noop_success(tmp_path: Path) -> None:
    root = tmp_path / "R"
    root.mkdir()
    (root / "a.txt").write_text("a", encoding="utf-8")

    with SessionEngine(MemoryStore()) as engine:
        engine.add_folder(str(root))
        engine.wait_for_scan(WAIT)

        assert engine.rename_entry(_entry(engine, "a.txt"), " a.txt ")
        assert engine.error_message is None


def test_rename_updates_recent_files(tmp_path: Path) -> None:
    root = tmp_path / "R"
    root.mkdir()
    (root / "a.txt").write_text("a", encoding="utf-8")
    store = MemoryStore()

    with SessionEngine(store) as engine:
        engine.add_folder(str(root))
        engine.wait_for_scan(WAIT)
        entry = _entry(engine, "a.txt")
        engine.mark_file_used(entry.path)

        assert engine.rename_entry(entry, "renamed.txt")
        engine.wait_for_scan(WAIT)

        renamed = os.path.join(canonicalize_path(root), "renamed.txt")
        assert _names(engine) == ["renamed.txt"]
        assert engine.recent_files == (renamed,)

    with SessionEngine(store) as engine:
        assert engine.recent_files == (renamed,)


def test_rename_failure_reports_os_message(tmp_path: Path) -> None:
    root = tmp_path / "R"
    root.mkdir()
    (root / "a.txt").write_text("a", encoding="utf-8")
    filesystem = FakeFileSystem()
    filesystem.fail_rename = True

    with SessionEngine(MemoryStore(), filesystem=filesystem) as engine:
        engine.add_folder(str(root))
        engine.wait_for_scan(WAIT)
        entry = _entry(engine, "a.txt")
        engine.mark_file_used(entry.path)

        assert not engine.rename_entry(entry, "b.txt")

        assert isinstance(engine.last_error, MutationError)
        assert engine.error_message.startswith("Rename failed: Permission denied")
        assert engine.recent_files == (entry.path,)
        assert _names(engine) == ["a.txt"]
        assert (root / "a.txt").exists()
        assert not (root / "b.txt").exists()


def test_mark_file_used_collapses_symlinked_paths(tmp_path: Path) -> None:
    target = tmp_path / "target.txt"
    target.write_text("t", encoding="utf-8")
    link = tmp_path / "link.txt"
    try:
        link.symlink_to(target)
    except OSError:
        pytest.skip("symlinks are not supported here")

    with SessionEngine(MemoryStore()) as engine:
        engine.mark_file_used(link)
        engine.mark_file_used(target)

        assert engine.recent_files == (canonicalize_path(target),)


def test_move_to_trash_removes_entry_and_recents(tmp_path: Path) -> None:
    root = _make_tree(tmp_path)
    filesystem = FakeFileSystem()

    with SessionEngine(MemoryStore(), filesystem=filesystem) as engine:
        engine.add_folder(str(root))
        engine.wait_for_scan(WAIT)
        docs = _entry(engine, "docs")
        engine.mark_file_used(os.path.join(docs.path, "inner.txt"))
        engine.mark_file_used(_entry(engine, "alpha").path)

        assert engine.move_to_trash(docs)
        engine.wait_for_scan(WAIT)

        assert filesystem.trashed == [docs.path]
        assert "docs" not in _names(engine)
        assert engine.recent_files == (_entry(engine, "alpha").path,)


def test_move_to_trash_failure_is_reported(tmp_path: Path) -> None:
    root = _make_tree(tmp_path)
    filesystem = FakeFileSystem()
    filesystem.fail_trash = True

    with SessionEngine(MemoryStore(), filesystem=filesystem) as engine:
        engine.add_folder(str(root))
        engine.wait_for_scan(WAIT)

        assert not engine.move_to_trash(_entry(engine, "alpha"))
        assert isinstance(engine.last_error, MutationError)
        assert engine.error_message.startswith("Move to Trash failed")
        assert (root / "alpha").exists()


def test_open_entry_launches_files_and_enters_directories(tmp_path: Path) -> None:
    root = _make_tree(tmp_path)
    filesystem = FakeFileSystem()

    with SessionEngine(MemoryStore(), filesystem=filesystem) as engine:
        engine.add_folder(str(root))
        engine.wait_for_scan(WAIT)
        beta = _entry(engine, "Beta")

        assert engine.open_entry(beta)
        assert engine.reveal_entry(_entry(engine, "alpha"))
        assert filesystem.launched == [(beta.path, False), (_entry(engine, "alpha").path, True)]
        assert engine.recent_files[:2] == (_entry(engine, "alpha").path, beta.path)

        assert engine.open_entry(_entry(engine, "docs"))
        engine.wait_for_scan(WAIT)
        assert engine.current_path == canonicalize_path(root / "docs")

        filesystem.fail_launch = True
        assert not engine.reveal_current_folder()
        assert isinstance(engine.last_error, MutationError)


def test_stale_access_token_is_refreshed_and_persisted(tmp_path: Path) -> None:
    first = tmp_path / "A"
    second = tmp_path / "B"
    first.mkdir()
    second.mkdir()
    store = MemoryStore()
    provider = RecordingAccessProvider()

    with SessionEngine(store, access_provider=provider) as engine:
        a = engine.add_folder(str(first))
        engine.wait_for_scan(WAIT)

        saved = BookmarkStore(store).load()
        assert saved[0].access_token == f"2|{a.path}".encode("utf-8")

        b = engine.add_folder(str(second))
        engine.wait_for_scan(WAIT)
        assert engine.access_session is not None
        assert engine.access_session.folder_id == b.id
        assert provider.closed == [a.path]

    assert provider.opened == [a.path, b.path]
    assert provider.closed == [a.path, b.path]


def test_snapshot_reflects_published_state(tmp_path: Path) -> None:
    root = _make_tree(tmp_path)

    with SessionEngine(MemoryStore(), sort_ascending=False) as engine:
        engine.add_folder(str(root))
        engine.wait_for_scan(WAIT)
        engine.set_search_query("a")

        snapshot = engine.snapshot()

        assert snapshot.selected_folder_id == engine.selected_folder_id
        assert [entry.name for entry in snapshot.entries] == ["Gamma", "Beta", "alpha"]
        assert snapshot.search_query == "a"
        assert not snapshot.sort_ascending
        assert not snapshot.can_go_to_parent_directory


@pytest.mark.skipif(
    os.name == "nt" or sys.getfilesystemencoding() != "utf-8",
    reason="needs byte-oriented filenames",
)
def test_add_folder_with_undecodable_name(tmp_path: Path) -> None:
    raw = os.fsencode(str(tmp_path)) + b"/caf\xe9"
    try:
        os.mkdir(raw)
    except OSError:
        pytest.skip("filesystem rejects non UTF-8 names")

    with SessionEngine(MemoryStore()) as engine:
        folder = engine.add_folder(os.fsdecode(raw))
        engine.wait_for_scan(WAIT)

        assert folder is not None
        assert engine.selected_folder_id == folder.id
        assert engine.error_message is None
        assert folder.access_token == os.fsencode(folder.path)
