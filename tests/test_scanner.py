"""Tests for directory scanning, filtering, and sorting."""

from __future__ import annotations

import random
from pathlib import Path

import pytest

from filedrap.errors import ScanCancelled, ScanError
from filedrap.filesystem import DirectoryEntry, LocalFileSystem
from filedrap.scanning import (
    CancellationToken,
    DirectoryScanner,
    FileEntry,
    ScanOptions,
    sort_and_filter,
)


class CancellingFileSystem(LocalFileSystem):
    """Filesystem that cancels the scan as soon as the directory is listed."""

    def __init__(self, token: CancellationToken) -> None:
        self._token = token

    def list_directory(self, path: str) -> list[DirectoryEntry]:
        entries = super().list_directory(path)
        self._token.cancel()
        return entries


def _entries(*names: str) -> list[FileEntry]:
    return [FileEntry(path=f"/root/{name}") for name in names]


def _names(entries: list[FileEntry]) -> list[str]:
    return [entry.name for entry in entries]


def test_sort_is_case_insensitive_in_both_directions() -> None:
    entries = _entries("Gamma", "alpha", "Beta")

    assert _names(sort_and_filter(entries)) == ["alpha", "Beta", "Gamma"]
    assert _names(sort_and_filter(entries, sort_ascending=False)) == ["Gamma", "Beta", "alpha"]


def test_sort_is_independent_of_input_order() -> None:
    names = ["readme", "README", "Readme", "b", "A", "a", "c10", "c2"]
    baseline = _names(sort_and_filter(_entries(*names)))

    shuffled = list(names)
    for seed in range(5):
        random.Random(seed).shuffle(shuffled)
        assert _names(sort_and_filter(_entries(*shuffled))) == baseline


def test_sort_and_filter_is_idempotent() -> None:
    entries = _entries("delta", "Charlie", "bravo", "Alpha")

    once = sort_and_filter(entries, "a", False)

    assert sort_and_filter(once, "a", False) == once


def test_query_is_trimmed_and_case_insensitive() -> None:
    entries = _entries("Gamma", "alpha", "Beta", "GALAXY")

    result = sort_and_filter(entries, "  gA  ")

    assert _names(result) == ["GALAXY", "Gamma"]
    assert all("ga" in entry.name.casefold() for entry in result)
    assert sort_and_filter(entries, "   ") == sort_and_filter(entries)


def test_file_entry_identity_and_name() -> None:
    entry = FileEntry(path="/root/folder/report.pdf")

    assert entry.id == "/root/folder/report.pdf"
    assert entry.name == "report.pdf"
    assert not entry.is_directory


def test_scan_lists_one_level_and_hides_dotfiles(tmp_path: Path) -> None:
    (tmp_path / "visible.txt").write_text("v", encoding="utf-8")
    (tmp_path / ".secret").write_text("s", encoding="utf-8")
    nested = tmp_path / "nested"
    nested.mkdir()
    (nested / "deep.txt").write_text("d", encoding="utf-8")

    scanner = DirectoryScanner()
    result = scanner.scan(str(tmp_path), ScanOptions())

    assert _names(result.entries) == ["nested", "visible.txt"]
    assert [entry.is_directory for entry in result.entries] == [True, False]

    with_hidden = scanner.scan(str(tmp_path), ScanOptions(show_hidden=True))
    assert _names(with_hidden.entries) == [".secret", "nested", "visible.txt"]


def test_scan_result_keeps_unfiltered_listing(tmp_path: Path) -> None:
    for name in ("apple", "banana", "cherry"):
        (tmp_path / name).write_text(name, encoding="utf-8")

    result = DirectoryScanner().scan(
        str(tmp_path), ScanOptions(search_query="an", sort_ascending=False)
    )

    assert _names(result.entries) == ["banana"]
    assert sorted(_names(result.listing)) == ["apple", "banana", "cherry"]
    assert result.root == str(tmp_path)


def test_scan_missing_directory_raises_scan_error(tmp_path: Path) -> None:
    with pytest.raises(ScanError, match="Failed to load files"):
        DirectoryScanner().scan(str(tmp_path / "missing"), ScanOptions())


def test_scan_observes_cancellation(tmp_path: Path) -> None:
    (tmp_path / "file.txt").write_text("f", encoding="utf-8")
    token = CancellationToken()
    scanner = DirectoryScanner(CancellingFileSystem(token))

    with pytest.raises(ScanCancelled):
        scanner.scan(str(tmp_path), ScanOptions(), token)


def test_cancellation_token_is_sticky() -> None:
    token = CancellationToken()
    token.raise_if_cancelled()

    token.cancel()
    token.cancel()

    assert token.cancelled
    with pytest.raises(ScanCancelled):
        token.raise_if_cancelled()
