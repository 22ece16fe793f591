"""Filesystem primitives used by the scanner and the session engine."""

from __future__ import annotations

import os
import stat
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

import click
from send2trash import send2trash

_UF_HIDDEN = getattr(stat, "UF_HIDDEN", 0x8000)
_FILE_ATTRIBUTE_HIDDEN = getattr(stat, "FILE_ATTRIBUTE_HIDDEN", 0x2)


@dataclass(slots=True, frozen=True)
class DirectoryEntry:
    """Raw child of a listed directory.

    Attributes:
        path: Absolute path of the child.
        name: Final path component.
        is_directory: Whether the child is (or links to) a directory.
    """

    path: str
    name: str
    is_directory: bool


class FileSystem(Protocol):
    """Operating system calls the engine depends on."""

    def list_directory(self, path: str) -> list[DirectoryEntry]:
        """Return the immediate children of ``path``; raise ``OSError`` on failure."""

    def is_hidden(self, path: str) -> bool:
        """Return whether the OS reports ``path`` as hidden."""

    def exists(self, path: str) -> bool:
        """Return whether anything exists at ``path``."""

    def is_directory(self, path: str) -> bool:
        """Return whether ``path`` is an existing directory."""

    def rename(self, source: str, destination: str) -> None:
        """Rename ``source`` to ``destination``; raise ``OSError`` on failure."""

    def trash(self, path: str) -> None:
        """Move ``path`` to the OS trash; raise ``OSError`` on failure."""

    def launch(self, path: str, *, locate: bool = False) -> None:
        """Open ``path`` with its default application, or reveal it when ``locate``."""


class LocalFileSystem:
    """:class:`FileSystem` backed by the local operating system."""

    def list_directory(self, path: str) -> list[DirectoryEntry]:
        entries: list[DirectoryEntry] = []
        with os.scandir(path) as iterator:
            for item in iterator:
                try:
                    is_directory = item.is_dir()
                except OSError:
                    is_directory = False
                entries.append(
                    DirectoryEntry(path=item.path, name=item.name, is_directory=is_directory)
                )
        return entries

    def is_hidden(self, path: str) -> bool:
        if Path(path).name.startswith("."):
            return True
        try:
            info = os.lstat(path)
        except OSError:
            return False
        if getattr(info, "st_flags", 0) & _UF_HIDDEN:
            return True
        return bool(getattr(info, "st_file_attributes", 0) & _FILE_ATTRIBUTE_HIDDEN)

    def exists(self, path: str) -> bool:
        return os.path.lexists(path)

    def is_directory(self, path: str) -> bool:
        return os.path.isdir(path)

    def rename(self, source: str, destination: str) -> None:
        os.rename(source, destination)

    def trash(self, path: str) -> None:
        send2trash(path)

    def launch(self, path: str, *, locate: bool = False) -> None:
        if not os.path.lexists(path):
            raise FileNotFoundError(2, "No such file or directory", path)
        status = click.launch(path, locate=locate)
        if status != 0:
            action = "reveal" if locate else "open"
            raise OSError(f"Unable to {action} {path} (exit status {status})")


def describe_os_error(exc: OSError) -> str:
    """Return a short human-readable description of an OS failure.

    Args:
        exc: Exception raised by an OS call.

    Returns:
        str: The OS message, including the offending filename when known.
    """
    message = exc.strerror or str(exc) or exc.__class__.__name__
    if exc.filename:
        return f"{message}: {exc.filename}"
    return message


__all__ = ["DirectoryEntry", "FileSystem", "LocalFileSystem", "describe_os_error"]
