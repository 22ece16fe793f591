"""Composition root: build the one engine instance a process works with."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Optional

from filedrap.access import AccessProvider, PassthroughAccessProvider
from filedrap.config import FiledrapConfig
from filedrap.filesystem import FileSystem, LocalFileSystem
from filedrap.session import FolderPicker, SessionEngine
from filedrap.state import JsonFileStore


def build_engine(
    config: FiledrapConfig,
    *,
    picker: Optional[FolderPicker] = None,
    filesystem: Optional[FileSystem] = None,
    access_provider: Optional[AccessProvider] = None,
    on_update: Optional[Callable[[], None]] = None,
) -> SessionEngine:
    """Wire a :class:`SessionEngine` from configuration.

    Args:
        config: Resolved configuration.
        picker: Folder chooser used when ``add_folder`` gets no path.
        filesystem: Filesystem primitives; defaults to the local OS.
        access_provider: Scoped access primitive; defaults to the passthrough provider.
        on_update: Callback fired from scan workers when a result is ready.

    Returns:
        SessionEngine: Engine with folders and recents loaded, nothing selected yet.
    """
    store = JsonFileStore(Path(config.storage.path))
    return SessionEngine(
        store,
        filesystem=filesystem or LocalFileSystem(),
        access_provider=access_provider or PassthroughAccessProvider(),
        picker=picker,
        on_update=on_update,
        show_hidden_files=config.browsing.show_hidden_files,
        sort_ascending=config.browsing.sort_ascending,
        scan_workers=config.scanning.max_workers,
    )


__all__ = ["build_engine"]
