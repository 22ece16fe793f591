"""Opaque key-value blob stores backing bookmark and recents persistence."""

from __future__ import annotations

import base64
import binascii
import json
import os
import threading
from pathlib import Path
from typing import Protocol

from .errors import CorruptStateError, StateError


class KeyValueStore(Protocol):
    """Minimal get/set contract for byte blobs addressed by string keys."""

    def get(self, key: str) -> bytes | None:
        """Return the blob stored under ``key`` or ``None`` when absent."""

    def set(self, key: str, value: bytes) -> None:
        """Store ``value`` under ``key``, replacing any previous blob."""


class MemoryStore:
    """In-process store used for embedding and tests."""

    def __init__(self) -> None:
        self._data: dict[str, bytes] = {}

    def get(self, key: str) -> bytes | None:
        return self._data.get(key)

    def set(self, key: str, value: bytes) -> None:
        self._data[key] = bytes(value)


class JsonFileStore:
    """Persist blobs as base64 strings inside a single JSON document."""

    def __init__(self, path: Path) -> None:
        """Initialize the store.

        Args:
            path: Location of the JSON document. Parent directories are created
                on first write.
        """
        self._path = path.expanduser()
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        """Return the resolved document path."""
        return self._path

    def get(self, key: str) -> bytes | None:
        """Return the blob for ``key``.

        Args:
            key: Blob identifier.

        Returns:
            bytes | None: Decoded blob, or ``None`` if the key or document is missing.

        Raises:
            CorruptStateError: If the document or the blob cannot be decoded.
            StateError: If the document cannot be read.
        """
        with self._lock:
            document = self._read()
        encoded = document.get(key)
        if encoded is None:
            return None
        if not isinstance(encoded, str):
            raise CorruptStateError(f"Blob {key!r} in {self._path} is not a string")
        try:
            return base64.b64decode(encoded.encode("ascii"), validate=True)
        except (binascii.Error, UnicodeEncodeError) as exc:
            raise CorruptStateError(
                f"Blob {key!r} in {self._path} is not valid base64: {exc}"
            ) from exc

    def set(self, key: str, value: bytes) -> None:
        """Store ``value`` under ``key`` with an atomic replace of the document.

        Args:
            key: Blob identifier.
            value: Raw bytes to persist.

        Raises:
            StateError: If the document cannot be written.
        """
        with self._lock:
            try:
                document = self._read()
            except CorruptStateError:
                document = {}
            document[key] = base64.b64encode(value).decode("ascii")
            self._write(document)

    def _read(self) -> dict[str, object]:
        if not self._path.exists():
            return {}
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise CorruptStateError(f"Invalid store document at {self._path}: {exc}") from exc
        except OSError as exc:
            raise StateError(f"Unable to read store document at {self._path}: {exc}") from exc
        if not isinstance(raw, dict):
            raise CorruptStateError(f"Store document at {self._path} must contain a mapping.")
        return raw

    def _write(self, document: dict[str, object]) -> None:
        temp_path = self._path.with_name(self._path.name + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            temp_path.write_text(json.dumps(document, indent=2), encoding="utf-8")
            os.replace(temp_path, self._path)
        except OSError as exc:
            raise StateError(f"Unable to write store document at {self._path}: {exc}") from exc


__all__ = ["KeyValueStore", "MemoryStore", "JsonFileStore"]
