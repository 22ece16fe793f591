"""Persisted data models for registered folders."""

from __future__ import annotations

from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field


class RegisteredFolder(BaseModel):
    """A folder the user bookmarked for quick browsing.

    Attributes:
        id: Stable identifier assigned when the folder is registered.
        name: Display name, the last component of the path.
        path: Canonical absolute path used as the deduplication key.
        access_token: Opaque persisted authorization token, if one was derived.
    """

    model_config = ConfigDict(ser_json_bytes="base64", val_json_bytes="base64")

    id: UUID = Field(default_factory=uuid4)
    name: str
    path: str
    access_token: Optional[bytes] = None


__all__ = ["RegisteredFolder"]
