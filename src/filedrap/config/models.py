"""Configuration models describing FileDrap settings."""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class FiledrapBaseModel(BaseModel):
    """Shared configuration for FileDrap Pydantic models."""

    model_config = ConfigDict(extra="forbid")


class BrowsingOptions(FiledrapBaseModel):
    """Initial display options for a browsing session.

    Attributes:
        show_hidden_files: Whether hidden entries are listed.
        sort_ascending: Whether names are sorted A to Z.
    """

    show_hidden_files: bool = False
    sort_ascending: bool = True


class StorageSettings(FiledrapBaseModel):
    """Location of persisted folders and recents.

    Attributes:
        path: JSON document holding the key-value blobs.
    """

    path: str = "~/.filedrap/state.json"


class ScanningSettings(FiledrapBaseModel):
    """Worker pool settings for background directory scans.

    Attributes:
        max_workers: Threads available to scans. A superseded scan may still be
            finishing while its replacement starts.
    """

    max_workers: int = Field(default=2, ge=1, le=16)


class LoggingSettings(FiledrapBaseModel):
    """Runtime logging configuration.

    Attributes:
        level: Logging verbosity level.
        file: Log file path; ``None`` disables file logging.
        max_size_mb: Maximum log size before rotation.
        backup_count: Number of historical log files to retain.
    """

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "WARNING"
    file: Optional[str] = "~/.filedrap/filedrap.log"
    max_size_mb: int = Field(default=5, ge=1)
    backup_count: int = Field(default=3, ge=0)


class CLIOptions(FiledrapBaseModel):
    """CLI behavior defaults.

    Attributes:
        quiet_default: Whether commands suppress non-error output by default.
    """

    quiet_default: bool = False


class FiledrapConfig(FiledrapBaseModel):
    """Top-level configuration struct for FileDrap.

    Attributes:
        browsing: Initial display options.
        storage: Persistence location.
        scanning: Background scan settings.
        logging: Logging configuration.
        cli: CLI presentation defaults.
    """

    browsing: BrowsingOptions = Field(default_factory=BrowsingOptions)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    scanning: ScanningSettings = Field(default_factory=ScanningSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    cli: CLIOptions = Field(default_factory=CLIOptions)


__all__ = [
    "FiledrapBaseModel",
    "BrowsingOptions",
    "StorageSettings",
    "ScanningSettings",
    "LoggingSettings",
    "CLIOptions",
    "FiledrapConfig",
]
