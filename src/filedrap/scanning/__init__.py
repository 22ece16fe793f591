"""Background directory scanning."""

from .cancellation import CancellationToken
from .models import FileEntry, ScanOptions, ScanResult
from .scanner import DirectoryScanner, collation_key, matches_query, sort_and_filter

__all__ = [
    "CancellationToken",
    "DirectoryScanner",
    "FileEntry",
    "ScanOptions",
    "ScanResult",
    "collation_key",
    "matches_query",
    "sort_and_filter",
]
