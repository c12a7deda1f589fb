from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Union


ALLOWED_SUFFIXES = (".csv",)


@dataclass(frozen=True)
class Upload:
    """A file already held in memory, e.g. received over HTTP."""
    filename: str
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)


Source = Union[Path, Upload]


class FileRejectedError(Exception):
    """The file was refused before parsing. `reason` is the short summary."""

    def __init__(self, message: str, *, reason: str) -> None:
        super().__init__(message)
        self.reason = reason


def source_name(source: Source) -> str:
    return source.name if isinstance(source, Path) else source.filename


def check_admission(name: str, size: int, *, max_bytes: int) -> None:
    """Size ceiling first, then the extension. Raises `FileRejectedError`."""
    if size > max_bytes:
        raise FileRejectedError(
            f"File size exceeds {_format_limit(max_bytes)} limit",
            reason="File too large",
        )
    if not name.lower().endswith(ALLOWED_SUFFIXES):
        raise FileRejectedError("File must be a CSV file", reason="Invalid file type")


def read_source(source: Source, *, max_bytes: int) -> bytes:
    """
    Admit and read an import source.

    The size check for a path uses `stat()`, so oversized files are never read.
    Raises `FileRejectedError` on admission failures and lets `OSError` through.
    """
    if isinstance(source, Upload):
        check_admission(source.filename, source.size, max_bytes=max_bytes)
        return source.content

    check_admission(source.name, source.stat().st_size, max_bytes=max_bytes)
    return source.read_bytes()


def _format_limit(max_bytes: int) -> str:
    mib = max_bytes / (1024 * 1024)
    if mib >= 1 and mib == int(mib):
        return f"{int(mib)}MB"
    return f"{max_bytes} bytes"
