# src/upload/source.py — v1
"""Upload sources: random-access byte providers with a known size."""

from __future__ import annotations

import mimetypes
from abc import ABC, abstractmethod
from pathlib import Path


class UploadSource(ABC):
    """A file-like payload the transport slices into parts."""

    @property
    @abstractmethod
    def filename(self) -> str:
        """Name reported to the storage service."""

    @property
    @abstractmethod
    def size(self) -> int:
        """Total payload size in bytes."""

    @property
    @abstractmethod
    def content_type(self) -> str:
        """MIME type of the payload."""

    @abstractmethod
    def read_range(self, offset: int, length: int) -> bytes:
        """Return up to ``length`` bytes starting at ``offset``."""


def guess_content_type(filename: str) -> str:
    guessed, _ = mimetypes.guess_type(filename)
    return guessed or "application/octet-stream"


class FileUploadSource(UploadSource):
    """Upload a file from disk, reading only the requested range."""

    def __init__(self, path: Path | str, content_type: str | None = None) -> None:
        self._path = Path(path)
        if not self._path.is_file():
            raise FileNotFoundError(f"Video file not found: {self._path}")
        self._size = self._path.stat().st_size
        self._content_type = content_type or guess_content_type(self._path.name)

    @property
    def path(self) -> Path:
        return self._path

    @property
    def filename(self) -> str:
        return self._path.name

    @property
    def size(self) -> int:
        return self._size

    @property
    def content_type(self) -> str:
        return self._content_type

    def read_range(self, offset: int, length: int) -> bytes:
        with self._path.open("rb") as f:
            f.seek(offset)
            return f.read(length)


class BytesUploadSource(UploadSource):
    """Upload an in-memory payload."""

    def __init__(
        self, data: bytes, filename: str, content_type: str | None = None
    ) -> None:
        self._data = data
        self._filename = filename
        self._content_type = content_type or guess_content_type(filename)

    @property
    def filename(self) -> str:
        return self._filename

    @property
    def size(self) -> int:
        return len(self._data)

    @property
    def content_type(self) -> str:
        return self._content_type

    def read_range(self, offset: int, length: int) -> bytes:
        return self._data[offset : offset + length]
