"""💾 Storage interface shared by the local and S3 backends."""

from __future__ import annotations

from abc import ABC, abstractmethod


class Storage(ABC):
    """Minimal file access needed to read a table and publish its manifest.

    Paths are always relative to the storage root (a local directory or
    an S3 bucket/prefix) and use forward slashes.
    """

    @abstractmethod
    def list_files(self, prefix: str = "") -> list[str]:
        """List every file below `prefix`, recursively, as relative paths."""

    @abstractmethod
    def read_text(self, path: str) -> str:
        """Read a whole file as UTF-8 text."""

    @abstractmethod
    def write_text_atomic(self, path: str, text: str) -> None:
        """Publish `text` at `path` so readers see the old or the new content."""

    @abstractmethod
    def exists(self, path: str) -> bool:
        """Whether a file exists at `path`."""

    @abstractmethod
    def uri(self, path: str = "") -> str:
        """Absolute location of `path`, as the query engines address it."""


def join(*parts: str) -> str:
    """Join relative path parts with single forward slashes."""
    return "/".join(p.strip("/") for p in parts if p and p.strip("/"))
