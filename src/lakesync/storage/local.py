"""📁 Local filesystem storage."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

from .base import Storage, join


class LocalStorage(Storage):
    """Storage rooted at a local directory.

    Example:
        storage = LocalStorage("/data/stock_ticks_cow")
        storage.list_files(".hoodie")
        # → [".hoodie/hoodie.properties", ".hoodie/20220101000000.commit", ...]
    """

    def __init__(self, root: Path | str):
        self.root = Path(root)

    def _path(self, path: str) -> Path:
        return self.root / path if path else self.root

    def list_files(self, prefix: str = "") -> list[str]:
        base = self._path(prefix)
        if not base.exists():
            return []
        if base.is_file():
            return [prefix]

        files = []
        for dirpath, _dirnames, filenames in os.walk(base):
            for name in filenames:
                full = Path(dirpath) / name
                files.append(full.relative_to(self.root).as_posix())
        return sorted(files)

    def read_text(self, path: str) -> str:
        return self._path(path).read_text(encoding="utf-8")

    def write_text_atomic(self, path: str, text: str) -> None:
        target = self._path(path)
        target.parent.mkdir(parents=True, exist_ok=True)

        # Temp file in the same directory so the rename never crosses devices
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{target.name}.", suffix=".tmp", dir=target.parent
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(text)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, target)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def exists(self, path: str) -> bool:
        return self._path(path).is_file()

    def uri(self, path: str = "") -> str:
        root = self.root.resolve().as_posix()
        return f"{root}/{join(path)}" if join(path) else root

    def __repr__(self) -> str:
        return f"LocalStorage(root={str(self.root)!r})"
