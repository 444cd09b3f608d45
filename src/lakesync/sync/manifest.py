"""📜 Manifest Writer - Publish the valid file set of a table.

The manifest is a headerless, single-column CSV of relative file paths,
one per line, at a fixed location inside the table's metadata folder:

    <base>/.hoodie/manifest/latest-snapshot.csv

Every run overwrites it completely. Engines read it through their own file
access, so it must stay a plain listing with no table-format metadata.
"""

from __future__ import annotations

import csv
import io
from collections.abc import Iterable
from dataclasses import dataclass

from lakesync.errors import ManifestWriteError
from lakesync.log import Logger
from lakesync.storage import Storage

MANIFEST_FOLDER = ".hoodie/manifest"
MANIFEST_FILE_NAME = "latest-snapshot.csv"
MANIFEST_PATH = f"{MANIFEST_FOLDER}/{MANIFEST_FILE_NAME}"


@dataclass(frozen=True)
class ManifestLocation:
    """Where a manifest was published and what it holds."""

    path: str
    uri: str
    file_count: int


def render_manifest(files: Iterable[str]) -> str:
    """Serialize file paths, sorted and de-duplicated, one CSV row each.

    Paths holding a comma or a double quote are quoted the CSV way
    (`"city=Paris, FR/a.parquet"`), so engines read every row back as a
    single value.
    """
    lines = sorted({f.strip() for f in files if f and f.strip()})
    for line in lines:
        if "\n" in line or "\r" in line:
            raise ValueError(f"File path contains a line break: {line!r}")

    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerows([line] for line in lines)
    return buffer.getvalue()


def parse_manifest(text: str) -> list[str]:
    return [row[0] for row in csv.reader(io.StringIO(text)) if row and row[0].strip()]


class ManifestWriter:
    """Writes the manifest of a table.

    Example:
        writer = ManifestWriter(storage, logger)
        location = writer.write(["2020/01/01/a.parquet", "2020/01/01/b.parquet"])
        print(location.uri)
    """

    def __init__(self, storage: Storage, logger: Logger):
        self.storage = storage
        self.logger = logger

    @property
    def location(self) -> str:
        return self.storage.uri(MANIFEST_PATH)

    def write(self, files: Iterable[str]) -> ManifestLocation:
        """Overwrite the manifest with `files`.

        Raises:
            ManifestWriteError: If the manifest could not be published. The
                previous manifest, if any, is still the visible one.
        """
        try:
            body = render_manifest(files)
        except ValueError as e:
            raise ManifestWriteError(str(e)) from e
        count = len(parse_manifest(body))

        try:
            self.storage.write_text_atomic(MANIFEST_PATH, body)
        except Exception as e:
            raise ManifestWriteError(
                f"Could not write manifest to {self.location}: {e}"
            ) from e

        self.logger.info(f"Wrote manifest with {count} file(s) to {self.location}")
        return ManifestLocation(path=MANIFEST_PATH, uri=self.location, file_count=count)

    def read(self) -> list[str]:
        """Current manifest contents ([] when none has been written yet)."""
        if not self.storage.exists(MANIFEST_PATH):
            return []
        return parse_manifest(self.storage.read_text(MANIFEST_PATH))
