"""📋 Commit Listing - Base files valid as of the latest completed commit.

Copy-on-write writers never modify files: each commit writes a new version
of every file group it touches, named

    <fileId>_<writeToken>_<instantTime>.parquet

so the valid set is, per (partition, fileId), the newest version written by
a completed commit. Versions written by in-flight or failed commits, and file
groups replaced by a replacecommit, are left out. Superseded versions stay on
storage until the cleaner removes them.
"""

from __future__ import annotations

from dataclasses import dataclass

from lakesync.errors import UnreadableTableError, UnsupportedVariantError
from lakesync.log import Logger
from lakesync.storage import Storage

from .metadata import METAFOLDER_NAME, HoodieTableMeta, TableVariant
from .timeline import Timeline


@dataclass(frozen=True, order=True)
class BaseFile:
    """One physical base file of the table."""

    partition_path: str
    file_id: str
    instant_time: str
    file_name: str

    @property
    def path(self) -> str:
        """Path relative to the table's base location."""
        if self.partition_path:
            return f"{self.partition_path}/{self.file_name}"
        return self.file_name

    @classmethod
    def from_path(cls, path: str, extension: str = ".parquet") -> BaseFile | None:
        """Parse a relative path, or None if it isn't a base file.

        Example:
            BaseFile.from_path("2020/01/01/abc-0_1-0-1_20200101000000.parquet")
            → BaseFile("2020/01/01", "abc-0", "20200101000000", ...)
        """
        partition, _, name = path.rpartition("/")
        if not name.endswith(extension):
            return None

        parts = name[: -len(extension)].split("_")
        if len(parts) != 3 or not all(parts):
            return None
        file_id, _write_token, instant_time = parts
        if not instant_time.isdigit():
            return None
        return cls(partition, file_id, instant_time, name)


def _is_hidden(path: str) -> bool:
    return any(part.startswith((".", "_")) for part in path.split("/"))


class CommitListing:
    """Lists the files a reader should see as of the latest commit.

    Example:
        listing = CommitListing(storage, logger)
        files = listing.valid_files()
        # → ["2020/01/01/b-0_1-0-1_20200101000000.parquet", ...]
    """

    def __init__(self, storage: Storage, logger: Logger):
        self.storage = storage
        self.logger = logger
        self._meta: HoodieTableMeta | None = None

    @property
    def meta(self) -> HoodieTableMeta:
        if self._meta is None:
            self._meta = HoodieTableMeta.load(self.storage)
        return self._meta

    def variant(self) -> TableVariant:
        return self.meta.variant

    def all_base_files(self) -> list[BaseFile]:
        """Every base file physically present, valid or not."""
        try:
            paths = self.storage.list_files()
        except Exception as e:
            raise UnreadableTableError(
                f"Could not list files under {self.storage.uri()}: {e}"
            ) from e

        extension = self.meta.base_file_extension
        files = []
        for path in paths:
            if path.startswith(METAFOLDER_NAME + "/") or _is_hidden(path):
                continue
            base_file = BaseFile.from_path(path, extension)
            if base_file is None:
                self.logger.debug(f"Skipping non base file {path}")
                continue
            files.append(base_file)
        return files

    def latest_base_files(self) -> list[BaseFile]:
        """Newest committed version of every live file group.

        Raises:
            UnsupportedVariantError: If the table isn't copy-on-write
            UnreadableTableError: If the metadata can't be read
        """
        meta = self.meta
        if meta.variant is not TableVariant.COPY_ON_WRITE:
            raise UnsupportedVariantError(meta.raw_variant or meta.variant.value, meta.base_path)

        timeline = Timeline.load(self.storage)
        latest = timeline.latest_completed()
        if latest is None:
            self.logger.info(f"No completed commit yet under {meta.base_path}")
            return []

        pending = timeline.pending()
        if pending:
            self.logger.info(
                f"Ignoring {len(pending)} pending commit(s): "
                + ", ".join(i.timestamp for i in pending)
            )

        replaced = timeline.replaced_file_ids(as_of=latest.timestamp)

        newest: dict[tuple[str, str], BaseFile] = {}
        for base_file in self.all_base_files():
            if not timeline.is_visible(base_file.instant_time, latest.timestamp):
                continue
            group = (base_file.partition_path, base_file.file_id)
            if group in replaced:
                continue
            current = newest.get(group)
            if current is None or base_file.instant_time > current.instant_time:
                newest[group] = base_file

        self.logger.debug(
            f"{len(newest)} file group(s) as of {latest.timestamp}, "
            f"{len(replaced)} replaced"
        )
        return sorted(newest.values())

    def valid_files(self) -> list[str]:
        """Relative paths of the files valid as of the latest completed commit."""
        return sorted(f.path for f in self.latest_base_files())
