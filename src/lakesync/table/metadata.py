"""🏷️ Table metadata - variant and partitioning from hoodie.properties."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from lakesync.errors import UnreadableTableError
from lakesync.storage import Storage

METAFOLDER_NAME = ".hoodie"
PROPERTIES_FILE = f"{METAFOLDER_NAME}/hoodie.properties"

TABLE_TYPE_KEY = "hoodie.table.type"
TABLE_NAME_KEY = "hoodie.table.name"
PARTITION_FIELDS_KEY = "hoodie.table.partition.fields"
BASE_FILE_FORMAT_KEY = "hoodie.table.base.file.format"


class TableVariant(str, Enum):
    """Closed set of table variants.

    Anything the writer may put in `hoodie.table.type` that we don't know
    maps to UNKNOWN, so callers can match exhaustively.
    """

    COPY_ON_WRITE = "COPY_ON_WRITE"
    MERGE_ON_READ = "MERGE_ON_READ"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def parse(cls, value: str | None) -> TableVariant:
        # The writer omits the key for copy-on-write tables in old releases
        if value is None or not value.strip():
            return cls.COPY_ON_WRITE
        try:
            return cls(value.strip().upper())
        except ValueError:
            return cls.UNKNOWN


def parse_properties(text: str) -> dict[str, str]:
    """Parse Java properties text (key=value or key: value lines).

    Example:
        parse_properties("hoodie.table.type=COPY_ON_WRITE\\n#comment")
        → {"hoodie.table.type": "COPY_ON_WRITE"}
    """
    props: dict[str, str] = {}
    for raw in text.splitlines():
        line = raw.strip()
        if not line or line.startswith(("#", "!")):
            continue

        # First unescaped '=' or ':' separates key from value
        key_chars: list[str] = []
        i = 0
        while i < len(line):
            ch = line[i]
            if ch == "\\" and i + 1 < len(line):
                key_chars.append(line[i + 1])
                i += 2
                continue
            if ch in "=:":
                break
            key_chars.append(ch)
            i += 1

        key = "".join(key_chars).strip()
        value = line[i + 1:].strip() if i < len(line) else ""
        value = value.replace("\\:", ":").replace("\\=", "=")
        if key:
            props[key] = value
    return props


@dataclass(frozen=True)
class HoodieTableMeta:
    """What the sync needs to know about a table, read once per run."""

    base_path: str
    table_name: str | None
    variant: TableVariant
    raw_variant: str | None
    partition_fields: tuple[str, ...] = ()
    base_file_format: str = "PARQUET"
    properties: dict[str, str] = field(default_factory=dict, compare=False)

    @property
    def base_file_extension(self) -> str:
        return "." + self.base_file_format.lower()

    @classmethod
    def load(cls, storage: Storage) -> HoodieTableMeta:
        """Read `.hoodie/hoodie.properties` from the table's storage.

        Raises:
            UnreadableTableError: If the properties file is missing or unreadable
        """
        base_path = storage.uri()
        try:
            if not storage.exists(PROPERTIES_FILE):
                raise UnreadableTableError(
                    f"No {PROPERTIES_FILE} under {base_path}, is this a Hudi table?"
                )
            props = parse_properties(storage.read_text(PROPERTIES_FILE))
        except UnreadableTableError:
            raise
        except Exception as e:
            raise UnreadableTableError(
                f"Could not read table properties at {base_path}: {e}"
            ) from e

        raw_variant = props.get(TABLE_TYPE_KEY)
        fields = props.get(PARTITION_FIELDS_KEY, "")

        return cls(
            base_path=base_path,
            table_name=props.get(TABLE_NAME_KEY),
            variant=TableVariant.parse(raw_variant),
            raw_variant=raw_variant,
            partition_fields=tuple(f.strip() for f in fields.split(",") if f.strip()),
            base_file_format=props.get(BASE_FILE_FORMAT_KEY, "PARQUET").upper(),
            properties=props,
        )
