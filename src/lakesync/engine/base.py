"""🔌 Catalog Client - What the sync needs from a query engine.

One implementation per engine. The sync only ever calls the methods
defined here, so the orchestration is engine-agnostic:

- object_exists: look an object up by name
- ensure_raw_catalog: `{table}_versions`, every physical file + partition columns
- ensure_manifest_table: `{table}_manifest`, the manifest read in place
- ensure_snapshot_view: `{table}`, versions rows whose path is in the manifest

Every `ensure_*` is create-if-absent and returns True only if it created
the object. Engine failures surface as CatalogOperationError.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, TypeVar

import pandas as pd
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from lakesync.errors import CatalogOperationError
from lakesync.log import Logger

if TYPE_CHECKING:
    from lakesync.config import SyncConfig

T = TypeVar("T")

FILE_PATH_COLUMN = "_hoodie_file_path"
MANIFEST_COLUMN = "file_path"


def quote_literal(value: str) -> str:
    """Render a SQL string literal."""
    return "'" + value.replace("'", "''") + "'"


@dataclass(frozen=True)
class ObjectNames:
    """Deterministic names of the objects created for one table."""

    database: str | None
    schema: str
    manifest: str
    versions: str
    snapshot: str

    @classmethod
    def from_config(cls, config: "SyncConfig") -> ObjectNames:
        return cls(
            database=config.database,
            schema=config.schema_name,
            manifest=config.manifest_table_name,
            versions=config.versions_table_name,
            snapshot=config.snapshot_view_name,
        )


@dataclass(frozen=True)
class RawSource:
    """Where the raw file catalog scans and how it derives partitions."""

    base_uri: str
    file_extension: str = ".parquet"
    partition_fields: tuple[str, ...] = ()
    partition_extract_expr: str | None = None

    @property
    def derived_fields(self) -> tuple[str, ...]:
        """Partition fields the extract expression (re)defines.

        Base files usually carry these columns already; the raw catalog
        drops the stored copy so each name appears once.
        """
        if not self.partition_extract_expr:
            return ()
        return tuple(
            f
            for f in self.partition_fields
            if re.search(
                rf"\bAS\s+[\"`]?{re.escape(f)}[\"`]?(?!\w)",
                self.partition_extract_expr,
                re.IGNORECASE,
            )
        )


class CatalogClient(ABC):
    """Base class for engine clients.

    Subclasses provide statement builders and the two primitive calls
    (`_execute`, `_exists`); the create-if-absent logic lives here once.
    """

    #: Exceptions worth retrying (connection drops, throttling)
    retryable_errors: tuple[type[BaseException], ...] = ()
    #: Backoff between attempts
    retry_wait = wait_exponential(multiplier=0.5, max=10)

    def __init__(self, logger: Logger, max_attempts: int = 3):
        self.logger = logger
        self.max_attempts = max_attempts

    # =========================================================================
    # Engine primitives
    # =========================================================================

    @abstractmethod
    def _execute(self, statement: str) -> None:
        """Run a DDL statement."""

    @abstractmethod
    def _exists(self, names: ObjectNames, name: str) -> bool:
        """Whether a table or view called `name` exists in the target namespace."""

    @abstractmethod
    def _query(self, sql: str) -> pd.DataFrame:
        """Run a query and return its rows."""

    @abstractmethod
    def qualify(self, names: ObjectNames, name: str) -> str:
        """Fully qualified, quoted object name."""

    @abstractmethod
    def namespace_ddl(self, names: ObjectNames) -> str | None:
        """Statement creating the target schema/database, if needed."""

    @abstractmethod
    def raw_catalog_ddl(self, names: ObjectNames, source: RawSource) -> str:
        """Statement defining `{table}_versions`."""

    @abstractmethod
    def manifest_table_ddl(self, names: ObjectNames, manifest_uri: str) -> str:
        """Statement defining `{table}_manifest`."""

    def snapshot_view_ddl(self, names: ObjectNames) -> str:
        """Statement defining the snapshot view (semi-join on file path)."""
        return (
            f"CREATE VIEW {self.qualify(names, names.snapshot)} AS\n"
            f"SELECT v.*\n"
            f"FROM {self.qualify(names, names.versions)} AS v\n"
            f"WHERE v.{FILE_PATH_COLUMN} IN (\n"
            f"    SELECT {MANIFEST_COLUMN} FROM {self.qualify(names, names.manifest)}\n"
            f")"
        )

    def drop_ddl(self, names: ObjectNames, name: str) -> str:
        return f"DROP VIEW IF EXISTS {self.qualify(names, name)}"

    def prepare_location(self, uri: str) -> None:
        """Make `uri` readable by statements run on this connection."""

    def close(self) -> None:
        """Release the engine connection."""

    # =========================================================================
    # Retry + error wrapping
    # =========================================================================

    def _call(self, fn: Callable[[], T], description: str, statement: str | None = None) -> T:
        retrying = Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=self.retry_wait,
            retry=retry_if_exception_type(self.retryable_errors),
            reraise=True,
        )
        try:
            return retrying(fn)
        except CatalogOperationError:
            raise
        except Exception as e:
            raise CatalogOperationError(f"{description} failed: {e}", statement) from e

    def execute(self, statement: str) -> None:
        self.logger.debug(f"Executing:\n{statement}")
        self._call(lambda: self._execute(statement), "DDL", statement)

    def query(self, sql: str) -> pd.DataFrame:
        return self._call(lambda: self._query(sql), "Query", sql)

    # =========================================================================
    # Capability interface
    # =========================================================================

    def object_exists(self, names: ObjectNames, name: str) -> bool:
        return self._call(
            lambda: self._exists(names, name),
            f"Existence check for {self.qualify(names, name)}",
        )

    def ensure_namespace(self, names: ObjectNames) -> None:
        statement = self.namespace_ddl(names)
        if statement:
            self.execute(statement)

    def drop_object(self, names: ObjectNames, name: str) -> None:
        self.execute(self.drop_ddl(names, name))
        self.logger.info(f"Dropped {self.qualify(names, name)}")

    def _ensure(self, names: ObjectNames, name: str, build: Callable[[], str]) -> bool:
        if self.object_exists(names, name):
            self.logger.debug(f"{self.qualify(names, name)} already exists")
            return False
        self.execute(build())
        return True

    def ensure_raw_catalog(self, names: ObjectNames, source: RawSource) -> bool:
        return self._ensure(names, names.versions, lambda: self.raw_catalog_ddl(names, source))

    def ensure_manifest_table(self, names: ObjectNames, manifest_uri: str) -> bool:
        return self._ensure(
            names, names.manifest, lambda: self.manifest_table_ddl(names, manifest_uri)
        )

    def ensure_snapshot_view(self, names: ObjectNames) -> bool:
        return self._ensure(names, names.snapshot, lambda: self.snapshot_view_ddl(names))

    def __enter__(self) -> CatalogClient:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()
