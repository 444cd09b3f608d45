"""🦆 DuckDB Catalog Client - Snapshot views in a persistent DuckDB database.

All three objects are plain views, so DuckDB expands the file glob on every
query: files written after the raw catalog was created are scanned without
recreating anything.

Example:
    with DuckDBCatalogClient("warehouse.duckdb", logger) as client:
        client.ensure_raw_catalog(names, source)
        df = client.query('SELECT * FROM "main"."stock_ticks"')
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import duckdb
import pandas as pd

from lakesync.log import Logger
from lakesync.storage import is_s3

from .base import (
    FILE_PATH_COLUMN,
    MANIFEST_COLUMN,
    CatalogClient,
    ObjectNames,
    RawSource,
    quote_literal,
)

if TYPE_CHECKING:
    from lakesync.config import Settings


def quote_ident(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


class DuckDBCatalogClient(CatalogClient):
    """DuckDB implementation of the catalog capabilities."""

    retryable_errors = (duckdb.IOException,)

    def __init__(
        self,
        database: str,
        logger: Logger,
        s3_endpoint: str | None = None,
        s3_access_key: str | None = None,
        s3_secret_key: str | None = None,
        s3_region: str | None = None,
        max_attempts: int = 3,
    ):
        super().__init__(logger, max_attempts=max_attempts)
        self.database = database
        self.s3_endpoint = s3_endpoint
        self.s3_access_key = s3_access_key
        self.s3_secret_key = s3_secret_key
        self.s3_region = s3_region
        self._conn: duckdb.DuckDBPyConnection | None = None
        self._httpfs_loaded = False

    @classmethod
    def from_settings(
        cls, settings: "Settings", logger: Logger, database: str | None = None
    ) -> DuckDBCatalogClient:
        """Create a client from environment settings."""
        return cls(
            database=database or settings.duckdb_path,
            logger=logger,
            s3_endpoint=settings.s3_endpoint,
            s3_access_key=settings.s3_access_key,
            s3_secret_key=settings.s3_secret_key,
            s3_region=settings.s3_region,
            max_attempts=settings.engine_max_attempts,
        )

    @property
    def conn(self) -> duckdb.DuckDBPyConnection:
        """Get or create the DuckDB connection."""
        if self._conn is None:
            self._conn = duckdb.connect(self.database)
        return self._conn

    def _setup_s3(self) -> None:
        """Load httpfs and configure S3/MinIO access for this session."""
        if self._httpfs_loaded:
            return
        self.conn.execute("INSTALL httpfs")
        self.conn.execute("LOAD httpfs")

        if self.s3_endpoint:
            # DuckDB wants the bare host:port
            endpoint = self.s3_endpoint.replace("http://", "").replace("https://", "")
            self.conn.execute(f"SET s3_endpoint = {quote_literal(endpoint)}")
            self.conn.execute("SET s3_url_style = 'path'")
            self.conn.execute(
                f"SET s3_use_ssl = {str(self.s3_endpoint.startswith('https://')).lower()}"
            )
        if self.s3_access_key:
            self.conn.execute(f"SET s3_access_key_id = {quote_literal(self.s3_access_key)}")
        if self.s3_secret_key:
            self.conn.execute(
                f"SET s3_secret_access_key = {quote_literal(self.s3_secret_key)}"
            )
        if self.s3_region:
            self.conn.execute(f"SET s3_region = {quote_literal(self.s3_region)}")
        self._httpfs_loaded = True

    def prepare_location(self, uri: str) -> None:
        if is_s3(uri):
            self._call(self._setup_s3, "Loading httpfs")

    # =========================================================================
    # Primitives
    # =========================================================================

    def _execute(self, statement: str) -> None:
        self.conn.execute(statement)

    def _exists(self, names: ObjectNames, name: str) -> bool:
        row = self.conn.execute(
            "SELECT count(*) FROM information_schema.tables "
            "WHERE table_catalog = current_database() "
            "AND table_schema = ? AND table_name = ?",
            [names.schema, name],
        ).fetchone()
        return bool(row and row[0])

    def _query(self, sql: str) -> pd.DataFrame:
        return self.conn.execute(sql).df()

    def qualify(self, names: ObjectNames, name: str) -> str:
        return f"{quote_ident(names.schema)}.{quote_ident(name)}"

    # =========================================================================
    # Statements
    # =========================================================================

    def namespace_ddl(self, names: ObjectNames) -> str | None:
        if names.schema == "main":
            return None
        return f"CREATE SCHEMA IF NOT EXISTS {quote_ident(names.schema)}"

    def _data_columns(self, source: RawSource) -> str:
        derived = source.derived_fields
        if not derived:
            return "*"
        # Lenient on files that lack the column, unlike `* EXCLUDE`
        listed = ", ".join(quote_literal(f) for f in derived)
        return f"COLUMNS(c -> c NOT IN ({listed}))"

    def raw_catalog_ddl(self, names: ObjectNames, source: RawSource) -> str:
        base = source.base_uri.rstrip("/")
        glob = f"{base}/**/*{source.file_extension}"
        reader = "read_parquet" if source.file_extension == ".parquet" else "read_orc"

        columns = [self._data_columns(source)]
        if source.partition_extract_expr:
            columns.append(source.partition_extract_expr)
        columns.append(
            f"replace(filename, {quote_literal(base + '/')}, '') AS {FILE_PATH_COLUMN}"
        )

        return (
            f"CREATE VIEW {self.qualify(names, names.versions)} AS\n"
            f"SELECT {', '.join(columns)}\n"
            f"FROM {reader}({quote_literal(glob)}, filename = true, "
            f"union_by_name = true, hive_partitioning = false)\n"
            f"WHERE filename NOT LIKE '%/.hoodie/%'"
        )

    def manifest_table_ddl(self, names: ObjectNames, manifest_uri: str) -> str:
        return (
            f"CREATE VIEW {self.qualify(names, names.manifest)} AS\n"
            f"SELECT {MANIFEST_COLUMN}\n"
            f"FROM read_csv({quote_literal(manifest_uri)}, header = false, "
            f"auto_detect = false, delim = ',', quote = '\"', escape = '\"', "
            f"columns = {{'{MANIFEST_COLUMN}': 'VARCHAR'}})"
        )

    # =========================================================================
    # Capability overrides (S3 needs httpfs before any statement binds)
    # =========================================================================

    def ensure_raw_catalog(self, names: ObjectNames, source: RawSource) -> bool:
        self.prepare_location(source.base_uri)
        return super().ensure_raw_catalog(names, source)

    def ensure_manifest_table(self, names: ObjectNames, manifest_uri: str) -> bool:
        self.prepare_location(manifest_uri)
        return super().ensure_manifest_table(names, manifest_uri)

    def close(self) -> None:
        """Close the connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __repr__(self) -> str:
        return f"DuckDBCatalogClient(database={self.database!r})"
