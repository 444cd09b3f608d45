"""🏠 ClickHouse Catalog Client - Snapshot views over the s3() table function.

Views built on `s3()` list the bucket at query time, like DuckDB globs, so
the raw catalog keeps up with new files. Credentials come either from a
ClickHouse named collection (the configured storage integration) or from
the S3 settings.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import clickhouse_connect
import pandas as pd
from clickhouse_connect.driver.exceptions import OperationalError

from lakesync.errors import CatalogOperationError
from lakesync.log import Logger
from lakesync.storage import is_s3, parse_s3_uri

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

DEFAULT_DATABASE = "default"

_FORMATS = {".parquet": "Parquet", ".orc": "ORC"}


def quote_ident(name: str) -> str:
    return "`" + name.replace("`", "\\`") + "`"


class ClickHouseCatalogClient(CatalogClient):
    """ClickHouse implementation of the catalog capabilities."""

    retryable_errors = (OperationalError,)

    def __init__(
        self,
        logger: Logger,
        host: str = "localhost",
        port: int = 8123,
        username: str = "default",
        password: str = "",
        s3_endpoint: str | None = None,
        s3_access_key: str | None = None,
        s3_secret_key: str | None = None,
        s3_region: str = "us-east-1",
        storage_integration: str | None = None,
        max_attempts: int = 3,
        client=None,
    ):
        super().__init__(logger, max_attempts=max_attempts)
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.s3_endpoint = s3_endpoint
        self.s3_access_key = s3_access_key
        self.s3_secret_key = s3_secret_key
        self.s3_region = s3_region
        self.storage_integration = storage_integration
        self._client = client

    @classmethod
    def from_settings(
        cls,
        settings: "Settings",
        logger: Logger,
        storage_integration: str | None = None,
    ) -> ClickHouseCatalogClient:
        """Create a client from environment settings."""
        return cls(
            logger=logger,
            host=settings.clickhouse_host,
            port=settings.clickhouse_port,
            username=settings.clickhouse_user,
            password=settings.clickhouse_password,
            s3_endpoint=settings.s3_endpoint,
            s3_access_key=settings.s3_access_key,
            s3_secret_key=settings.s3_secret_key,
            s3_region=settings.s3_region,
            storage_integration=storage_integration,
            max_attempts=settings.engine_max_attempts,
        )

    @property
    def client(self):
        """Get or create the ClickHouse client."""
        if self._client is None:
            self._client = self._call(
                lambda: clickhouse_connect.get_client(
                    host=self.host,
                    port=self.port,
                    username=self.username,
                    password=self.password,
                ),
                f"Connecting to ClickHouse at {self.host}:{self.port}",
            )
        return self._client

    # =========================================================================
    # s3() helpers
    # =========================================================================

    def http_url(self, uri: str) -> str:
        """Convert s3://bucket/key to the HTTP URL ClickHouse fetches.

        Example:
            http_url("s3://hudi/trips/x.csv") → "http://minio:9000/hudi/trips/x.csv"
        """
        if not is_s3(uri):
            raise CatalogOperationError(
                f"ClickHouse can only read s3:// locations, got {uri}"
            )
        bucket, key = parse_s3_uri(uri)
        if self.s3_endpoint:
            return f"{self.s3_endpoint.rstrip('/')}/{bucket}/{key}"
        return f"https://{bucket}.s3.{self.s3_region}.amazonaws.com/{key}"

    def s3_function(self, url: str, fmt: str, structure: str | None = None) -> str:
        if self.storage_integration:
            args = [
                quote_ident(self.storage_integration),
                f"url = {quote_literal(url)}",
                f"format = {quote_literal(fmt)}",
            ]
            if structure:
                args.append(f"structure = {quote_literal(structure)}")
            return f"s3({', '.join(args)})"

        args = [quote_literal(url)]
        if self.s3_access_key and self.s3_secret_key:
            args += [quote_literal(self.s3_access_key), quote_literal(self.s3_secret_key)]
        args.append(quote_literal(fmt))
        if structure:
            args.append(quote_literal(structure))
        return f"s3({', '.join(args)})"

    # =========================================================================
    # Primitives
    # =========================================================================

    def _database(self, names: ObjectNames) -> str:
        return names.database or DEFAULT_DATABASE

    def _execute(self, statement: str) -> None:
        self.client.command(statement)

    def _exists(self, names: ObjectNames, name: str) -> bool:
        # ClickHouse has no schemas; objects live directly in a database
        result = self.client.command(f"EXISTS TABLE {self.qualify(names, name)}")
        return int(result) == 1

    def _query(self, sql: str) -> pd.DataFrame:
        return self.client.query_df(sql)

    def qualify(self, names: ObjectNames, name: str) -> str:
        return f"{quote_ident(self._database(names))}.{quote_ident(name)}"

    # =========================================================================
    # Statements
    # =========================================================================

    def namespace_ddl(self, names: ObjectNames) -> str | None:
        if self._database(names) == DEFAULT_DATABASE:
            return None
        return f"CREATE DATABASE IF NOT EXISTS {quote_ident(self._database(names))}"

    def _data_columns(self, source: RawSource) -> str:
        derived = source.derived_fields
        if not derived:
            return "*"
        return f"* EXCEPT ({', '.join(quote_ident(f) for f in derived)})"

    def raw_catalog_ddl(self, names: ObjectNames, source: RawSource) -> str:
        fmt = _FORMATS.get(source.file_extension)
        if fmt is None:
            raise CatalogOperationError(f"Unsupported base file format {source.file_extension}")

        bucket, key = parse_s3_uri(source.base_uri)
        # _path is "bucket/key" without the scheme
        path_prefix = f"{bucket}/{key}/" if key else f"{bucket}/"
        url = self.http_url(source.base_uri).rstrip("/") + f"/**/*{source.file_extension}"

        columns = [self._data_columns(source)]
        if source.partition_extract_expr:
            columns.append(source.partition_extract_expr)
        columns.append(f"replaceOne(_path, {quote_literal(path_prefix)}, '') AS {FILE_PATH_COLUMN}")

        return (
            f"CREATE VIEW {self.qualify(names, names.versions)} AS\n"
            f"SELECT {', '.join(columns)}\n"
            f"FROM {self.s3_function(url, fmt)}\n"
            f"WHERE _path NOT LIKE '%/.hoodie/%'"
        )

    def manifest_table_ddl(self, names: ObjectNames, manifest_uri: str) -> str:
        url = self.http_url(manifest_uri)
        return (
            f"CREATE VIEW {self.qualify(names, names.manifest)} AS\n"
            f"SELECT {MANIFEST_COLUMN}\n"
            f"FROM {self.s3_function(url, 'CSV', f'{MANIFEST_COLUMN} String')}"
        )

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def __repr__(self) -> str:
        return f"ClickHouseCatalogClient(host={self.host!r}, port={self.port})"
