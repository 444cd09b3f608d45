"""🔌 Query Engines - One catalog client per supported engine.

- DuckDB: embedded, views persisted in a database file
- ClickHouse: server, views over the s3() table function

Example:
    from lakesync.engine import client_for

    with client_for(config, settings, logger) as client:
        client.object_exists(names, "stock_ticks")
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from lakesync.config import EngineKind

from .base import CatalogClient, ObjectNames, RawSource

if TYPE_CHECKING:
    from lakesync.config import Settings, SyncConfig
    from lakesync.log import Logger


def client_for(config: "SyncConfig", settings: "Settings", logger: "Logger") -> CatalogClient:
    """Build the catalog client for the configured engine."""
    if config.engine is EngineKind.DUCKDB:
        from .duckdb import DuckDBCatalogClient

        return DuckDBCatalogClient.from_settings(settings, logger, database=config.database)
    if config.engine is EngineKind.CLICKHOUSE:
        from .clickhouse import ClickHouseCatalogClient

        return ClickHouseCatalogClient.from_settings(
            settings, logger, storage_integration=config.storage_integration
        )
    raise ValueError(f"Unsupported engine: {config.engine}")


__all__ = [
    "CatalogClient",
    "ObjectNames",
    "RawSource",
    "client_for",
]
