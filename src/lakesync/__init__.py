"""🔄 lakesync - Snapshot-consistent Hudi tables in any query engine.

Quick Start:
    from lakesync import SyncConfig, sync_table

    config = SyncConfig(
        table_name="stock_ticks_cow",
        base_path="s3://hudi-demo/stock_ticks_cow",
        partition_fields=["date"],
        partition_extract_expr="regexp_extract(filename, 'date=([^/]+)', 1) AS date",
    )
    result = sync_table(config)

The engine sees three objects:
    stock_ticks_cow_versions   every physical file (superseded ones too)
    stock_ticks_cow_manifest   the files valid as of the latest commit
    stock_ticks_cow            the snapshot view joining the two
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from lakesync.config import EngineKind, RefreshPolicy, Settings, SyncConfig, get_settings
from lakesync.errors import (
    CatalogOperationError,
    LakesyncError,
    ManifestWriteError,
    SyncError,
    UnreadableTableError,
    UnsupportedVariantError,
)

if TYPE_CHECKING:
    from lakesync.log import Logger
    from lakesync.sync import SyncResult

__version__ = "0.1.0"


def sync_table(
    config: SyncConfig,
    settings: Settings | None = None,
    logger: "Logger | None" = None,
) -> "SyncResult":
    """Sync one table with the engine named in its config."""
    from lakesync.engine import client_for
    from lakesync.log import get_logger
    from lakesync.storage import storage_for
    from lakesync.sync import SyncOrchestrator

    settings = settings or get_settings()
    logger = logger or get_logger("lakesync", level=settings.log_level)
    storage = storage_for(config.base_path, settings)
    with client_for(config, settings, logger) as client:
        return SyncOrchestrator(config, storage, client, logger).sync()


__all__ = [
    "SyncConfig",
    "Settings",
    "EngineKind",
    "RefreshPolicy",
    "get_settings",
    "sync_table",
    "LakesyncError",
    "SyncError",
    "UnsupportedVariantError",
    "UnreadableTableError",
    "ManifestWriteError",
    "CatalogOperationError",
    "__version__",
]
