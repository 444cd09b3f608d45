"""🔁 Sync Reconciler - Create whatever engine objects are missing.

The manifest is rewritten on every run; the engine objects are created
once and then left alone:

    {table}_versions   every physical file, scanned by the engine
    {table}_manifest   the manifest artifact, read by name
    {table}            versions rows whose path is listed in the manifest

Because the snapshot view points at the manifest by name, overwriting the
manifest is all it takes to move readers to a new commit.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field

from lakesync.config import RefreshPolicy, SyncConfig
from lakesync.engine import CatalogClient, ObjectNames, RawSource
from lakesync.log import Logger

RAW_CATALOG_STEP = "raw_catalog"
SNAPSHOT_VIEW_STEP = "snapshot_view"


@dataclass
class ReconcileResult:
    """Objects created (or recreated) during one reconciliation."""

    created: list[str] = field(default_factory=list)
    refreshed: list[str] = field(default_factory=list)


def check_partition_expression(config: SyncConfig, logger: Logger) -> list[str]:
    """Surface likely mistakes in the partition-extraction expression.

    The expression is evaluated by the engine and can't be validated here;
    a wrong one silently yields null or wrong partition values.

    Returns:
        Warning messages (also logged)
    """
    warnings = []
    expr = config.partition_extract_expr
    if config.partition_fields and not expr:
        warnings.append(
            f"Partition fields {list(config.partition_fields)} configured without a "
            f"partition extract expression; partition columns will not be derived"
        )
    elif expr:
        logger.info(f"Partition extract expression: {expr}")
        for name in config.partition_fields:
            if name not in expr:
                warnings.append(
                    f"Partition field '{name}' does not appear in the partition extract expression"
                )

    for message in warnings:
        logger.warning(message)
    return warnings


class SyncReconciler:
    """Ensures the raw catalog and the snapshot view exist.

    Example:
        reconciler = SyncReconciler(client, config, logger)
        result = reconciler.reconcile(source, manifest_uri)
    """

    def __init__(self, client: CatalogClient, config: SyncConfig, logger: Logger):
        self.client = client
        self.config = config
        self.logger = logger
        self.names = ObjectNames.from_config(config)

    def ensure_raw_catalog(self, source: RawSource, result: ReconcileResult) -> bool:
        versions = self.client.qualify(self.names, self.names.versions)
        self.client.ensure_namespace(self.names)

        if self.config.refresh_policy is RefreshPolicy.ALWAYS and self.client.object_exists(
            self.names, self.names.versions
        ):
            self.client.drop_object(self.names, self.names.versions)
            result.refreshed.append(versions)

        if self.client.object_exists(self.names, self.names.versions):
            self.logger.info(f"Versions table {versions} exists, leaving it as is")
            return False

        check_partition_expression(self.config, self.logger)
        created = self.client.ensure_raw_catalog(self.names, source)
        if created:
            result.created.append(versions)
            self.logger.info(f"Versions table creation complete for {versions}")
        return created

    def ensure_snapshot_view(self, manifest_uri: str, result: ReconcileResult) -> bool:
        manifest = self.client.qualify(self.names, self.names.manifest)
        snapshot = self.client.qualify(self.names, self.names.snapshot)

        if self.client.ensure_manifest_table(self.names, manifest_uri):
            result.created.append(manifest)
            self.logger.info(f"Manifest table creation complete for {manifest}")

        created = self.client.ensure_snapshot_view(self.names)
        if created:
            result.created.append(snapshot)
            self.logger.info(f"Snapshot view creation complete for {snapshot}")
        else:
            self.logger.info(f"Snapshot view {snapshot} exists, leaving it as is")
        return created

    def reconcile(
        self,
        source: RawSource,
        manifest_uri: str,
        result: ReconcileResult | None = None,
        on_step: Callable[[str], None] | None = None,
    ) -> ReconcileResult:
        """Run both steps in order (the view references the catalog by name).

        Args:
            source: What the raw catalog scans
            manifest_uri: Location of the published manifest
            result: Collects created objects, also when a step fails
            on_step: Called with RAW_CATALOG_STEP or SNAPSHOT_VIEW_STEP
                before each step starts
        """
        result = result if result is not None else ReconcileResult()
        steps = [
            (RAW_CATALOG_STEP, lambda: self.ensure_raw_catalog(source, result)),
            (SNAPSHOT_VIEW_STEP, lambda: self.ensure_snapshot_view(manifest_uri, result)),
        ]
        for name, step in steps:
            if on_step is not None:
                on_step(name)
            step()
        return result
