"""🎬 Sync Orchestrator - One table, one run, strictly in order.

    INIT → DETECT_VARIANT ─┬→ UNSUPPORTED                       (fails)
                           └→ BUILD_MANIFEST → ENSURE_RAW_CATALOG
                                → ENSURE_SNAPSHOT_VIEW → DONE

Detecting the variant touches nothing, so an unsupported table never gets
an engine object. A manifest failure aborts before any DDL. Later failures
leave earlier steps in place; rerunning is the recovery path since every
step is idempotent.

Only one sync per table may run at a time. That lock is the scheduler's
job, not ours.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum

from lakesync.config import SyncConfig
from lakesync.engine import CatalogClient, RawSource
from lakesync.errors import SyncError, UnsupportedVariantError
from lakesync.log import Logger, bind
from lakesync.storage import Storage
from lakesync.table import CommitListing, TableVariant

from .manifest import ManifestLocation, ManifestWriter
from .reconciler import (
    RAW_CATALOG_STEP,
    SNAPSHOT_VIEW_STEP,
    ReconcileResult,
    SyncReconciler,
)


class SyncState(str, Enum):
    INIT = "INIT"
    DETECT_VARIANT = "DETECT_VARIANT"
    UNSUPPORTED = "UNSUPPORTED"
    BUILD_MANIFEST = "BUILD_MANIFEST"
    ENSURE_RAW_CATALOG = "ENSURE_RAW_CATALOG"
    ENSURE_SNAPSHOT_VIEW = "ENSURE_SNAPSHOT_VIEW"
    DONE = "DONE"
    FAILED = "FAILED"


_STEP_STATES = {
    RAW_CATALOG_STEP: SyncState.ENSURE_RAW_CATALOG,
    SNAPSHOT_VIEW_STEP: SyncState.ENSURE_SNAPSHOT_VIEW,
}


@dataclass
class SyncResult:
    """Outcome of a successful sync run."""

    table_name: str
    variant: TableVariant
    manifest: ManifestLocation | None = None
    created: list[str] = field(default_factory=list)
    refreshed: list[str] = field(default_factory=list)
    states: list[SyncState] = field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def state(self) -> SyncState:
        return self.states[-1] if self.states else SyncState.INIT

    @property
    def file_count(self) -> int:
        return self.manifest.file_count if self.manifest else 0


class SyncOrchestrator:
    """Synchronizes one table into one query engine.

    Example:
        orchestrator = SyncOrchestrator(config, storage, client, logger)
        result = orchestrator.sync()
        print(result.created)   # objects created by this run
    """

    def __init__(
        self,
        config: SyncConfig,
        storage: Storage,
        client: CatalogClient,
        logger: Logger,
    ):
        self.config = config
        self.storage = storage
        self.client = client
        self.logger = bind(logger, table=config.table_name, engine=config.engine.value)
        self.listing = CommitListing(storage, self.logger)
        self.manifest_writer = ManifestWriter(storage, self.logger)
        self.reconciler = SyncReconciler(client, config, self.logger)
        self.state = SyncState.INIT

        self._handlers: dict[TableVariant, Callable[[SyncResult], None]] = {
            TableVariant.COPY_ON_WRITE: self._sync_cow_table,
        }

    def _enter(self, state: SyncState, result: SyncResult | None = None) -> None:
        self.logger.debug(f"{self.state.value} → {state.value}")
        self.state = state
        if result is not None:
            result.states.append(state)

    def sync(self) -> SyncResult:
        """Run the sync.

        Raises:
            SyncError: Wrapping whatever stopped the run
        """
        started = time.monotonic()
        try:
            self._enter(SyncState.DETECT_VARIANT)
            variant = self.listing.variant()
            result = SyncResult(
                table_name=self.config.table_name,
                variant=variant,
                states=[SyncState.DETECT_VARIANT],
            )

            handler = self._handlers.get(variant)
            if handler is None:
                self._enter(SyncState.UNSUPPORTED, result)
                meta = self.listing.meta
                self.logger.error(f"Not supported table type {meta.raw_variant or variant.value}")
                raise UnsupportedVariantError(meta.raw_variant or variant.value, meta.base_path)

            handler(result)
        except Exception as e:
            if self.state is not SyncState.UNSUPPORTED:
                self.logger.error(f"Sync failed during {self.state.value}: {e}")
                self.state = SyncState.FAILED
            raise SyncError(self.config.table_name, e) from e

        result.duration_seconds = time.monotonic() - started
        self._enter(SyncState.DONE, result)
        self.logger.info(
            f"Sync complete for {self.config.snapshot_view_name} "
            f"({result.file_count} file(s), {result.duration_seconds:.2f}s)"
        )
        return result

    def _sync_cow_table(self, result: SyncResult) -> None:
        meta = self.listing.meta
        self.logger.info(
            f"Sync hoodie table {self.config.snapshot_view_name} at base path "
            f"{meta.base_path} of type {meta.variant.value}"
        )
        if meta.partition_fields and not self.config.partition_fields:
            self.logger.info(f"Table is partitioned by {list(meta.partition_fields)}")

        self._enter(SyncState.BUILD_MANIFEST, result)
        files = self.listing.valid_files()
        result.manifest = self.manifest_writer.write(files)

        reconciled = ReconcileResult()
        source = RawSource(
            base_uri=self.storage.uri(),
            file_extension=meta.base_file_extension,
            partition_fields=self.config.partition_fields,
            partition_extract_expr=self.config.partition_extract_expr,
        )

        try:
            self.reconciler.reconcile(
                source,
                result.manifest.uri,
                result=reconciled,
                on_step=lambda step: self._enter(_STEP_STATES[step], result),
            )
        finally:
            result.created.extend(reconciled.created)
            result.refreshed.extend(reconciled.refreshed)


def write_manifest(table_name: str, storage: Storage, logger: Logger) -> ManifestLocation:
    """Refresh only the manifest, without touching the engine.

    Moves readers of an already-synced table to the latest commit.

    Raises:
        SyncError: Wrapping whatever stopped the run
    """
    log = bind(logger, table=table_name)
    listing = CommitListing(storage, log)
    try:
        files = listing.valid_files()
        return ManifestWriter(storage, log).write(files)
    except Exception as e:
        log.error(f"Manifest refresh failed: {e}")
        raise SyncError(table_name, e) from e
