"""🔄 Sync - Manifest generation and engine reconciliation.

Example:
    from lakesync.sync import SyncOrchestrator

    result = SyncOrchestrator(config, storage, client, logger).sync()
"""

from .manifest import MANIFEST_PATH, ManifestLocation, ManifestWriter
from .orchestrator import SyncOrchestrator, SyncResult, SyncState, write_manifest
from .reconciler import ReconcileResult, SyncReconciler, check_partition_expression

__all__ = [
    "MANIFEST_PATH",
    "ManifestLocation",
    "ManifestWriter",
    "SyncOrchestrator",
    "SyncResult",
    "SyncState",
    "write_manifest",
    "ReconcileResult",
    "SyncReconciler",
    "check_partition_expression",
]
