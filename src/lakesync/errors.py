"""🚨 Errors raised while synchronizing a table into a query engine."""

from __future__ import annotations


class LakesyncError(Exception):
    """Base exception for lakesync operations."""

    pass


class UnsupportedVariantError(LakesyncError):
    """Table variant can't be exposed through a manifest (e.g. merge-on-read)."""

    def __init__(self, variant: str, base_path: str):
        self.variant = variant
        self.base_path = base_path
        super().__init__(f"{variant} table type is not supported: {base_path}")


class UnreadableTableError(LakesyncError):
    """Table metadata (properties or timeline) could not be read."""

    pass


class ManifestWriteError(LakesyncError):
    """The manifest artifact could not be published."""

    pass


class CatalogOperationError(LakesyncError):
    """An existence check or DDL statement failed in the query engine."""

    def __init__(self, message: str, statement: str | None = None):
        self.statement = statement
        super().__init__(message)


class SyncError(LakesyncError):
    """A sync run failed. Carries the table name and the original cause."""

    def __init__(self, table_name: str, cause: BaseException):
        self.table_name = table_name
        self.cause = cause
        super().__init__(f"Got exception when syncing {table_name}: {cause}")
