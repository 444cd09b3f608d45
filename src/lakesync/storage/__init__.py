"""💾 Storage - Local and S3 access to a table's base location.

Example:
    from lakesync.storage import storage_for

    storage = storage_for("s3://hudi-demo/stock_ticks_cow")
    storage.list_files(".hoodie")
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .base import Storage, join
from .local import LocalStorage
from .s3 import S3Storage, get_s3_client, parse_s3_uri

if TYPE_CHECKING:
    from lakesync.config import Settings


def is_s3(location: str) -> bool:
    return location.startswith(("s3://", "s3a://"))


def storage_for(location: str, settings: "Settings | None" = None) -> Storage:
    """Pick a storage backend from the location's scheme."""
    if is_s3(location):
        client = None
        if settings is not None:
            client = get_s3_client(
                endpoint=settings.s3_endpoint,
                access_key=settings.s3_access_key,
                secret_key=settings.s3_secret_key,
                region=settings.s3_region,
            )
        return S3Storage(location, client=client)
    if location.startswith("file://"):
        location = location[len("file://"):]
    return LocalStorage(location)


__all__ = [
    "Storage",
    "LocalStorage",
    "S3Storage",
    "storage_for",
    "is_s3",
    "join",
    "parse_s3_uri",
]
