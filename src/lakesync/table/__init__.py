"""🗂️ Table - Read-only view of a Hudi table's metadata.

- HoodieTableMeta: variant, partition fields, base file format
- Timeline: commit history from `.hoodie/`
- CommitListing: files valid as of the latest completed commit

Example:
    from lakesync.storage import storage_for
    from lakesync.table import CommitListing

    listing = CommitListing(storage_for("/data/stock_ticks_cow"), logger)
    listing.valid_files()
"""

from .listing import BaseFile, CommitListing
from .metadata import HoodieTableMeta, TableVariant, parse_properties
from .timeline import Instant, InstantState, Timeline

__all__ = [
    "BaseFile",
    "CommitListing",
    "HoodieTableMeta",
    "TableVariant",
    "parse_properties",
    "Instant",
    "InstantState",
    "Timeline",
]
