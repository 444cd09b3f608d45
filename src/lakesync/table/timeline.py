"""🕰️ Timeline - Commit history read from the `.hoodie` folder.

Every action on the table leaves one file per state transition:

    20220101103000.commit.requested   → REQUESTED
    20220101103000.inflight           → INFLIGHT (legacy commit name)
    20220101103000.commit             → COMPLETED

Only the completed state makes a commit's files visible. Instants are
fixed-width timestamps, so string order is commit order.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from enum import Enum

from lakesync.errors import UnreadableTableError
from lakesync.storage import Storage

from .metadata import METAFOLDER_NAME

COMMIT_ACTION = "commit"
DELTA_COMMIT_ACTION = "deltacommit"
REPLACE_COMMIT_ACTION = "replacecommit"
CLEAN_ACTION = "clean"
ROLLBACK_ACTION = "rollback"
SAVEPOINT_ACTION = "savepoint"
RESTORE_ACTION = "restore"
COMPACTION_ACTION = "compaction"

# Actions that publish base files on a copy-on-write table
WRITE_ACTIONS = frozenset({COMMIT_ACTION, REPLACE_COMMIT_ACTION})

KNOWN_ACTIONS = frozenset(
    {
        COMMIT_ACTION,
        DELTA_COMMIT_ACTION,
        REPLACE_COMMIT_ACTION,
        CLEAN_ACTION,
        ROLLBACK_ACTION,
        SAVEPOINT_ACTION,
        RESTORE_ACTION,
        COMPACTION_ACTION,
    }
)

_INSTANT_FILE = re.compile(r"^(?P<ts>\d+)\.(?P<rest>[a-z.]+)$")


class InstantState(str, Enum):
    REQUESTED = "REQUESTED"
    INFLIGHT = "INFLIGHT"
    COMPLETED = "COMPLETED"


_STATE_ORDER = {
    InstantState.REQUESTED: 0,
    InstantState.INFLIGHT: 1,
    InstantState.COMPLETED: 2,
}


@dataclass(frozen=True)
class Instant:
    """One state of one action on the timeline."""

    timestamp: str
    action: str
    state: InstantState
    file_name: str

    @property
    def is_completed(self) -> bool:
        return self.state is InstantState.COMPLETED

    @property
    def sort_key(self) -> tuple[str, int]:
        return (self.timestamp, _STATE_ORDER[self.state])

    @classmethod
    def from_file_name(cls, file_name: str) -> Instant | None:
        """Parse a timeline file name, or None if it isn't one.

        Example:
            Instant.from_file_name("20220101103000.replacecommit.inflight")
            → Instant("20220101103000", "replacecommit", INFLIGHT, ...)
        """
        match = _INSTANT_FILE.match(file_name)
        if not match:
            return None

        ts = match.group("ts")
        parts = match.group("rest").split(".")

        if parts == ["inflight"]:
            return cls(ts, COMMIT_ACTION, InstantState.INFLIGHT, file_name)

        action = parts[0]
        if action not in KNOWN_ACTIONS:
            return None
        if len(parts) == 1:
            state = InstantState.COMPLETED
        elif len(parts) == 2 and parts[1] == "requested":
            state = InstantState.REQUESTED
        elif len(parts) == 2 and parts[1] == "inflight":
            state = InstantState.INFLIGHT
        else:
            return None
        return cls(ts, action, state, file_name)


class Timeline:
    """The active timeline of a table.

    Example:
        timeline = Timeline.load(storage)
        latest = timeline.latest_completed()
        if latest:
            print(latest.timestamp)
    """

    def __init__(self, storage: Storage, instants: list[Instant]):
        self.storage = storage
        self.instants = sorted(instants, key=lambda i: i.sort_key)

    @classmethod
    def load(cls, storage: Storage) -> Timeline:
        """List `.hoodie/` and parse every timeline file in it.

        Raises:
            UnreadableTableError: If the folder can't be listed
        """
        try:
            paths = storage.list_files(METAFOLDER_NAME)
        except Exception as e:
            raise UnreadableTableError(
                f"Could not list timeline at {storage.uri(METAFOLDER_NAME)}: {e}"
            ) from e

        instants = []
        prefix = METAFOLDER_NAME + "/"
        for path in paths:
            name = path[len(prefix):] if path.startswith(prefix) else path
            # Archived timeline, aux and metadata table live in sub-folders
            if "/" in name:
                continue
            instant = Instant.from_file_name(name)
            if instant is not None:
                instants.append(instant)
        return cls(storage, instants)

    def write_instants(self) -> list[Instant]:
        """All instants of actions that write base files, any state."""
        return [i for i in self.instants if i.action in WRITE_ACTIONS]

    def completed_commits(self) -> list[Instant]:
        return [i for i in self.write_instants() if i.is_completed]

    def pending(self) -> list[Instant]:
        """Write actions that started but haven't completed."""
        completed = {i.timestamp for i in self.completed_commits()}
        pending = {}
        for instant in self.write_instants():
            if instant.timestamp not in completed:
                pending[instant.timestamp] = instant
        return list(pending.values())

    def latest_completed(self) -> Instant | None:
        completed = self.completed_commits()
        return completed[-1] if completed else None

    def first_instant(self) -> Instant | None:
        instants = self.write_instants()
        return instants[0] if instants else None

    def is_completed(self, timestamp: str) -> bool:
        return any(i.timestamp == timestamp for i in self.completed_commits())

    def is_before_start(self, timestamp: str) -> bool:
        """Whether `timestamp` predates the active timeline (archived = committed)."""
        first = self.first_instant()
        return first is not None and timestamp < first.timestamp

    def is_visible(self, timestamp: str, as_of: str) -> bool:
        """Whether files written at `timestamp` belong to the table as of `as_of`."""
        if timestamp > as_of:
            return False
        return self.is_before_start(timestamp) or self.is_completed(timestamp)

    def replaced_file_ids(self, as_of: str | None = None) -> set[tuple[str, str]]:
        """File groups replaced by completed replacecommits.

        Returns:
            Set of (partition path, file id)

        Raises:
            UnreadableTableError: If a replacecommit can't be parsed
        """
        replaced: set[tuple[str, str]] = set()
        for instant in self.completed_commits():
            if instant.action != REPLACE_COMMIT_ACTION:
                continue
            if as_of is not None and instant.timestamp > as_of:
                continue

            metadata = self.read_commit_metadata(instant)
            for partition, file_ids in (metadata.get("partitionToReplaceFileIds") or {}).items():
                for file_id in file_ids or []:
                    replaced.add((partition, file_id))
        return replaced

    def read_commit_metadata(self, instant: Instant) -> dict:
        """Read the JSON body of a completed instant ({} when empty)."""
        path = f"{METAFOLDER_NAME}/{instant.file_name}"
        try:
            text = self.storage.read_text(path)
        except Exception as e:
            raise UnreadableTableError(f"Could not read {path}: {e}") from e

        if not text.strip():
            return {}
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise UnreadableTableError(f"Corrupt commit metadata in {path}: {e}") from e
        if not isinstance(data, dict):
            raise UnreadableTableError(f"Unexpected commit metadata in {path}")
        return data

    def __len__(self) -> int:
        return len(self.instants)

    def __repr__(self) -> str:
        latest = self.latest_completed()
        return (
            f"Timeline(instants={len(self.instants)}, "
            f"latest={latest.timestamp if latest else None})"
        )
