"""🧪 Pytest configuration and shared fixtures."""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path

import pytest

from lakesync.config import SyncConfig
from lakesync.engine.base import CatalogClient, ObjectNames, RawSource, quote_literal

WRITE_TOKEN = "1-0-1"


class HudiTable:
    """Lays out a Hudi copy-on-write table on local disk.

    Example:
        table = HudiTable(tmp_path / "trips")
        a = table.write_file("date=2020-01-01", "a", "20200101000000")
        table.commit("20200101000000", [a])
    """

    def __init__(
        self,
        root: Path,
        table_type: str | None = "COPY_ON_WRITE",
        partition_fields: str = "date",
        name: str = "trips",
    ):
        self.root = root
        self.meta = root / ".hoodie"
        self.meta.mkdir(parents=True, exist_ok=True)

        lines = ["#Properties saved on 2020-01-01", f"hoodie.table.name={name}"]
        if table_type is not None:
            lines.append(f"hoodie.table.type={table_type}")
        if partition_fields:
            lines.append(f"hoodie.table.partition.fields={partition_fields}")
        lines.append("hoodie.table.base.file.format=PARQUET")
        (self.meta / "hoodie.properties").write_text("\n".join(lines) + "\n")

    def write_file(
        self,
        partition: str,
        file_id: str,
        instant: str,
        rows: dict[str, list] | None = None,
    ) -> str:
        """Write a base file and return its relative path."""
        name = f"{file_id}_{WRITE_TOKEN}_{instant}.parquet"
        rel = f"{partition}/{name}" if partition else name
        path = self.root / rel
        path.parent.mkdir(parents=True, exist_ok=True)

        if rows is None:
            path.write_bytes(b"")
        else:
            import pyarrow as pa
            import pyarrow.parquet as pq

            n = len(next(iter(rows.values())))
            data = {
                "_hoodie_commit_time": [instant] * n,
                "_hoodie_file_name": [name] * n,
                **rows,
            }
            pq.write_table(pa.table(data), path)
        return rel

    def _write_stats(self, files: list[str]) -> dict:
        stats: dict[str, list] = {}
        for rel in files:
            partition, _, name = rel.rpartition("/")
            stats.setdefault(partition, []).append(
                {"fileId": name.split("_")[0], "path": rel, "numWrites": 1}
            )
        return stats

    def start(self, instant: str, action: str = "commit") -> None:
        """Leave an instant requested + inflight (a write in progress)."""
        (self.meta / f"{instant}.{action}.requested").write_text("")
        inflight = f"{instant}.inflight" if action == "commit" else f"{instant}.{action}.inflight"
        (self.meta / inflight).write_text("")

    def commit(self, instant: str, files: list[str]) -> None:
        self.start(instant)
        body = {"partitionToWriteStats": self._write_stats(files), "operationType": "UPSERT"}
        (self.meta / f"{instant}.commit").write_text(json.dumps(body))

    def replace(self, instant: str, files: list[str], replaced: dict[str, list[str]]) -> None:
        self.start(instant, "replacecommit")
        body = {
            "partitionToWriteStats": self._write_stats(files),
            "partitionToReplaceFileIds": replaced,
            "operationType": "INSERT_OVERWRITE",
        }
        (self.meta / f"{instant}.replacecommit").write_text(json.dumps(body))


_CREATE = re.compile(r"^CREATE VIEW (\S+) AS", re.MULTILINE)
_DROP = re.compile(r"^DROP VIEW IF EXISTS (\S+)")


class FakeCatalogClient(CatalogClient):
    """In-memory engine: records views by qualified name.

    `fail_on` makes any statement containing that text raise.
    """

    def __init__(self, logger=None, fail_on: str | None = None):
        super().__init__(logger or logging.getLogger("lakesync.tests"), max_attempts=1)
        self.objects: dict[str, str] = {}
        self.statements: list[str] = []
        self.fail_on = fail_on

    def _execute(self, statement: str) -> None:
        if self.fail_on and self.fail_on in statement:
            raise RuntimeError(f"engine rejected statement containing {self.fail_on!r}")
        self.statements.append(statement)

        match = _CREATE.match(statement)
        if match:
            name = match.group(1)
            if name in self.objects:
                raise RuntimeError(f"{name} already exists")
            self.objects[name] = statement
            return
        match = _DROP.match(statement)
        if match:
            self.objects.pop(match.group(1), None)

    def _exists(self, names: ObjectNames, name: str) -> bool:
        return self.qualify(names, name) in self.objects

    def _query(self, sql: str):
        raise NotImplementedError

    def qualify(self, names: ObjectNames, name: str) -> str:
        return f"{names.schema}.{name}"

    def namespace_ddl(self, names: ObjectNames) -> str | None:
        return None

    def raw_catalog_ddl(self, names: ObjectNames, source: RawSource) -> str:
        expr = f", {source.partition_extract_expr}" if source.partition_extract_expr else ""
        return (
            f"CREATE VIEW {self.qualify(names, names.versions)} AS "
            f"SELECT *{expr} FROM scan({quote_literal(source.base_uri)})"
        )

    def manifest_table_ddl(self, names: ObjectNames, manifest_uri: str) -> str:
        return (
            f"CREATE VIEW {self.qualify(names, names.manifest)} AS "
            f"SELECT file_path FROM csv({quote_literal(manifest_uri)})"
        )


@pytest.fixture
def hudi_table(tmp_path):
    """An empty copy-on-write table partitioned by date."""
    return HudiTable(tmp_path / "trips")


@pytest.fixture
def make_table(tmp_path):
    """Factory for tables with a non-default layout."""

    def _make(name: str = "table", **kwargs) -> HudiTable:
        return HudiTable(tmp_path / name, **kwargs)

    return _make


@pytest.fixture
def logger():
    return logging.getLogger("lakesync.tests")


@pytest.fixture
def fake_client(logger):
    return FakeCatalogClient(logger)


@pytest.fixture
def failing_client(logger):
    """Factory for a fake engine that rejects statements containing `text`."""

    def _make(text: str) -> FakeCatalogClient:
        return FakeCatalogClient(logger, fail_on=text)

    return _make


@pytest.fixture
def sync_config(hudi_table):
    return SyncConfig(
        table_name="trips",
        base_path=str(hudi_table.root),
        partition_fields=["date"],
        partition_extract_expr="regexp_extract(filename, 'date=([^/]+)', 1) AS date",
    )


# Environment setup for tests
@pytest.fixture(autouse=True)
def setup_test_env(monkeypatch):
    """Keep settings independent from the developer's environment."""
    for name in ("S3_ENDPOINT", "S3_ACCESS_KEY", "S3_SECRET_KEY", "DUCKDB_PATH", "LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)

    from lakesync.config import get_settings

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
