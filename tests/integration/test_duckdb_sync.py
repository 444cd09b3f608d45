"""🧪 Integration tests for syncing a local table into DuckDB.

Runs against an embedded database file, no services needed. Base files are
real parquet files written with pyarrow.
"""

import pytest

duckdb = pytest.importorskip("duckdb")
pytest.importorskip("pyarrow")

from lakesync.config import Settings, SyncConfig  # noqa: E402
from lakesync.engine import ObjectNames  # noqa: E402
from lakesync.engine.duckdb import DuckDBCatalogClient  # noqa: E402
from lakesync.storage import LocalStorage  # noqa: E402
from lakesync.sync import SyncOrchestrator  # noqa: E402
from lakesync import sync_table  # noqa: E402

P = "date=2020-01-01"


class TestDuckDBSync:
    """End-to-end sync into DuckDB."""

    @pytest.fixture
    def database(self, tmp_path):
        return str(tmp_path / "lake.duckdb")

    @pytest.fixture
    def config(self, hudi_table, database):
        return SyncConfig(
            table_name="trips",
            base_path=str(hudi_table.root),
            database=database,
            partition_fields=["date"],
            partition_extract_expr="regexp_extract(filename, 'date=([^/]+)', 1) AS date",
        )

    def sync(self, config, logger):
        with DuckDBCatalogClient(config.database, logger) as client:
            return SyncOrchestrator(
                config, LocalStorage(config.base_path), client, logger
            ).sync()

    def query(self, database, sql):
        conn = duckdb.connect(database, read_only=True)
        try:
            return conn.execute(sql).df()
        finally:
            conn.close()

    def test_snapshot_shows_only_latest_versions(self, hudi_table, config, database, logger):
        """Test superseded rows stay in versions but not in the snapshot."""
        a1 = hudi_table.write_file(P, "a", "20200101000000", {"id": [1, 2], "price": [10.0, 11.0]})
        b1 = hudi_table.write_file(P, "b", "20200101000000", {"id": [3], "price": [12.0]})
        hudi_table.commit("20200101000000", [a1, b1])

        result = self.sync(config, logger)
        assert result.file_count == 2

        snapshot = self.query(database, 'SELECT id, date FROM "main"."trips" ORDER BY id')
        assert snapshot["id"].tolist() == [1, 2, 3]
        assert set(snapshot["date"]) == {"2020-01-01"}

        # Upsert of id 2 rewrites file group `a`
        a2 = hudi_table.write_file(P, "a", "20200102000000", {"id": [1, 2], "price": [10.0, 99.0]})
        hudi_table.commit("20200102000000", [a2])
        result = self.sync(config, logger)

        assert result.created == []
        versions = self.query(database, 'SELECT count(*) AS n FROM "main"."trips_versions"')
        assert versions["n"].iloc[0] == 5
        snapshot = self.query(database, 'SELECT id, price FROM "main"."trips" ORDER BY id')
        assert snapshot["price"].tolist() == [10.0, 99.0, 12.0]

    def test_inflight_commit_is_invisible(self, hudi_table, config, database, logger):
        """Test files of a running write never reach the snapshot."""
        a1 = hudi_table.write_file(P, "a", "20200101000000", {"id": [1], "price": [1.0]})
        hudi_table.commit("20200101000000", [a1])
        hudi_table.write_file(P, "b", "20200102000000", {"id": [2], "price": [2.0]})
        hudi_table.start("20200102000000")

        self.sync(config, logger)

        snapshot = self.query(database, 'SELECT id FROM "main"."trips"')
        assert snapshot["id"].tolist() == [1]

    def test_replacecommit_moves_readers(self, hudi_table, config, database, logger):
        """Test a replaced file group drops out after the manifest refresh."""
        a1 = hudi_table.write_file(P, "a", "20200101000000", {"id": [1], "price": [1.0]})
        b1 = hudi_table.write_file(P, "b", "20200101000000", {"id": [2], "price": [2.0]})
        hudi_table.commit("20200101000000", [a1, b1])
        self.sync(config, logger)

        c2 = hudi_table.write_file(P, "c", "20200102000000", {"id": [3], "price": [3.0]})
        hudi_table.replace("20200102000000", [c2], {P: ["a"]})
        self.sync(config, logger)

        snapshot = self.query(database, 'SELECT id FROM "main"."trips" ORDER BY id')
        assert snapshot["id"].tolist() == [2, 3]

    def test_custom_schema_and_sync_table(self, hudi_table, database, logger):
        """Test the public entrypoint creates the target schema."""
        a1 = hudi_table.write_file(P, "a", "20200101000000", {"id": [1], "price": [1.0]})
        hudi_table.commit("20200101000000", [a1])
        config = SyncConfig(
            table_name="trips",
            base_path=str(hudi_table.root),
            database=database,
            schema_name="lake",
        )

        result = sync_table(config, Settings(), logger)

        assert result.created == [
            '"lake"."trips_versions"',
            '"lake"."trips_manifest"',
            '"lake"."trips"',
        ]
        with DuckDBCatalogClient(database, logger) as client:
            names = ObjectNames.from_config(config)
            assert client.object_exists(names, names.snapshot)
            assert len(client.query('SELECT * FROM "lake"."trips"')) == 1

    def test_partition_path_with_comma(self, hudi_table, config, database, logger):
        """Test a partition value holding a comma stays readable."""
        a1 = hudi_table.write_file(
            "city=Paris, FR", "a", "20200101000000", {"id": [1], "price": [1.0]}
        )
        b1 = hudi_table.write_file(
            "city=Lyon", "b", "20200101000000", {"id": [2], "price": [2.0]}
        )
        hudi_table.commit("20200101000000", [a1, b1])

        result = self.sync(config, logger)

        assert result.file_count == 2
        snapshot = self.query(
            database, 'SELECT id, _hoodie_file_path FROM "main"."trips" ORDER BY id'
        )
        assert snapshot["id"].tolist() == [1, 2]
        assert snapshot["_hoodie_file_path"].tolist() == [a1, b1]

    def test_stored_partition_column_appears_once(self, hudi_table, config, database, logger):
        """Test the derived partition column replaces the copy stored in the files."""
        a1 = hudi_table.write_file(
            P, "a", "20200101000000", {"id": [1], "date": ["stored-value"]}
        )
        hudi_table.commit("20200101000000", [a1])

        self.sync(config, logger)

        snapshot = self.query(database, 'SELECT * FROM "main"."trips"')
        assert [c for c in snapshot.columns if c.startswith("date")] == ["date"]
        assert snapshot["date"].tolist() == ["2020-01-01"]
        assert snapshot["id"].tolist() == [1]
