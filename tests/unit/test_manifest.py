"""🧪 Tests for manifest generation and storage backends."""

import os

import pytest

from lakesync.errors import ManifestWriteError
from lakesync.storage import LocalStorage, S3Storage, join, parse_s3_uri, storage_for
from lakesync.sync.manifest import (
    MANIFEST_PATH,
    ManifestWriter,
    parse_manifest,
    render_manifest,
)


class TestRenderManifest:
    """Tests for the manifest body."""

    def test_sorted_one_per_line(self):
        """Test paths are sorted, de-duplicated and newline terminated."""
        body = render_manifest(["b/2.parquet", "a/1.parquet", "b/2.parquet"])

        assert body == "a/1.parquet\nb/2.parquet\n"

    def test_empty(self):
        """Test an empty file set renders an empty manifest."""
        assert render_manifest([]) == ""
        assert parse_manifest("") == []

    def test_rejects_line_breaks(self):
        with pytest.raises(ValueError, match="line break"):
            render_manifest(["a/evil\rname.parquet"])

    def test_parse(self):
        assert parse_manifest("a.parquet\n\nb.parquet\n") == ["a.parquet", "b.parquet"]

    def test_quotes_commas_and_quote_chars(self):
        """Test partition values with CSV specials stay one value per row."""
        files = [
            'city=Paris, FR/a_1-0-1_20200101000000.parquet',
            'name=6" pipe/b_1-0-1_20200101000000.parquet',
            "date=2020-01-01/c_1-0-1_20200101000000.parquet",
        ]

        body = render_manifest(files)

        assert body == (
            '"city=Paris, FR/a_1-0-1_20200101000000.parquet"\n'
            "date=2020-01-01/c_1-0-1_20200101000000.parquet\n"
            '"name=6"" pipe/b_1-0-1_20200101000000.parquet"\n'
        )
        assert parse_manifest(body) == sorted(files)


class TestManifestWriter:
    """Tests for publishing the manifest."""

    @pytest.fixture
    def storage(self, tmp_path):
        return LocalStorage(tmp_path / "table")

    @pytest.fixture
    def writer(self, storage, logger):
        return ManifestWriter(storage, logger)

    def test_fixed_location(self, writer, storage, tmp_path):
        """Test the manifest lands under the metadata folder."""
        location = writer.write(["p=1/a_1-0-1_1.parquet"])

        assert location.path == MANIFEST_PATH
        assert location.uri == storage.uri(".hoodie/manifest/latest-snapshot.csv")
        assert location.file_count == 1
        assert (tmp_path / "table" / ".hoodie" / "manifest" / "latest-snapshot.csv").is_file()

    def test_overwrites_completely(self, writer):
        """Test a later write replaces, never appends."""
        writer.write(["a.parquet", "b.parquet", "c.parquet"])
        writer.write(["d.parquet"])

        assert writer.read() == ["d.parquet"]

    def test_file_count_with_quoted_paths(self, writer):
        location = writer.write(["city=Paris, FR/a.parquet", "city=Lyon/b.parquet"])

        assert location.file_count == 2
        assert writer.read() == ["city=Lyon/b.parquet", "city=Paris, FR/a.parquet"]

    def test_read_before_first_write(self, writer):
        assert writer.read() == []

    def test_failed_publish_keeps_previous(self, writer, storage, monkeypatch):
        """Test a failed rename leaves the old manifest and no temp file."""
        writer.write(["a.parquet"])

        def broken_replace(src, dst):
            raise OSError("disk full")

        monkeypatch.setattr(os, "replace", broken_replace)

        with pytest.raises(ManifestWriteError, match="disk full"):
            writer.write(["b.parquet"])

        monkeypatch.undo()
        assert writer.read() == ["a.parquet"]
        assert storage.list_files(".hoodie/manifest") == [MANIFEST_PATH]

    def test_invalid_path_is_a_write_error(self, writer):
        with pytest.raises(ManifestWriteError):
            writer.write(["a\nb.parquet"])


class TestLocalStorage:
    """Tests for LocalStorage."""

    def test_list_files(self, tmp_path):
        """Test recursive listing returns sorted relative paths."""
        (tmp_path / "b" / "c").mkdir(parents=True)
        (tmp_path / "b" / "c" / "2.txt").write_text("x")
        (tmp_path / "1.txt").write_text("x")

        storage = LocalStorage(tmp_path)

        assert storage.list_files() == ["1.txt", "b/c/2.txt"]
        assert storage.list_files("b") == ["b/c/2.txt"]
        assert storage.list_files("missing") == []

    def test_uri(self, tmp_path):
        storage = LocalStorage(tmp_path)

        assert storage.uri() == tmp_path.resolve().as_posix()
        assert storage.uri("/a/b.csv") == f"{tmp_path.resolve().as_posix()}/a/b.csv"

    def test_storage_for(self, tmp_path):
        assert isinstance(storage_for(str(tmp_path)), LocalStorage)
        assert storage_for(f"file://{tmp_path}").root == tmp_path


class TestS3Storage:
    """Tests for S3Storage against a stubbed boto3 client."""

    class StubClient:
        def __init__(self, keys):
            self.keys = keys
            self.puts = []

        def get_paginator(self, name):
            assert name == "list_objects_v2"
            return self

        def paginate(self, Bucket, Prefix):
            yield {"Contents": [{"Key": k} for k in self.keys if k.startswith(Prefix)]}

        def put_object(self, **kwargs):
            self.puts.append(kwargs)

    def test_parse_s3_uri(self):
        assert parse_s3_uri("s3://bucket/a/b/") == ("bucket", "a/b")
        assert parse_s3_uri("s3a://bucket") == ("bucket", "")
        with pytest.raises(ValueError):
            parse_s3_uri("/local/path")

    def test_list_relative_to_prefix(self):
        """Test keys come back relative to the table prefix."""
        client = self.StubClient(
            [
                "tables/trips/.hoodie/hoodie.properties",
                "tables/trips/p=1/a.parquet",
                "tables/trips/p=1/",
                "tables/trips_other/x.parquet",
            ]
        )
        storage = S3Storage("s3://lake/tables/trips", client=client)

        assert storage.list_files() == [".hoodie/hoodie.properties", "p=1/a.parquet"]
        assert storage.list_files(".hoodie") == [".hoodie/hoodie.properties"]

    def test_write_is_single_put(self):
        """Test publishing is one put_object of the whole body."""
        client = self.StubClient([])
        storage = S3Storage("s3://lake/trips", client=client)

        storage.write_text_atomic(MANIFEST_PATH, "a.parquet\n")

        assert len(client.puts) == 1
        assert client.puts[0]["Key"] == "trips/.hoodie/manifest/latest-snapshot.csv"
        assert client.puts[0]["Body"] == b"a.parquet\n"
        assert storage.uri(MANIFEST_PATH) == "s3://lake/trips/.hoodie/manifest/latest-snapshot.csv"

    def test_join(self):
        assert join("a/", "/b", "", "c") == "a/b/c"
