"""🪣 S3/MinIO storage via boto3."""

from __future__ import annotations

import boto3
from botocore.client import Config

from .base import Storage, join


def parse_s3_uri(uri: str) -> tuple[str, str]:
    """Split s3://bucket/key into (bucket, key).

    Example:
        parse_s3_uri("s3://hudi-demo/stock_ticks_cow")
        → ("hudi-demo", "stock_ticks_cow")
    """
    for scheme in ("s3://", "s3a://"):
        if uri.startswith(scheme):
            path_parts = uri[len(scheme):].split("/", 1)
            bucket = path_parts[0]
            key = path_parts[1] if len(path_parts) > 1 else ""
            return bucket, key.strip("/")
    raise ValueError(f"Path must start with s3://: {uri}")


def get_s3_client(
    endpoint: str | None = None,
    access_key: str | None = None,
    secret_key: str | None = None,
    region: str | None = None,
):
    """Get a boto3 S3 client (MinIO-compatible when an endpoint is given)."""
    return boto3.client(
        "s3",
        endpoint_url=endpoint,
        aws_access_key_id=access_key,
        aws_secret_access_key=secret_key,
        region_name=region,
        config=Config(signature_version="s3v4"),
    )


class S3Storage(Storage):
    """Storage rooted at an S3 prefix.

    A single `put_object` is already an atomic publish: S3 never serves a
    partially uploaded object, readers get the previous version until the
    upload completes.
    """

    def __init__(self, uri: str, client=None):
        self.bucket, self.prefix = parse_s3_uri(uri)
        self.client = client if client is not None else get_s3_client()

    def _key(self, path: str) -> str:
        return join(self.prefix, path)

    def list_files(self, prefix: str = "") -> list[str]:
        key_prefix = self._key(prefix)
        if key_prefix:
            key_prefix += "/"
        root = f"{self.prefix}/" if self.prefix else ""

        files = []
        paginator = self.client.get_paginator("list_objects_v2")
        for page in paginator.paginate(Bucket=self.bucket, Prefix=key_prefix):
            for obj in page.get("Contents", []):
                key = obj["Key"]
                if key.endswith("/"):
                    continue
                files.append(key[len(root):])
        return sorted(files)

    def read_text(self, path: str) -> str:
        response = self.client.get_object(Bucket=self.bucket, Key=self._key(path))
        return response["Body"].read().decode("utf-8")

    def write_text_atomic(self, path: str, text: str) -> None:
        self.client.put_object(
            Bucket=self.bucket,
            Key=self._key(path),
            Body=text.encode("utf-8"),
            ContentType="text/csv",
        )

    def exists(self, path: str) -> bool:
        response = self.client.list_objects_v2(
            Bucket=self.bucket, Prefix=self._key(path), MaxKeys=1
        )
        return any(obj["Key"] == self._key(path) for obj in response.get("Contents", []))

    def uri(self, path: str = "") -> str:
        key = self._key(path)
        return f"s3://{self.bucket}/{key}" if key else f"s3://{self.bucket}"

    def __repr__(self) -> str:
        return f"S3Storage(bucket={self.bucket!r}, prefix={self.prefix!r})"
