"""⚙️ Sync Configuration - Immutable pydantic models for a sync run.

`SyncConfig` describes one table and where it should appear; it is frozen
and validated at construction so a run can never start half-configured.
`Settings` carries credentials from the environment (never from the YAML).
"""

from __future__ import annotations

import re
from enum import Enum
from functools import lru_cache
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

MANIFEST_SUFFIX = "_manifest"
VERSIONS_SUFFIX = "_versions"


class EngineKind(str, Enum):
    """Supported query engines."""

    DUCKDB = "duckdb"
    CLICKHOUSE = "clickhouse"


class RefreshPolicy(str, Enum):
    """What to do with an existing raw file catalog on later runs.

    NEVER keeps the object created by the first run untouched. ALWAYS
    drops and recreates it, for engines whose catalog snapshots the file
    list at creation time instead of scanning storage on every query.
    """

    NEVER = "never"
    ALWAYS = "always"


def load_yaml_mapping(path: Path | str) -> dict:
    """Read the raw sync mapping from YAML, without validating it.

    Accepts either a top-level mapping or one nested under `sync:`.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if isinstance(data, dict) and "sync" in data:
        data = data["sync"]
    if not isinstance(data, dict):
        raise ValueError(f"Expected a mapping in {path}")
    return data


class SyncConfig(BaseModel):
    """Configuration of a single table sync.

    Example:
        config = SyncConfig(
            table_name="stock_ticks_cow",
            base_path="s3://hudi-demo/stock_ticks_cow",
            partition_fields=["date"],
            partition_extract_expr="regexp_extract(filename, 'date=([^/]+)', 1) AS date",
        )
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    table_name: str = Field(description="Name of the snapshot view in the engine")
    base_path: str = Field(description="Base storage location of the table")
    engine: EngineKind = Field(default=EngineKind.DUCKDB)
    partition_fields: tuple[str, ...] = Field(
        default=(),
        description="Ordered partition field names",
    )
    partition_extract_expr: str | None = Field(
        default=None,
        description="Engine-native expression deriving partition columns from the file path",
    )
    database: str | None = Field(
        default=None,
        description="Target database/catalog (DuckDB file or ClickHouse database)",
    )
    schema_name: str = Field(default="main", description="Target schema/namespace")
    storage_integration: str | None = Field(
        default=None,
        description="Name of the engine-side storage integration or secret",
    )
    refresh_policy: RefreshPolicy = Field(default=RefreshPolicy.NEVER)

    @field_validator("table_name", "schema_name")
    @classmethod
    def _check_identifier(cls, value: str) -> str:
        if not _IDENTIFIER.match(value):
            raise ValueError(f"not a valid SQL identifier: {value!r}")
        return value

    @field_validator("base_path")
    @classmethod
    def _check_base_path(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("base_path must not be empty")
        return value.rstrip("/")

    @field_validator("partition_fields", mode="before")
    @classmethod
    def _split_partition_fields(cls, value: object) -> object:
        if isinstance(value, str):
            return tuple(f.strip() for f in value.split(",") if f.strip())
        return value

    @field_validator("partition_extract_expr")
    @classmethod
    def _blank_expr_is_none(cls, value: str | None) -> str | None:
        if value is not None and not value.strip():
            return None
        return value

    @property
    def manifest_table_name(self) -> str:
        return self.table_name + MANIFEST_SUFFIX

    @property
    def versions_table_name(self) -> str:
        return self.table_name + VERSIONS_SUFFIX

    @property
    def snapshot_view_name(self) -> str:
        return self.table_name

    @classmethod
    def from_yaml(cls, path: Path | str) -> SyncConfig:
        """Load configuration from a YAML file.

        Accepts either a top-level mapping or one nested under `sync:`.
        """
        return cls(**load_yaml_mapping(path))


class Settings(BaseSettings):
    """Environment-based settings."""

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=False)

    # S3/MinIO
    s3_endpoint: str | None = Field(default=None)
    s3_access_key: str | None = Field(default=None)
    s3_secret_key: str | None = Field(default=None)
    s3_region: str = Field(default="us-east-1")

    # ClickHouse
    clickhouse_host: str = Field(default="localhost")
    clickhouse_port: int = Field(default=8123)
    clickhouse_user: str = Field(default="default")
    clickhouse_password: str = Field(default="")

    # DuckDB
    duckdb_path: str = Field(default="lakesync.duckdb")

    # Engine call retries
    engine_max_attempts: int = Field(default=3, ge=1)

    log_level: str = Field(default="INFO")


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings from environment."""
    return Settings()
