#!/usr/bin/env python3
"""
🔄 lakesync CLI - Snapshot-consistent Hudi tables in your query engine.

Usage:
    lakesync sync --base-path <path> --table-name <name>    Sync a table
    lakesync sync --config sync.yaml                        Sync from a config file
    lakesync manifest --base-path <path> --table-name <n>   Refresh the manifest only
    lakesync files --base-path <path>                       Print the valid file set
    lakesync preview --config sync.yaml                     Query the snapshot view
    lakesync --help                                         Show help
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

import yaml
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from lakesync import __version__
from lakesync.config import (
    EngineKind,
    RefreshPolicy,
    Settings,
    SyncConfig,
    get_settings,
    load_yaml_mapping,
)
from lakesync.errors import LakesyncError
from lakesync.log import get_logger

console = Console()


def _config_from_args(args: argparse.Namespace) -> SyncConfig | None:
    """Build the sync config from --config and/or flags (flags win).

    Returns None when required options are missing.
    """
    data: dict = {}
    if getattr(args, "config", None):
        data = load_yaml_mapping(args.config)

    overrides = {
        "table_name": args.table_name,
        "base_path": args.base_path,
        "engine": getattr(args, "engine", None),
        "partition_fields": getattr(args, "partitioned_by", None),
        "partition_extract_expr": getattr(args, "partition_extract_expr", None),
        "database": getattr(args, "database", None),
        "schema_name": getattr(args, "schema", None),
        "storage_integration": getattr(args, "storage_integration", None),
        "refresh_policy": getattr(args, "refresh", None),
    }
    data.update({k: v for k, v in overrides.items() if v is not None})

    if not data.get("table_name") or not data.get("base_path"):
        return None
    return SyncConfig(**data)


def _require_config(parser: argparse.ArgumentParser, args: argparse.Namespace) -> SyncConfig:
    try:
        config = _config_from_args(args)
    except (ValidationError, ValueError, OSError, yaml.YAMLError) as e:
        console.print(f"[red]Error:[/red] Invalid configuration: {e}")
        sys.exit(1)

    if config is None:
        parser.print_usage()
        console.print("[red]Error:[/red] --table-name and --base-path are required")
        sys.exit(1)
    return config


def run_sync(config: SyncConfig, settings: Settings) -> None:
    """Sync a table and print a summary."""
    from lakesync.engine import client_for
    from lakesync.storage import storage_for
    from lakesync.sync import SyncOrchestrator

    logger = get_logger("lakesync", level=settings.log_level)
    storage = storage_for(config.base_path, settings)

    console.print(
        f"🔄 Syncing [cyan]{config.table_name}[/cyan] into [cyan]{config.engine.value}[/cyan]..."
    )
    try:
        with client_for(config, settings, logger) as client:
            result = SyncOrchestrator(config, storage, client, logger).sync()
    except LakesyncError as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)

    created = "\n".join(f"  • {name}" for name in result.created) or "  (none, all objects existed)"
    console.print(
        Panel(
            f"""[green]✓[/green] {result.file_count} valid file(s) in manifest
[dim]{result.manifest.uri if result.manifest else ''}[/dim]

[bold]Created:[/bold]
{created}""",
            title=f"🔄 {config.snapshot_view_name} synced",
            border_style="green",
        )
    )


def run_manifest(config: SyncConfig, settings: Settings) -> None:
    """Rewrite only the manifest."""
    from lakesync.storage import storage_for
    from lakesync.sync import write_manifest

    logger = get_logger("lakesync", level=settings.log_level)
    try:
        location = write_manifest(config.table_name, storage_for(config.base_path, settings), logger)
    except LakesyncError as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)
    console.print(f"[green]✓[/green] {location.file_count} file(s) → {location.uri}")


def list_files(base_path: str, settings: Settings) -> None:
    """Print the files valid as of the latest commit. Writes nothing."""
    from lakesync.storage import storage_for
    from lakesync.table import CommitListing

    logger = get_logger("lakesync", level=settings.log_level)
    listing = CommitListing(storage_for(base_path, settings), logger)
    try:
        files = listing.valid_files()
    except LakesyncError as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)

    for path in files:
        console.print(path, markup=False, highlight=False)
    console.print(f"[dim]{len(files)} file(s)[/dim]")


def preview(config: SyncConfig, settings: Settings, limit: int = 10) -> None:
    """Query the snapshot view and print the first rows."""
    from lakesync.engine import ObjectNames, client_for

    logger = get_logger("lakesync", level=settings.log_level)
    names = ObjectNames.from_config(config)

    try:
        with client_for(config, settings, logger) as client:
            client.prepare_location(config.base_path)
            df = client.query(
                f"SELECT * FROM {client.qualify(names, names.snapshot)} LIMIT {int(limit)}"
            )
    except LakesyncError as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)

    table = Table(title=f"{config.snapshot_view_name} ({len(df)} row(s))")
    for column in df.columns:
        table.add_column(str(column))
    for row in df.itertuples(index=False):
        table.add_row(*(str(value) for value in row))
    console.print(table)


def _add_table_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--config", "-c", type=Path, help="YAML sync configuration")
    parser.add_argument("--base-path", "-b", help="Base path of the Hudi table")
    parser.add_argument("--table-name", "-t", help="Name of the snapshot view")


def _add_engine_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--engine",
        "-e",
        choices=[e.value for e in EngineKind],
        help="Query engine (default: duckdb)",
    )
    parser.add_argument("--database", "-d", help="DuckDB file or ClickHouse database")
    parser.add_argument("--schema", "-s", help="Target schema (default: main)")
    parser.add_argument(
        "--storage-integration",
        help="Engine-side storage integration (ClickHouse named collection)",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lakesync",
        description="🔄 lakesync - Snapshot-consistent Hudi tables in your query engine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  lakesync sync -b s3://hudi-demo/stock_ticks_cow -t stock_ticks_cow \\
      --partitioned-by date \\
      --partition-extract-expr "regexp_extract(filename, 'date=([^/]+)', 1) AS date"
  lakesync sync -c sync.yaml           Sync using a config file
  lakesync manifest -c sync.yaml       Refresh visibility without touching the engine
  lakesync files -b ./stock_ticks_cow  Show valid files
  lakesync preview -c sync.yaml        Show the first rows of the snapshot view
        """,
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # sync command
    sync_parser = subparsers.add_parser("sync", help="Sync a table into the engine")
    _add_table_options(sync_parser)
    _add_engine_options(sync_parser)
    sync_parser.set_defaults(subparser=sync_parser)
    sync_parser.add_argument(
        "--partitioned-by", "-p", help="Comma separated partition fields"
    )
    sync_parser.add_argument(
        "--partition-extract-expr",
        help="Engine expression deriving partition columns from `filename`",
    )
    sync_parser.add_argument(
        "--refresh",
        choices=[p.value for p in RefreshPolicy],
        help="Recreate the versions table on every run (default: never)",
    )

    # manifest command
    manifest_parser = subparsers.add_parser("manifest", help="Rewrite the manifest only")
    _add_table_options(manifest_parser)
    manifest_parser.set_defaults(subparser=manifest_parser)

    # files command
    files_parser = subparsers.add_parser("files", help="Print the valid file set")
    files_parser.add_argument("--base-path", "-b", required=True, help="Base path of the Hudi table")

    # preview command
    preview_parser = subparsers.add_parser("preview", help="Query the snapshot view")
    _add_table_options(preview_parser)
    _add_engine_options(preview_parser)
    preview_parser.set_defaults(subparser=preview_parser)
    preview_parser.add_argument("--limit", "-n", type=int, default=10, help="Rows to show")

    # version
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def main(argv: list[str] | None = None) -> None:
    """Main CLI entrypoint."""
    parser = build_parser()
    args = parser.parse_args(argv)
    settings = get_settings()

    if args.command == "sync":
        run_sync(_require_config(args.subparser, args), settings)
    elif args.command == "manifest":
        run_manifest(_require_config(args.subparser, args), settings)
    elif args.command == "files":
        list_files(args.base_path, settings)
    elif args.command == "preview":
        preview(_require_config(args.subparser, args), settings, args.limit)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
