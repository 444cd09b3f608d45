"""📝 Logging - Rich console handler and per-table context binding.

Loggers are created once by the entrypoint and handed to every component,
so the core never reaches for a module-level logger.

Example:
    logger = get_logger("lakesync", level="DEBUG")
    log = bind(logger, table="stock_ticks")
    log.info("Manifest written")   # → [stock_ticks] Manifest written
"""

from __future__ import annotations

import logging
from typing import Any

from rich.console import Console
from rich.logging import RichHandler


class TableLogAdapter(logging.LoggerAdapter):
    """Prefixes every message with the bound table name."""

    def process(self, msg: Any, kwargs: Any) -> tuple[Any, Any]:
        extra = dict(self.extra or {})
        extra.update(kwargs.get("extra") or {})
        kwargs["extra"] = extra
        table = extra.get("table")
        if table:
            return f"[{table}] {msg}", kwargs
        return msg, kwargs


def get_logger(
    name: str = "lakesync",
    level: str | None = None,
    console: Console | None = None,
) -> logging.Logger:
    """Get a logger with rich formatting.

    Args:
        name: Logger name
        level: Log level name (default: INFO)
        console: Console to render to (default: stderr)

    Returns:
        Configured logger
    """
    logger = logging.getLogger(name)

    log_level = getattr(logging, level.upper(), logging.INFO) if level else logging.INFO
    logger.setLevel(log_level)

    # Avoid adding handlers multiple times
    if not logger.handlers:
        handler = RichHandler(
            console=console or Console(stderr=True),
            show_time=True,
            show_path=False,
            markup=False,
            rich_tracebacks=True,
        )
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)

    return logger


def bind(logger: logging.Logger | logging.LoggerAdapter, **context: Any) -> TableLogAdapter:
    """Attach structured context (table name, engine, ...) to a logger."""
    if isinstance(logger, logging.LoggerAdapter):
        merged = dict(logger.extra or {})
        merged.update(context)
        return TableLogAdapter(logger.logger, merged)
    return TableLogAdapter(logger, context)


Logger = logging.Logger | logging.LoggerAdapter
