# ==============================
# Logging Bootstrap
# ==============================
"""
Logging bootstrap.

Goals:
- Centralize logger configuration using Settings.logging.
- Provide structured context fields (query_id, tool, path).
- Keep it simple: stdlib logging + JSON-line formatter.

Library modules only call logging.getLogger("nucleus.<area>"); handlers are
installed here, by the CLI / gateway entrypoints.
"""

from __future__ import annotations

import json
import logging
import sys
from dataclasses import dataclass
from typing import Any, Dict, Optional

from nucleus.config.schema import Settings

CONTEXT_FIELDS = ("query_id", "tool", "path")
PLAIN_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass(frozen=True)
class LogContext:
    query_id: Optional[str] = None
    tool: Optional[str] = None
    path: Optional[str] = None


class JsonLineFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        # Optional structured extras
        for k in CONTEXT_FIELDS:
            value = getattr(record, k, None)
            if value is not None:
                payload[k] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def bootstrap_logger(settings: Settings) -> logging.Logger:
    """
    Configure root logger based on settings.
    Returns a named logger ("nucleus").
    """
    level = getattr(logging, settings.logging.level.upper(), logging.INFO)
    root = logging.getLogger()
    root.setLevel(level)

    # clear existing handlers to avoid duplicates in reload
    root.handlers = []

    if settings.logging.console:
        # stderr keeps stdout free for CLI JSON output
        handler = logging.StreamHandler(sys.stderr)
        handler.setLevel(level)
        handler.setFormatter(JsonLineFormatter() if settings.logging.json_lines else logging.Formatter(PLAIN_FORMAT))
        root.addHandler(handler)
    else:
        root.addHandler(logging.NullHandler())

    return logging.getLogger("nucleus")


def with_context(logger: logging.Logger, ctx: LogContext) -> logging.LoggerAdapter:
    return logging.LoggerAdapter(
        logger,
        {
            "query_id": ctx.query_id,
            "tool": ctx.tool,
            "path": ctx.path,
        },
    )
