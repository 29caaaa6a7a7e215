"""
Structured logging with automatic run context propagation.

Architecture:
    ExecutionController.run() → generates run_id, sets workflow_id once
        ↓ (automatic propagation via ContextVar)
    per node → adds node_id to context
        ↓
    behavior code → logger.info("message") → gets the whole context
"""

import json
import logging
import os
import re
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Any

trace_context: ContextVar[dict[str, Any] | None] = ContextVar("trace_context", default=None)

ANSI_ESCAPE_PATTERN = re.compile(r"\x1b\[[0-9;]*m|\033\[[0-9;]*m")


def strip_ansi_codes(text: str) -> str:
    """Remove ANSI escape codes from text for clean JSON logging."""
    return ANSI_ESCAPE_PATTERN.sub("", text)


class StructuredFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    Produces one JSON object per record with:
    - Standard fields (timestamp, level, logger, message)
    - Run context (run_id, workflow_id, node_id) from the ContextVar
    - `event`, `service`, `latency_ms` when passed through `extra`
    """

    def format(self, record: logging.LogRecord) -> str:
        context = trace_context.get() or {}
        message = strip_ansi_codes(record.getMessage())

        log_entry = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": message,
        }
        log_entry.update(context)

        for key in ("event", "service", "latency_ms", "node_id"):
            value = getattr(record, key, None)
            if value is None:
                continue
            log_entry[key] = strip_ansi_codes(value) if isinstance(value, str) else value

        if record.exc_info:
            log_entry["exception"] = strip_ansi_codes(self.formatException(record.exc_info))

        return json.dumps(log_entry)


class HumanReadableFormatter(logging.Formatter):
    """Colorized single-line logs with a short run/node prefix."""

    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        context = trace_context.get() or {}
        run_id = context.get("run_id", "")
        workflow_id = context.get("workflow_id", "")
        node_id = context.get("node_id", "")

        prefix_parts = []
        if run_id:
            prefix_parts.append(f"run:{run_id[:8]}")
        if workflow_id:
            prefix_parts.append(f"wf:{workflow_id[-8:]}")
        if node_id:
            prefix_parts.append(f"node:{node_id}")
        context_prefix = f"[{' | '.join(prefix_parts)}] " if prefix_parts else ""

        color = self.COLORS.get(record.levelname, "")
        level = f"{record.levelname:<8}"

        event = ""
        record_event = getattr(record, "event", None)
        if record_event is not None:
            event = f" [{record_event}]"

        message = f"{color}[{level}]{self.RESET} {context_prefix}{record.getMessage()}{event}"
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"
        return message


def configure_logging(
    level: str = "INFO",
    format: str = "auto",  # "json", "human", or "auto"
) -> None:
    """
    Configure logging for the application. Call once at startup (the CLI does).

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format: Output format:
            - "json": Machine-parseable JSON
            - "human": Human-readable with colors
            - "auto": JSON if LOG_FORMAT=json or ENV=production, else human
    """
    if format == "auto":
        log_format_env = os.getenv("LOG_FORMAT", "").lower()
        env = os.getenv("ENV", "development").lower()
        format = "json" if log_format_env == "json" or env == "production" else "human"

    if format == "json":
        formatter: logging.Formatter = StructuredFormatter()
        os.environ["NO_COLOR"] = "1"
    else:
        formatter = HumanReadableFormatter()

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level.upper())

    # httpx logs every request at INFO
    for logger_name in ("httpx", "httpcore"):
        third_party = logging.getLogger(logger_name)
        third_party.handlers.clear()
        third_party.propagate = True
        if root_logger.level > logging.DEBUG:
            third_party.setLevel(logging.WARNING)


def set_trace_context(**kwargs: Any) -> None:
    """
    Merge fields into the trace context for the current execution.

    The context lives in a ContextVar and propagates through awaited calls
    in the same task.
    """
    current = trace_context.get() or {}
    trace_context.set({**current, **kwargs})


def get_trace_context() -> dict:
    context = trace_context.get() or {}
    return context.copy()


def clear_trace_context() -> None:
    trace_context.set(None)
