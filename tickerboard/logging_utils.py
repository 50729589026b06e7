"""Logging setup: plain or JSON lines, console and/or file."""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict

DEFAULT_PLAIN_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"


def _env(name: str, default: str | None = None) -> str | None:
    val = os.getenv(name)
    if val is None:
        return default
    return val


def _normalize_level(level: str | None) -> int:
    raw = (level or "INFO").upper()
    if raw == "WARN":
        raw = "WARNING"
    return getattr(logging, raw, logging.INFO)


def _resolve_log_file(log_file: str | None) -> str | None:
    if not log_file:
        return None
    if log_file.lower() in ("none", "null", "stdout", "stderr"):
        return None

    path = Path(log_file).expanduser()
    if path.is_absolute():
        return str(path)

    log_dir = _env("TICKERBOARD_LOG_DIR")
    if log_dir:
        return str(Path(log_dir).expanduser() / path)
    return str(path)


class JsonFormatter(logging.Formatter):
    """One JSON object per record."""

    _RESERVED = {
        "args", "asctime", "created", "exc_info", "exc_text", "filename", "funcName", "levelname",
        "levelno", "lineno", "module", "msecs", "message", "msg", "name", "pathname", "process",
        "processName", "relativeCreated", "stack_info", "thread", "threadName", "taskName",
    }

    def __init__(self, component: str | None = None):
        super().__init__()
        self._component = component

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "module": record.module,
            "line": record.lineno,
            "thread": record.threadName,
        }
        if self._component:
            payload["component"] = self._component

        if record.exc_info:
            payload["exc_type"] = record.exc_info[0].__name__ if record.exc_info[0] else ""
            payload["exc"] = self.formatException(record.exc_info)

        extra = {k: v for k, v in record.__dict__.items() if k not in self._RESERVED}
        if extra:
            payload.update(extra)

        return json.dumps(payload, ensure_ascii=False, default=str)


def _make_formatter(fmt_val: str, component: str | None) -> logging.Formatter:
    if fmt_val == "json":
        return JsonFormatter(component=component)
    return logging.Formatter(DEFAULT_PLAIN_FORMAT)


def setup_logging(level: str | None = None, fmt: str | None = None,
                  component: str | None = None, log_file: str | None = None,
                  console: bool = True) -> None:
    """Initialise the root logger.

    - TICKERBOARD_LOG_LEVEL: DEBUG/INFO/WARNING/ERROR
    - TICKERBOARD_LOG_FORMAT: plain/json
    - TICKERBOARD_LOG_FILE: log file (relative paths resolve under TICKERBOARD_LOG_DIR)

    The curses UI owns the terminal, so it calls this with console=False; with
    no file configured either, records are dropped.
    """
    level_val = _normalize_level(level or _env("TICKERBOARD_LOG_LEVEL", "INFO"))
    fmt_val = (fmt or _env("TICKERBOARD_LOG_FORMAT", "plain") or "plain").lower()

    handlers: list[logging.Handler] = []
    if console:
        stream_handler = logging.StreamHandler(sys.stderr)
        stream_handler.setFormatter(_make_formatter(fmt_val, component))
        handlers.append(stream_handler)

    file_path = _resolve_log_file(log_file or _env("TICKERBOARD_LOG_FILE"))
    if file_path:
        Path(file_path).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(file_path, encoding="utf-8")
        file_handler.setFormatter(_make_formatter(fmt_val, component))
        handlers.append(file_handler)

    if not handlers:
        handlers.append(logging.NullHandler())

    logging.basicConfig(level=level_val, handlers=handlers, force=True)


def get_logger(name: str, component: str | None = None) -> logging.LoggerAdapter:
    base = logging.getLogger(name)
    if component:
        return logging.LoggerAdapter(base, {"component": component})
    return logging.LoggerAdapter(base, {})
