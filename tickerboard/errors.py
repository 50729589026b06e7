"""Error types and the process entry guard."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional


class TickerboardError(Exception):
    """Base class for every error raised by tickerboard."""

    code = "tickerboard_error"

    def __init__(self, message: str, *, code: Optional[str] = None, detail: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.code = code or self.code
        self.detail = detail or {}


class ConfigError(TickerboardError):
    code = "config_error"


class FetchError(TickerboardError):
    """Ticker or candle retrieval failed (network, HTTP status, or payload)."""

    code = "fetch_error"


class StartupError(TickerboardError):
    """Fatal: raised only before the main loop starts."""

    code = "startup_error"


def safe_main(main_func: Callable[[], None], component: Optional[str] = None) -> int:
    """Run main_func and map its outcome to a process exit code."""
    logger = logging.getLogger(component or __name__)
    try:
        main_func()
        return 0
    except KeyboardInterrupt:
        logger.warning("interrupted, exiting")
        return 130
    except TickerboardError as exc:
        logger.error("run failed: %s", exc, extra={"error_code": exc.code, "error_detail": exc.detail})
        return 2
    except Exception as exc:
        logger.exception("unhandled exception: %s", exc)
        return 1
