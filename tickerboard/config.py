"""Settings (TICKERBOARD_* env vars) and the symbol list file."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .errors import ConfigError
from .models import MAX_SYMBOLS

DEFAULT_SYMBOLS = ["BTCUSDT", "ETHUSDT", "BNBUSDT"]
DEFAULT_SYMBOLS_FILE = "~/.tickerboard.conf"


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    val = os.environ.get(name)
    if val is None or not val.strip():
        return default
    return val.strip()


def _float_env(name: str, default: float) -> float:
    raw = _env(name)
    try:
        return float(raw) if raw is not None else default
    except ValueError:
        return default


def _int_env(name: str, default: int) -> int:
    raw = _env(name)
    try:
        return int(raw) if raw is not None else default
    except ValueError:
        return default


@dataclass
class Settings:
    api_base: str = field(default_factory=lambda: _env("TICKERBOARD_API_BASE", "https://api.binance.com") or "")
    http_timeout_s: float = field(default_factory=lambda: _float_env("TICKERBOARD_HTTP_TIMEOUT", 10.0))
    refresh_interval_s: int = field(default_factory=lambda: _int_env("TICKERBOARD_REFRESH_INTERVAL", 5))
    input_timeout_ms: int = field(default_factory=lambda: _int_env("TICKERBOARD_INPUT_TIMEOUT_MS", 1000))
    symbols_file: Path = field(default_factory=lambda: Path(
        _env("TICKERBOARD_SYMBOLS_FILE", DEFAULT_SYMBOLS_FILE) or DEFAULT_SYMBOLS_FILE
    ).expanduser())
    log_level: str = field(default_factory=lambda: (_env("TICKERBOARD_LOG_LEVEL", "INFO") or "INFO").upper())
    log_format: str = field(default_factory=lambda: (_env("TICKERBOARD_LOG_FORMAT", "plain") or "plain").lower())
    log_file: Optional[str] = field(default_factory=lambda: _env("TICKERBOARD_LOG_FILE"))

    def __post_init__(self) -> None:
        self.symbols_file = Path(self.symbols_file).expanduser()
        self.http_timeout_s = max(1.0, float(self.http_timeout_s))
        self.refresh_interval_s = max(1, int(self.refresh_interval_s))
        self.input_timeout_ms = max(50, int(self.input_timeout_ms))
        if self.log_format not in ("plain", "json"):
            raise ConfigError(f"unsupported log format: {self.log_format}", detail={"log_format": self.log_format})


def _dedup_keep_order(items: list[str]) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for x in items:
        if x in seen:
            continue
        seen.add(x)
        out.append(x)
    return out


_SYMBOL_RE = re.compile(r"^[A-Z0-9]{2,20}$")


def normalize_symbols(tokens: list[str]) -> list[str]:
    """
    Normalize spot pair symbols to the exchange form.

    Accept examples:
      - BTCUSDT
      - btcusdt  -> BTCUSDT
      - BTC/USDT -> BTCUSDT
      - BTC-USDT / BTC_USDT -> BTCUSDT
    Anything else (control chars, punctuation, over-long) is dropped.
    """
    out: list[str] = []
    for token in tokens:
        t = (token or "").strip().upper()
        if not t or t.startswith("#"):
            continue
        for sep in ("/", "-", "_"):
            t = t.replace(sep, "")
        if not _SYMBOL_RE.match(t):
            continue
        out.append(t)
    return _dedup_keep_order(out)[:MAX_SYMBOLS]


def parse_symbol_arg(raw: str) -> list[str]:
    return normalize_symbols((raw or "").replace(" ", "").split(","))


def load_symbols(path: str | Path) -> list[str]:
    """One symbol per line; a missing file yields the default list."""
    p = Path(path).expanduser()
    if not p.exists():
        return list(DEFAULT_SYMBOLS)
    try:
        lines = p.read_text(encoding="utf-8").splitlines()
    except OSError as exc:
        raise ConfigError(f"cannot read symbols file {p}: {exc}", detail={"path": str(p)}) from exc
    return normalize_symbols(lines)


def save_symbols(path: str | Path, symbols: list[str]) -> None:
    p = Path(path).expanduser()
    cleaned = normalize_symbols(list(symbols))
    try:
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text("".join(f"{s}\n" for s in cleaned), encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"cannot write symbols file {p}: {exc}", detail={"path": str(p)}) from exc
