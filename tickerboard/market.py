"""Binance spot REST -> TickerRow / Candle (public endpoints, no API key).

Endpoints:
- /api/v3/ticker/24hr?symbol=<SYMBOL>
- /api/v3/klines?symbol=<SYMBOL>&interval=<I>&limit=<N>

Every failure (connection, timeout, HTTP status, malformed payload) is raised
as FetchError; callers decide whether it is silent or user-visible.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Protocol

import requests

from .errors import FetchError
from .models import Candle, Period, TickerRow

logger = logging.getLogger(__name__)

DEFAULT_API_BASE = "https://api.binance.com"

_HEADERS = {
    "User-Agent": "tickerboard/0.1",
    "Accept": "application/json",
}


class MarketDataSource(Protocol):
    def fetch_ticker(self, symbol: str) -> TickerRow: ...

    def fetch_candles(self, symbol: str, period: Period) -> list[Candle]: ...


def _to_float(value: object) -> float:
    try:
        return float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError, OverflowError):
        return 0.0


def _to_int(value: object) -> int:
    try:
        return int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError, OverflowError):
        return 0


def _text(value: object) -> str:
    return value.strip() if isinstance(value, str) else ""


def parse_ticker(symbol: str, payload: Any, *, now_ts: int | None = None) -> TickerRow:
    if not isinstance(payload, dict):
        raise FetchError(f"unexpected ticker payload for {symbol}", detail={"symbol": symbol})
    if "lastPrice" not in payload:
        raise FetchError(f"ticker payload for {symbol} has no lastPrice", detail={"symbol": symbol})

    close_ms = _to_int(payload.get("closeTime"))
    ts = close_ms // 1000 if close_ms > 0 else int(now_ts if now_ts is not None else time.time())
    return TickerRow(
        symbol=symbol,
        price=_to_float(payload.get("lastPrice")),
        change_pct=_to_float(payload.get("priceChangePercent")),
        high=_to_float(payload.get("highPrice")),
        low=_to_float(payload.get("lowPrice")),
        base_volume=_to_float(payload.get("volume")),
        quote_volume=_to_float(payload.get("quoteVolume")),
        trade_count=_to_int(payload.get("count")),
        timestamp=ts,
        price_text=_text(payload.get("lastPrice")),
        high_text=_text(payload.get("highPrice")),
        low_text=_text(payload.get("lowPrice")),
    )


def parse_kline(row: Any) -> Candle | None:
    """One kline array -> Candle, or None if the row is malformed."""
    if not isinstance(row, (list, tuple)) or len(row) < 7:
        return None
    open_ms, close_ms = row[0], row[6]
    if not isinstance(open_ms, int) or not isinstance(close_ms, int):
        return None
    if not all(isinstance(v, str) for v in row[1:5]):
        return None
    try:
        o, h, lo, c = (float(v) for v in row[1:5])
    except ValueError:
        return None

    def _at(i: int) -> object:
        return row[i] if len(row) > i else None

    return Candle(
        open_time=open_ms // 1000,
        close_time=close_ms // 1000,
        open=o,
        high=h,
        low=lo,
        close=c,
        volume=_to_float(_at(5)),
        quote_volume=_to_float(_at(7)),
        trade_count=_to_int(_at(8)),
        taker_buy_base_volume=_to_float(_at(9)),
        taker_buy_quote_volume=_to_float(_at(10)),
        open_text=row[1].strip(),
        high_text=row[2].strip(),
        low_text=row[3].strip(),
        close_text=row[4].strip(),
    )


def parse_klines(payload: Any) -> list[Candle]:
    if not isinstance(payload, list):
        raise FetchError("unexpected klines payload")
    out: list[Candle] = []
    for raw in payload:
        candle = parse_kline(raw)
        if candle is not None:
            out.append(candle)
    return out


class BinanceMarketSource:
    def __init__(self, base_url: str = DEFAULT_API_BASE, timeout_s: float = 10.0,
                 session: requests.Session | None = None) -> None:
        self._base = (base_url or DEFAULT_API_BASE).rstrip("/")
        self._timeout_s = max(1.0, float(timeout_s))
        self._session = session or requests.Session()
        self._session.headers.update(_HEADERS)

    def close(self) -> None:
        self._session.close()

    def _get_json(self, path: str, params: dict[str, Any]) -> Any:
        url = f"{self._base}{path}"
        try:
            resp = self._session.get(url, params=params, timeout=self._timeout_s)
            resp.raise_for_status()
            return resp.json()
        except requests.RequestException as exc:
            raise FetchError(f"{type(exc).__name__}: {exc}", detail={"url": url, "params": params}) from exc
        except ValueError as exc:
            # json decoding
            raise FetchError(f"invalid JSON from {path}: {exc}", detail={"url": url, "params": params}) from exc

    def fetch_ticker(self, symbol: str) -> TickerRow:
        payload = self._get_json("/api/v3/ticker/24hr", {"symbol": symbol})
        return parse_ticker(symbol, payload)

    def fetch_candles(self, symbol: str, period: Period) -> list[Candle]:
        payload = self._get_json(
            "/api/v3/klines",
            {"symbol": symbol, "interval": period.interval, "limit": period.limit},
        )
        candles = parse_klines(payload)
        logger.debug("klines symbol=%s interval=%s count=%d", symbol, period.interval, len(candles))
        return candles
