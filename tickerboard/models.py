from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

MAX_SYMBOLS = 50


@dataclass(frozen=True)
class TickerRow:
    symbol: str
    price: float = 0.0
    change_pct: float = 0.0
    high: float = 0.0
    low: float = 0.0
    base_volume: float = 0.0
    quote_volume: float = 0.0
    trade_count: int = 0
    timestamp: int = 0  # sample time, epoch seconds
    # Raw API text, kept so the board can show the exchange's own precision.
    price_text: str = ""
    high_text: str = ""
    low_text: str = ""

    @classmethod
    def empty(cls, symbol: str) -> "TickerRow":
        return cls(symbol=symbol)


@dataclass
class Candle:
    open_time: int  # epoch seconds
    close_time: int
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0
    quote_volume: float = 0.0
    trade_count: int = 0
    taker_buy_base_volume: float = 0.0
    taker_buy_quote_volume: float = 0.0
    open_text: str = ""
    high_text: str = ""
    low_text: str = ""
    close_text: str = ""


class Period(Enum):
    # value: (api interval, request limit, label)
    MIN_1 = ("1m", 240, "1 MINUTE")  # 4 hours
    MIN_15 = ("15m", 192, "15 MINUTES")  # 2 days
    HOUR_1 = ("1h", 168, "1 HOUR")  # 1 week
    HOUR_4 = ("4h", 180, "4 HOURS")  # ~30 days
    DAY_1 = ("1d", 120, "1 DAY")  # ~4 months
    WEEK_1 = ("1w", 104, "1 WEEK")  # 2 years
    MONTH_1 = ("1M", 120, "1 MONTH")  # 10 years

    @property
    def interval(self) -> str:
        return self.value[0]

    @property
    def limit(self) -> int:
        return self.value[1]

    @property
    def label(self) -> str:
        return self.value[2]

    @property
    def ordinal(self) -> int:
        return _PERIODS.index(self)

    def step(self, delta: int) -> "Period":
        return _PERIODS[(self.ordinal + delta) % len(_PERIODS)]

    @classmethod
    def from_interval(cls, interval: str) -> "Period":
        # Exact match: "1m" is a minute, "1M" a month.
        try:
            return _BY_INTERVAL[interval]
        except KeyError:
            raise ValueError(f"unsupported period: {interval}") from None


_PERIODS: list[Period] = list(Period)
_BY_INTERVAL: dict[str, Period] = {p.interval: p for p in _PERIODS}

DEFAULT_PERIOD = Period.DAY_1


class FetchStatus(Enum):
    FETCHING = "FETCHING"
    NORMAL = "NORMAL"
    NETWORK_ERROR = "NETWORK ERROR"

    @property
    def label(self) -> str:
        return self.value
