"""Chart engine: one symbol's candle buffer, cursor, period and refresh policy.

All state here is owned by the UI thread. The only cross-thread read is the
live overlay, which goes through SharedMarketState.find_price().
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

from .errors import FetchError
from .events import Button, InputEvent, Key, MouseEvent
from .market import MarketDataSource
from .models import DEFAULT_PERIOD, Candle, Period
from .runtime import SharedMarketState

logger = logging.getLogger(__name__)

# Chart geometry (screen columns).
CANDLE_STRIDE = 2
AXIS_WIDTH = 12
CHART_X = AXIS_WIDTH + 2
CHART_Y = 2


class ChartMode(Enum):
    CLOSED = "closed"
    OPEN = "open"


@dataclass(frozen=True)
class ChartLayout:
    start_x: int = CHART_X
    start_index: int = 0
    stride: int = CANDLE_STRIDE
    visible: int = 0
    total: int = 0


@dataclass
class ChartView:
    symbol: str
    period: Period
    candles: list[Candle]
    layout: ChartLayout
    cursor: int
    follow_latest: bool
    min_price: float = 0.0
    max_price: float = 0.0
    # Cursor position inside `candles`, -1 when scrolled out.
    highlight: int = -1
    selected: Optional[Candle] = None
    latest: Optional[Candle] = None
    all_candles: list[Candle] = field(default_factory=list)


def candle_change_pct(candle: Candle) -> float:
    if candle.open == 0:
        return 0.0
    return (candle.close - candle.open) / candle.open * 100.0


def price_range(candles: list[Candle]) -> tuple[float, float]:
    if not candles:
        return 0.0, 0.0
    lo = min(c.low for c in candles)
    hi = max(c.high for c in candles)
    if hi - lo < 1e-6:
        lo -= 1.0
        hi += 1.0
    return lo, hi


def _find_open_time(candles: list[Candle], open_time: int) -> int:
    for i, c in enumerate(candles):
        if c.open_time == open_time:
            return i
    return -1


class ChartEngine:
    def __init__(self, source: MarketDataSource, bell: Callable[[], None] | None = None,
                 period: Period = DEFAULT_PERIOD) -> None:
        self._source = source
        self._bell = bell or (lambda: None)
        self.period = period
        self.mode = ChartMode.CLOSED
        self.symbol = ""
        # Best-effort cache; revalidated against `symbol` on every lookup.
        self.symbol_index: Optional[int] = None
        self.candles: list[Candle] = []
        self.cursor = -1
        self.follow_latest = True
        self.layout: Optional[ChartLayout] = None

    @property
    def is_open(self) -> bool:
        return self.mode is ChartMode.OPEN

    def set_bell(self, bell: Callable[[], None]) -> None:
        self._bell = bell

    def _load(self, period: Period) -> Optional[list[Candle]]:
        try:
            candles = self._source.fetch_candles(self.symbol, period)
        except FetchError as exc:
            logger.info("candle load failed symbol=%s period=%s error=%s", self.symbol, period.interval, exc)
            return None
        except Exception:
            logger.exception("candle load crashed symbol=%s period=%s", self.symbol, period.interval)
            return None
        logger.debug("loaded %d candles symbol=%s period=%s", len(candles), self.symbol, period.interval)
        return list(candles)

    def _clamp_cursor(self) -> None:
        n = len(self.candles)
        if n <= 0:
            self.cursor = -1
        elif self.cursor >= n or self.cursor < 0:
            self.cursor = n - 1

    def _selection(self) -> tuple[Optional[int], bool]:
        """(open_time of the selected candle, whether it is the last one)."""
        n = len(self.candles)
        if 0 <= self.cursor < n:
            return self.candles[self.cursor].open_time, self.cursor == n - 1
        return None, False

    def open(self, symbol: str, symbol_index: Optional[int] = None) -> bool:
        if not symbol:
            self._bell()
            return False
        prev_symbol = self.symbol
        self.symbol = symbol
        candles = self._load(self.period)
        if candles is None:
            self.symbol = prev_symbol
            self._bell()
            return False
        self.symbol_index = symbol_index
        self.candles = candles
        self.cursor = len(candles) - 1
        self.follow_latest = True
        self.layout = None
        self.mode = ChartMode.OPEN
        return True

    def close(self) -> None:
        self.mode = ChartMode.CLOSED
        self.symbol = ""
        self.symbol_index = None
        self.candles = []
        self.cursor = -1
        self.layout = None
        self.follow_latest = True

    def change_period(self, step: int) -> bool:
        if not self.is_open:
            return False
        old = self.period
        selected_time, _ = self._selection()
        self.period = old.step(step)
        candles = self._load(self.period)
        if candles is None:
            self.period = old
            self._bell()
            return False
        # Swap only after the new buffer is complete.
        self.candles = candles
        restored = _find_open_time(candles, selected_time) if selected_time is not None else -1
        if restored >= 0:
            self.cursor = restored
        else:
            self._clamp_cursor()
        return True

    def move_cursor(self, delta: int) -> bool:
        n = len(self.candles)
        if n <= 0 or delta == 0:
            return False
        target = max(0, min(self.cursor + delta, n - 1))
        if target == self.cursor:
            return False
        self.cursor = target
        self.follow_latest = False
        return True

    def select_index(self, index: int) -> bool:
        n = len(self.candles)
        if n <= 0 or index < 0:
            return False
        self.cursor = min(index, n - 1)
        self.follow_latest = False
        return True

    def toggle_follow(self) -> None:
        self.follow_latest = not self.follow_latest
        if self.follow_latest and self.candles:
            self.cursor = len(self.candles) - 1

    def _reload_keep_selection(self, snap_latest: bool) -> bool:
        selected_time, was_latest = self._selection()
        candles = self._load(self.period)
        if candles is None:
            return False
        self.candles = candles
        if not candles:
            self.cursor = -1
            return True
        last = len(candles) - 1
        if snap_latest or was_latest or selected_time is None:
            self.cursor = last
            return True
        restored = _find_open_time(candles, selected_time)
        # A selection that rolled out of the window also lands on the newest candle.
        self.cursor = restored if restored >= 0 else last
        return True

    def refresh_if_expired(self, now: Optional[float] = None) -> bool:
        """Reload once the last candle has closed; failures retry next frame."""
        if not self.is_open or not self.candles:
            return False
        now = time.time() if now is None else now
        if now < self.candles[-1].close_time:
            return False
        return self._reload_keep_selection(snap_latest=False)

    def force_refresh(self) -> bool:
        if not self.is_open:
            return False
        ok = self._reload_keep_selection(snap_latest=self.follow_latest)
        if not ok:
            self._bell()
        return ok

    def apply_live_price(self, state: SharedMarketState) -> bool:
        if not self.is_open or not self.candles or not self.symbol:
            return False
        price = state.find_price(self.symbol, self.symbol_index)
        if price is None or price <= 0:
            return False
        last = self.candles[-1]
        if price > last.high:
            last.high = price
            last.high_text = ""
        if last.low == 0 or price < last.low:
            last.low = price
            last.low_text = ""
        last.close = price
        last.close_text = ""
        return True

    def record_layout(self, start_x: int, stride: int, visible: int, total: int, start_index: int) -> None:
        self.layout = ChartLayout(start_x=start_x, start_index=start_index, stride=stride,
                                  visible=visible, total=total)

    def hit_test_index(self, x: int) -> Optional[int]:
        lay = self.layout
        total = len(self.candles)
        if lay is None or total <= 0 or lay.visible <= 0 or lay.stride <= 0:
            return None
        if x < lay.start_x or x >= lay.start_x + lay.visible * lay.stride:
            return None
        idx = lay.start_index + (x - lay.start_x) // lay.stride
        if idx < 0 or idx >= total:
            return None
        return idx

    def compute_view(self, visible: int, start_x: int = CHART_X) -> ChartLayout:
        visible = max(1, int(visible))
        count = len(self.candles)
        prev = self.layout
        changed = prev is None or prev.visible != visible or prev.total != count
        start = prev.start_index if prev is not None else -1
        if changed or start < 0 or start >= count:
            start = count - visible if count > visible else 0

        selected = self.cursor
        if selected >= 0:
            if selected < start:
                start = selected
            elif selected >= start + visible:
                start = selected - visible + 1

        start = max(0, min(start, count - 1))
        if start + visible > count:
            start = max(0, count - visible)

        self.record_layout(start_x, CANDLE_STRIDE, visible, count, start)
        return self.layout  # type: ignore[return-value]

    def build_view(self, chart_width: int) -> ChartView:
        lay = self.compute_view(max(1, int(chart_width) // CANDLE_STRIDE))
        window = self.candles[lay.start_index:lay.start_index + lay.visible]
        lo, hi = price_range(window)
        highlight = self.cursor - lay.start_index
        if highlight < 0 or highlight >= len(window):
            highlight = -1
        selected = self.candles[self.cursor] if 0 <= self.cursor < len(self.candles) else None
        return ChartView(
            symbol=self.symbol,
            period=self.period,
            candles=window,
            layout=lay,
            cursor=self.cursor,
            follow_latest=self.follow_latest,
            min_price=lo,
            max_price=hi,
            highlight=highlight,
            selected=selected,
            latest=self.candles[-1] if self.candles else None,
            all_candles=self.candles,
        )

    def before_render(self, now: Optional[float], state: SharedMarketState) -> None:
        if not self.is_open:
            return
        self.refresh_if_expired(now)
        self.apply_live_price(state)
        if self.follow_latest and self.candles:
            self.cursor = len(self.candles) - 1
        self._clamp_cursor()

    def handle_key(self, key: Key) -> None:
        if key is Key.UP:
            self.change_period(-1)
        elif key is Key.DOWN:
            self.change_period(1)
        elif key is Key.LEFT:
            self.move_cursor(-1)
        elif key is Key.RIGHT:
            self.move_cursor(1)
        elif key is Key.FOLLOW:
            self.toggle_follow()
        elif key is Key.REFRESH:
            self.force_refresh()
        elif key in (Key.QUIT, Key.ESCAPE):
            self.close()

    def handle_mouse(self, event: MouseEvent) -> None:
        if event.button is Button.RIGHT:
            self.close()
        elif event.button is Button.WHEEL_UP:
            self.change_period(-1)
        elif event.button is Button.WHEEL_DOWN:
            self.change_period(1)
        elif event.button is Button.LEFT:
            idx = self.hit_test_index(event.x)
            if idx is not None:
                self.select_index(idx)

    def handle(self, event: InputEvent) -> None:
        if isinstance(event, MouseEvent):
            self.handle_mouse(event)
        else:
            self.handle_key(event)
