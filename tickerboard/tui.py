from __future__ import annotations

import curses
import locale
import logging
import time
from typing import Callable

from .chart import AXIS_WIDTH, CHART_X, CHART_Y, ChartEngine, ChartView
from .events import Button, InputEvent, Key, MouseEvent
from .fmt import (
    axis_time_format,
    display_price,
    format_axis_price,
    format_change_pct,
    format_int_with_commas,
    format_number,
    format_time,
    format_with_commas,
)
from .fetcher import Fetcher
from .market import MarketDataSource
from .models import Candle, FetchStatus, Period, TickerRow
from .priceboard import BOARD_START_Y, FOOTER_ROWS, BoardFrame, PriceBoardEngine
from .runtime import RuntimeContext
from .view import ViewState

logger = logging.getLogger(__name__)

APP_NAME = "TICKERBOARD"
BOARD_TITLE = "[P][R][I][C][E] [B][O][A][R][D]"

# Board column anchors.
PRICE_COL = 18
CHANGE_COL = 35
HIGH_COL = 52
LOW_COL = 70
VOLUME_COL = 88
TRADES_COL = 108
QUOTE_COL = 126

INFO_PREFERRED_WIDTH = 37
INFO_MIN_WIDTH = 23
INFO_HEIGHT = 14
INFO_GAP = 2

PRICE_EPSILON = 1e-9

BOARD_FOOTER = (
    "KEYS: ↑/↓ NAVIGATE | ENTER/CLICK: VIEW CHART | F5: SORT BY PRICE {price} | "
    "F6: SORT BY CHANGE {change} | Q: QUIT"
)
CHART_FOOTER = (
    "KEYS: ←/→ CURSOR | ↑/↓: CHANGE INTERVAL | F: FOLLOW LATEST | R: REFRESH | "
    "LEFT CLICK: PICK CANDLE | RIGHT CLICK/ESC/Q: BACK"
)


def _line_chars() -> tuple[str, str, str, str, str, str]:
    # Avoid ncurses ACS fallback glyphs (q/x/l/m/...) on some terminals.
    encoding = (locale.getpreferredencoding(False) or "").lower()
    if "utf" in encoding:
        return ("│", "─", "┌", "┐", "└", "┘")
    return ("|", "-", "+", "+", "+", "+")


def _safe_addstr(win, y: int, x: int, s: str, attr: int = 0) -> None:
    try:
        win.addstr(y, x, s, attr)
    except curses.error:
        # Writing the bottom-right cell or past the edge of a small terminal.
        pass


def _safe_vline(win, y: int, x: int, height: int, attr: int = 0) -> None:
    if height <= 0:
        return
    vline = _line_chars()[0]
    for i in range(height):
        _safe_addstr(win, y + i, x, vline, attr)


def _safe_hline(win, y: int, x: int, width: int, attr: int = 0) -> None:
    if width <= 0:
        return
    _safe_addstr(win, y, x, _line_chars()[1] * width, attr)


def _draw_box(win, x: int, y: int, width: int, height: int, attr: int = 0) -> None:
    if width < 2 or height < 2:
        return
    right = x + width - 1
    bottom = y + height - 1
    for row in range(y, bottom + 1):
        _safe_addstr(win, row, x, " " * width, attr)
    _safe_hline(win, y, x + 1, width - 2, attr)
    _safe_hline(win, bottom, x + 1, width - 2, attr)
    _safe_vline(win, y + 1, x, height - 2, attr)
    _safe_vline(win, y + 1, right, height - 2, attr)
    _, _, tl, tr, bl, br = _line_chars()
    _safe_addstr(win, y, x, tl, attr)
    _safe_addstr(win, y, right, tr, attr)
    _safe_addstr(win, bottom, x, bl, attr)
    _safe_addstr(win, bottom, right, br, attr)


def _truncate(s: str, width: int) -> str:
    if width <= 0:
        return ""
    return s if len(s) <= width else s[:width]


def _init_colors() -> dict[str, int]:
    if not curses.has_colors():
        return {}
    curses.start_color()
    try:
        curses.use_default_colors()
    except curses.error:
        pass

    # Pair IDs must be 1..; keep small and stable.
    curses.init_pair(1, curses.COLOR_GREEN, -1)  # up
    curses.init_pair(2, curses.COLOR_RED, -1)  # down
    curses.init_pair(3, curses.COLOR_BLACK, curses.COLOR_CYAN)  # title bar
    curses.init_pair(4, curses.COLOR_YELLOW, -1)  # headers
    curses.init_pair(5, curses.COLOR_BLACK, curses.COLOR_WHITE)  # selected row / footer
    curses.init_pair(6, curses.COLOR_CYAN, -1)  # symbol
    curses.init_pair(7, curses.COLOR_WHITE, curses.COLOR_GREEN)  # status NORMAL
    curses.init_pair(8, curses.COLOR_WHITE, curses.COLOR_BLUE)  # status FETCHING
    curses.init_pair(9, curses.COLOR_YELLOW, curses.COLOR_RED)  # status NETWORK ERROR
    curses.init_pair(10, curses.COLOR_MAGENTA, -1)  # current price
    return {
        "UP": 1, "DOWN": 2, "TITLE": 3, "HEADER": 4, "SELECTED": 5, "SYMBOL": 6,
        "STATUS_NORMAL": 7, "STATUS_FETCHING": 8, "STATUS_ERROR": 9, "CURRENT": 10,
    }


def _price_to_row(price: float, lo: float, hi: float, height: int, top: int) -> int:
    span = hi - lo
    if span <= 1e-7:
        span = 1.0
    norm = min(1.0, max(0.0, (price - lo) / span))
    usable = max(1, height - 1)
    return top + height - 1 - int(norm * usable)


class CursesRenderer:
    def __init__(self, stdscr, clock: Callable[[], float] = time.time) -> None:
        self.win = stdscr
        self.colors = _init_colors()
        self._clock = clock
        # Last drawn price per symbol, for the up/down arrow.
        self._last_prices: dict[str, float] = {}

    def _pair(self, name: str) -> int:
        pid = self.colors.get(name)
        return curses.color_pair(pid) if pid else 0

    @property
    def lines(self) -> int:
        return self.win.getmaxyx()[0]

    @property
    def cols(self) -> int:
        return self.win.getmaxyx()[1]

    def bell(self) -> None:
        try:
            curses.beep()
        except curses.error:
            pass

    def board_rows(self) -> int:
        return max(1, self.lines - FOOTER_ROWS - BOARD_START_Y)

    def _chart_geometry(self) -> tuple[int, int, int]:
        """(chart_width, info_x, info_width); info_width is 0 when hidden."""
        available = max(1, self.cols - CHART_X - 2)
        info_width = min(INFO_PREFERRED_WIDTH, available * 2 // 3)
        info_width = max(info_width, INFO_MIN_WIDTH)
        if info_width > available - INFO_GAP - 1:
            info_width = available - INFO_GAP - 1
        if info_width < INFO_MIN_WIDTH:
            info_width = INFO_MIN_WIDTH if available > INFO_MIN_WIDTH else available // 2
        gap = INFO_GAP
        if info_width < 10:
            info_width, gap = 0, 0
        chart_width = max(1, available - info_width - gap)
        info_x = max(CHART_X + chart_width + gap, self.cols - info_width)
        return chart_width, info_x, info_width

    def chart_width(self) -> int:
        return self._chart_geometry()[0]

    def _draw_title_bar(self, center: str, left: str = "", right: str = "") -> None:
        cols = self.cols
        attr = self._pair("TITLE")
        _safe_addstr(self.win, 0, 0, " " * max(0, cols - 1), attr)
        if left:
            _safe_addstr(self.win, 0, 2, left, attr)
        right_x = cols - len(right) - 2 if right else cols
        title_x = max(2, (cols - len(center)) // 2)
        if left:
            title_x = max(title_x, 2 + len(left) + 2)
        if right and title_x + len(center) >= right_x:
            title_x = max(2, right_x - len(center) - 1)
        _safe_addstr(self.win, 0, title_x, center, attr)
        if right:
            _safe_addstr(self.win, 0, max(2, right_x), right, attr)

    def _draw_footer(self, text: str, status: FetchStatus) -> None:
        y = self.lines - 1
        cols = self.cols
        if y < 0 or cols <= 0:
            return
        label = f" {status.label} "
        panel_w = len(label) + 2
        text_w = max(0, cols - panel_w - 1)
        _safe_addstr(self.win, y, 0, " " * max(0, cols - 1), self._pair("SELECTED"))
        _safe_addstr(self.win, y, 1, _truncate(text, max(0, text_w - 1)), self._pair("SELECTED"))
        pair = {
            FetchStatus.NORMAL: "STATUS_NORMAL",
            FetchStatus.FETCHING: "STATUS_FETCHING",
            FetchStatus.NETWORK_ERROR: "STATUS_ERROR",
        }[status]
        panel_x = max(0, cols - panel_w - 1)
        _safe_addstr(self.win, y, panel_x, label.center(panel_w), self._pair(pair) | curses.A_BOLD)

    def draw_splash(self) -> None:
        self.win.erase()
        lines, cols = self.win.getmaxyx()
        msgs = [(APP_NAME, curses.A_BOLD), ("Loading market data...", curses.A_DIM)]
        top = max(0, lines // 2 - 1)
        for i, (msg, attr) in enumerate(msgs):
            _safe_addstr(self.win, top + i, max(0, (cols - len(msg)) // 2), msg, attr)
        self.win.refresh()

    def _draw_board_row(self, y: int, row: TickerRow, selected: bool, cols: int) -> None:
        sel = self._pair("SELECTED") if selected else 0
        if selected:
            _safe_addstr(self.win, y, 0, " " * max(0, cols - 1), sel)
        _safe_addstr(self.win, y, 2, f"{row.symbol:<15}", (sel or self._pair("SYMBOL")) | curses.A_BOLD)

        prev = self._last_prices.get(row.symbol)
        changed = prev is not None and abs(row.price - prev) > PRICE_EPSILON
        arrow = " "
        if prev is not None and changed:
            arrow = "↑" if row.price > prev else "↓"
        self._last_prices[row.symbol] = row.price

        daily = self._pair("UP" if row.change_pct >= 0 else "DOWN") | curses.A_BOLD
        if selected:
            daily |= curses.A_REVERSE
        _safe_addstr(self.win, y, PRICE_COL, arrow, daily)
        _safe_addstr(self.win, y, PRICE_COL + 1, f"{display_price(row.price_text, row.price):>14}", daily)
        _safe_addstr(self.win, y, CHANGE_COL, f"{format_change_pct(row.change_pct):>15}", daily)

        if cols > HIGH_COL + 10:
            _safe_addstr(self.win, y, HIGH_COL, f"{display_price(row.high_text, row.high):>12}", sel)
        if cols > LOW_COL + 10:
            _safe_addstr(self.win, y, LOW_COL, f"{display_price(row.low_text, row.low):>12}", sel)
        if cols > VOLUME_COL + 12:
            _safe_addstr(self.win, y, VOLUME_COL, f"{format_with_commas(row.base_volume):>14}", sel)
        if cols > TRADES_COL + 6:
            _safe_addstr(self.win, y, TRADES_COL, f"{format_int_with_commas(row.trade_count):>10}", sel)
        if cols > QUOTE_COL + 12:
            _safe_addstr(self.win, y, QUOTE_COL, f"{format_with_commas(row.quote_volume):>14}", sel)

    def draw_board(self, frame: BoardFrame, status: FetchStatus) -> None:
        self.win.erase()
        cols = self.cols
        now = time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(self._clock()))
        self._draw_title_bar(BOARD_TITLE, left=APP_NAME, right=now)

        head = self._pair("HEADER")
        _safe_addstr(self.win, 2, 2, f"{'SYMBOL':<15}", head)
        _safe_addstr(self.win, 2, PRICE_COL, f"{'PRICE':>15}", head)
        _safe_addstr(self.win, 2, CHANGE_COL, f"{'CHANGE 24H':>15}", head)
        for col, width, extra, name in (
            (HIGH_COL, 12, 10, "HIGH"),
            (LOW_COL, 12, 10, "LOW"),
            (VOLUME_COL, 14, 12, "VOLUME"),
            (TRADES_COL, 10, 6, "TRADES"),
            (QUOTE_COL, 14, 12, "QUOTE VOL"),
        ):
            if cols > col + extra:
                _safe_addstr(self.win, 2, col, f"{name:>{width}}", head)
        _safe_hline(self.win, 3, 2, cols - 4)

        for i, row in enumerate(frame.rows):
            self._draw_board_row(BOARD_START_Y + i, row, frame.offset + i == frame.selected, cols)

        if frame.can_scroll_up:
            _safe_addstr(self.win, BOARD_START_Y, 0, "↑")
        if frame.can_scroll_down:
            _safe_addstr(self.win, BOARD_START_Y + frame.visible_rows - 1, 0, "↓")

        self._draw_footer(BOARD_FOOTER.format(price=frame.price_hint, change=frame.change_hint), status)
        self.win.refresh()

    def _draw_info_box(self, x: int, y: int, width: int, height: int, c: Candle) -> None:
        if width < 10 or height < 6:
            return
        _draw_box(self.win, x, y, width, height, curses.A_REVERSE)
        cx = x + 2
        inner = width - 3
        rev = curses.A_REVERSE
        change = (c.close - c.open) / c.open * 100.0 if c.open != 0 else 0.0
        lines = [
            (f"Open Time : {format_time(c.open_time)}", rev),
            (f"Close Time: {format_time(c.close_time)}", rev),
            (f"Open : {display_price(c.open_text, c.open)}", rev | curses.A_BOLD),
            (f"High : {display_price(c.high_text, c.high)}", rev | self._pair("UP") | curses.A_BOLD),
            (f"Low  : {display_price(c.low_text, c.low)}", rev | self._pair("DOWN") | curses.A_BOLD),
            (f"Close: {display_price(c.close_text, c.close)}", rev | curses.A_BOLD),
            (f"Vol  : {format_number(c.volume)}", rev),
            (f"Quote Vol: {format_number(c.quote_volume)}", rev),
            (f"Trades   : {c.trade_count}", rev),
            (f"Taker Buy (B): {format_number(c.taker_buy_base_volume)}", rev),
            (f"Taker Buy (Q): {format_number(c.taker_buy_quote_volume)}", rev),
            (f"Change: {format_change_pct(change)}",
             rev | self._pair("UP" if c.close >= c.open else "DOWN") | curses.A_BOLD),
        ]
        for i, (text, attr) in enumerate(lines[: height - 2]):
            _safe_addstr(self.win, y + 1 + i, cx, _truncate(text, inner), attr)

    def _draw_price_box(self, x: int, y: int, width: int, height: int, c: Candle) -> None:
        if width < 10 or height < 4:
            return
        _draw_box(self.win, x, y, width, height, curses.A_REVERSE)
        _safe_addstr(self.win, y + 1, x + 2, "Current Price:", curses.A_REVERSE)
        _safe_addstr(
            self.win, y + 2, x + 2,
            _truncate(display_price(c.close_text, c.close), width - 3),
            curses.A_REVERSE | self._pair("CURRENT") | curses.A_BOLD,
        )

    def draw_chart(self, view: ChartView, status: FetchStatus) -> None:
        self.win.erase()
        lines, cols = self.win.getmaxyx()
        if not view.candles:
            _safe_addstr(self.win, lines // 2, max(0, cols // 2 - 10), "No data available")
            self._draw_footer(CHART_FOOTER, status)
            self.win.refresh()
            return

        self._draw_title_bar(f"{view.symbol} - {view.period.label} CANDLESTICK CHART")
        chart_width, info_x, info_width = self._chart_geometry()
        height = max(4, lines - 6)
        lo, hi = view.min_price, view.max_price
        span = hi - lo

        # Faint grid.
        if chart_width > 2 and height > 2:
            for i in range(1, 4):
                _safe_hline(self.win, CHART_Y + height * i // 4, CHART_X, chart_width, curses.A_DIM)
                _safe_vline(self.win, CHART_Y, CHART_X + chart_width * i // 4, height, curses.A_DIM)

        _safe_vline(self.win, CHART_Y, AXIS_WIDTH, height)
        for i in range(5):
            price = hi - span * i / 4.0
            y = _price_to_row(price, lo, hi, height, CHART_Y)
            _safe_addstr(self.win, y, 1, f"{format_axis_price(price, span):>10}")

        lay = view.layout
        for i, c in enumerate(view.candles):
            x = CHART_X + i * lay.stride
            up = c.close >= c.open
            attr = self._pair("UP" if up else "DOWN")
            open_y = _price_to_row(c.open, lo, hi, height, CHART_Y)
            close_y = _price_to_row(c.close, lo, hi, height, CHART_Y)
            high_y = _price_to_row(c.high, lo, hi, height, CHART_Y)
            low_y = _price_to_row(c.low, lo, hi, height, CHART_Y)
            _safe_vline(self.win, high_y, x, low_y - high_y + 1, attr)
            top, bottom = (close_y, open_y) if up else (open_y, close_y)
            for y in range(top, bottom + 1):
                _safe_addstr(self.win, y, x, "█", attr)

        axis_y = CHART_Y + height
        if axis_y < lines - 2:
            self._draw_x_axis(view, axis_y, chart_width, lines)

        if view.highlight >= 0 and view.selected is not None:
            self._draw_cursor_line(view, view.selected, height, axis_y)

        if info_width >= 10 and view.selected is not None:
            self._draw_info_box(min(info_x, cols - info_width), CHART_Y, info_width, INFO_HEIGHT, view.selected)
        if info_width >= 10 and view.latest is not None:
            box_y = CHART_Y + INFO_HEIGHT + 1
            box_h = min(5, lines - 2 - box_y)
            if box_h >= 4:
                self._draw_price_box(min(info_x, cols - info_width), box_y, info_width, box_h, view.latest)

        self._draw_footer(CHART_FOOTER, status)
        self.win.refresh()

    def _draw_x_axis(self, view: ChartView, axis_y: int, chart_width: int, lines: int) -> None:
        lay = view.layout
        _safe_hline(self.win, axis_y, AXIS_WIDTH, max(1, CHART_X + chart_width - AXIS_WIDTH))
        _safe_addstr(self.win, axis_y, AXIS_WIDTH, _line_chars()[4])
        label_row = axis_y + 1
        if label_row >= lines - 1:
            return
        visible = len(view.candles)
        ticks = min(7, max(3, chart_width // 12))
        step = max(1, (visible - 1) // (ticks - 1)) if visible > 1 else 1
        label_width = max(6, chart_width // (ticks - 1))
        fmt = axis_time_format(view.period, label_width)
        max_x = CHART_X + chart_width - 1
        for t in range(ticks):
            col = lay.visible - 1 if t == ticks - 1 else t * step
            if col < 0 or col >= visible:
                continue
            text = format_time(view.candles[col].open_time, fmt)
            x = CHART_X + col * lay.stride
            label_x = max(CHART_X, x - len(text) // 2)
            n = min(len(text), max_x - label_x + 1)
            if n > 0:
                _safe_addstr(self.win, label_row, label_x, text[:n])
            if axis_y - 1 >= CHART_Y:
                _safe_addstr(self.win, axis_y - 1, x, "↑")

    def _draw_cursor_line(self, view: ChartView, c: Candle, height: int, axis_y: int) -> None:
        x = CHART_X + view.highlight * view.layout.stride
        lo, hi = view.min_price, view.max_price
        high_y = _price_to_row(c.high, lo, hi, height, CHART_Y)
        low_y = _price_to_row(c.low, lo, hi, height, CHART_Y)
        top, bottom = min(high_y, low_y), max(high_y, low_y)
        vline = _line_chars()[0]
        for y in range(CHART_Y, axis_y - 1, 2):
            if top <= y <= bottom:
                continue
            _safe_addstr(self.win, y, x, vline, curses.A_DIM)


class CursesInput:
    """Maps curses keys and mouse events to Key / MouseEvent."""

    _KEYS = {
        curses.KEY_UP: Key.UP,
        curses.KEY_DOWN: Key.DOWN,
        curses.KEY_LEFT: Key.LEFT,
        curses.KEY_RIGHT: Key.RIGHT,
        curses.KEY_ENTER: Key.ENTER,
        10: Key.ENTER,
        13: Key.ENTER,
        27: Key.ESCAPE,
        ord("q"): Key.QUIT,
        ord("Q"): Key.QUIT,
        ord("f"): Key.FOLLOW,
        ord("F"): Key.FOLLOW,
        ord("r"): Key.REFRESH,
        ord("R"): Key.REFRESH,
        curses.KEY_F5: Key.SORT_PRICE,
        curses.KEY_F6: Key.SORT_CHANGE,
        curses.KEY_RESIZE: Key.RESIZE,
    }

    def __init__(self, stdscr) -> None:
        self.win = stdscr
        self.win.keypad(True)
        curses.mousemask(curses.ALL_MOUSE_EVENTS | curses.REPORT_MOUSE_POSITION)
        curses.mouseinterval(0)
        # Press and release arrive separately with mouseinterval(0); act on the press only.
        self._left = curses.BUTTON1_PRESSED | curses.BUTTON1_CLICKED
        self._right = curses.BUTTON3_PRESSED | curses.BUTTON3_CLICKED
        self._wheel_up = getattr(curses, "BUTTON4_PRESSED", 0)
        self._wheel_down = getattr(curses, "BUTTON5_PRESSED", 0)

    def _mouse(self) -> MouseEvent | None:
        try:
            _, x, y, _, bstate = curses.getmouse()
        except curses.error:
            return None
        if bstate & self._right:
            return MouseEvent(x, y, Button.RIGHT)
        if self._wheel_up and bstate & self._wheel_up:
            return MouseEvent(x, y, Button.WHEEL_UP)
        if self._wheel_down and bstate & self._wheel_down:
            return MouseEvent(x, y, Button.WHEEL_DOWN)
        if bstate & self._left:
            return MouseEvent(x, y, Button.LEFT)
        return None

    def poll(self, timeout_ms: int) -> InputEvent | None:
        self.win.timeout(max(0, int(timeout_ms)))
        ch = self.win.getch()
        if ch == -1:
            return None
        if ch == curses.KEY_MOUSE:
            return self._mouse()
        return self._KEYS.get(ch)


def setup_screen(stdscr) -> None:
    try:
        curses.curs_set(0)
    except curses.error:
        pass
    stdscr.keypad(True)


def _main(stdscr, ctx: RuntimeContext, ticker_source: MarketDataSource,
          chart_source: MarketDataSource, period: Period) -> None:
    setup_screen(stdscr)
    renderer = CursesRenderer(stdscr)
    renderer.draw_splash()

    fetcher = Fetcher(ctx, ticker_source, ctx.settings.refresh_interval_s)
    fetcher.initial_fetch()
    fetcher.start()
    logger.info("fetcher started symbols=%d refresh=%ss", ctx.state.count, ctx.settings.refresh_interval_s)

    board = PriceBoardEngine(ctx.state)
    chart = ChartEngine(chart_source, period=period)
    view = ViewState(ctx, board, chart, renderer, CursesInput(stdscr),
                     input_timeout_ms=ctx.settings.input_timeout_ms)
    try:
        view.run()
    finally:
        ctx.request_shutdown()
        # One refresh tick plus one in-flight request.
        if not fetcher.join(timeout=1.0 + ctx.settings.http_timeout_s):
            logger.warning("fetcher did not stop in time")


def run(ctx: RuntimeContext, ticker_source: MarketDataSource, chart_source: MarketDataSource,
        period: Period) -> None:
    curses.wrapper(_main, ctx, ticker_source, chart_source, period)
