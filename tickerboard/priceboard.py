"""Price board: snapshot, stable sort, scroll viewport, and hit testing.

Sorting is stable against config order: ties on the sort
field fall back to the config index, so repeated frames never reshuffle
equal rows.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .events import Button, InputEvent, Key, MouseEvent
from .models import TickerRow
from .runtime import SharedMarketState

# Board layout rows (screen coordinates).
BOARD_START_Y = 4
FOOTER_ROWS = 1


class SortField(Enum):
    NONE = "none"
    PRICE = "price"
    CHANGE = "change"


class SortDirection(Enum):
    DESC = "desc"
    ASC = "asc"


@dataclass
class SortState:
    field: SortField = SortField.NONE
    direction: SortDirection = SortDirection.DESC

    def cycle(self, target: SortField) -> None:
        if target is SortField.NONE:
            return
        if self.field is not target:
            self.field = target
            self.direction = SortDirection.DESC
        elif self.direction is SortDirection.DESC:
            self.direction = SortDirection.ASC
        else:
            self.field = SortField.NONE
            self.direction = SortDirection.DESC

    def next_hint(self, target: SortField) -> str:
        """Glyph describing what the next press of target's key does."""
        if target is SortField.NONE:
            return "="
        if self.field is not target:
            return "↓"
        if self.direction is SortDirection.DESC:
            return "↑"
        return "="


class BoardActionKind(Enum):
    NONE = "none"
    QUIT = "quit"
    OPEN_CHART = "open_chart"


@dataclass(frozen=True)
class BoardAction:
    kind: BoardActionKind = BoardActionKind.NONE
    symbol_index: Optional[int] = None
    symbol: str = ""


@dataclass
class BoardFrame:
    rows: list[TickerRow]
    offset: int
    selected: int
    visible_rows: int
    count: int
    price_hint: str
    change_hint: str
    can_scroll_up: bool = False
    can_scroll_down: bool = False
    # Config index for each row in `rows`, so renderers can key per-symbol history.
    origins: list[int] = field(default_factory=list)


def _sort_value(row: TickerRow, sort_field: SortField) -> float:
    if sort_field is SortField.PRICE:
        return row.price
    if sort_field is SortField.CHANGE:
        return row.change_pct
    return 0.0


class PriceBoardEngine:
    def __init__(self, state: SharedMarketState, sort: SortState | None = None) -> None:
        self._state = state
        self.sort = sort or SortState()
        self.rows: list[TickerRow] = []
        self.order: list[int] = []
        # Persists across frames so the list does not jump while scrolling.
        self.scroll_offset = 0
        self.view_start_y = BOARD_START_Y
        self.view_rows = 0

    @property
    def count(self) -> int:
        return len(self.rows)

    def snapshot(self) -> None:
        self.rows = self._state.snapshot()
        self.order = list(range(len(self.rows)))

    def _compare(self, left: int, right: int) -> int:
        lv = _sort_value(self.rows[left], self.sort.field)
        rv = _sort_value(self.rows[right], self.sort.field)
        result = 0
        if lv < rv:
            result = -1
        elif lv > rv:
            result = 1
        if self.sort.direction is SortDirection.DESC:
            result = -result
        if result != 0:
            return result
        # Ties keep config order in both directions.
        lo, ro = self.order[left], self.order[right]
        if lo < ro:
            return -1
        if lo > ro:
            return 1
        return 0

    def _swap(self, left: int, right: int) -> None:
        if left == right:
            return
        self.rows[left], self.rows[right] = self.rows[right], self.rows[left]
        self.order[left], self.order[right] = self.order[right], self.order[left]

    def apply_sort(self) -> None:
        # Insertion sort: n <= 50.
        if self.sort.field is SortField.NONE or self.count <= 1:
            return
        for i in range(1, self.count):
            j = i
            while j > 0 and self._compare(j - 1, j) > 0:
                self._swap(j - 1, j)
                j -= 1

    def cycle_sort(self, sort_field: SortField) -> None:
        self.sort.cycle(sort_field)

    def sort_hint(self, sort_field: SortField) -> str:
        return self.sort.next_hint(sort_field)

    def clamp_selected(self, selected: int) -> int:
        if self.count <= 0:
            return 0
        return max(0, min(int(selected), self.count - 1))

    def viewport(self, selected: int, visible_rows: int) -> int:
        visible_rows = max(1, int(visible_rows))
        self.view_rows = visible_rows
        count = self.count
        if count <= 0:
            self.scroll_offset = 0
            return 0
        selected = self.clamp_selected(selected)
        max_scroll = max(0, count - visible_rows)
        offset = max(0, min(self.scroll_offset, max_scroll))
        if selected < offset:
            offset = selected
        elif selected >= offset + visible_rows:
            offset = selected - visible_rows + 1
        self.scroll_offset = max(0, offset)
        return self.scroll_offset

    def resolve_symbol_index(self, display_row: int) -> Optional[int]:
        if display_row < 0 or display_row >= len(self.order):
            return None
        return self.order[display_row]

    def hit_test_row(self, y: int, rows_start: int, visible_rows: int, count: int) -> Optional[int]:
        if count <= 0:
            return None
        if y < rows_start or y >= rows_start + visible_rows:
            return None
        index = self.scroll_offset + (y - rows_start)
        if index < 0 or index >= count:
            return None
        return index

    def visible_rows_for_height(self, screen_lines: int) -> int:
        return max(1, int(screen_lines) - FOOTER_ROWS - self.view_start_y)

    def render_rows(self, selected: int, visible_rows: int) -> BoardFrame:
        self.snapshot()
        self.apply_sort()
        selected = self.clamp_selected(selected)
        offset = self.viewport(selected, visible_rows)
        end = offset + self.view_rows
        return BoardFrame(
            rows=self.rows[offset:end],
            offset=offset,
            selected=selected,
            visible_rows=self.view_rows,
            count=self.count,
            price_hint=self.sort_hint(SortField.PRICE),
            change_hint=self.sort_hint(SortField.CHANGE),
            can_scroll_up=offset > 0,
            can_scroll_down=end < self.count,
            origins=self.order[offset:end],
        )

    def _open_action(self, selected: int) -> BoardAction:
        index = self.resolve_symbol_index(selected)
        if index is None:
            return BoardAction()
        symbol = self._state.symbols[index] if index < self._state.count else ""
        return BoardAction(kind=BoardActionKind.OPEN_CHART, symbol_index=index, symbol=symbol)

    def handle_key(self, key: Key, selected: int) -> tuple[int, BoardAction]:
        if key is Key.UP:
            return self.clamp_selected(selected - 1), BoardAction()
        if key is Key.DOWN:
            return self.clamp_selected(selected + 1), BoardAction()
        if key is Key.ENTER:
            selected = self.clamp_selected(selected)
            return selected, self._open_action(selected)
        if key is Key.QUIT:
            return selected, BoardAction(kind=BoardActionKind.QUIT)
        if key is Key.SORT_PRICE:
            self.cycle_sort(SortField.PRICE)
        elif key is Key.SORT_CHANGE:
            self.cycle_sort(SortField.CHANGE)
        return selected, BoardAction()

    def handle_mouse(self, event: MouseEvent, selected: int) -> tuple[int, BoardAction]:
        if event.button is Button.WHEEL_UP:
            return self.clamp_selected(selected - 1), BoardAction()
        if event.button is Button.WHEEL_DOWN:
            return self.clamp_selected(selected + 1), BoardAction()
        if event.button is Button.LEFT:
            row = self.hit_test_row(event.y, self.view_start_y, self.view_rows, self.count)
            if row is None:
                return selected, BoardAction()
            selected = self.clamp_selected(row)
            return selected, self._open_action(selected)
        return selected, BoardAction()

    def handle(self, event: InputEvent, selected: int) -> tuple[int, BoardAction]:
        if isinstance(event, MouseEvent):
            return self.handle_mouse(event, selected)
        return self.handle_key(event, selected)
