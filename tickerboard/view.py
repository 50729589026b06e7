"""Top-level render/input loop switching between the board and the chart."""

from __future__ import annotations

import logging
import time
from enum import Enum
from typing import Callable, Optional, Protocol

from .chart import ChartEngine, ChartView
from .events import InputEvent, InputSource, Key
from .models import FetchStatus
from .priceboard import BoardActionKind, BoardFrame, PriceBoardEngine
from .runtime import RuntimeContext

logger = logging.getLogger(__name__)

DEFAULT_INPUT_TIMEOUT_MS = 1000


class Mode(Enum):
    BOARD = "board"
    CHART = "chart"


class Renderer(Protocol):
    def board_rows(self) -> int: ...

    def chart_width(self) -> int: ...

    def draw_board(self, frame: BoardFrame, status: FetchStatus) -> None: ...

    def draw_chart(self, view: ChartView, status: FetchStatus) -> None: ...

    def draw_splash(self) -> None: ...

    def bell(self) -> None: ...


class ViewState:
    def __init__(
        self,
        ctx: RuntimeContext,
        board: PriceBoardEngine,
        chart: ChartEngine,
        renderer: Renderer,
        input_source: InputSource,
        *,
        input_timeout_ms: int = DEFAULT_INPUT_TIMEOUT_MS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.ctx = ctx
        self.board = board
        self.chart = chart
        self.renderer = renderer
        self.input = input_source
        self.input_timeout_ms = input_timeout_ms
        self.selected = 0
        self._clock = clock
        chart.set_bell(renderer.bell)

    @property
    def mode(self) -> Mode:
        return Mode.CHART if self.chart.is_open else Mode.BOARD

    def render(self) -> None:
        status = self.ctx.state.status
        if self.chart.is_open:
            self.chart.before_render(self._clock(), self.ctx.state)
            self.renderer.draw_chart(self.chart.build_view(self.renderer.chart_width()), status)
            return
        frame = self.board.render_rows(self.selected, self.renderer.board_rows())
        self.selected = frame.selected
        self.renderer.draw_board(frame, status)

    def dispatch(self, event: InputEvent) -> None:
        if event is Key.RESIZE:
            return
        if self.chart.is_open:
            self.chart.handle(event)
            return
        self.selected, action = self.board.handle(event, self.selected)
        if action.kind is BoardActionKind.QUIT:
            logger.info("quit requested from board")
            self.ctx.request_shutdown()
        elif action.kind is BoardActionKind.OPEN_CHART:
            self.chart.open(action.symbol, action.symbol_index)

    def step(self) -> Optional[InputEvent]:
        self.render()
        event = self.input.poll(self.input_timeout_ms)
        if event is not None:
            self.dispatch(event)
        return event

    def run(self) -> None:
        while self.ctx.is_running():
            self.step()
