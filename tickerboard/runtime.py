"""Runtime context: shared ticker table, running flag, and signal handling.

The only object touched by both the fetcher thread and the UI thread is
SharedMarketState. Everything else is owned by the UI thread.
"""

from __future__ import annotations

import logging
import signal
import threading
from dataclasses import dataclass, field
from typing import Optional, Sequence

from .config import Settings
from .errors import StartupError
from .models import MAX_SYMBOLS, FetchStatus, TickerRow

logger = logging.getLogger(__name__)


class RunFlag:
    """Process-wide "keep running" flag; cleared once, never re-armed."""

    def __init__(self) -> None:
        self._stop = threading.Event()

    def is_running(self) -> bool:
        return not self._stop.is_set()

    def request_shutdown(self) -> None:
        self._stop.set()

    def wait(self, timeout: float) -> bool:
        """Sleep up to timeout; returns True if shutdown was requested."""
        return self._stop.wait(timeout=max(0.0, float(timeout)))


class SharedMarketState:
    """Latest TickerRow per configured symbol, indexed in config order."""

    def __init__(self, symbols: Sequence[str]) -> None:
        self._lock = threading.Lock()
        self._symbols = tuple(symbols)
        self._rows: list[TickerRow] = [TickerRow.empty(s) for s in self._symbols]
        self._status = FetchStatus.NORMAL

    @property
    def symbols(self) -> tuple[str, ...]:
        return self._symbols

    @property
    def count(self) -> int:
        return len(self._symbols)

    @property
    def status(self) -> FetchStatus:
        with self._lock:
            return self._status

    def set_status(self, status: FetchStatus) -> None:
        with self._lock:
            self._status = status

    def snapshot(self) -> list[TickerRow]:
        with self._lock:
            return list(self._rows)

    def publish(self, scratch: Sequence[TickerRow | None], updated: Sequence[bool]) -> int:
        """Copy rows flagged in `updated` in one locked pass; returns how many."""
        n = 0
        with self._lock:
            for i in range(len(self._rows)):
                if i < len(updated) and updated[i]:
                    row = scratch[i]
                    if row is None:
                        continue
                    self._rows[i] = row
                    n += 1
        return n

    def find_price(self, symbol: str, hint_index: Optional[int] = None) -> Optional[float]:
        """Latest price for symbol, trying hint_index before a linear scan."""
        with self._lock:
            if hint_index is not None and 0 <= hint_index < len(self._rows):
                row = self._rows[hint_index]
                if row.symbol == symbol:
                    return row.price
            for row in self._rows:
                if row.symbol == symbol:
                    return row.price
        return None


@dataclass
class RuntimeContext:
    settings: Settings
    symbols: list[str]
    state: SharedMarketState = field(init=False)
    flag: RunFlag = field(default_factory=RunFlag)
    fetcher_thread: Optional[threading.Thread] = field(default=None, init=False)

    def __post_init__(self) -> None:
        if not self.symbols:
            raise StartupError("no symbols configured")
        if len(self.symbols) > MAX_SYMBOLS:
            raise StartupError(
                f"too many symbols: {len(self.symbols)} > {MAX_SYMBOLS}",
                detail={"count": len(self.symbols)},
            )
        self.symbols = list(self.symbols)
        self.state = SharedMarketState(self.symbols)

    def is_running(self) -> bool:
        return self.flag.is_running()

    def request_shutdown(self) -> None:
        self.flag.request_shutdown()


def install_signal_handlers(ctx: RuntimeContext) -> None:
    """SIGINT/SIGTERM only flip the running flag."""

    def _handler(signo, _frame) -> None:
        logger.info("signal %s received, shutting down", signo)
        ctx.request_shutdown()

    signal.signal(signal.SIGINT, _handler)
    signal.signal(signal.SIGTERM, _handler)
