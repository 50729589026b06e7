from __future__ import annotations

import logging
import threading
from dataclasses import dataclass

from .errors import FetchError, StartupError
from .market import MarketDataSource
from .models import FetchStatus, TickerRow
from .runtime import RuntimeContext

logger = logging.getLogger(__name__)

DEFAULT_REFRESH_INTERVAL_S = 5


@dataclass(frozen=True)
class CycleResult:
    updated: tuple[bool, ...]
    had_failure: bool


class Fetcher:
    """Background ticker refresh: fetch unlocked, publish once under the lock."""

    def __init__(self, ctx: RuntimeContext, source: MarketDataSource,
                 refresh_interval_s: int = DEFAULT_REFRESH_INTERVAL_S) -> None:
        self._ctx = ctx
        self._source = source
        self._refresh_interval_s = max(1, int(refresh_interval_s))
        self._scratch: list[TickerRow | None] = [None] * ctx.state.count
        self._t: threading.Thread | None = None

    def fetch_all(self) -> CycleResult:
        symbols = self._ctx.state.symbols
        updated = [False] * len(symbols)
        had_failure = False
        for i, sym in enumerate(symbols):
            if not self._ctx.is_running():
                break
            try:
                self._scratch[i] = self._source.fetch_ticker(sym)
                updated[i] = True
            except FetchError as exc:
                # Keep the stale row; the status panel reports the failure.
                had_failure = True
                logger.warning("ticker fetch failed symbol=%s error=%s", sym, exc)
            except Exception:
                had_failure = True
                logger.exception("ticker fetch crashed symbol=%s", sym)
        return CycleResult(updated=tuple(updated), had_failure=had_failure)

    def run_cycle(self) -> CycleResult:
        state = self._ctx.state
        state.set_status(FetchStatus.FETCHING)
        result = self.fetch_all()
        n = state.publish(self._scratch, result.updated)
        state.set_status(FetchStatus.NETWORK_ERROR if result.had_failure else FetchStatus.NORMAL)
        logger.debug("published %d/%d rows had_failure=%s", n, state.count, result.had_failure)
        return result

    def initial_fetch(self) -> CycleResult:
        # Synchronous, so the first frame has data.
        return self.run_cycle()

    def run(self) -> None:
        while self._ctx.is_running():
            try:
                self.run_cycle()
            except Exception:
                # Retry after the next sleep.
                logger.exception("fetch cycle failed")
                self._ctx.state.set_status(FetchStatus.NETWORK_ERROR)
            # 1s steps bound shutdown latency.
            for _ in range(self._refresh_interval_s):
                if not self._ctx.is_running():
                    break
                self._ctx.flag.wait(1.0)
        logger.info("fetcher stopped")

    def start(self) -> None:
        self._t = threading.Thread(target=self.run, name="ticker-fetcher", daemon=True)
        try:
            self._t.start()
        except RuntimeError as exc:
            self._t = None
            raise StartupError(f"cannot start fetcher thread: {exc}") from exc
        self._ctx.fetcher_thread = self._t

    def join(self, timeout: float | None = None) -> bool:
        """Wait for the thread to exit; returns False if it is still alive."""
        if self._t is None:
            return True
        self._t.join(timeout=timeout)
        return not self._t.is_alive()
