from __future__ import annotations

import argparse
from pathlib import Path

from .config import Settings, load_symbols, parse_symbol_arg, save_symbols
from .errors import ConfigError, safe_main
from .logging_utils import get_logger, setup_logging
from .market import BinanceMarketSource
from .models import DEFAULT_PERIOD, Period
from .runtime import RuntimeContext, install_signal_handlers

COMPONENT = "tickerboard"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Terminal crypto price board with candlestick charts (Binance spot)")
    parser.add_argument("--symbols", default="", help="Comma-separated symbols for this run. Example: BTCUSDT,ETH/USDT")
    parser.add_argument("--symbols-file", default="", help="Symbol list file, one per line (default: ~/.tickerboard.conf)")
    parser.add_argument("--refresh", type=int, default=0, help="Ticker refresh interval seconds (default: 5)")
    parser.add_argument(
        "--period",
        default=DEFAULT_PERIOD.interval,
        choices=[p.interval for p in Period],
        help="Initial chart period (default: 1d)",
    )
    parser.add_argument("--save-symbols", action="store_true", help="Write the effective symbol list to the file and exit")
    parser.add_argument("--log-file", default="", help="Log file path (the terminal is owned by the UI)")
    parser.add_argument("--log-level", default="", help="DEBUG/INFO/WARNING/ERROR (default: INFO)")
    return parser


def _settings_from_args(args: argparse.Namespace) -> Settings:
    settings = Settings()
    if args.symbols_file:
        settings.symbols_file = Path(args.symbols_file).expanduser()
    if args.refresh:
        settings.refresh_interval_s = max(1, int(args.refresh))
    if args.log_file:
        settings.log_file = str(args.log_file)
    if args.log_level:
        settings.log_level = str(args.log_level).upper()
    return settings


def run(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    settings = _settings_from_args(args)
    setup_logging(settings.log_level, settings.log_format, component=COMPONENT,
                  log_file=settings.log_file, console=bool(args.save_symbols))
    log = get_logger(__name__, COMPONENT)

    if args.symbols:
        symbols = parse_symbol_arg(args.symbols)
        if not symbols:
            raise ConfigError(f"no valid symbols in --symbols: {args.symbols}", detail={"symbols": args.symbols})
    else:
        symbols = load_symbols(settings.symbols_file)

    if args.save_symbols:
        save_symbols(settings.symbols_file, symbols)
        log.info("saved %d symbols to %s", len(symbols), settings.symbols_file)
        return

    ctx = RuntimeContext(settings=settings, symbols=symbols)
    install_signal_handlers(ctx)
    # The fetcher thread and the UI thread each get their own requests.Session.
    ticker_source = BinanceMarketSource(settings.api_base, settings.http_timeout_s)
    chart_source = BinanceMarketSource(settings.api_base, settings.http_timeout_s)
    log.info("starting symbols=%s api=%s", ",".join(symbols), settings.api_base)

    # Imported here so --save-symbols works where curses is unavailable.
    from .tui import run as run_tui

    try:
        run_tui(ctx, ticker_source, chart_source, Period.from_interval(args.period))
    finally:
        ticker_source.close()
        chart_source.close()
        log.info("shutdown complete")


def main(argv: list[str] | None = None) -> int:
    return safe_main(lambda: run(argv), component=COMPONENT)


if __name__ == "__main__":
    raise SystemExit(main())
