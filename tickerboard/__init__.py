"""Terminal crypto price board and candlestick chart."""

__version__ = "0.1.0"
