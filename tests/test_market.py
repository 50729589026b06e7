import unittest
from unittest import mock


def _kline(open_ms, close="101.5"):
    return [open_ms, "100.0", "110.0", "95.0", close, "12.5", open_ms + 59_999, "1250.0", 42, "6.0", "600.0", "0"]


def _response(payload=None, *, status_error=None, json_error=None):
    resp = mock.Mock()
    if status_error is not None:
        resp.raise_for_status.side_effect = status_error
    if json_error is not None:
        resp.json.side_effect = json_error
    else:
        resp.json.return_value = payload
    return resp


class TestParseTicker(unittest.TestCase):
    def test_parses_fields_and_keeps_raw_text(self) -> None:
        from tickerboard.market import parse_ticker

        row = parse_ticker(
            "BTCUSDT",
            {
                "lastPrice": "65000.10000000",
                "priceChangePercent": "-1.25",
                "highPrice": "66000.00",
                "lowPrice": "64000.00",
                "volume": "1234.5",
                "quoteVolume": "80000000.0",
                "count": 987654,
                "closeTime": 1_700_000_000_123,
            },
        )
        self.assertEqual(row.symbol, "BTCUSDT")
        self.assertAlmostEqual(row.price, 65000.1)
        self.assertAlmostEqual(row.change_pct, -1.25)
        self.assertEqual(row.trade_count, 987654)
        self.assertEqual(row.timestamp, 1_700_000_000)
        self.assertEqual(row.price_text, "65000.10000000")

    def test_missing_close_time_uses_now(self) -> None:
        from tickerboard.market import parse_ticker

        row = parse_ticker("ETHUSDT", {"lastPrice": "1.0"}, now_ts=123)
        self.assertEqual(row.timestamp, 123)
        self.assertEqual(row.change_pct, 0.0)

    def test_rejects_unexpected_payload(self) -> None:
        from tickerboard.errors import FetchError
        from tickerboard.market import parse_ticker

        with self.assertRaises(FetchError):
            parse_ticker("BTCUSDT", [])
        with self.assertRaises(FetchError):
            parse_ticker("BTCUSDT", {"code": -1121, "msg": "Invalid symbol."})


class TestParseKlines(unittest.TestCase):
    def test_parses_rows_in_seconds(self) -> None:
        from tickerboard.market import parse_klines

        candles = parse_klines([_kline(1_700_000_000_000), _kline(1_700_000_060_000, close="99.0")])
        self.assertEqual(len(candles), 2)
        first = candles[0]
        self.assertEqual(first.open_time, 1_700_000_000)
        self.assertEqual(first.close_time, 1_700_000_059)
        self.assertEqual((first.open, first.high, first.low, first.close), (100.0, 110.0, 95.0, 101.5))
        self.assertEqual(first.trade_count, 42)
        self.assertEqual(first.close_text, "101.5")
        self.assertEqual(candles[1].close, 99.0)

    def test_skips_malformed_rows(self) -> None:
        from tickerboard.market import parse_klines

        bad_price = _kline(1_000)
        bad_price[4] = "n/a"
        numeric_price = _kline(2_000)
        numeric_price[1] = 100.0
        candles = parse_klines([_kline(0), [1, 2], "x", bad_price, numeric_price, _kline(60_000)])
        self.assertEqual([c.open_time for c in candles], [0, 60])

    def test_short_row_without_extras(self) -> None:
        from tickerboard.market import parse_kline

        candle = parse_kline(_kline(0)[:7])
        self.assertIsNotNone(candle)
        self.assertEqual(candle.quote_volume, 0.0)
        self.assertEqual(candle.trade_count, 0)

    def test_infinite_numbers_fall_back_to_zero(self) -> None:
        from tickerboard.market import parse_kline, parse_ticker

        row = _kline(0)
        row[8] = float("inf")
        candle = parse_kline(row)
        self.assertIsNotNone(candle)
        self.assertEqual(candle.trade_count, 0)

        ticker = parse_ticker("BTCUSDT", {"lastPrice": "1.5", "count": float("inf"), "closeTime": float("-inf")}, now_ts=7)
        self.assertEqual(ticker.trade_count, 0)
        self.assertEqual(ticker.timestamp, 7)
        self.assertEqual(ticker.price, 1.5)

    def test_rejects_non_list_payload(self) -> None:
        from tickerboard.errors import FetchError
        from tickerboard.market import parse_klines

        with self.assertRaises(FetchError):
            parse_klines({"code": -1100})


class TestBinanceMarketSource(unittest.TestCase):
    def test_fetch_ticker_calls_24hr_endpoint(self) -> None:
        from tickerboard.market import BinanceMarketSource

        session = mock.Mock()
        session.headers = {}
        session.get.return_value = _response({"lastPrice": "2.5", "closeTime": 5_000})
        source = BinanceMarketSource("https://example.test/", timeout_s=3, session=session)

        row = source.fetch_ticker("ETHUSDT")
        self.assertEqual(row.price, 2.5)
        session.get.assert_called_once_with(
            "https://example.test/api/v3/ticker/24hr", params={"symbol": "ETHUSDT"}, timeout=3.0
        )
        self.assertEqual(session.headers["Accept"], "application/json")

    def test_fetch_candles_uses_period_interval_and_limit(self) -> None:
        from tickerboard.market import BinanceMarketSource
        from tickerboard.models import Period

        session = mock.Mock()
        session.headers = {}
        session.get.return_value = _response([_kline(0), _kline(3_600_000)])
        source = BinanceMarketSource(session=session)

        candles = source.fetch_candles("BTCUSDT", Period.HOUR_1)
        self.assertEqual(len(candles), 2)
        _, kwargs = session.get.call_args
        self.assertEqual(kwargs["params"], {"symbol": "BTCUSDT", "interval": "1h", "limit": 168})

    def test_transport_and_status_errors_raise_fetch_error(self) -> None:
        import requests

        from tickerboard.errors import FetchError
        from tickerboard.market import BinanceMarketSource

        session = mock.Mock()
        session.headers = {}
        session.get.side_effect = requests.ConnectionError("refused")
        source = BinanceMarketSource(session=session)
        with self.assertRaises(FetchError) as cm:
            source.fetch_ticker("BTCUSDT")
        self.assertIn("ConnectionError", str(cm.exception))

        session.get.side_effect = None
        session.get.return_value = _response(status_error=requests.HTTPError("429 Too Many Requests"))
        with self.assertRaises(FetchError):
            source.fetch_ticker("BTCUSDT")

    def test_invalid_json_raises_fetch_error(self) -> None:
        from tickerboard.errors import FetchError
        from tickerboard.market import BinanceMarketSource
        from tickerboard.models import Period

        session = mock.Mock()
        session.headers = {}
        session.get.return_value = _response(json_error=ValueError("Expecting value"))
        source = BinanceMarketSource(session=session)
        with self.assertRaises(FetchError) as cm:
            source.fetch_candles("BTCUSDT", Period.DAY_1)
        self.assertIn("invalid JSON", str(cm.exception))


if __name__ == "__main__":
    unittest.main()
