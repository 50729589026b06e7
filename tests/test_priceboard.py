import unittest


def _state(symbols, prices=None, changes=None):
    from tickerboard.models import TickerRow
    from tickerboard.runtime import SharedMarketState

    state = SharedMarketState(symbols)
    prices = prices or [0.0] * len(symbols)
    changes = changes or [0.0] * len(symbols)
    rows = [TickerRow(symbol=s, price=p, change_pct=c) for s, p, c in zip(symbols, prices, changes)]
    state.publish(rows, [True] * len(rows))
    return state


class TestPriceBoardSelection(unittest.TestCase):
    def test_clamp_selected_stays_in_range(self) -> None:
        from tickerboard.priceboard import PriceBoardEngine

        for count in range(0, 6):
            board = PriceBoardEngine(_state([f"S{i}X" for i in range(count)]))
            board.snapshot()
            for selected in range(-3, 9):
                got = board.clamp_selected(selected)
                if count == 0:
                    self.assertEqual(got, 0)
                else:
                    self.assertGreaterEqual(got, 0)
                    self.assertLess(got, count)

    def test_viewport_keeps_selection_visible(self) -> None:
        from tickerboard.priceboard import PriceBoardEngine

        board = PriceBoardEngine(_state([f"SYM{i}" for i in range(20)]))
        board.snapshot()
        for visible in (1, 3, 7, 25):
            for selected in list(range(20)) + list(range(19, -1, -1)):
                offset = board.viewport(selected, visible)
                self.assertLessEqual(offset, selected)
                self.assertLess(selected, offset + visible)

    def test_viewport_offset_persists_while_selection_is_visible(self) -> None:
        from tickerboard.priceboard import PriceBoardEngine

        board = PriceBoardEngine(_state([f"SYM{i}" for i in range(10)]))
        board.snapshot()
        self.assertEqual(board.viewport(6, 4), 3)
        # Moving back up inside the window does not scroll.
        self.assertEqual(board.viewport(4, 4), 3)
        self.assertEqual(board.viewport(2, 4), 2)

    def test_hit_test_row_maps_screen_y(self) -> None:
        from tickerboard.priceboard import BOARD_START_Y, PriceBoardEngine

        board = PriceBoardEngine(_state([f"SYM{i}" for i in range(10)]))
        board.render_rows(8, 4)
        self.assertEqual(board.scroll_offset, 5)
        self.assertEqual(board.hit_test_row(BOARD_START_Y, BOARD_START_Y, 4, 10), 5)
        self.assertEqual(board.hit_test_row(BOARD_START_Y + 3, BOARD_START_Y, 4, 10), 8)
        self.assertIsNone(board.hit_test_row(BOARD_START_Y - 1, BOARD_START_Y, 4, 10))
        self.assertIsNone(board.hit_test_row(BOARD_START_Y + 4, BOARD_START_Y, 4, 10))
        self.assertIsNone(board.hit_test_row(BOARD_START_Y, BOARD_START_Y, 4, 0))

    def test_resolve_symbol_index_out_of_range(self) -> None:
        from tickerboard.priceboard import PriceBoardEngine

        board = PriceBoardEngine(_state(["BTCUSDT", "ETHUSDT"]))
        board.snapshot()
        self.assertEqual(board.resolve_symbol_index(1), 1)
        self.assertIsNone(board.resolve_symbol_index(2))
        self.assertIsNone(board.resolve_symbol_index(-1))


class TestPriceBoardSort(unittest.TestCase):
    def test_scenario_no_sort_keeps_config_order(self) -> None:
        from tickerboard.priceboard import PriceBoardEngine

        board = PriceBoardEngine(_state(["BTCUSDT", "ETHUSDT", "BNBUSDT"], [100.0, 50.0, 75.0]))
        frame = board.render_rows(1, 10)
        self.assertEqual([r.symbol for r in frame.rows], ["BTCUSDT", "ETHUSDT", "BNBUSDT"])
        self.assertEqual(frame.selected, 1)
        self.assertEqual(frame.rows[frame.selected - frame.offset].symbol, "ETHUSDT")

    def test_scenario_price_desc(self) -> None:
        from tickerboard.priceboard import PriceBoardEngine, SortField

        board = PriceBoardEngine(_state(["BTCUSDT", "ETHUSDT", "BNBUSDT"], [100.0, 50.0, 75.0]))
        board.cycle_sort(SortField.PRICE)
        frame = board.render_rows(0, 10)
        self.assertEqual([r.symbol for r in frame.rows], ["BTCUSDT", "BNBUSDT", "ETHUSDT"])
        self.assertEqual(frame.origins, [0, 2, 1])

    def test_sort_is_idempotent(self) -> None:
        from tickerboard.priceboard import PriceBoardEngine, SortField

        board = PriceBoardEngine(_state([f"SYM{i}" for i in range(6)], [3.0, 1.0, 3.0, 2.0, 1.0, 5.0]))
        board.cycle_sort(SortField.PRICE)
        board.snapshot()
        board.apply_sort()
        once = list(board.order)
        board.apply_sort()
        self.assertEqual(board.order, once)
        self.assertEqual(sorted(board.order), list(range(6)))

    def test_ties_keep_config_order_in_both_directions(self) -> None:
        from tickerboard.priceboard import PriceBoardEngine, SortDirection, SortField

        board = PriceBoardEngine(_state(["AAA1", "BBB2", "CCC3", "DDD4"], [10.0, 20.0, 10.0, 20.0]))
        board.cycle_sort(SortField.PRICE)
        self.assertIs(board.sort.direction, SortDirection.DESC)
        board.snapshot()
        board.apply_sort()
        self.assertEqual(board.order, [1, 3, 0, 2])

        board.cycle_sort(SortField.PRICE)
        self.assertIs(board.sort.direction, SortDirection.ASC)
        board.snapshot()
        board.apply_sort()
        self.assertEqual(board.order, [0, 2, 1, 3])

    def test_change_sort_uses_change_pct(self) -> None:
        from tickerboard.priceboard import PriceBoardEngine, SortField

        board = PriceBoardEngine(
            _state(["AAA1", "BBB2", "CCC3"], [1.0, 2.0, 3.0], [-5.0, 7.5, 0.0])
        )
        board.cycle_sort(SortField.CHANGE)
        board.cycle_sort(SortField.CHANGE)
        frame = board.render_rows(0, 10)
        self.assertEqual([r.symbol for r in frame.rows], ["AAA1", "CCC3", "BBB2"])

    def test_triple_cycle_returns_to_config_order(self) -> None:
        from tickerboard.priceboard import PriceBoardEngine, SortField

        board = PriceBoardEngine(_state(["BTCUSDT", "ETHUSDT", "BNBUSDT"], [100.0, 50.0, 75.0]))
        for _ in range(3):
            board.cycle_sort(SortField.PRICE)
        self.assertIs(board.sort.field, SortField.NONE)
        frame = board.render_rows(0, 10)
        self.assertEqual([r.symbol for r in frame.rows], ["BTCUSDT", "ETHUSDT", "BNBUSDT"])

    def test_switching_field_starts_desc(self) -> None:
        from tickerboard.priceboard import PriceBoardEngine, SortDirection, SortField

        board = PriceBoardEngine(_state(["BTCUSDT"]))
        board.cycle_sort(SortField.PRICE)
        board.cycle_sort(SortField.PRICE)
        board.cycle_sort(SortField.CHANGE)
        self.assertIs(board.sort.field, SortField.CHANGE)
        self.assertIs(board.sort.direction, SortDirection.DESC)

    def test_sort_hints(self) -> None:
        from tickerboard.priceboard import PriceBoardEngine, SortField

        board = PriceBoardEngine(_state(["BTCUSDT"]))
        self.assertEqual(board.sort_hint(SortField.PRICE), "↓")
        board.cycle_sort(SortField.PRICE)
        self.assertEqual(board.sort_hint(SortField.PRICE), "↑")
        self.assertEqual(board.sort_hint(SortField.CHANGE), "↓")
        board.cycle_sort(SortField.PRICE)
        self.assertEqual(board.sort_hint(SortField.PRICE), "=")


class TestPriceBoardInput(unittest.TestCase):
    def test_keys_move_and_open(self) -> None:
        from tickerboard.events import Key
        from tickerboard.priceboard import BoardActionKind, PriceBoardEngine, SortField

        board = PriceBoardEngine(_state(["BTCUSDT", "ETHUSDT", "BNBUSDT"], [100.0, 50.0, 75.0]))
        board.render_rows(0, 10)
        selected, action = board.handle_key(Key.UP, 0)
        self.assertEqual((selected, action.kind), (0, BoardActionKind.NONE))
        selected, _ = board.handle_key(Key.DOWN, selected)
        self.assertEqual(selected, 1)

        board.handle_key(Key.SORT_PRICE, selected)
        self.assertIs(board.sort.field, SortField.PRICE)
        board.render_rows(selected, 10)
        # Display row 1 is BNBUSDT (config index 2) after the price sort.
        _, action = board.handle_key(Key.ENTER, 1)
        self.assertIs(action.kind, BoardActionKind.OPEN_CHART)
        self.assertEqual(action.symbol_index, 2)
        self.assertEqual(action.symbol, "BNBUSDT")

        _, action = board.handle_key(Key.QUIT, 1)
        self.assertIs(action.kind, BoardActionKind.QUIT)

    def test_mouse_click_opens_row_and_wheel_moves(self) -> None:
        from tickerboard.events import Button, MouseEvent
        from tickerboard.priceboard import BOARD_START_Y, BoardActionKind, PriceBoardEngine

        board = PriceBoardEngine(_state(["BTCUSDT", "ETHUSDT", "BNBUSDT"]))
        board.render_rows(0, 10)
        selected, action = board.handle_mouse(MouseEvent(5, BOARD_START_Y + 2, Button.LEFT), 0)
        self.assertEqual(selected, 2)
        self.assertEqual(action.symbol, "BNBUSDT")
        self.assertIs(action.kind, BoardActionKind.OPEN_CHART)

        selected, action = board.handle_mouse(MouseEvent(5, BOARD_START_Y + 7, Button.LEFT), 2)
        self.assertEqual(selected, 2)
        self.assertIs(action.kind, BoardActionKind.NONE)

        selected, _ = board.handle_mouse(MouseEvent(0, 0, Button.WHEEL_UP), 2)
        self.assertEqual(selected, 1)
        selected, _ = board.handle_mouse(MouseEvent(0, 0, Button.WHEEL_DOWN), 2)
        self.assertEqual(selected, 2)


if __name__ == "__main__":
    unittest.main()
