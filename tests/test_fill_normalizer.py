"""
Tests for the Fill Event Normalizer
"""

import pytest
from datetime import datetime

from dashboard_api.services.fill_normalizer import (
    Side, FillEvent, NormalizeOptions,
    to_num, first_positive, resolve_price, resolve_time, resolve_side,
    row_identity, is_algo_row, extract_rows,
    normalize_row, normalize_rows, normalize_executions,
)
from dashboard_api.utils.date_utils import IST, to_epoch_ms
from tests.test_data import (
    TRADE_DAY, ALGO_BUY_ROW, ALGO_SELL_ROW, MANUAL_ROW, REJECTED_ROW,
    YESTERDAY_ROW, ALT_FIELDS_ROW, SAMPLE_ORDERBOOK,
)


def ist_ms(*args) -> int:
    return to_epoch_ms(IST.localize(datetime(*args)))


class TestFieldResolution:
    """Tests for the first-match-wins field table."""

    def test_to_num_coerces_junk_to_zero(self):
        assert to_num("12.5") == 12.5
        assert to_num(None) == 0.0
        assert to_num("abc") == 0.0
        assert to_num(float("nan")) == 0.0
        assert to_num(True) == 0.0

    def test_quantity_first_positive_wins(self):
        """filledshares '0' falls through to quantity."""
        assert first_positive(REJECTED_ROW, ('filledshares', 'filledqty', 'quantity', 'qty')) == 10

    def test_price_prefers_average_price(self):
        assert resolve_price(ALGO_BUY_ROW) == 100.0

    def test_price_falls_back_when_average_is_zero(self):
        assert resolve_price(REJECTED_ROW) == 101.0

    def test_time_parsed_as_ist(self):
        assert resolve_time(ALGO_BUY_ROW) == ist_ms(2025, 9, 3, 9, 20)

    def test_time_falls_through_to_later_fields(self):
        row = {"updatetime": "garbage", "createdAt": "2025-09-03T09:20:00+05:30"}
        assert resolve_time(row) == ist_ms(2025, 9, 3, 9, 20)

    def test_unparseable_time_is_zero(self):
        assert resolve_time({"updatetime": "garbage"}) == 0

    def test_side_anything_but_sell_is_buy(self):
        assert resolve_side({"transactiontype": "sell"}) == Side.SELL
        assert resolve_side({"transactiontype": "B"}) == Side.BUY
        assert resolve_side({}) == Side.BUY

    def test_identity_prefers_unique_order_id(self):
        assert row_identity(ALGO_BUY_ROW) == "u-buy-1"

    def test_identity_fallback(self):
        assert row_identity(ALT_FIELDS_ROW) == "250903000009|03-Sep-2025 11:00:00"

    def test_is_algo_row(self):
        assert is_algo_row(ALGO_BUY_ROW)
        assert not is_algo_row(MANUAL_ROW)
        assert not is_algo_row("not a row")
        assert is_algo_row({"ordertag": "XX_1"}, tag_prefix="XX_")


class TestExtractRows:
    """Tests for payload unwrapping."""

    def test_plain_list(self):
        assert extract_rows([{"a": 1}]) == [{"a": 1}]

    def test_data_list(self):
        assert extract_rows({"data": [{"a": 1}]}) == [{"a": 1}]

    def test_nested_data_list(self):
        assert extract_rows({"data": {"data": [{"a": 1}]}}) == [{"a": 1}]

    @pytest.mark.parametrize("payload", [None, "text", {"data": None}, {"data": {"rows": []}}])
    def test_unknown_shapes_are_empty(self, payload):
        assert extract_rows(payload) == []


class TestNormalizeRows:
    """Tests for order-book normalization."""

    def test_default_keeps_complete_algo_fills_sorted(self):
        events = normalize_rows(SAMPLE_ORDERBOOK)

        # manual and rejected rows dropped; sell row listed first but later in time
        assert [e.identity for e in events] == ["u-old-1", "u-buy-1", "u-sell-1"]

    def test_event_fields(self):
        event = normalize_row(ALGO_BUY_ROW, NormalizeOptions())

        assert event == FillEvent(
            symbol="SBIN-EQ",
            side=Side.BUY,
            quantity=10.0,
            price=100.0,
            timestamp=ist_ms(2025, 9, 3, 9, 20),
            identity="u-buy-1",
            tag="TV_alpha",
            update_time="03-Sep-2025 09:20:00",
            date_key=TRADE_DAY,
        )

    def test_date_key_filter(self):
        events = normalize_rows(SAMPLE_ORDERBOOK, NormalizeOptions(date_key=TRADE_DAY))

        assert [e.identity for e in events] == ["u-buy-1", "u-sell-1"]

    def test_alternate_field_names(self):
        event = normalize_row(ALT_FIELDS_ROW, NormalizeOptions())

        assert event.symbol == "NIFTY-FUT"
        assert event.side == Side.SELL
        assert event.quantity == 75
        assert event.price == 24500.5
        assert event.timestamp == ist_ms(2025, 9, 3, 11, 0)

    def test_exact_status_rejects_variants(self):
        row = {**ALGO_BUY_ROW, "status": "completed"}
        assert normalize_row(row, NormalizeOptions()) is None
        assert normalize_row(row, NormalizeOptions(status_match="contains")) is not None

    def test_no_tag_prefix_keeps_manual_rows(self):
        events = normalize_rows([MANUAL_ROW], NormalizeOptions(tag_prefix=None))
        assert len(events) == 1

    def test_require_positive_price(self):
        row = {**ALGO_BUY_ROW, "averageprice": "0", "price": "0"}
        assert normalize_row(row, NormalizeOptions()) is not None
        assert normalize_row(row, NormalizeOptions(require_positive_price=True)) is None

    def test_window_filter(self):
        options = NormalizeOptions(
            from_ms=ist_ms(2025, 9, 3, 9, 0),
            to_ms=ist_ms(2025, 9, 3, 10, 0),
        )
        events = normalize_rows(SAMPLE_ORDERBOOK, options)

        assert [e.identity for e in events] == ["u-buy-1"]

    def test_window_excludes_unparseable_time(self):
        row = {**ALGO_BUY_ROW, "updatetime": "", "exchorderupdatetime": ""}
        assert normalize_row(row, NormalizeOptions()) is not None
        assert normalize_row(row, NormalizeOptions(from_ms=1)) is None

    def test_tag_lookup_attaches_strategy(self):
        options = NormalizeOptions(tag_prefix=None, tag_lookup={"TV_alpha": "Alpha"})
        events = normalize_rows([ALGO_BUY_ROW, YESTERDAY_ROW], options)

        assert len(events) == 1
        assert events[0].strategy == "Alpha"

    def test_malformed_rows_are_skipped(self):
        events = normalize_rows([None, "row", 42, ALGO_BUY_ROW])
        assert [e.identity for e in events] == ["u-buy-1"]

    def test_zero_quantity_dropped(self):
        row = {**ALGO_BUY_ROW, "filledshares": "0", "quantity": "0"}
        assert normalize_row(row, NormalizeOptions()) is None


class TestNormalizeExecutions:
    """Tests for execution-log normalization."""

    def test_sides_and_stop_loss(self):
        rows = [
            {"ts": datetime(2025, 9, 3, 9, 15), "strategy_name": "Alpha", "symbol": "sbin",
             "side": "buy", "qty": 10, "price": 100, "sl": 95},
            {"ts": datetime(2025, 9, 3, 9, 30), "strategy_name": "Alpha", "symbol": "sbin",
             "side": "EXIT", "qty": 10, "price": 110, "sl": None},
            {"ts": datetime(2025, 9, 3, 9, 45), "strategy_name": "Alpha", "symbol": "sbin",
             "side": "HOLD", "qty": 10, "price": 110, "sl": None},
            {"ts": datetime(2025, 9, 3, 9, 50), "strategy_name": "Alpha", "symbol": "sbin",
             "side": "SELL", "qty": 0, "price": 110, "sl": None},
        ]
        events = normalize_executions(rows)

        assert [e.side for e in events] == [Side.BUY, Side.EXIT]
        assert events[0].symbol == "SBIN"
        assert events[0].stop_loss == 95.0
        assert events[0].strategy == "Alpha"
        assert events[0].timestamp == ist_ms(2025, 9, 3, 9, 15)
        assert events[1].stop_loss is None

    def test_boolean_stop_loss_ignored(self):
        rows = [{"ts": None, "strategy_name": "A", "symbol": "X", "side": "BUY",
                 "qty": 1, "price": 10, "sl": True}]
        assert normalize_executions(rows)[0].stop_loss is None


class TestOversizedNumbers:
    """JSON integers too large for a float are treated as junk, not errors."""

    HUGE = int("1" + "0" * 400)

    def test_to_num_huge_int_is_zero(self):
        assert to_num(self.HUGE) == 0.0

    def test_huge_quantity_row_skipped(self):
        row = {**ALGO_SELL_ROW, "filledshares": self.HUGE, "quantity": None}

        events = normalize_rows([row, ALGO_BUY_ROW])

        assert [e.identity for e in events] == ["u-buy-1"]

    def test_huge_timestamp_is_unparseable(self):
        row = {**ALGO_BUY_ROW, "updatetime": None, "exchorderupdatetime": None,
               "timestamp": self.HUGE}

        events = normalize_rows([row])

        assert len(events) == 1
        assert events[0].timestamp == 0

    def test_huge_stop_loss_ignored(self):
        rows = [{"ts": None, "strategy_name": "A", "symbol": "X", "side": "BUY",
                 "qty": 1, "price": 10, "sl": self.HUGE}]
        assert normalize_executions(rows)[0].stop_loss is None
