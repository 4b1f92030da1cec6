"""
Tests for date/time utilities
"""

import pytest
from datetime import date, datetime

import pytz

from dashboard_api.utils.date_utils import (
    IST, format_date_key, date_key_from_time_string, to_epoch_ms,
    parse_broker_time, parse_date_param, format_datetime_ist,
)


class TestDateKeys:

    def test_format_date_key(self):
        assert format_date_key(date(2025, 9, 3)) == "03-Sep-2025"

    def test_date_key_from_time_string(self):
        assert date_key_from_time_string("03-Sep-2025 10:42:00") == "03-Sep-2025"
        assert date_key_from_time_string("") == ""
        assert date_key_from_time_string(None) == ""


class TestParseBrokerTime:
    """Tests for parse_broker_time."""

    def test_naive_string_is_ist(self):
        # 10:42 IST is 05:12 UTC
        expected = int(datetime(2025, 9, 3, 5, 12, tzinfo=pytz.utc).timestamp() * 1000)
        assert parse_broker_time("03-Sep-2025 10:42:00") == expected

    def test_aware_string(self):
        expected = int(datetime(2025, 9, 3, 5, 12, tzinfo=pytz.utc).timestamp() * 1000)
        assert parse_broker_time("2025-09-03T05:12:00Z") == expected

    def test_numbers_are_epoch_ms(self):
        assert parse_broker_time(1756876320000) == 1756876320000
        assert parse_broker_time(0) == 0
        assert parse_broker_time(-5) == 0
        assert parse_broker_time(float("inf")) == 0
        assert parse_broker_time(int("9" * 400)) == 0

    def test_datetime(self):
        dt = IST.localize(datetime(2025, 9, 3, 10, 42))
        assert parse_broker_time(dt) == to_epoch_ms(dt)

    @pytest.mark.parametrize("value", [None, "", "   ", "garbage", True])
    def test_unparseable_is_zero(self, value):
        assert parse_broker_time(value) == 0


class TestParseDateParam:
    """Tests for from/to query parsing."""

    def test_empty_is_none(self):
        assert parse_date_param(None) is None
        assert parse_date_param("") is None

    def test_date_only_is_ist_midnight(self):
        parsed = parse_date_param("2025-09-03")
        assert parsed == IST.localize(datetime(2025, 9, 3))

    def test_invalid_raises(self):
        with pytest.raises(ValueError):
            parse_date_param("garbage")


def test_format_datetime_ist_naive():
    assert format_datetime_ist(datetime(2025, 9, 3, 9, 15)) == "2025-09-03T09:15:00+05:30"
