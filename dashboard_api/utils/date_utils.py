"""
Trade Dashboard - Date/Time Utilities

Broker rows carry local (IST) wall-clock strings such as
"03-Sep-2025 10:42:00"; the date part doubles as the day key used by the
daily summary ("03-Sep-2025").
"""

import math
from datetime import datetime, date
from typing import Any, Optional

import pytz
from dateutil import parser as date_parser

# Indian Standard Time
IST = pytz.timezone('Asia/Kolkata')

DATE_KEY_FORMAT = '%d-%b-%Y'


def now_ist() -> datetime:
    """Get current time in IST."""
    return datetime.now(IST)


def today_ist() -> date:
    """Get current date in IST."""
    return now_ist().date()


def format_date_key(d: date) -> str:
    """Format date as a broker day key (DD-Mon-YYYY)."""
    return d.strftime(DATE_KEY_FORMAT)


def today_key_ist() -> str:
    """Get today's broker day key in IST, e.g. '03-Sep-2025'."""
    return format_date_key(today_ist())


def date_key_from_time_string(raw: Any) -> str:
    """Extract the day key from a broker time string ('03-Sep-2025 10:42:00' -> '03-Sep-2025')."""
    text = str(raw or "").strip()
    if not text:
        return ""
    return text.split(" ")[0]


def _localize(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return IST.localize(dt)
    return dt


def to_epoch_ms(dt: datetime) -> int:
    """Convert a datetime to epoch milliseconds (naive values are IST)."""
    return int(_localize(dt).timestamp() * 1000)


def parse_broker_time(value: Any) -> int:
    """
    Parse a broker timestamp to epoch milliseconds.

    Accepts datetimes, numbers (already epoch milliseconds) and strings
    in any format dateutil understands. Naive values are taken as IST.

    Returns:
        Epoch milliseconds, or 0 if the value cannot be parsed.
    """
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, datetime):
        return to_epoch_ms(value)
    if isinstance(value, (int, float)):
        try:
            if not math.isfinite(value) or value <= 0:
                return 0
        except OverflowError:
            return 0  # int too large for a float
        return int(value)

    text = str(value).strip()
    if not text:
        return 0
    try:
        return to_epoch_ms(date_parser.parse(text))
    except (ValueError, OverflowError, TypeError):
        return 0


def parse_date_param(value: Optional[str]) -> Optional[datetime]:
    """
    Parse a from/to query parameter.

    Raises:
        ValueError: If the value is present but not a recognizable date.
    """
    if value is None or not str(value).strip():
        return None
    try:
        return _localize(date_parser.parse(str(value).strip()))
    except (OverflowError, TypeError) as e:
        raise ValueError(f"Invalid date: {value}") from e


def format_datetime_ist(dt: datetime) -> str:
    """Format datetime to ISO string with IST timezone."""
    if dt.tzinfo is None:
        dt = IST.localize(dt)
    return dt.astimezone(IST).isoformat()
