"""
Trade Dashboard - Fill Event Normalizer

Turns raw broker order-book rows into canonical fill events.

Broker rows are loosely typed and use several names for the same value,
so every logical attribute is resolved through one table, first match
wins:

    symbol     tradingsymbol, symbol
    side       transactiontype, side          (anything but SELL is BUY)
    quantity   filledshares, filledqty, quantity, qty   (first positive)
    price      averageprice if > 0, else price
    time       updatetime, exchorderupdatetime, exchtime, timestamp, createdAt
               (first that parses; else 0)
    status     status, orderstatus
    tag        ordertag
    identity   uniqueorderid, else "orderid|exchorderupdatetime"
"""

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional

from dashboard_api.config import settings
from dashboard_api.utils.date_utils import (
    parse_broker_time, date_key_from_time_string, today_key_ist
)

logger = logging.getLogger(__name__)


class Side(str, Enum):
    """Direction of a fill. EXIT only appears in the execution log."""
    BUY = "BUY"
    SELL = "SELL"
    EXIT = "EXIT"


FIELD_RESOLUTION: Dict[str, tuple] = {
    'symbol': ('tradingsymbol', 'symbol'),
    'side': ('transactiontype', 'side'),
    'quantity': ('filledshares', 'filledqty', 'quantity', 'qty'),
    'average_price': ('averageprice',),
    'price': ('price',),
    'time': ('updatetime', 'exchorderupdatetime', 'exchtime', 'timestamp', 'createdAt'),
    'update_time': ('updatetime', 'exchorderupdatetime', 'exchtime'),
    'status': ('status', 'orderstatus'),
    'tag': ('ordertag',),
}

COMPLETE_STATUS = "complete"


@dataclass
class FillEvent:
    """A completed fill, ready for matching."""
    symbol: str
    side: Side
    quantity: float
    price: float
    timestamp: int              # epoch ms, 0 if unparseable
    identity: str = ""
    tag: str = ""
    update_time: str = ""       # raw broker time string
    date_key: str = ""          # DD-Mon-YYYY
    stop_loss: Optional[float] = None
    strategy: Optional[str] = None


@dataclass
class NormalizeOptions:
    """Per-endpoint filtering choices."""
    tag_prefix: Optional[str] = field(default_factory=lambda: settings.algo_tag_prefix)
    status_match: str = "exact"     # 'exact' or 'contains'
    date_key: Optional[str] = None  # keep only rows from this broker day
    require_positive_price: bool = False
    from_ms: Optional[int] = None
    to_ms: Optional[int] = None
    tag_lookup: Optional[Mapping[str, str]] = None  # tag -> strategy name


# ============================================================
# Field resolution
# ============================================================

def to_finite(value: Any) -> Optional[float]:
    """Coerce to a finite float, or None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        n = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    return n if math.isfinite(n) else None


def to_num(value: Any) -> float:
    """Coerce to a finite float; anything else is 0."""
    n = to_finite(value)
    return 0.0 if n is None else n


def first_present(row: Mapping[str, Any], keys: Iterable[str]) -> str:
    """First non-empty value among keys, as a stripped string."""
    for key in keys:
        value = row.get(key)
        if value is not None and str(value).strip():
            return str(value).strip()
    return ""


def first_positive(row: Mapping[str, Any], keys: Iterable[str]) -> float:
    """First value among keys that is a positive number, else 0."""
    for key in keys:
        n = to_num(row.get(key))
        if n > 0:
            return n
    return 0.0


def resolve_price(row: Mapping[str, Any]) -> float:
    """Average price when present and > 0, else price."""
    avg = first_positive(row, FIELD_RESOLUTION['average_price'])
    if avg > 0:
        return avg
    return to_num(row.get('price'))


def resolve_time(row: Mapping[str, Any]) -> int:
    """First time field that parses, as epoch ms; 0 if none does."""
    for key in FIELD_RESOLUTION['time']:
        ms = parse_broker_time(row.get(key))
        if ms > 0:
            return ms
    return 0


def resolve_side(row: Mapping[str, Any]) -> Side:
    raw = first_present(row, FIELD_RESOLUTION['side']).upper()
    return Side.SELL if raw == "SELL" else Side.BUY


def row_identity(row: Mapping[str, Any]) -> str:
    """Stable row id: uniqueorderid, else 'orderid|exchorderupdatetime'."""
    uid = str(row.get('uniqueorderid') or "").strip()
    if uid:
        return uid
    order_id = str(row.get('orderid') or "").strip()
    update_time = str(row.get('exchorderupdatetime') or "").strip()
    return f"{order_id}|{update_time}"


def row_tag(row: Mapping[str, Any]) -> str:
    return first_present(row, FIELD_RESOLUTION['tag'])


def row_status(row: Mapping[str, Any]) -> str:
    return first_present(row, FIELD_RESOLUTION['status']).lower()


def is_algo_row(row: Any, tag_prefix: Optional[str] = None) -> bool:
    """True if the row's order tag carries the algorithmic prefix."""
    prefix = settings.algo_tag_prefix if tag_prefix is None else tag_prefix
    return isinstance(row, Mapping) and row_tag(row).startswith(prefix)


def extract_rows(payload: Any) -> List[Any]:
    """Pull the row list out of a broker payload ([...], {data: [...]}, {data: {data: [...]}})."""
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        data = payload.get('data')
        if isinstance(data, list):
            return data
        if isinstance(data, dict) and isinstance(data.get('data'), list):
            return data['data']
    return []


# ============================================================
# Normalization
# ============================================================

def _status_ok(status: str, mode: str) -> bool:
    if mode == "contains":
        return COMPLETE_STATUS in status
    return status == COMPLETE_STATUS


def normalize_row(row: Mapping[str, Any], options: NormalizeOptions) -> Optional[FillEvent]:
    """Normalize one broker row, or None if it is filtered out."""
    tag = row_tag(row)
    if options.tag_prefix is not None and not tag.startswith(options.tag_prefix):
        return None

    strategy = None
    if options.tag_lookup is not None:
        strategy = options.tag_lookup.get(tag)
        if not strategy:
            return None

    if not _status_ok(row_status(row), options.status_match):
        return None

    quantity = first_positive(row, FIELD_RESOLUTION['quantity'])
    if quantity <= 0:
        return None

    price = resolve_price(row)
    if options.require_positive_price and price <= 0:
        return None

    update_time = first_present(row, FIELD_RESOLUTION['update_time'])
    raw_key = date_key_from_time_string(update_time)
    if options.date_key is not None and raw_key != options.date_key:
        return None

    timestamp = resolve_time(row)
    if options.from_ms is not None and (not timestamp or timestamp < options.from_ms):
        return None
    if options.to_ms is not None and (not timestamp or timestamp > options.to_ms):
        return None

    return FillEvent(
        symbol=first_present(row, FIELD_RESOLUTION['symbol']).upper(),
        side=resolve_side(row),
        quantity=quantity,
        price=price,
        timestamp=timestamp,
        identity=row_identity(row),
        tag=tag,
        update_time=update_time,
        date_key=raw_key or today_key_ist(),
        strategy=strategy,
    )


def normalize_rows(rows: Iterable[Any], options: Optional[NormalizeOptions] = None) -> List[FillEvent]:
    """
    Normalize broker order-book rows into fill events.

    Rows that are not mappings or fail to normalize are skipped, never
    raised.

    Returns:
        Events sorted ascending by timestamp (stable for equal times).
    """
    options = options or NormalizeOptions()
    events: List[FillEvent] = []
    skipped = 0

    for row in rows:
        if not isinstance(row, Mapping):
            skipped += 1
            continue
        try:
            event = normalize_row(row, options)
        except (AttributeError, TypeError, ValueError, OverflowError) as e:
            skipped += 1
            logger.debug(f"[NORMALIZER] Skipping malformed row: {e}")
            continue
        if event is not None:
            events.append(event)

    if skipped:
        logger.debug(f"[NORMALIZER] Skipped {skipped} malformed rows")

    return sorted(events, key=lambda e: e.timestamp)


def normalize_executions(rows: Iterable[Mapping[str, Any]]) -> List[FillEvent]:
    """
    Normalize execution-log rows (ts, strategy_name, symbol, side, qty, price, sl).

    Keeps BUY, SELL and EXIT with a positive quantity; unknown sides are
    dropped. Order is preserved; the matching engine sorts by time.
    """
    events: List[FillEvent] = []
    for row in rows:
        side_raw = str(row.get('side') or "").upper()
        if side_raw not in Side.__members__:
            continue
        quantity = max(0.0, to_num(row.get('qty')))
        if not quantity:
            continue

        sl = row.get('sl')
        stop_loss = None
        if isinstance(sl, (int, float)):
            stop_loss = to_finite(sl)

        events.append(FillEvent(
            symbol=str(row.get('symbol') or "").upper(),
            side=Side(side_raw),
            quantity=quantity,
            price=to_num(row.get('price')),
            timestamp=parse_broker_time(row.get('ts')),
            strategy=str(row.get('strategy_name') or ""),
            stop_loss=stop_loss,
        ))
    return events
