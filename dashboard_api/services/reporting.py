"""
Trade Dashboard - Aggregation / Reporting

Rolls MatchResult counters into the JSON-facing summaries. Monetary
figures are rounded here, at the boundary, never inside the engine.
"""

import math
from decimal import Decimal, ROUND_HALF_DOWN, ROUND_HALF_UP
from typing import Any, Dict, List, Optional, Sequence

from dashboard_api.services.lot_book import ClosedSlice
from dashboard_api.services.matching_engine import MatchResult


def round_half_up(value: float, digits: int) -> float:
    """Round halves toward +infinity (6.25 -> 6.3, -2.5 -> -2), unlike round()."""
    if not math.isfinite(value):
        return value
    mode = ROUND_HALF_UP if value >= 0 else ROUND_HALF_DOWN
    return float(Decimal(repr(value)).quantize(Decimal(1).scaleb(-digits), rounding=mode))


def round_money(value: float) -> float:
    return round_half_up(value, 2)


def build_summary(result: MatchResult) -> Dict[str, Any]:
    """
    Daily summary payload.

    totalTrades counts completed round trips; successRatePct is rounded to
    one decimal, money and risk/reward to two.
    """
    return {
        'totalPnl': round_money(result.realized_pnl),
        'totalTrades': result.round_trips,
        'openPositions': result.open_positions,
        'successRatePct': round_half_up(result.win_rate_pct, 1),
        'riskReward': round_half_up(result.risk_reward, 2),
    }


def build_strategy_pnl_row(strategy_name: str, result: MatchResult) -> Dict[str, Any]:
    """Per-strategy row for the live order-book report; rnr is None without losses."""
    rnr: Optional[float] = None
    if result.sum_loss > 0:
        rnr = round_half_up(result.sum_win / result.sum_loss, 2)

    return {
        'strategyName': strategy_name,
        'pnl': round_money(result.realized_pnl),
        'orders': result.events,
        'roundTrips': result.round_trips,
        'wins': result.wins,
        'losses': result.losses,
        'winRatePct': round_half_up(result.win_rate_pct, 2),
        'rnr': rnr,
        'openPositions': result.open_positions,
    }


def build_strategy_summary_row(strategy_name: str, result: MatchResult) -> Dict[str, Any]:
    """Per-strategy row for the execution-log report (win rate over round trips)."""
    avg_rr = result.avg_rr
    return {
        'strategyName': strategy_name,
        'pnl': round_money(result.realized_pnl),
        'trades': result.round_trips,
        'winRatePct': round_half_up(result.round_trip_win_rate_pct, 2),
        'avgRR': None if avg_rr is None else round_half_up(avg_rr, 2),
    }


def order_strategy_rows(
    rows: List[Dict[str, Any]],
    requested: Optional[Sequence[str]] = None
) -> List[Dict[str, Any]]:
    """Sort by pnl descending, or by the requested strategy order if given."""
    if not requested:
        return sorted(rows, key=lambda r: r['pnl'], reverse=True)
    position = {name: i for i, name in enumerate(requested)}
    return sorted(rows, key=lambda r: position.get(r['strategyName'], len(position)))


def slice_record(s: ClosedSlice, user_id: str) -> Dict[str, Any]:
    """Row for the pnl_trades table."""
    return {
        'user_id': user_id,
        'slice_key': s.slice_key,
        'symbol': s.symbol,
        'side': s.side.value,
        'qty': s.quantity,
        'entry_price': s.entry_price,
        'exit_price': s.exit_price,
        'pnl_per_unit': s.pnl_per_unit,
        'pnl': s.pnl,
        'volume': s.volume,
        'profit_or_loss': s.profit_or_loss,
        'entry_t': s.entry.timestamp,
        'entry_order_uid': s.entry.identity,
        'entry_updatetime': s.entry.update_time,
        'exit_t': s.exit.timestamp,
        'exit_order_uid': s.exit.identity,
        'exit_updatetime': s.exit.update_time,
        'date_key': s.date_key,
        'tag': s.tag,
    }
