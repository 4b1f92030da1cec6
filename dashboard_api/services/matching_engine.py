"""
Trade Dashboard - FIFO Matching Engine

Replays fill events through a fresh LotBook and collects realized trade
slices plus the running counters the reports are built from.

Counting rules:
- every closing slice is a win (pnl > 0) or a loss (pnl < 0); zero is neither
- a lot closed down to zero is a round trip; it is a round-trip win when
  its final slice is positive
- a round trip whose lot carried a stop loss adds pnl_per_unit / risk_per_unit
  to the reward-to-risk sum
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from dashboard_api.services.fill_normalizer import FillEvent, Side
from dashboard_api.services.lot_book import LotBook, ClosedSlice, FillRef

logger = logging.getLogger(__name__)


@dataclass
class MatchResult:
    """Output of one matching run."""
    slices: List[ClosedSlice] = field(default_factory=list)
    events: int = 0
    wins: int = 0
    losses: int = 0
    sum_win: float = 0.0
    sum_loss: float = 0.0       # absolute value of losing P&L
    realized_pnl: float = 0.0
    round_trips: int = 0
    round_trip_wins: int = 0
    rr_sum: float = 0.0
    rr_count: int = 0
    open_positions: int = 0
    zero_timestamp_events: int = 0

    @property
    def win_rate_pct(self) -> float:
        """wins / (wins + losses) × 100, 0 when nothing was decided."""
        decided = self.wins + self.losses
        return (self.wins / decided) * 100 if decided else 0.0

    @property
    def risk_reward(self) -> float:
        """Total winning P&L ÷ total absolute losing P&L, 0 without losses."""
        return self.sum_win / self.sum_loss if self.sum_loss > 0 else 0.0

    @property
    def round_trip_win_rate_pct(self) -> float:
        return (self.round_trip_wins / self.round_trips) * 100 if self.round_trips else 0.0

    @property
    def avg_rr(self) -> Optional[float]:
        return self.rr_sum / self.rr_count if self.rr_count else None


def _fill_ref(event: FillEvent) -> FillRef:
    return FillRef(
        timestamp=event.timestamp,
        identity=event.identity,
        update_time=event.update_time,
        tag=event.tag,
        date_key=event.date_key,
    )


class MatchingEngine:
    """Drives a LotBook from a stream of fills for one (user, strategy) scope."""

    def __init__(self, book: Optional[LotBook] = None):
        self.book = book or LotBook()

    def _record(self, result: MatchResult, slices: List[ClosedSlice]) -> None:
        for s in slices:
            result.slices.append(s)
            result.realized_pnl += s.pnl

            if s.pnl > 0:
                result.wins += 1
                result.sum_win += s.pnl
            elif s.pnl < 0:
                result.losses += 1
                result.sum_loss += abs(s.pnl)

            if not s.fully_closed:
                continue

            result.round_trips += 1
            if s.pnl > 0:
                result.round_trip_wins += 1

            if s.stop_loss is not None and s.stop_loss != s.entry_price:
                risk_per_unit = abs(s.entry_price - s.stop_loss)
                if risk_per_unit > 0:
                    result.rr_sum += s.pnl_per_unit / risk_per_unit
                    result.rr_count += 1

    def apply(self, event: FillEvent, result: MatchResult) -> List[ClosedSlice]:
        """Apply one fill to the book and record its slices."""
        ref = _fill_ref(event)

        if event.side == Side.EXIT:
            slices = self.book.close_all(event.symbol, event.price, exit_ref=ref)
        else:
            slices = self.book.close(
                event.symbol, event.side, event.quantity, event.price,
                exit_ref=ref, stop_loss=event.stop_loss,
            )

        self._record(result, slices)
        return slices

    def run(self, events: Iterable[FillEvent]) -> MatchResult:
        """
        Match events in ascending timestamp order.

        Input is re-sorted (stable) so callers need not pre-sort. Events
        with an unparseable time (timestamp 0) sort first; they are kept
        and counted in zero_timestamp_events.
        """
        ordered = sorted(events, key=lambda e: e.timestamp)
        result = MatchResult(events=len(ordered))

        result.zero_timestamp_events = sum(1 for e in ordered if not e.timestamp)
        if result.zero_timestamp_events:
            logger.warning(
                f"[MATCHING] {result.zero_timestamp_events} of {len(ordered)} fills "
                f"have no parseable time and are matched first"
            )

        for event in ordered:
            self.apply(event, result)

        result.open_positions = len(self.book.open_symbols())
        return result


def match_fills(events: Iterable[FillEvent]) -> MatchResult:
    """Run a fresh engine over events."""
    return MatchingEngine().run(events)
