"""
Trade Dashboard - FIFO Lot Book

Per-symbol open inventory, one FIFO queue of long lots and one of short
lots. Incoming fills close the opposite queue oldest-first; whatever is
left over opens a new lot in the fill's own direction.

Matching is strictly FIFO (no price or size preference) so the same fill
sequence always yields the same realized slices.
"""

from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Deque, Dict, List, Optional

from dashboard_api.services.fill_normalizer import Side

# Remaining quantities at or below this are treated as fully closed
QTY_EPSILON = 1e-9


class PositionSide(str, Enum):
    """Direction of an open lot."""
    LONG = "LONG"
    SHORT = "SHORT"


@dataclass(frozen=True)
class FillRef:
    """Reference to the fill that opened or closed a lot."""
    timestamp: int = 0
    identity: str = ""
    update_time: str = ""
    tag: str = ""
    date_key: str = ""


@dataclass
class Lot:
    """Open inventory created by the unmatched part of a fill."""
    side: PositionSide
    quantity: float
    price: float
    entry: FillRef = field(default_factory=FillRef)
    stop_loss: Optional[float] = None


def _fmt_num(value: float) -> str:
    """Render integral floats without a decimal part (100.0 -> '100')."""
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


@dataclass
class ClosedSlice:
    """A realized match between an open lot and an incoming fill."""
    symbol: str
    side: PositionSide          # side being closed
    quantity: float
    entry_price: float
    exit_price: float
    pnl_per_unit: float
    pnl: float
    entry: FillRef
    exit: FillRef
    fully_closed: bool          # the entry lot reached zero with this slice
    stop_loss: Optional[float] = None

    @property
    def volume(self) -> float:
        return self.quantity * (self.entry_price + self.exit_price)

    @property
    def profit_or_loss(self) -> str:
        if self.pnl > 0:
            return "profit"
        if self.pnl < 0:
            return "loss"
        return "breakeven"

    @property
    def tag(self) -> str:
        return self.entry.tag or self.exit.tag

    @property
    def date_key(self) -> str:
        return self.exit.date_key

    @property
    def slice_key(self) -> str:
        """Deterministic identity: symbol|side|entry_t|exit_t|entry|exit|qty."""
        return "|".join([
            self.symbol,
            self.side.value,
            str(self.entry.timestamp),
            str(self.exit.timestamp),
            _fmt_num(self.entry_price),
            _fmt_num(self.exit_price),
            _fmt_num(self.quantity),
        ])


def pnl_per_unit(side: PositionSide, entry_price: float, exit_price: float) -> float:
    """Exit - entry when closing a long; entry - exit when closing a short."""
    if side == PositionSide.LONG:
        return exit_price - entry_price
    return entry_price - exit_price


class LotBook:
    """FIFO long/short lot queues per symbol."""

    def __init__(self):
        self._books: Dict[str, Dict[PositionSide, Deque[Lot]]] = {}

    def _queue(self, symbol: str, side: PositionSide) -> Deque[Lot]:
        book = self._books.setdefault(
            symbol, {PositionSide.LONG: deque(), PositionSide.SHORT: deque()}
        )
        return book[side]

    def open(
        self,
        symbol: str,
        side: PositionSide,
        quantity: float,
        price: float,
        entry: Optional[FillRef] = None,
        stop_loss: Optional[float] = None
    ) -> Lot:
        """Append a new lot to the tail of the side's queue."""
        lot = Lot(
            side=side,
            quantity=quantity,
            price=price,
            entry=entry or FillRef(),
            stop_loss=stop_loss,
        )
        self._queue(symbol, side).append(lot)
        return lot

    def close(
        self,
        symbol: str,
        incoming_side: Side,
        quantity: float,
        price: float,
        exit_ref: Optional[FillRef] = None,
        open_remainder: bool = True,
        stop_loss: Optional[float] = None
    ) -> List[ClosedSlice]:
        """
        Match an incoming fill against the opposite queue, oldest lot first.

        BUY closes SHORT lots, SELL closes LONG lots. Each step takes
        min(remaining, head lot quantity). Unconsumed quantity opens a lot
        on the incoming direction unless open_remainder is False.

        Returns:
            Closed slices in match order.
        """
        if incoming_side == Side.BUY:
            target, remainder_side = PositionSide.SHORT, PositionSide.LONG
        elif incoming_side == Side.SELL:
            target, remainder_side = PositionSide.LONG, PositionSide.SHORT
        else:
            raise ValueError(f"close() takes BUY or SELL, got {incoming_side}")

        exit_ref = exit_ref or FillRef()
        queue = self._queue(symbol, target)
        slices: List[ClosedSlice] = []
        remaining = quantity

        while remaining > QTY_EPSILON and queue:
            lot = queue[0]
            take = min(remaining, lot.quantity)
            per_unit = pnl_per_unit(target, lot.price, price)

            lot.quantity -= take
            remaining -= take
            fully_closed = lot.quantity <= QTY_EPSILON

            slices.append(ClosedSlice(
                symbol=symbol,
                side=target,
                quantity=take,
                entry_price=lot.price,
                exit_price=price,
                pnl_per_unit=per_unit,
                pnl=per_unit * take,
                entry=lot.entry,
                exit=exit_ref,
                fully_closed=fully_closed,
                stop_loss=lot.stop_loss,
            ))

            if fully_closed:
                queue.popleft()

        if open_remainder and remaining > QTY_EPSILON:
            self.open(symbol, remainder_side, remaining, price, entry=exit_ref, stop_loss=stop_loss)

        return slices

    def close_all(
        self,
        symbol: str,
        price: float,
        exit_ref: Optional[FillRef] = None
    ) -> List[ClosedSlice]:
        """Close every long lot, then every short lot, at price (EXIT)."""
        slices = self.close(
            symbol, Side.SELL, self.total_quantity(symbol, PositionSide.LONG), price,
            exit_ref=exit_ref, open_remainder=False,
        )
        slices += self.close(
            symbol, Side.BUY, self.total_quantity(symbol, PositionSide.SHORT), price,
            exit_ref=exit_ref, open_remainder=False,
        )
        return slices

    def lots(self, symbol: str, side: PositionSide) -> List[Lot]:
        """Open lots for symbol/side, oldest first."""
        if symbol not in self._books:
            return []
        return list(self._books[symbol][side])

    def total_quantity(self, symbol: str, side: PositionSide) -> float:
        return sum(lot.quantity for lot in self.lots(symbol, side))

    def net_quantity(self, symbol: str) -> float:
        """Long total minus short total."""
        return (
            self.total_quantity(symbol, PositionSide.LONG)
            - self.total_quantity(symbol, PositionSide.SHORT)
        )

    def symbols(self) -> List[str]:
        return list(self._books)

    def open_symbols(self) -> List[str]:
        """Symbols that still hold open inventory."""
        return [
            symbol for symbol in self._books
            if self.total_quantity(symbol, PositionSide.LONG)
            + self.total_quantity(symbol, PositionSide.SHORT) > QTY_EPSILON
        ]
