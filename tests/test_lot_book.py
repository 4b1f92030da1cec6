"""
Tests for the FIFO Lot Book
"""

import random

import pytest

from dashboard_api.services.fill_normalizer import Side
from dashboard_api.services.lot_book import (
    LotBook, PositionSide, FillRef, ClosedSlice, pnl_per_unit
)


def ref(t: int, tag: str = "", date_key: str = "03-Sep-2025") -> FillRef:
    return FillRef(timestamp=t, identity=f"o{t}", tag=tag, date_key=date_key)


class TestFifoMatching:
    """Oldest lot closes first, regardless of price."""

    def setup_method(self):
        self.book = LotBook()
        self.book.open("X", PositionSide.LONG, 5, 100, entry=ref(1))
        self.book.open("X", PositionSide.LONG, 5, 110, entry=ref(2))

    def test_partial_close_across_two_lots(self):
        """SELL 7 @ 120 closes L1 fully and 2 of L2."""
        slices = self.book.close("X", Side.SELL, 7, 120, exit_ref=ref(3))

        assert [(s.quantity, s.entry_price, s.exit_price) for s in slices] == [
            (5, 100, 120),
            (2, 110, 120),
        ]
        assert [s.pnl for s in slices] == [100, 20]
        assert [s.fully_closed for s in slices] == [True, False]

        remaining = self.book.lots("X", PositionSide.LONG)
        assert len(remaining) == 1
        assert remaining[0].price == 110
        assert remaining[0].quantity == 3

    def test_remainder_opens_opposite_lot(self):
        """SELL 12 closes both longs and leaves a short of 2."""
        slices = self.book.close("X", Side.SELL, 12, 105, exit_ref=ref(3))

        assert sum(s.quantity for s in slices) == 10
        assert self.book.lots("X", PositionSide.LONG) == []
        shorts = self.book.lots("X", PositionSide.SHORT)
        assert [(lot.quantity, lot.price) for lot in shorts] == [(2, 105)]
        assert shorts[0].entry == ref(3)

    def test_same_side_fill_appends_lot(self):
        slices = self.book.close("X", Side.BUY, 3, 90, exit_ref=ref(3))

        assert slices == []
        assert [lot.quantity for lot in self.book.lots("X", PositionSide.LONG)] == [5, 5, 3]

    def test_symbols_are_independent(self):
        slices = self.book.close("Y", Side.SELL, 5, 120, exit_ref=ref(3))

        assert slices == []
        assert self.book.total_quantity("X", PositionSide.LONG) == 10
        assert self.book.total_quantity("Y", PositionSide.SHORT) == 5

    def test_no_remainder_when_disabled(self):
        self.book.close("X", Side.SELL, 12, 105, exit_ref=ref(3), open_remainder=False)
        assert self.book.lots("X", PositionSide.SHORT) == []

    def test_exit_side_rejected(self):
        with pytest.raises(ValueError):
            self.book.close("X", Side.EXIT, 1, 100)


class TestPnlSign:
    """LONG realizes exit - entry, SHORT realizes entry - exit."""

    def test_pnl_per_unit(self):
        assert pnl_per_unit(PositionSide.LONG, 100, 105) == 5
        assert pnl_per_unit(PositionSide.SHORT, 100, 105) == -5

    def test_short_close(self):
        book = LotBook()
        book.close("X", Side.SELL, 5, 200, exit_ref=ref(1))
        slices = book.close("X", Side.BUY, 5, 210, exit_ref=ref(2))

        assert len(slices) == 1
        assert slices[0].side == PositionSide.SHORT
        assert slices[0].pnl == -50
        assert slices[0].profit_or_loss == "loss"


class TestCloseAll:
    """EXIT closes every open lot on the symbol."""

    def test_closes_longs_then_shorts(self):
        book = LotBook()
        book.open("X", PositionSide.LONG, 4, 100, entry=ref(1))
        book.open("X", PositionSide.SHORT, 3, 120, entry=ref(2))

        slices = book.close_all("X", 110, exit_ref=ref(3))

        assert [(s.side, s.quantity, s.pnl) for s in slices] == [
            (PositionSide.LONG, 4, 40),
            (PositionSide.SHORT, 3, 30),
        ]
        assert all(s.fully_closed for s in slices)
        assert book.open_symbols() == []

    def test_empty_symbol(self):
        assert LotBook().close_all("X", 100) == []


class TestConservation:
    """Net open quantity always equals the signed fill total."""

    @pytest.mark.parametrize("seed", [1, 7, 42])
    def test_random_sequences(self, seed):
        rng = random.Random(seed)
        book = LotBook()
        signed_total = 0

        for t in range(200):
            side = rng.choice([Side.BUY, Side.SELL])
            qty = rng.randint(1, 25)
            price = rng.randint(90, 110)
            book.close("X", side, qty, price, exit_ref=ref(t))
            signed_total += qty if side == Side.BUY else -qty

            assert book.net_quantity("X") == pytest.approx(signed_total)
            # never long and short at the same time
            assert not (
                book.total_quantity("X", PositionSide.LONG) > 0
                and book.total_quantity("X", PositionSide.SHORT) > 0
            )


class TestClosedSlice:
    """Derived slice fields."""

    def make(self, **kwargs) -> ClosedSlice:
        values = dict(
            symbol="X", side=PositionSide.LONG, quantity=10, entry_price=100.0,
            exit_price=105.0, pnl_per_unit=5.0, pnl=50.0,
            entry=ref(1, tag="TV_a"), exit=ref(2, date_key="04-Sep-2025"), fully_closed=True,
        )
        values.update(kwargs)
        return ClosedSlice(**values)

    def test_slice_key_renders_integral_numbers(self):
        assert self.make().slice_key == "X|LONG|1|2|100|105|10"

    def test_slice_key_keeps_fractions(self):
        assert self.make(entry_price=100.5).slice_key == "X|LONG|1|2|100.5|105|10"

    def test_volume_and_labels(self):
        s = self.make()
        assert s.volume == 2050
        assert s.profit_or_loss == "profit"
        assert s.tag == "TV_a"
        assert s.date_key == "04-Sep-2025"

    def test_breakeven(self):
        assert self.make(pnl=0.0, pnl_per_unit=0.0).profit_or_loss == "breakeven"
