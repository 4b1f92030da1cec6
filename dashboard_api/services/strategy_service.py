"""
Trade Dashboard - Strategy P&L Service

Per-strategy realized P&L from two sources:
- the mirrored order book, joined to strategies through signal tags
- the strategy execution log (BUY / SELL / EXIT with stop losses)

Both run the same FIFO matching, one engine per strategy.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from dashboard_api.models.db_models import ANONYMOUS_USER
from dashboard_api.services.fill_normalizer import (
    FillEvent, NormalizeOptions, normalize_rows, normalize_executions
)
from dashboard_api.services.matching_engine import match_fills
from dashboard_api.services.reporting import (
    build_strategy_pnl_row, build_strategy_summary_row, order_strategy_rows
)
from dashboard_api.services.trade_store import TradeStore, trade_store
from dashboard_api.utils.date_utils import to_epoch_ms

logger = logging.getLogger(__name__)


def group_by_strategy(events: Sequence[FillEvent]) -> Dict[str, List[FillEvent]]:
    """Group events by strategy, keeping first-seen strategy order."""
    groups: Dict[str, List[FillEvent]] = {}
    for event in events:
        groups.setdefault(event.strategy or "", []).append(event)
    return groups


class StrategyService:
    """Strategy-level realized P&L reports."""

    def __init__(self, store: Optional[TradeStore] = None):
        self.store = store or trade_store

    async def get_strategy_pnl(
        self,
        db: AsyncSession,
        user_id: Optional[str],
        strategies: Optional[List[str]] = None,
        range_from: Optional[datetime] = None,
        range_to: Optional[datetime] = None
    ) -> List[Dict[str, Any]]:
        """
        Realized P&L per strategy from the user's mirrored order book.

        Rows whose tag has no strategy mapping are excluded. Results are
        ordered by the requested strategy list, else by pnl descending.
        Each row is also upserted per (user, strategy); a failed write is
        logged only.
        """
        scope = user_id or ANONYMOUS_USER

        tag_map = await self.store.get_tag_strategies(db, scope, strategies)
        if not tag_map:
            return []

        raw_rows = await self.store.get_raw_rows(db, scope, list(tag_map))
        events = normalize_rows(raw_rows, NormalizeOptions(
            tag_prefix=None,
            status_match="contains",
            require_positive_price=True,
            from_ms=to_epoch_ms(range_from) if range_from else None,
            to_ms=to_epoch_ms(range_to) if range_to else None,
            tag_lookup=tag_map,
        ))
        if not events:
            return []

        rows = [
            build_strategy_pnl_row(name, match_fills(group))
            for name, group in group_by_strategy(events).items()
        ]
        rows = order_strategy_rows(rows, strategies)

        try:
            await self.store.upsert_strategy_summaries(db, scope, rows, range_from, range_to)
        except SQLAlchemyError as e:
            logger.warning(f"[STRATEGY] Could not persist strategy summaries for {scope or 'anonymous'}: {e}")

        return rows

    async def get_strategy_summary(
        self,
        db: AsyncSession,
        strategy: Optional[str] = None,
        range_from: Optional[datetime] = None,
        range_to: Optional[datetime] = None
    ) -> List[Dict[str, Any]]:
        """Realized P&L, win rate and average reward-to-risk per strategy from the execution log."""
        executions = await self.store.get_executions(db, strategy, range_from, range_to)

        names: List[str] = []
        for row in executions:
            name = str(row.get('strategy_name') or "")
            if name not in names:
                names.append(name)

        groups = group_by_strategy(normalize_executions(executions))
        rows = [build_strategy_summary_row(name, match_fills(groups.get(name, []))) for name in names]

        logger.debug(f"[STRATEGY] Execution summary: {len(executions)} executions, {len(rows)} strategies")
        return order_strategy_rows(rows)


# Global service instance
strategy_service = StrategyService()
