"""
Trade Dashboard - Persistence Adapter

Idempotent writes keyed by deterministic identities (INSERT ... ON
CONFLICT DO UPDATE in bounded batches) and the read queries the reports
need. Writes commit on success and roll back on failure; errors propagate
to the caller.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import select, literal_column
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from dashboard_api.config import settings
from dashboard_api.models.db_models import (
    TradeSlice, ApiSummary, StrategyPnlSummary, OrderbookRaw, SignalTag, Execution
)
from dashboard_api.utils.date_utils import now_ist, format_datetime_ist

logger = logging.getLogger(__name__)


def _dedupe(rows: Sequence[Dict[str, Any]], key_cols: Sequence[str]) -> List[Dict[str, Any]]:
    """Collapse rows sharing a conflict key; the last one wins."""
    by_key: Dict[Tuple, Dict[str, Any]] = {}
    for row in rows:
        by_key[tuple(row[c] for c in key_cols)] = row
    return list(by_key.values())


class TradeStore:
    """Reads and idempotent upserts over the dashboard tables."""

    def __init__(self, batch_size: Optional[int] = None):
        self.batch_size = max(1, batch_size or settings.upsert_batch_size)

    async def bulk_upsert(
        self,
        db: AsyncSession,
        model,
        rows: Sequence[Dict[str, Any]],
        key_cols: Sequence[str]
    ) -> Tuple[int, int]:
        """
        Upsert rows keyed by key_cols.

        Returns:
            (inserted, updated) row counts.
        """
        rows = _dedupe(rows, key_cols)
        if not rows:
            return 0, 0

        inserted = updated = 0
        try:
            for start in range(0, len(rows), self.batch_size):
                chunk = rows[start:start + self.batch_size]
                stmt = pg_insert(model).values(chunk)
                set_ = {
                    col: stmt.excluded[col]
                    for col in chunk[0]
                    if col not in key_cols
                }
                set_['updated_at'] = datetime.utcnow()
                stmt = stmt.on_conflict_do_update(
                    index_elements=list(key_cols),
                    set_=set_,
                ).returning(literal_column("(xmax = 0)").label("inserted"))

                result = await db.execute(stmt)
                for row in result:
                    if row.inserted:
                        inserted += 1
                    else:
                        updated += 1
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(f"[STORE] Upsert into {model.__tablename__} failed: {e}")
            raise

        logger.info(
            f"[STORE] {model.__tablename__}: {inserted} inserted, {updated} updated"
        )
        return inserted, updated

    # ============================================================
    # Writes
    # ============================================================

    async def upsert_trade_slices(
        self, db: AsyncSession, records: Sequence[Dict[str, Any]]
    ) -> Tuple[int, int]:
        return await self.bulk_upsert(db, TradeSlice, records, ('user_id', 'slice_key'))

    async def upsert_daily_summary(
        self, db: AsyncSession, user_id: str, date_key: str, payload: Dict[str, Any]
    ) -> None:
        row = {
            'user_id': user_id,
            'date_key': date_key,
            'total_pnl': payload['totalPnl'],
            'total_trades': payload['totalTrades'],
            'open_positions': payload['openPositions'],
            'success_rate_pct': payload['successRatePct'],
            'risk_reward': payload['riskReward'],
            'source': 'api/summary',
            'ts': now_ist(),
        }
        await self.bulk_upsert(db, ApiSummary, [row], ('user_id', 'date_key'))

    async def upsert_strategy_summaries(
        self,
        db: AsyncSession,
        user_id: str,
        rows: Sequence[Dict[str, Any]],
        range_from: Optional[datetime],
        range_to: Optional[datetime]
    ) -> None:
        records = [
            {
                'user_id': user_id,
                'strategy_name': r['strategyName'],
                'range_from': range_from,
                'range_to': range_to,
                'pnl': r['pnl'],
                'orders': r['orders'],
                'round_trips': r['roundTrips'],
                'wins': r['wins'],
                'losses': r['losses'],
                'win_rate_pct': r['winRatePct'],
                'rnr': r['rnr'],
                'open_positions': r['openPositions'],
            }
            for r in rows
        ]
        await self.bulk_upsert(db, StrategyPnlSummary, records, ('user_id', 'strategy_name'))

    async def upsert_raw_rows(
        self, db: AsyncSession, user_id: str, rows: Sequence[Dict[str, Any]]
    ) -> Tuple[int, int]:
        """Rows must already carry their 'uid'."""
        records = [
            {
                'user_id': user_id,
                'uid': r['uid'],
                'ordertag': str(r.get('ordertag') or ""),
                'status': str(r.get('status') or r.get('orderstatus') or ""),
                'payload': r,
            }
            for r in rows
        ]
        return await self.bulk_upsert(db, OrderbookRaw, records, ('user_id', 'uid'))

    # ============================================================
    # Reads
    # ============================================================

    @staticmethod
    def summary_to_dict(s: ApiSummary) -> Dict[str, Any]:
        return {
            'userId': s.user_id,
            'dateKey': s.date_key,
            'totalPnl': s.total_pnl,
            'totalTrades': s.total_trades,
            'openPositions': s.open_positions,
            'successRatePct': s.success_rate_pct,
            'riskReward': s.risk_reward,
            'source': s.source,
            'ts': format_datetime_ist(s.ts) if s.ts else None,
            'createdAt': format_datetime_ist(s.created_at) if s.created_at else None,
            'updatedAt': format_datetime_ist(s.updated_at) if s.updated_at else None,
        }

    async def get_summary_history(
        self, db: AsyncSession, user_id: str, limit: int
    ) -> List[Dict[str, Any]]:
        result = await db.execute(
            select(ApiSummary)
            .where(ApiSummary.user_id == user_id)
            .order_by(ApiSummary.updated_at.desc(), ApiSummary.ts.desc())
            .limit(limit)
        )
        return [self.summary_to_dict(s) for s in result.scalars().all()]

    async def get_summary_by_date(
        self, db: AsyncSession, user_id: str, date_key: str
    ) -> Optional[Dict[str, Any]]:
        result = await db.execute(
            select(ApiSummary)
            .where(ApiSummary.user_id == user_id)
            .where(ApiSummary.date_key == date_key)
        )
        summary = result.scalar_one_or_none()
        return self.summary_to_dict(summary) if summary else None

    async def get_tag_strategies(
        self, db: AsyncSession, user_id: str, strategies: Optional[Sequence[str]] = None
    ) -> Dict[str, str]:
        """Order tag -> strategy name for the user (optionally limited to strategies)."""
        query = select(SignalTag.order_tag, SignalTag.strategy_name).where(SignalTag.user_id == user_id)
        if strategies:
            query = query.where(SignalTag.strategy_name.in_(list(strategies)))
        result = await db.execute(query)
        return {str(row.order_tag): str(row.strategy_name or "") for row in result.all()}

    async def get_raw_rows(
        self, db: AsyncSession, user_id: str, tags: Sequence[str]
    ) -> List[Dict[str, Any]]:
        """Mirrored order-book payloads for the user carrying one of tags."""
        if not tags:
            return []
        result = await db.execute(
            select(OrderbookRaw.payload)
            .where(OrderbookRaw.user_id == user_id)
            .where(OrderbookRaw.ordertag.in_(list(tags)))
        )
        return [payload for payload in result.scalars().all() if isinstance(payload, dict)]

    async def get_executions(
        self,
        db: AsyncSession,
        strategy: Optional[str] = None,
        range_from: Optional[datetime] = None,
        range_to: Optional[datetime] = None
    ) -> List[Dict[str, Any]]:
        """Execution log rows ordered by strategy, symbol, time."""
        query = select(Execution)
        if range_from is not None:
            query = query.where(Execution.ts >= range_from)
        if range_to is not None:
            query = query.where(Execution.ts <= range_to)
        if strategy:
            query = query.where(Execution.strategy_name == strategy)
        query = query.order_by(Execution.strategy_name, Execution.symbol, Execution.ts)

        result = await db.execute(query)
        return [
            {
                'ts': e.ts,
                'strategy_name': e.strategy_name,
                'symbol': e.symbol,
                'side': e.side,
                'qty': e.qty,
                'price': e.price,
                'sl': e.sl,
            }
            for e in result.scalars().all()
        ]


# Global store instance
trade_store = TradeStore()
