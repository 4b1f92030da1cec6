"""
Trade Dashboard - Realized P&L Service

Daily summary and per-trade slice persistence, both computed fresh from
the user's live broker order book on every call.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from dashboard_api.models.db_models import ANONYMOUS_USER
from dashboard_api.services.broker_service import BrokerService, broker_service
from dashboard_api.services.fill_normalizer import NormalizeOptions, normalize_rows
from dashboard_api.services.matching_engine import match_fills
from dashboard_api.services.reporting import build_summary, slice_record
from dashboard_api.services.trade_store import TradeStore, trade_store
from dashboard_api.utils.date_utils import today_key_ist

logger = logging.getLogger(__name__)


class PnlService:
    """Realized P&L over today's / all algorithmic fills."""

    def __init__(
        self,
        broker: Optional[BrokerService] = None,
        store: Optional[TradeStore] = None
    ):
        self.broker = broker or broker_service
        self.store = store or trade_store

    async def get_daily_summary(self, db: AsyncSession, user_id: str) -> Dict[str, Any]:
        """
        Today's (IST) realized summary from complete algorithmic fills.

        The summary is upserted per (user, day); a failed write is logged
        and does not fail the response.

        Raises:
            BrokerError: Order book could not be fetched.
        """
        rows = await self.broker.get_orderbook(user_id)
        today_key = today_key_ist()

        events = normalize_rows(rows, NormalizeOptions(date_key=today_key))
        result = match_fills(events)
        payload = build_summary(result)

        logger.info(
            f"[PNL] Summary for {user_id} {today_key}: {len(events)} fills, "
            f"pnl={payload['totalPnl']}, trades={payload['totalTrades']}"
        )

        try:
            await self.store.upsert_daily_summary(db, user_id, today_key, payload)
        except SQLAlchemyError as e:
            logger.warning(f"[PNL] Could not persist summary for {user_id} {today_key}: {e}")

        return payload

    async def save_trade_slices(self, db: AsyncSession, user_id: Optional[str]) -> Dict[str, int]:
        """
        Match all complete algorithmic fills and upsert every realized slice.

        Raises:
            BrokerError: Order book could not be fetched.
            SQLAlchemyError: Slices could not be written.
        """
        scope = user_id or ANONYMOUS_USER
        rows = await self.broker.get_orderbook(user_id)

        events = normalize_rows(rows, NormalizeOptions())
        result = match_fills(events)

        records = [slice_record(s, scope) for s in result.slices]
        inserted, updated = await self.store.upsert_trade_slices(db, records)

        return {
            'events': len(events),
            'slices': len(result.slices),
            'inserted': inserted,
            'updated': updated,
        }

    async def get_summary_history(
        self, db: AsyncSession, user_id: Optional[str], limit: int
    ) -> List[Dict[str, Any]]:
        return await self.store.get_summary_history(db, user_id or ANONYMOUS_USER, limit)

    async def get_summary_by_date(
        self, db: AsyncSession, user_id: Optional[str], date_key: str
    ) -> Optional[Dict[str, Any]]:
        return await self.store.get_summary_by_date(db, user_id or ANONYMOUS_USER, date_key)


# Global service instance
pnl_service = PnlService()
