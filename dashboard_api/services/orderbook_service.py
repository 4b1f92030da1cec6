"""
Trade Dashboard - Order Book Mirror Service

Copies the user's algorithmic broker order-book rows into orderbook_raw,
the source the strategy P&L report reads from.
"""

import logging
from typing import Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from dashboard_api.models.db_models import ANONYMOUS_USER
from dashboard_api.services.broker_service import BrokerService, broker_service
from dashboard_api.services.fill_normalizer import is_algo_row, row_identity
from dashboard_api.services.trade_store import TradeStore, trade_store

logger = logging.getLogger(__name__)


class OrderbookService:
    """Raw order-book mirroring."""

    def __init__(
        self,
        broker: Optional[BrokerService] = None,
        store: Optional[TradeStore] = None
    ):
        self.broker = broker or broker_service
        self.store = store or trade_store

    async def save_raw(self, db: AsyncSession, user_id: Optional[str]) -> Dict[str, int]:
        """
        Upsert algorithmic rows keyed by (user, row identity).

        Rows without an order id, unique order id or update time cannot be
        keyed and are skipped.

        Raises:
            BrokerError: Order book could not be fetched.
            SQLAlchemyError: Rows could not be written.
        """
        scope = user_id or ANONYMOUS_USER
        rows = await self.broker.get_orderbook(user_id)
        algo_rows = [r for r in rows if is_algo_row(r)]

        if not algo_rows:
            return {'total': 0, 'inserted': 0, 'updated': 0, 'skipped': 0}

        keyed = []
        skipped = 0
        for row in algo_rows:
            uid = row_identity(row)
            if not uid.strip("|"):
                skipped += 1
                continue
            keyed.append({**row, 'uid': uid, 'userId': user_id})

        inserted, updated = await self.store.upsert_raw_rows(db, scope, keyed)
        logger.info(
            f"[ORDERBOOK] Mirrored {len(keyed)} rows for {scope or 'anonymous'} "
            f"({inserted} new, {updated} updated, {skipped} skipped)"
        )

        return {
            'total': len(algo_rows),
            'inserted': inserted,
            'updated': updated,
            'skipped': skipped,
        }


# Global service instance
orderbook_service = OrderbookService()
