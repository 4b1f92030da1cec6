# Services

# Realized P&L core
from dashboard_api.services.fill_normalizer import FillEvent, NormalizeOptions, Side, normalize_rows
from dashboard_api.services.lot_book import LotBook, ClosedSlice, PositionSide
from dashboard_api.services.matching_engine import MatchingEngine, MatchResult, match_fills

# Gateway / persistence
from dashboard_api.services.broker_service import BrokerService, BrokerError, broker_service
from dashboard_api.services.trade_store import TradeStore, trade_store

# Endpoint services
from dashboard_api.services.pnl_service import PnlService, pnl_service
from dashboard_api.services.strategy_service import StrategyService, strategy_service
from dashboard_api.services.orderbook_service import OrderbookService, orderbook_service
from dashboard_api.services.contact_service import ContactService, contact_service

__all__ = [
    # Core
    'FillEvent',
    'NormalizeOptions',
    'Side',
    'normalize_rows',
    'LotBook',
    'ClosedSlice',
    'PositionSide',
    'MatchingEngine',
    'MatchResult',
    'match_fills',
    # Gateway / persistence
    'BrokerService',
    'BrokerError',
    'broker_service',
    'TradeStore',
    'trade_store',
    # Endpoint services
    'PnlService',
    'pnl_service',
    'StrategyService',
    'strategy_service',
    'OrderbookService',
    'orderbook_service',
    'ContactService',
    'contact_service',
]
