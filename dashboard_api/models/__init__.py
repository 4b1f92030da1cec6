# Database Models

from dashboard_api.models.db_models import (
    TradeSlice,
    ApiSummary,
    StrategyPnlSummary,
    OrderbookRaw,
    SignalTag,
    Execution,
    ContactMessage,
    ANONYMOUS_USER,
)

__all__ = [
    'TradeSlice',
    'ApiSummary',
    'StrategyPnlSummary',
    'OrderbookRaw',
    'SignalTag',
    'Execution',
    'ContactMessage',
    'ANONYMOUS_USER',
]
