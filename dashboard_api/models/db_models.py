"""
Trade Dashboard - Database Models (SQLAlchemy ORM)

Tables:
- pnl_trades: realized trade slices produced by FIFO matching
- api_summary: daily realized P&L summary per user
- strategy_pnl_summary: latest realized P&L summary per user and strategy
- orderbook_raw: user-scoped mirror of algorithmic broker order-book rows
- signal_tags: order tag -> strategy name lookup (written by the signal layer)
- executions: strategy execution log (written by the signal layer)
- contact_messages: public contact form submissions
"""

from datetime import datetime
from sqlalchemy import (
    Column, Integer, String, Float, DateTime, Text, Boolean, JSON,
    Index, UniqueConstraint, BigInteger
)
from dashboard_api.database import Base
from dashboard_api.config import settings

# Schema prefix for all tables
SCHEMA = settings.db_schema

# Scope used for requests that carry no user identity
ANONYMOUS_USER = ""


class TradeSlice(Base):
    """One realized FIFO match (entry lot closed fully or partially)."""

    __tablename__ = 'pnl_trades'
    __table_args__ = (
        UniqueConstraint('user_id', 'slice_key', name='uq_pnl_trades_user_slice'),
        Index('idx_pnl_trades_user_date_symbol', 'user_id', 'date_key', 'symbol'),
        {'schema': SCHEMA}
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=False, default=ANONYMOUS_USER)
    slice_key = Column(String(255), nullable=False)

    symbol = Column(String(64), nullable=False)
    side = Column(String(5), nullable=False)  # side being closed: LONG / SHORT
    qty = Column(Float, nullable=False)
    entry_price = Column(Float, nullable=False)
    exit_price = Column(Float, nullable=False)
    pnl_per_unit = Column(Float, nullable=False)
    pnl = Column(Float, nullable=False)
    volume = Column(Float, nullable=False)  # qty × (entry + exit)
    profit_or_loss = Column(String(10), nullable=False)  # profit / loss / breakeven

    # Entry / exit references
    entry_t = Column(BigInteger, nullable=False)
    entry_order_uid = Column(String(128), nullable=False, default="")
    entry_updatetime = Column(String(64), nullable=False, default="")
    exit_t = Column(BigInteger, nullable=False)
    exit_order_uid = Column(String(128), nullable=False, default="")
    exit_updatetime = Column(String(64), nullable=False, default="")

    date_key = Column(String(16), nullable=False)  # DD-Mon-YYYY
    tag = Column(String(128), nullable=False, default="")

    created_at = Column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow)


class ApiSummary(Base):
    """Daily realized summary - one per user and broker date key."""

    __tablename__ = 'api_summary'
    __table_args__ = (
        UniqueConstraint('user_id', 'date_key', name='uq_api_summary_user_date'),
        {'schema': SCHEMA}
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=False)
    date_key = Column(String(16), nullable=False)

    total_pnl = Column(Float, nullable=False, default=0.0)
    total_trades = Column(Integer, nullable=False, default=0)
    open_positions = Column(Integer, nullable=False, default=0)
    success_rate_pct = Column(Float, nullable=False, default=0.0)
    risk_reward = Column(Float, nullable=False, default=0.0)

    source = Column(String(32), nullable=False, default="api/summary")
    ts = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow)


class StrategyPnlSummary(Base):
    """Latest realized summary per user and strategy."""

    __tablename__ = 'strategy_pnl_summary'
    __table_args__ = (
        UniqueConstraint('user_id', 'strategy_name', name='uq_strategy_pnl_user_strategy'),
        {'schema': SCHEMA}
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=False, default=ANONYMOUS_USER)
    strategy_name = Column(String(128), nullable=False)

    # Window the figures were computed over (None = unbounded)
    range_from = Column(DateTime(timezone=True), nullable=True)
    range_to = Column(DateTime(timezone=True), nullable=True)

    pnl = Column(Float, nullable=False, default=0.0)
    orders = Column(Integer, nullable=False, default=0)
    round_trips = Column(Integer, nullable=False, default=0)
    wins = Column(Integer, nullable=False, default=0)
    losses = Column(Integer, nullable=False, default=0)
    win_rate_pct = Column(Float, nullable=False, default=0.0)
    rnr = Column(Float, nullable=True)
    open_positions = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow)


class OrderbookRaw(Base):
    """Raw broker order-book row (algorithmic orders only)."""

    __tablename__ = 'orderbook_raw'
    __table_args__ = (
        UniqueConstraint('user_id', 'uid', name='uq_orderbook_raw_user_uid'),
        Index('idx_orderbook_raw_user_tag_status', 'user_id', 'ordertag', 'status'),
        {'schema': SCHEMA}
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=False, default=ANONYMOUS_USER)
    uid = Column(String(255), nullable=False)  # uniqueorderid or orderid|exchorderupdatetime

    ordertag = Column(String(128), nullable=False, default="")
    status = Column(String(32), nullable=False, default="")
    payload = Column(JSON, nullable=False)  # row exactly as the broker returned it

    created_at = Column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow)


class SignalTag(Base):
    """Order tag -> strategy name mapping."""

    __tablename__ = 'signal_tags'
    __table_args__ = (
        UniqueConstraint('user_id', 'order_tag', name='uq_signal_tags_user_tag'),
        Index('idx_signal_tags_user_strategy', 'user_id', 'strategy_name'),
        {'schema': SCHEMA}
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=False, default=ANONYMOUS_USER)
    order_tag = Column(String(128), nullable=False)
    strategy_name = Column(String(128), nullable=False, default="")

    created_at = Column(DateTime(timezone=True), default=datetime.utcnow)


class Execution(Base):
    """Strategy execution log entry (BUY / SELL / EXIT)."""

    __tablename__ = 'executions'
    __table_args__ = (
        Index('idx_executions_strategy_symbol_ts', 'strategy_name', 'symbol', 'ts'),
        {'schema': SCHEMA}
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    ts = Column(DateTime(timezone=True), nullable=False)
    strategy_name = Column(String(128), nullable=False)
    symbol = Column(String(64), nullable=False)
    side = Column(String(8), nullable=False)
    qty = Column(Float, nullable=False, default=0.0)
    price = Column(Float, nullable=False, default=0.0)
    sl = Column(Float, nullable=True)  # stop loss at entry


class ContactMessage(Base):
    """Contact form submission."""

    __tablename__ = 'contact_messages'
    __table_args__ = (
        Index('idx_contact_messages_created', 'created_at'),
        Index('idx_contact_messages_email', 'email', 'created_at'),
        {'schema': SCHEMA}
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False)
    mobile = Column(String(32), nullable=False, default="")
    persona = Column(String(64), nullable=False)
    persona_label = Column(String(128), nullable=True)  # label shown on the form
    message = Column(Text, nullable=False, default="")
    agree = Column(Boolean, nullable=False, default=False)
    status = Column(String(16), nullable=False, default="new")  # new / contacted / closed

    # Request metadata
    ip = Column(String(64), nullable=True)
    user_agent = Column(Text, nullable=True)
    referer = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=datetime.utcnow)
