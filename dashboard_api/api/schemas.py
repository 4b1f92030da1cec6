"""
Trade Dashboard - Pydantic Schemas for API

Field names are snake_case in Python and camelCase on the wire.
"""

from typing import Any, Optional, List
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Serializes by camelCase alias, accepts either spelling."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ============================================================
# Request Schemas
# ============================================================

class ContactRequest(CamelModel):
    """Contact form submission."""
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    company: Optional[str] = Field(None, description="Mobile number")
    persona: Optional[str] = Field(None, description="Product of interest")
    message: str = ""
    agree: Optional[bool] = None
    website: Optional[str] = Field(None, description="Honeypot; must stay empty")
    persona_label: Optional[str] = None


# ============================================================
# Response Schemas - Summary
# ============================================================

class SummaryResponse(CamelModel):
    """Today's realized summary."""
    total_pnl: float
    total_trades: int
    open_positions: int
    success_rate_pct: float
    risk_reward: float


class SummaryRecord(CamelModel):
    """Stored daily summary."""
    user_id: str
    date_key: str
    total_pnl: float
    total_trades: int
    open_positions: int
    success_rate_pct: float
    risk_reward: float
    source: Optional[str] = None
    ts: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class SummaryHistoryResponse(CamelModel):
    ok: bool
    data: List[SummaryRecord]


class SummaryByDateResponse(CamelModel):
    ok: bool
    data: SummaryRecord


# ============================================================
# Response Schemas - Trade Slices / Raw Order Book
# ============================================================

class TradesSaveTotals(CamelModel):
    events: int
    slices: int
    inserted: int
    updated: int


class TradesSaveResponse(CamelModel):
    ok: bool
    totals: TradesSaveTotals


class RawSaveResponse(CamelModel):
    ok: bool
    total: int
    inserted: int
    updated: int
    skipped: int


# ============================================================
# Response Schemas - Strategies
# ============================================================

class StrategyPnlRow(CamelModel):
    """Per-strategy P&L from the mirrored order book."""
    strategy_name: str
    pnl: float
    orders: int
    round_trips: int
    wins: int
    losses: int
    win_rate_pct: float
    rnr: Optional[float]
    open_positions: int


class StrategyPnlResponse(CamelModel):
    ok: bool
    range_from: Optional[str] = Field(None, alias="from")
    range_to: Optional[str] = Field(None, alias="to")
    data: List[StrategyPnlRow]


class StrategySummaryRow(CamelModel):
    """Per-strategy P&L from the execution log."""
    strategy_name: str
    pnl: float
    trades: int
    win_rate_pct: float
    avg_rr: Optional[float] = Field(None, alias="avgRR")


class StrategySummaryResponse(CamelModel):
    ok: bool
    data: List[StrategySummaryRow]


# ============================================================
# Response Schemas - Contact / Errors
# ============================================================

class ContactResponse(CamelModel):
    ok: bool
    id: int
    message: str


class ErrorResponse(BaseModel):
    """Error payload."""
    error: str
    detail: Optional[Any] = None
