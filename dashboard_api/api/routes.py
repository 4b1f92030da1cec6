"""
Trade Dashboard - API Routes

All REST endpoints for the trade dashboard.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Header, Query, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from dashboard_api.config import settings
from dashboard_api.database import get_db
from dashboard_api.services.broker_service import broker_service, BrokerError
from dashboard_api.services.contact_service import contact_service, ContactValidationError
from dashboard_api.services.orderbook_service import orderbook_service
from dashboard_api.services.pnl_service import pnl_service
from dashboard_api.services.strategy_service import strategy_service
from dashboard_api.utils.date_utils import parse_date_param, format_datetime_ist
from dashboard_api.api.errors import ApiError
from dashboard_api.api.schemas import (
    ContactRequest, ContactResponse,
    SummaryResponse, SummaryHistoryResponse, SummaryByDateResponse,
    TradesSaveResponse, RawSaveResponse,
    StrategyPnlResponse, StrategySummaryResponse,
    ErrorResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api",
    responses={400: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
)


# ============================================================
# Helper Functions
# ============================================================

def resolve_user_id(
    x_user_id: Optional[str] = Header(None, alias="x-user-id"),
    user_id_camel: Optional[str] = Query(None, alias="userId"),
    user_id_snake: Optional[str] = Query(None, alias="user_id"),
) -> Optional[str]:
    """Caller identity: x-user-id header, then userId, then user_id."""
    for candidate in (x_user_id, user_id_camel, user_id_snake):
        if candidate and candidate.strip():
            return candidate.strip()
    return None


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def contact_rate_limit(request: Request) -> str:
    """Throttle the public contact endpoint per client IP."""
    ip = client_ip(request)
    limiter = request.app.state.contact_limiter
    if not limiter.allow(ip):
        logger.warning(f"[CONTACT] Rate limited {ip}")
        raise ApiError(429, "rate_limited", {"retryAfter": round(limiter.retry_after(ip), 1)})
    return ip


def parse_strategy_list(raw: Optional[str]) -> List[str]:
    """Comma-separated strategy names, blanks dropped."""
    if not raw:
        return []
    return [name.strip() for name in raw.split(",") if name.strip()]


def parse_range(range_from: Optional[str], range_to: Optional[str]):
    try:
        return parse_date_param(range_from), parse_date_param(range_to)
    except ValueError as e:
        raise ApiError(400, "invalid_date", str(e))


def broker_api_error(error: str, e: BrokerError) -> ApiError:
    return ApiError(e.status_code, error, e.detail)


# ============================================================
# Broker Passthrough Endpoints
# ============================================================

async def _passthrough(name: str, path: str, user_id: Optional[str]):
    try:
        return await broker_service.passthrough(path, user_id)
    except BrokerError as e:
        logger.error(f"[API] {name} passthrough failed: {e}")
        raise broker_api_error(f"{name}_failed", e)


@router.get("/orderbook")
async def get_orderbook(user_id: Optional[str] = Depends(resolve_user_id)):
    """User's broker order book, as returned by the gateway."""
    return await _passthrough("orderbook", settings.broker_orderbook_path, user_id)


@router.get("/tradebook")
async def get_tradebook(user_id: Optional[str] = Depends(resolve_user_id)):
    """User's broker trade book, as returned by the gateway."""
    return await _passthrough("tradebook", settings.broker_tradebook_path, user_id)


@router.get("/pnl")
async def get_broker_pnl(user_id: Optional[str] = Depends(resolve_user_id)):
    """User's broker-reported P&L, as returned by the gateway."""
    return await _passthrough("pnl", settings.broker_pnl_path, user_id)


# ============================================================
# Summary Endpoints
# ============================================================

@router.get("/summary", response_model=SummaryResponse)
async def get_summary(
    user_id: Optional[str] = Depends(resolve_user_id),
    db: AsyncSession = Depends(get_db)
):
    """
    Today's realized P&L summary from complete algorithmic fills.

    The result is also stored per (user, day).
    """
    if not user_id:
        raise ApiError(400, "missing_user_id", "Provide x-user-id header or userId query parameter")

    try:
        return await pnl_service.get_daily_summary(db, user_id)
    except BrokerError as e:
        raise broker_api_error("summary_failed", e)


@router.get("/summary/history", response_model=SummaryHistoryResponse)
async def get_summary_history(
    limit: int = Query(14, ge=1, le=100),
    user_id: Optional[str] = Depends(resolve_user_id),
    db: AsyncSession = Depends(get_db)
):
    """Stored daily summaries, most recently updated first."""
    data = await pnl_service.get_summary_history(db, user_id, limit)
    return {"ok": True, "data": data}


@router.get("/summary/by-date", response_model=SummaryByDateResponse)
async def get_summary_by_date(
    date_key: Optional[str] = Query(None, alias="dateKey"),
    user_id: Optional[str] = Depends(resolve_user_id),
    db: AsyncSession = Depends(get_db)
):
    """Stored daily summary for one DD-Mon-YYYY date key."""
    if not date_key or not date_key.strip():
        raise ApiError(400, "missing_date_key", "dateKey is required (DD-Mon-YYYY)")

    data = await pnl_service.get_summary_by_date(db, user_id, date_key.strip())
    if data is None:
        raise ApiError(404, "not_found", f"No summary for {date_key.strip()}")
    return {"ok": True, "data": data}


# ============================================================
# Persistence Endpoints
# ============================================================

@router.get("/pnl/trades/save", response_model=TradesSaveResponse)
async def save_trades(
    user_id: Optional[str] = Depends(resolve_user_id),
    db: AsyncSession = Depends(get_db)
):
    """Match all complete algorithmic fills and upsert every trade slice."""
    try:
        totals = await pnl_service.save_trade_slices(db, user_id)
    except BrokerError as e:
        raise broker_api_error("trades_save_failed", e)
    except SQLAlchemyError as e:
        logger.error(f"[API] Trade slice save failed: {e}")
        raise ApiError(500, "trades_save_failed", str(e))

    logger.info(f"[API] Saved trade slices for {user_id or 'anonymous'}: {totals}")
    return {"ok": True, "totals": totals}


@router.get("/orderbook/save-raw", response_model=RawSaveResponse)
async def save_raw_orderbook(
    user_id: Optional[str] = Depends(resolve_user_id),
    db: AsyncSession = Depends(get_db)
):
    """Mirror the user's algorithmic order-book rows."""
    try:
        counts = await orderbook_service.save_raw(db, user_id)
    except BrokerError as e:
        raise broker_api_error("save_raw_failed", e)
    except SQLAlchemyError as e:
        logger.error(f"[API] Raw order book save failed: {e}")
        raise ApiError(500, "save_raw_failed", str(e))

    return {"ok": True, **counts}


# ============================================================
# Strategy Endpoints
# ============================================================

@router.get("/strategies/pnl", response_model=StrategyPnlResponse)
async def get_strategies_pnl(
    strategy: Optional[str] = Query(None, description="Comma-separated strategy names"),
    range_from: Optional[str] = Query(None, alias="from"),
    range_to: Optional[str] = Query(None, alias="to"),
    user_id: Optional[str] = Depends(resolve_user_id),
    db: AsyncSession = Depends(get_db)
):
    """Per-strategy realized P&L from the mirrored order book."""
    strategies = parse_strategy_list(strategy)
    from_dt, to_dt = parse_range(range_from, range_to)

    data = await strategy_service.get_strategy_pnl(db, user_id, strategies or None, from_dt, to_dt)
    return {
        "ok": True,
        "from": format_datetime_ist(from_dt) if from_dt else None,
        "to": format_datetime_ist(to_dt) if to_dt else None,
        "data": data,
    }


@router.get("/strategies/summary", response_model=StrategySummaryResponse)
async def get_strategies_summary(
    strategy: Optional[str] = Query(None),
    range_from: Optional[str] = Query(None, alias="from"),
    range_to: Optional[str] = Query(None, alias="to"),
    db: AsyncSession = Depends(get_db)
):
    """Per-strategy realized P&L, win rate and average R:R from the execution log."""
    from_dt, to_dt = parse_range(range_from, range_to)
    name = strategy.strip() if strategy and strategy.strip() else None

    data = await strategy_service.get_strategy_summary(db, name, from_dt, to_dt)
    return {"ok": True, "data": data}


# ============================================================
# Contact Endpoint
# ============================================================

@router.post("/contact", response_model=ContactResponse, status_code=201)
async def submit_contact(
    payload: ContactRequest,
    request: Request,
    ip: str = Depends(contact_rate_limit),
    db: AsyncSession = Depends(get_db)
):
    """Public contact form."""
    try:
        message_id, _persona = await contact_service.submit(
            db,
            payload.model_dump(),
            ip=ip,
            user_agent=request.headers.get("user-agent"),
            referer=request.headers.get("referer"),
        )
    except ContactValidationError as e:
        raise ApiError(400, "invalid_contact", str(e))
    except SQLAlchemyError as e:
        raise ApiError(500, "contact_failed", str(e))

    return {"ok": True, "id": message_id, "message": "Thanks! We'll get back to you shortly."}
