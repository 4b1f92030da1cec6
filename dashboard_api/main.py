"""
Trade Dashboard - FastAPI Application Entry Point
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging

from dashboard_api.config import settings
from dashboard_api.database import init_db, dispose_db
from dashboard_api.api.errors import register_error_handlers
from dashboard_api.api.routes import router as api_router
from dashboard_api.utils.ttl_store import FixedWindowRateLimiter

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    logger.info("Starting Trade Dashboard API...")

    await init_db()
    logger.info("Database initialized")

    yield

    logger.info("Shutting down Trade Dashboard API...")
    await dispose_db()


# Create FastAPI app
app = FastAPI(
    title="Trade Dashboard API",
    description="Realized P&L, trade slices and strategy reports from broker order books",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS middleware for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

# Per-IP throttle for the public contact form
app.state.contact_limiter = FixedWindowRateLimiter(
    settings.contact_rate_limit,
    settings.contact_rate_window_seconds,
)

app.include_router(api_router)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "trade-dashboard"}
