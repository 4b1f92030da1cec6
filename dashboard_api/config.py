"""
Trade Dashboard - Configuration Settings
"""

from pydantic_settings import BaseSettings
from typing import List
import json


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Server
    app_port: int = 5020
    app_host: str = "0.0.0.0"
    app_reload: bool = False
    log_level: str = "INFO"

    # Database
    database_url: str = "postgresql://localhost:5432/trade_dashboard"
    db_schema: str = "trade_dashboard"
    db_pool_size: int = 5
    db_max_overflow: int = 10
    db_echo: bool = False
    upsert_batch_size: int = 500  # rows per INSERT ... ON CONFLICT statement

    # Broker gateway (order book source)
    broker_base_url: str = "http://127.0.0.1:5000"
    broker_secret: str = ""
    broker_user_param: str = "user_id"
    broker_orderbook_path: str = "/angel/user/orderbook"
    broker_tradebook_path: str = "/tradebook"
    broker_pnl_path: str = "/pnl"
    broker_timeout_seconds: float = 10.0
    broker_max_retries: int = 2
    broker_backoff_seconds: float = 0.25
    broker_backoff_cap_seconds: float = 4.0

    # Passthrough response cache
    passthrough_cache_ttl_seconds: float = 1.5

    # Orders placed by the strategy layer carry this tag prefix
    algo_tag_prefix: str = "TV_"

    # Public contact form throttling (per client IP)
    contact_rate_limit: int = 10
    contact_rate_window_seconds: float = 60.0

    # Frontend CORS
    cors_origins: str = '["*"]'

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from JSON string."""
        try:
            return json.loads(self.cors_origins)
        except (json.JSONDecodeError, TypeError):
            return ["*"]

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


# Global settings instance
settings = Settings()
