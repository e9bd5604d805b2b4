"""
Configuration settings for the wallet reconciliation engine.

Uses Pydantic Settings to load environment variables for database connections,
logging, paging limits, scheduling, and alert thresholds.
"""
from __future__ import annotations

from decimal import Decimal
from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Alert when bonus exceeds this share (%) of all wallet balances.
BONUS_RATIO_ALERT_PCT = Decimal("30")
# Alert when scratch-card return to player falls below this (%).
RTP_ALERT_PCT = Decimal("30")


class Settings(BaseSettings):
    # Database
    db_host: str = Field("localhost", alias="DB_HOST")
    db_port: int = Field(5432, alias="DB_PORT")
    db_user: str = Field("postgres", alias="DB_USER")
    db_password: str = Field("postgres", alias="DB_PASSWORD")
    db_name: str = Field("raffle_platform", alias="DB_NAME")
    db_connect_timeout: int = Field(10, alias="DB_CONNECT_TIMEOUT")
    db_statement_timeout_ms: int = Field(60_000, alias="DB_STATEMENT_TIMEOUT_MS")
    db_pool_min_size: int = Field(1, alias="DB_POOL_MIN_SIZE")
    db_pool_max_size: int = Field(10, alias="DB_POOL_MAX_SIZE")

    # Application
    app_env: str = Field("development", alias="APP_ENV")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(False, alias="LOG_JSON")

    # Reading
    page_size: int = Field(5_000, alias="RECON_PAGE_SIZE", gt=0)
    max_rows: Optional[int] = Field(None, alias="RECON_MAX_ROWS", gt=0)
    truncation_policy: Literal["tolerant", "strict"] = Field(
        "tolerant", alias="RECON_TRUNCATION_POLICY"
    )

    # Scheduling / fan-out
    refresh_seconds: float = Field(30.0, alias="RECON_REFRESH_SECONDS", gt=0)
    concurrency: int = Field(4, alias="RECON_CONCURRENCY", gt=0)
    processes: int = Field(1, alias="RECON_PROCESSES", gt=0)
    results_dir: str = Field("results", alias="RESULTS_DIR")

    # Alert thresholds (percent)
    alert_bonus_ratio_pct: Decimal = Field(BONUS_RATIO_ALERT_PCT, alias="ALERT_BONUS_RATIO_PCT")
    alert_rtp_pct: Decimal = Field(RTP_ALERT_PCT, alias="ALERT_RTP_PCT")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Retrieve a cached instance of Settings to avoid repeated env parsing.
    """
    return Settings()


__all__ = ["Settings", "get_settings"]
