"""
Global configuration: pydantic-settings reads the .env file / environment
"""

from functools import lru_cache
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings, loaded from .env"""

    model_config = SettingsConfigDict(
        env_file=Path(__file__).parent / ".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Database ──
    DATABASE_URL: str = "postgresql+asyncpg://localhost:5432/ppc_advisor"
    DB_SCHEMA: str = "ppc_advisor"

    DB_ECHO: bool = False  # echo SQL, handy while debugging

    # ── Connection pool ──
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 5
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 1800

    # ── LLM (OpenAI-compatible, LiteLLM model naming) ──
    LLM_DEFAULT_MODEL: str = "anthropic/claude-sonnet-4-5-20250929"
    LLM_API_KEY: str = ""
    LLM_API_BASE: str | None = None
    LLM_TIMEOUT: int = 60  # seconds, per reasoning call
    LLM_MAX_TOKENS: int = 4096

    # ── Recommendation loop budgets ──
    AGENT_MAX_TOOL_CALLS: int = 5
    AGENT_TIMEOUT_SECONDS: float = 30.0
    AGENT_TOOL_TIME_RESERVE_SECONDS: float = 3.0  # refuse new tools when less than this remains

    # ── Guardrails ──
    GUARDRAIL_BUDGET_FLOOR_DOLLARS: float = 25.0
    GUARDRAIL_BID_CHANGE_CAP_PCT: float = 20.0

    # ── Reallocation impact ──
    REALLOCATION_CREATIVE_PROTECTION_DAYS: int = 14
    REALLOCATION_CUMULATIVE_LOSS_WINDOW_DAYS: int = 60
    REALLOCATION_CUMULATIVE_LOSS_THRESHOLD_PCT: float = 40.0
    REALLOCATION_MAX_UTILIZATION: float = 0.95
    REALLOCATION_MAX_TARGETS: int = 5

    # ── Historical performance / signal bus ──
    HISTORY_DEFAULT_DAYS: int = 30
    HISTORY_MAX_DAYS: int = 90
    HISTORY_ADJUSTMENT_LOOKBACK_DAYS: int = 90
    HISTORY_AFTERMATH_WINDOW_DAYS: int = 7
    SIGNAL_BUS_DEFAULT_LOOKBACK_DAYS: int = 7
    SIGNAL_BUS_MAX_LOOKBACK_DAYS: int = 30
    SIGNAL_BUS_TIMEOUT_SECONDS: float = 5.0

    # ── Decision queue ──
    PROPOSAL_EXPIRY_HOURS: int = 72

    # ── Google Ads ──
    GOOGLE_ADS_API_VERSION: str = "v20"
    GOOGLE_ADS_CUSTOMER_ID: str = ""
    GOOGLE_ADS_MANAGER_CUSTOMER_ID: str = ""
    GOOGLE_ADS_DEVELOPER_TOKEN: str = ""
    GOOGLE_ADS_CLIENT_ID: str = ""
    GOOGLE_ADS_CLIENT_SECRET: str = ""
    GOOGLE_ADS_REFRESH_TOKEN: str = ""
    GOOGLE_ADS_TIMEOUT: int = 20
    GOOGLE_ADS_RATE_LIMIT_CALLS: int = 50
    GOOGLE_ADS_RATE_LIMIT_WINDOW_SECONDS: float = 10.0

    # ── Application ──
    ENV: str = "development"  # development | production
    APP_NAME: str = "ppc-advisor"
    APP_PORT: int = 8000
    LOG_LEVEL: str = "INFO"
    CRON_SECRET: str = ""

    @model_validator(mode="after")
    def _check_budgets(self) -> "Settings":
        """Loop budgets must be positive and the tool reserve must fit inside the timeout"""
        if self.AGENT_MAX_TOOL_CALLS <= 0 or self.AGENT_TIMEOUT_SECONDS <= 0:
            raise ValueError(
                "AGENT_MAX_TOOL_CALLS and AGENT_TIMEOUT_SECONDS must be > 0"
            )
        if not 0 <= self.AGENT_TOOL_TIME_RESERVE_SECONDS < self.AGENT_TIMEOUT_SECONDS:
            raise ValueError(
                "AGENT_TOOL_TIME_RESERVE_SECONDS must be >= 0 and below AGENT_TIMEOUT_SECONDS"
            )
        if self.ENV == "production" and not self.CRON_SECRET:
            raise ValueError("CRON_SECRET must be configured in production")
        return self


@lru_cache
def get_settings() -> Settings:
    """Cached settings singleton"""
    return Settings()
