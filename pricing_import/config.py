"""Configuration management using pydantic-settings."""
import logging
import sys
from functools import lru_cache
from typing import Any, Literal, Optional

import structlog
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Runtime
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    environment: Literal["development", "staging", "production"] = Field(
        default="development", description="Deployment environment"
    )

    # Database Configuration
    database_url: Optional[str] = Field(
        default=None,
        description="Async SQLAlchemy URL of the catalog database (required for non dry-run imports)",
    )

    # Hosted extraction API (Firecrawl)
    firecrawl_api_key: Optional[str] = Field(
        default=None,
        description="Bearer credential for the hosted extraction API",
    )
    firecrawl_api_base: str = Field(
        default="https://api.firecrawl.dev/v1",
        description="Base URL of the hosted extraction API",
    )
    hosted_extraction_timeout: float = Field(
        default=45.0,
        ge=1.0,
        le=300.0,
        description="Hosted extraction request timeout in seconds (not retried)",
    )

    # Browser automation
    browser_navigation_timeout_ms: int = Field(
        default=60_000,
        ge=1_000,
        le=300_000,
        description="Playwright navigation timeout in milliseconds",
    )
    scrape_max_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts per racing page interaction in the targeted scraper",
    )

    # Static HTML fallback
    static_fetch_timeout: float = Field(
        default=30.0,
        ge=1.0,
        le=300.0,
        description="Plain HTTP fetch timeout in seconds",
    )
    user_agent: str = Field(
        default="pricing-import/1.0",
        description="User-Agent header for outgoing page fetches",
    )

    # Reconciliation
    price_insert_batch_size: int = Field(
        default=500,
        ge=1,
        le=5000,
        description="Price rows inserted per batch",
    )

    # Snapshots
    snapshot_dir: str = Field(
        default=".",
        description="Root directory for pricing_raw/ and pricing_clean/ snapshots",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()


def configure_logging(log_level: str = "INFO", json_output: bool = False) -> None:
    """Configure structlog for the CLI and the pipeline.

    JSON lines in production, a coloured console renderer otherwise.
    """
    level = getattr(logging, log_level.upper(), logging.INFO)
    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=level)

    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if json_output:
        processors = [
            *shared_processors,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [
            *shared_processors,
            structlog.dev.ConsoleRenderer(colors=False),
        ]

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
