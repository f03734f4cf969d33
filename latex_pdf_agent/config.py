"""
LaTeX PDF Agent Configuration Module

Centralized configuration management with Pydantic validation.
All environment variables are validated at startup to catch misconfigurations early.
"""

import logging
from functools import lru_cache
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    PDF agent configuration with validation.

    All settings can be overridden via environment variables
    (upper-case field names, e.g. MAX_CONCURRENT_RENDERS).
    """

    model_config = SettingsConfigDict(
        env_prefix="",  # No prefix, use exact env var names
        case_sensitive=False,  # PORT = port
    )

    # === Service ===
    service_name: str = Field(
        default="latex-pdf-agent",
        description="Service name reported by the health check"
    )
    host: str = Field(default="0.0.0.0", description="Bind address")
    port: int = Field(default=3001, ge=1, le=65535, description="Listen port")
    environment: str = Field(
        default="development",
        description="Environment: development, staging, production"
    )
    log_level: str = Field(default="INFO", description="Root log level")

    # === HTTP ===
    cors_origins: str = Field(
        default="*",
        description="Comma-separated list of allowed CORS origins ('*' for any)"
    )
    max_body_bytes: int = Field(
        default=10 * 1024 * 1024,
        ge=1024,
        description="Maximum accepted request body size in bytes"
    )

    # === Rendering ===
    max_concurrent_renders: int = Field(
        default=5,
        ge=1,
        le=50,
        description="Maximum concurrent browser renders (1-50)"
    )
    render_complete_timeout_ms: int = Field(
        default=10000,
        ge=100,
        le=120000,
        description="How long to wait for the math typesetting flag (ms)"
    )
    navigation_timeout_ms: int = Field(
        default=30000,
        ge=1000,
        le=300000,
        description="Timeout for loading content and web fonts (ms)"
    )
    settle_delay_ms: int = Field(
        default=500,
        ge=0,
        le=10000,
        description="Fixed delay after readiness signals, before export (ms)"
    )

    # === Browser ===
    browser_headless: bool = Field(default=True, description="Run Chromium headless")
    browser_extra_args: str = Field(
        default="",
        description="Comma-separated extra Chromium command line flags"
    )
    validate_browser_on_startup: bool = Field(
        default=True,
        description="Render a probe PDF at startup to report browser readiness"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment is a known value."""
        allowed = {"development", "staging", "production"}
        v_lower = v.lower()
        if v_lower not in allowed:
            raise ValueError(f"environment must be one of: {', '.join(sorted(allowed))}")
        return v_lower

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one the logging module knows."""
        v_upper = v.upper()
        if v_upper not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid log level: {v}")
        return v_upper

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins into a list."""
        if not self.cors_origins:
            return []
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def browser_extra_args_list(self) -> List[str]:
        """Parse extra Chromium flags into a list."""
        return [arg.strip() for arg in self.browser_extra_args.split(",") if arg.strip()]

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == "production"

    def validate_production_config(self) -> List[str]:
        """
        Validate configuration is suitable for production.

        Returns list of warning messages.
        """
        issues = []

        if self.is_production:
            if "*" in self.cors_origins_list:
                issues.append("WARNING: CORS_ORIGINS allows any origin")
            if not self.browser_headless:
                issues.append("WARNING: BROWSER_HEADLESS is disabled")

        return issues


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Settings are loaded once and cached for performance.
    Use this function to access configuration throughout the app.
    """
    return Settings()


def validate_config_on_startup() -> Settings:
    """
    Validate configuration at application startup.

    Raises ValueError with details if config is invalid.
    Logs warnings for non-critical issues.
    """
    logger = logging.getLogger(__name__)

    try:
        settings = get_settings()
    except Exception as e:
        raise ValueError(f"Configuration validation failed: {e}") from e

    for issue in settings.validate_production_config():
        logger.warning(issue)

    logger.info(
        f"Configuration loaded: environment={settings.environment}, "
        f"max_concurrent_renders={settings.max_concurrent_renders}"
    )
    return settings
