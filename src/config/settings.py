"""
Centralized settings management using pydantic-settings.

All environment variables and configuration values are defined here.
Use get_settings() to access the singleton settings instance.
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# Placeholder shipped in the defaults; refused in production
DEFAULT_TOKEN_SECRET = "change-me"


def _split_list(v):
    if isinstance(v, str):
        parts: List[str] = []
        for chunk in v.split(","):
            parts.extend(chunk.split())
        return [item.strip() for item in parts if item.strip()]
    return v


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Every value has a default, so the service starts with an empty
    environment. The most commonly overridden ones:
        - ENABLED: Master switch for detection and query scoping
        - FILTER_PARAM_PREFIX: Prefix of custom taxonomy params (default: jsf)
        - REGISTERED_TAXONOMIES: Taxonomies that exist on the site
        - REDIS_URL / REDIS_ENABLED: Shared filter state storage
        - TOKEN_SECRET: Secret used to sign anti-forgery tokens
        - ENVIRONMENT: Environment name (development, staging, production)
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ==========================================================================
    # Environment
    # ==========================================================================
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Debug mode")

    @property
    def is_development(self) -> bool:
        return self.environment.lower() in ("development", "dev", "local")

    @property
    def is_production(self) -> bool:
        return self.environment.lower() in ("production", "prod")

    # ==========================================================================
    # Server Configuration
    # ==========================================================================
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8080, description="Server port")

    # CORS Configuration
    cors_origins: List[str] = Field(
        default=[
            "http://localhost:3000",
            "http://localhost:8000",
            "http://127.0.0.1:3000",
            "http://127.0.0.1:8000",
        ],
        description="Allowed CORS origins"
    )

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",")]
        return v

    # ==========================================================================
    # Search Scoping
    # ==========================================================================
    enabled: bool = Field(default=True, description="Enable filter detection and search scoping")
    filter_param_prefix: str = Field(
        default="jsf",
        description="Prefix of custom taxonomy parameters (JetSmartFilters uses 'jsf')"
    )
    enabled_taxonomies: List[str] = Field(
        default=["product_cat", "product_tag", "category", "post_tag"],
        description="Category/tag taxonomies allowed to scope a search"
    )
    detect_filters_from: List[str] = Field(
        default=["url", "checkbox", "archive", "jetfilters"],
        description="Page detection sources (url, checkbox, archive, jetfilters)"
    )
    registered_taxonomies: List[str] = Field(
        default=[
            "category",
            "post_tag",
            "product_cat",
            "product_tag",
            "product_brand",
            "pa_color",
            "pa_size",
        ],
        description="Taxonomies that exist on the site; others are dropped at compile time"
    )
    woocommerce_active: bool = Field(default=True, description="Whether WooCommerce is active")

    @field_validator(
        "enabled_taxonomies", "detect_filters_from", "registered_taxonomies", mode="before"
    )
    @classmethod
    def parse_name_lists(cls, v):
        return _split_list(v)

    # ==========================================================================
    # Integrations
    # ==========================================================================
    enable_elementor: bool = Field(default=True, description="Scope Elementor search widgets")
    enable_jetsearch: bool = Field(default=True, description="Scope JetSearch AJAX/REST queries")
    enable_jetfilters: bool = Field(default=True, description="Read JetSmartFilters state")
    enable_woocommerce: bool = Field(default=True, description="Scope WooCommerce product queries")

    # ==========================================================================
    # Auth / Anti-forgery
    # ==========================================================================
    auth_jwt_secret: str = Field(
        default="",
        description="JWT secret for optional user identification (empty disables auth)"
    )
    auth_jwt_audience: str = Field(default="authenticated", description="Expected JWT audience")
    token_secret: str = Field(
        default=DEFAULT_TOKEN_SECRET,
        description="Secret used to sign anti-forgery tokens"
    )
    token_ttl_seconds: int = Field(
        default=86400,
        description="Anti-forgery token lifetime in seconds"
    )

    # ==========================================================================
    # Filter State Storage
    # ==========================================================================
    filter_state_ttl_seconds: int = Field(
        default=3600,
        description="Stored filter state TTL in seconds (1 hour)"
    )
    filter_store_backend: str = Field(
        default="auto",
        description="Filter state backend: auto, redis or memory"
    )
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL"
    )
    redis_enabled: bool = Field(
        default=False,
        description="Enable Redis for filter state"
    )

    # ==========================================================================
    # Search Engine
    # ==========================================================================
    catalog_path: Optional[Path] = Field(
        default=None,
        description="JSON file with the searchable catalog (in-memory engine)"
    )
    default_per_page: int = Field(default=10, description="Default search page size")

    @field_validator("catalog_path", mode="before")
    @classmethod
    def parse_catalog_path(cls, v):
        if isinstance(v, str):
            return Path(v) if v else None
        return v


@lru_cache
def get_settings() -> Settings:
    """
    Get the application settings singleton.

    Uses lru_cache to ensure only one instance is created.
    Settings are loaded from environment variables and .env file.

    Returns:
        Settings: The application settings instance
    """
    # Try to find .env file in project root
    env_file = Path(__file__).parent.parent.parent / ".env"
    if env_file.exists():
        os.environ.setdefault("ENV_FILE", str(env_file))

    return Settings(_env_file=env_file if env_file.exists() else None)


def get_settings_for_testing(**overrides) -> Settings:
    """
    Create a settings instance for testing with optional overrides.

    This bypasses the cache to allow different settings in tests.

    Args:
        **overrides: Setting values to override

    Returns:
        Settings: A new settings instance with overrides applied
    """
    test_defaults = {
        "environment": "testing",
        "debug": True,
        "token_secret": "test-secret",
        "filter_store_backend": "memory",
    }
    test_defaults.update(overrides)

    return Settings(_env_file=None, **test_defaults)
