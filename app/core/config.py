# python
# app/core/config.py
"""Configuration settings for the Store AI Chat backend.

Uses Pydantic BaseSettings for environment variable management.
"""
from enum import Enum

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class EnvironmentEnum(str, Enum):
    development = "development"
    testing = "testing"
    staging = "staging"
    production = "production"


class LogLevelEnum(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormatEnum(str, Enum):
    simple = "simple"
    json = "json"


class WidgetPositionEnum(str, Enum):
    bottom_right = "bottom-right"
    bottom_left = "bottom-left"
    top_right = "top-right"
    top_left = "top-left"


class Settings(BaseSettings):
    # Pydantic v2 settings configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ===== Application Settings =====
    app_name: str = Field(default="Store AI Chat API", description="Application name")
    environment: EnvironmentEnum = Field(
        default=EnvironmentEnum.development, description="Environment type"
    )
    debug: bool = Field(default=False, description="Debug mode")
    version: str = Field(default="1.0.0", description="Application version")
    app_url: str | None = Field(default=None, description="Public URL the widget connects to")

    # ===== Database Settings =====
    database_url: str | None = Field(default=None, description="Database connection URL")
    db_pool_size: int = Field(default=20, description="Database connection pool size")
    db_max_overflow: int = Field(default=0, description="Database max overflow connections")

    # Test database URL
    test_database_url: str | None = Field(default=None, description="Test database URL")

    # ===== Language Model (Z.AI) =====
    zai_api_key: str | None = Field(default=None, description="Z.AI API key")
    zai_base_url: str = Field(
        default="https://api.z.ai/api/paas/v4", description="Z.AI chat completions base URL"
    )
    zai_model: str = Field(default="glm-4.5-flash", description="Model identifier")
    zai_max_tokens: int = Field(default=4000, description="Maximum output tokens per reply")
    zai_temperature: float = Field(default=0.7, description="Sampling temperature")
    ai_request_timeout: int = Field(default=30, description="AI request timeout in seconds")

    # ===== Chat Settings =====
    chat_history_limit: int = Field(default=10, description="Prior messages sent to the model")
    chat_context_product_refs: int = Field(
        default=5, description="Context products recorded on each assistant message"
    )
    websocket_sweep_interval: int = Field(
        default=300, description="Seconds between stale WebSocket sweeps"
    )
    websocket_max_connections: int = Field(
        default=1000, description="Maximum WebSocket connections"
    )

    # ===== Shopify =====
    shopify_api_key: str | None = Field(default=None, description="Shopify app API key")
    shopify_api_secret: str | None = Field(default=None, description="Shopify app API secret")
    shopify_api_version: str = Field(default="2023-10", description="Shopify Admin API version")
    shopify_scopes: str = Field(
        default="read_products,read_collections,read_content",
        description="OAuth scopes requested on install",
    )
    shopify_redirect_uri: str | None = Field(default=None, description="OAuth callback URL")
    shopify_app_handle: str = Field(
        default="store-ai-chat-bot", description="App handle used for the admin redirect after install"
    )
    shopify_page_size: int = Field(default=250, description="Items per Shopify REST page")
    shopify_request_timeout: int = Field(default=30, description="Shopify request timeout")
    shopify_max_retry_attempts: int = Field(default=3, description="Retries for Shopify calls")
    shopify_retry_backoff_factor: float = Field(default=1.0, description="Backoff multiplier")
    shopify_retry_min_wait: float = Field(default=1.0, description="Minimum retry wait seconds")
    shopify_retry_max_wait: float = Field(default=10.0, description="Maximum retry wait seconds")

    # ===== Redis / Background Tasks (Celery) =====
    celery_broker_url: str = Field(
        default="redis://localhost:6379/1", description="Celery broker URL"
    )
    celery_result_backend: str = Field(
        default="redis://localhost:6379/2", description="Celery result backend"
    )
    store_sync_interval_minutes: int = Field(
        default=60, description="Minutes between scheduled catalog syncs"
    )

    # ===== Widget Defaults =====
    widget_color: str = Field(default="#3B82F6", description="Default widget colour")
    widget_position: WidgetPositionEnum = Field(
        default=WidgetPositionEnum.bottom_right, description="Default widget position"
    )

    # ===== CORS Settings =====
    allowed_origins: str = Field(
        default="http://localhost:3000,http://localhost:5173,http://127.0.0.1:3000",
        description="Allowed CORS origins (comma-separated)",
    )

    @property
    def allowed_origins_list(self) -> list[str]:
        """Parse CORS origins from comma-separated string."""
        if isinstance(self.allowed_origins, str):
            return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]
        return self.allowed_origins if isinstance(self.allowed_origins, list) else []

    # ===== Monitoring & Logging =====
    log_level: LogLevelEnum = Field(default=LogLevelEnum.INFO, description="Logging level")
    log_format: LogFormatEnum = Field(default=LogFormatEnum.simple, description="Log format")

    # ===== Server Settings =====
    host: str = Field(default="127.0.0.1", description="Host to bind the server")
    port: int = Field(default=8000, description="Port to bind the server")

    # ===== Computed Properties =====
    @property
    def is_development(self) -> bool:
        return self.environment == EnvironmentEnum.development

    @property
    def is_production(self) -> bool:
        return self.environment == EnvironmentEnum.production

    @property
    def is_testing(self) -> bool:
        return self.environment == EnvironmentEnum.testing

    @property
    def has_ai_enabled(self) -> bool:
        return bool(self.zai_api_key)

    @property
    def has_shopify_enabled(self) -> bool:
        return bool(self.shopify_api_key and self.shopify_api_secret)

    # ===== Validation Methods =====
    @field_validator("environment", mode="before")
    @classmethod
    def validate_environment(cls, v):
        if v and isinstance(v, str):
            lv = v.lower()
            if lv in ["dev", "develop"]:
                return "development"
            if lv in ["prod"]:
                return "production"
            return lv
        return v

    @field_validator("zai_max_tokens")
    @classmethod
    def validate_max_tokens(cls, v):
        if v < 1000 or v > 32000:
            raise ValueError("zai_max_tokens must be between 1000 and 32000")
        return v

    @field_validator("zai_temperature")
    @classmethod
    def validate_temperature(cls, v):
        if v < 0 or v > 2:
            raise ValueError("zai_temperature must be between 0 and 2")
        return v

    @field_validator("websocket_sweep_interval", "ai_request_timeout", "chat_history_limit")
    @classmethod
    def validate_positive(cls, v):
        if v <= 0:
            raise ValueError("Value must be positive")
        return v

    @model_validator(mode="after")
    def set_computed_fields(self):
        if not self.test_database_url and self.database_url and "neondb" in self.database_url:
            self.test_database_url = self.database_url.replace("neondb", "neondb_test")
        return self


settings = Settings()


class ConfigValidator:
    @staticmethod
    def validate_required_settings():
        errors = []
        if not settings.database_url:
            errors.append("DATABASE_URL is required")
        if settings.is_production and not settings.zai_api_key:
            errors.append("ZAI_API_KEY is required in production")
        if errors:
            raise ValueError(f"Configuration errors: {', '.join(errors)}")

    @staticmethod
    def get_feature_status() -> dict:
        return {
            "ai_enabled": settings.has_ai_enabled,
            "shopify_enabled": settings.has_shopify_enabled,
            "environment": settings.environment,
        }


def get_config_summary() -> dict:
    return {
        "app_name": settings.app_name,
        "version": settings.version,
        "environment": settings.environment,
        "debug": settings.debug,
        "features": ConfigValidator.get_feature_status(),
        "database_configured": bool(settings.database_url),
    }


def get_public_config() -> dict:
    """Non-secret configuration exposed to the dashboard and widget."""
    return {
        "zai_model": settings.zai_model,
        "max_context_length": settings.zai_max_tokens,
        "chat_widget_position": settings.widget_position.value,
        "chat_widget_color": settings.widget_color,
        "chat_history_limit": settings.chat_history_limit,
    }


__all__ = [
    "settings",
    "Settings",
    "ConfigValidator",
    "get_config_summary",
    "get_public_config",
    "EnvironmentEnum",
    "LogLevelEnum",
    "LogFormatEnum",
    "WidgetPositionEnum",
]
