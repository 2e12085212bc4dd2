"""Configuration settings using Pydantic for validation."""

from typing import Any, Optional
from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
import os
import re

from ..models import FeedKind


class BinanceConfig(BaseModel):
    """Binance API configuration."""
    rest_base_url: str = Field(default="https://api.binance.com", description="Binance REST API base URL")
    ws_base_url: str = Field(default="wss://stream.binance.com:9443", description="Binance WebSocket base URL")
    rate_limit_requests_per_minute: int = Field(default=1200, description="API rate limit")
    request_timeout_seconds: float = Field(default=10.0, description="HTTP request timeout")


class FeedConfig(BaseModel):
    """Streaming feed configuration."""
    kline_reconnect_delay_seconds: float = Field(default=5.0, description="Kline reconnect delay")
    orderbook_reconnect_delay_seconds: float = Field(default=5.0, description="Order book reconnect delay")
    trades_reconnect_delay_seconds: float = Field(default=5.0, description="Trades reconnect delay")
    watchlist_reconnect_delay_seconds: float = Field(default=2.0, description="Watchlist reconnect delay")

    kline_channel_size: int = Field(default=1000, gt=0)
    orderbook_channel_size: int = Field(default=100, gt=0)
    trades_channel_size: int = Field(default=1000, gt=0)
    watchlist_channel_size: int = Field(default=500, gt=0)

    orderbook_depth: int = Field(default=20, description="Partial book depth: 5, 10 or 20")
    ping_interval_seconds: float = Field(default=20.0, description="WebSocket ping interval")

    @field_validator('orderbook_depth')
    @classmethod
    def validate_depth(cls, v):
        if v not in (5, 10, 20):
            raise ValueError("orderbook_depth must be 5, 10 or 20")
        return v

    def reconnect_delay(self, kind: FeedKind) -> float:
        return {
            FeedKind.KLINE: self.kline_reconnect_delay_seconds,
            FeedKind.ORDER_BOOK: self.orderbook_reconnect_delay_seconds,
            FeedKind.TRADES: self.trades_reconnect_delay_seconds,
            FeedKind.WATCHLIST_PRICES: self.watchlist_reconnect_delay_seconds,
        }[kind]

    def channel_size(self, kind: FeedKind) -> int:
        return {
            FeedKind.KLINE: self.kline_channel_size,
            FeedKind.ORDER_BOOK: self.orderbook_channel_size,
            FeedKind.TRADES: self.trades_channel_size,
            FeedKind.WATCHLIST_PRICES: self.watchlist_channel_size,
        }[kind]


class HealthConfig(BaseModel):
    """Feed staleness thresholds (seconds)."""
    kline_reconnect_after: float = Field(default=12.0, gt=0)
    kline_degrade_after: float = Field(default=40.0, gt=0)
    orderbook_reconnect_after: float = Field(default=3.0, gt=0)
    orderbook_degrade_after: float = Field(default=10.0, gt=0)
    trades_reconnect_after: float = Field(default=3.0, gt=0)
    trades_degrade_after: float = Field(default=10.0, gt=0)
    tick_interval_seconds: float = Field(default=1.0, gt=0, description="Staleness check period")

    @model_validator(mode='after')
    def validate_thresholds(self):
        for name in ("kline", "orderbook", "trades"):
            reconnect_after = getattr(self, f"{name}_reconnect_after")
            degrade_after = getattr(self, f"{name}_degrade_after")
            if reconnect_after >= degrade_after:
                raise ValueError(
                    f"{name}_reconnect_after must be lower than {name}_degrade_after"
                )
        return self

    def thresholds(self, kind: FeedKind) -> tuple:
        return {
            FeedKind.KLINE: (self.kline_reconnect_after, self.kline_degrade_after),
            FeedKind.ORDER_BOOK: (self.orderbook_reconnect_after, self.orderbook_degrade_after),
            FeedKind.TRADES: (self.trades_reconnect_after, self.trades_degrade_after),
        }[kind]


class FetchConfig(BaseModel):
    """Historical fetch retry configuration."""
    max_attempts: int = Field(default=2, ge=1, description="Attempts per fetch")
    attempt_timeout_seconds: float = Field(default=8.0, gt=0, description="Timeout for each attempt")
    retry_delay_seconds: float = Field(default=0.5, ge=0, description="Fixed delay between attempts")


class BufferConfig(BaseModel):
    """In-memory retention limits."""
    max_candles: int = Field(default=1000, gt=0)
    max_trades: int = Field(default=50, gt=0)


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="text", description="Log format: json or text")
    output: str = Field(default="stderr", description="Log output destination")

    @field_validator('format')
    @classmethod
    def validate_format(cls, v):
        if v.lower() not in ('json', 'text'):
            raise ValueError("Log format must be 'json' or 'text'")
        return v.lower()


class Settings(BaseSettings):
    """Main client settings."""

    service_name: str = Field(default="tickertui", description="Service name")
    preferences_path: str = Field(default=".tickertui.json", description="Persisted user preferences")

    binance: BinanceConfig = Field(default_factory=BinanceConfig)
    feeds: FeedConfig = Field(default_factory=FeedConfig)
    health: HealthConfig = Field(default_factory=HealthConfig)
    fetch: FetchConfig = Field(default_factory=FetchConfig)
    buffer: BufferConfig = Field(default_factory=BufferConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = SettingsConfigDict(
        env_prefix="TICKERTUI_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )


def substitute_env_vars(obj: Any) -> Any:
    """
    Recursively substitute environment variables in configuration objects.

    Supports syntax:
    - ${VAR_NAME} - Required variable (raises error if not found)
    - ${VAR_NAME:-default} - Optional variable with default value

    Raises:
        ValueError: If required environment variable is not found
    """
    if isinstance(obj, dict):
        return {key: substitute_env_vars(value) for key, value in obj.items()}
    elif isinstance(obj, list):
        return [substitute_env_vars(item) for item in obj]
    elif isinstance(obj, str):
        def replace_env_var(match):
            var_expr = match.group(1)

            if ':-' in var_expr:
                var_name, default_value = var_expr.split(':-', 1)
                return os.getenv(var_name.strip(), default_value)
            else:
                var_name = var_expr.strip()
                value = os.getenv(var_name)
                if value is None:
                    raise ValueError(f"Required environment variable '{var_name}' is not set")
                return value

        return re.sub(r'\$\{([^}]+)\}', replace_env_var, obj)
    else:
        return obj


def load_settings(config_file: Optional[str] = None) -> Settings:
    """
    Load settings from config file and environment variables.

    The config file supports environment variable substitution using ${VAR_NAME} syntax.

    Args:
        config_file: Path to YAML configuration file

    Returns:
        Settings: Validated configuration object

    Raises:
        ValueError: If required environment variables are missing
        FileNotFoundError: If config file doesn't exist
    """
    if config_file and os.path.exists(config_file):
        import yaml

        with open(config_file, 'r') as f:
            raw_config = yaml.safe_load(f) or {}

        config_data = substitute_env_vars(raw_config)
        return Settings(**config_data)

    elif config_file:
        raise FileNotFoundError(f"Configuration file not found: {config_file}")

    return Settings()
