"""Pytest configuration and shared fixtures."""

import pytest
from typing import Callable, List

from tickertui.config.settings import (
    BinanceConfig,
    FeedConfig,
    FetchConfig,
    HealthConfig,
    Settings,
)
from tickertui.models import Candle


def make_candle(open_time: int, close: float = 100.0, volume: float = 1.0) -> Candle:
    """Build a one-minute candle opening at `open_time` (ms)."""
    return Candle(
        open_time=open_time,
        open=close - 1.0,
        high=close + 2.0,
        low=close - 2.0,
        close=close,
        volume=volume,
        close_time=open_time + 59_999,
        trade_count=10,
    )


@pytest.fixture
def candle_factory() -> Callable[..., Candle]:
    return make_candle


@pytest.fixture
def sample_candles() -> List[Candle]:
    """Five consecutive one-minute candles."""
    return [make_candle(1_700_000_000_000 + i * 60_000, close=100.0 + i) for i in range(5)]


@pytest.fixture
def test_config() -> Settings:
    """Create test configuration with fast timings."""
    return Settings(
        service_name="test-tickertui",
        binance=BinanceConfig(
            rest_base_url="http://rest.test",
            ws_base_url="ws://stream.test",
            rate_limit_requests_per_minute=600,
        ),
        feeds=FeedConfig(
            kline_reconnect_delay_seconds=0.01,
            orderbook_reconnect_delay_seconds=0.01,
            trades_reconnect_delay_seconds=0.01,
            watchlist_reconnect_delay_seconds=0.01,
            kline_channel_size=10,
            orderbook_channel_size=10,
            trades_channel_size=10,
            watchlist_channel_size=10,
        ),
        health=HealthConfig(tick_interval_seconds=0.05),
        fetch=FetchConfig(max_attempts=2, attempt_timeout_seconds=0.2, retry_delay_seconds=0.01),
    )


@pytest.fixture
def sample_kline_event() -> dict:
    """Binance kline stream event."""
    return {
        'e': 'kline',
        'E': 1700000030000,
        's': 'BTCUSDT',
        'k': {
            't': 1700000000000,
            'T': 1700000059999,
            's': 'BTCUSDT',
            'i': '1m',
            'o': '37000.10',
            'c': '37010.50',
            'h': '37020.00',
            'l': '36990.00',
            'v': '12.5',
            'n': 321,
            'x': False,
            'q': '462600.0',
            'V': '6.1',
            'Q': '225700.0',
        },
    }


@pytest.fixture
def sample_kline_row() -> list:
    """One row of the REST klines response."""
    return [
        1700000000000, "37000.10", "37020.00", "36990.00", "37010.50", "12.5",
        1700000059999, "462600.0", 321, "6.1", "225700.0", "0",
    ]
