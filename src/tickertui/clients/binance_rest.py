"""Binance REST API client for historical candles."""

import asyncio
import aiohttp
import logging
import time
from typing import Any, Dict, List, Optional

from ..config.settings import BinanceConfig
from ..models import Candle
from ..streams.parsers import parse_kline_row

logger = logging.getLogger(__name__)

KLINES_MAX_LIMIT = 1000


class BinanceRESTClient:
    """Binance REST API client for historical bars."""

    def __init__(self, config: BinanceConfig):
        self.config = config
        self.session: Optional[aiohttp.ClientSession] = None
        self.rate_limiter = RateLimiter(config.rate_limit_requests_per_minute)

        self.endpoints = {
            'klines': '/api/v3/klines',
        }

    async def __aenter__(self):
        """Async context manager entry."""
        self.session = aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=self.config.request_timeout_seconds),
            connector=aiohttp.TCPConnector(limit=10, limit_per_host=10)
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        if self.session:
            await self.session.close()
            self.session = None

    async def _make_request(self, endpoint: str, params: Dict[str, Any]) -> Any:
        """Make a single rate-limited HTTP request."""
        if not self.session:
            raise RuntimeError("Client not initialized. Use async context manager.")

        url = f"{self.config.rest_base_url}{endpoint}"

        await self.rate_limiter.acquire()

        async with self.session.get(url, params=params) as response:
            if response.status == 429:
                retry_after = response.headers.get('Retry-After', 'unknown')
                logger.warning(f"Rate limit exceeded, server asks to wait {retry_after}s")
                raise aiohttp.ClientResponseError(
                    request_info=response.request_info,
                    history=response.history,
                    status=response.status,
                    message="Rate limit exceeded"
                )

            response.raise_for_status()
            return await response.json()

    async def get_klines(
        self,
        symbol: str,
        interval: str = '1h',
        limit: int = 500
    ) -> List[Candle]:
        """Get the most recent kline/candlestick bars for a symbol, oldest first."""
        params = {
            'symbol': symbol,
            'interval': interval,
            'limit': min(limit, KLINES_MAX_LIMIT)
        }

        logger.debug(f"Fetching klines for {symbol}: {params}")

        data = await self._make_request(self.endpoints['klines'], params)
        if not isinstance(data, list):
            raise ValueError(f"Unexpected klines payload for {symbol}: {type(data).__name__}")

        candles = [candle for candle in map(parse_kline_row, data) if candle is not None]
        if len(candles) != len(data):
            logger.warning(f"Skipped {len(data) - len(candles)} malformed klines for {symbol}")

        logger.info(f"Retrieved {len(candles)} {interval} klines for {symbol}")
        return candles


class RateLimiter:
    """Token bucket rate limiter for API requests."""

    def __init__(self, requests_per_minute: int):
        self.requests_per_minute = requests_per_minute
        self.tokens = requests_per_minute
        self.last_update = time.monotonic()
        self.lock = asyncio.Lock()

    async def acquire(self):
        """Acquire a token for making a request."""
        async with self.lock:
            now = time.monotonic()
            elapsed = now - self.last_update

            self.tokens = min(
                self.requests_per_minute,
                self.tokens + elapsed * (self.requests_per_minute / 60.0)
            )
            self.last_update = now

            if self.tokens >= 1:
                self.tokens -= 1
            else:
                wait_time = (1 - self.tokens) / (self.requests_per_minute / 60.0)
                await asyncio.sleep(wait_time)
                self.tokens = 0
                self.last_update = time.monotonic()
