"""Binance WebSocket feeds with an internal reconnect loop."""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from ..config.settings import BinanceConfig, FeedConfig
from ..models import DomainRecord, FeedKind
from .channel import FeedChannel
from .parsers import (
    parse_depth_message,
    parse_kline_message,
    parse_mini_ticker_message,
    parse_trade_message,
)

logger = logging.getLogger(__name__)

# Errors a feed recovers from by reconnecting
TRANSPORT_ERRORS = (OSError, WebSocketException, asyncio.TimeoutError)


class Feed(ABC):
    """
    Producer for one logical stream.

    `start()` spawns a task that connects, parses each message and pushes the
    resulting records onto a bounded channel. Connection failures and remote
    closes are followed by a fixed delay and a new connection attempt, forever,
    until the task is cancelled. If the task exits for any other reason the
    channel is closed, which the consumer observes as end-of-stream. The
    channel is closed only by that exit, never by the consumer.
    """

    kind: FeedKind

    def __init__(
        self,
        ws_base_url: str,
        reconnect_delay: float,
        channel_size: int,
        ping_interval: Optional[float] = 20.0,
        connect: Callable[..., Any] = websockets.connect,
    ):
        self.ws_base_url = ws_base_url.rstrip('/')
        self.reconnect_delay = reconnect_delay
        self.channel_size = channel_size
        self.ping_interval = ping_interval
        self._connect = connect

        self.stats = {
            'connection_count': 0,
            'messages_received': 0,
            'messages_forwarded': 0,
            'decode_errors': 0,
            'last_message_time': None,
        }

    @abstractmethod
    def stream_url(self) -> str:
        """Full WebSocket URL for this stream."""

    @abstractmethod
    def parse(self, raw: Any) -> Optional[DomainRecord]:
        """Convert one raw message into a record, or None to skip it."""

    def start(self, initial_delay: float = 0.0) -> Tuple[FeedChannel, asyncio.Task]:
        """Spawn the feed task; `initial_delay` postpones the first connection."""
        channel: FeedChannel = FeedChannel(self.channel_size)
        task = asyncio.create_task(
            self._run(channel, initial_delay), name=f"feed-{self.kind.value}"
        )
        task.add_done_callback(lambda _task: channel.close())
        return channel, task

    async def _run(self, channel: FeedChannel, initial_delay: float = 0.0) -> None:
        url = self.stream_url()
        if initial_delay > 0:
            await asyncio.sleep(initial_delay)

        while True:
            try:
                await self._stream(url, channel)
                logger.warning(f"{self.kind.value} stream closed by server, reconnecting")
            except ConnectionClosed as e:
                logger.warning(f"{self.kind.value} connection dropped: {e}")
            except TRANSPORT_ERRORS as e:
                logger.warning(f"{self.kind.value} connection error: {e}")

            await asyncio.sleep(self.reconnect_delay)

    async def _stream(self, url: str, channel: FeedChannel) -> None:
        async with self._connect(
            url,
            ping_interval=self.ping_interval,
            ping_timeout=self.ping_interval,
            close_timeout=5,
        ) as ws:
            self.stats['connection_count'] += 1
            logger.info(f"Connected {self.kind.value} stream: {url}")

            async for raw in ws:
                self.stats['messages_received'] += 1
                self.stats['last_message_time'] = time.time()

                record = self.parse(raw)
                if record is None:
                    self.stats['decode_errors'] += 1
                    continue

                await channel.send(record)
                self.stats['messages_forwarded'] += 1


class KlineFeed(Feed):
    kind = FeedKind.KLINE

    def __init__(self, symbol: str, interval: str, **kwargs):
        super().__init__(**kwargs)
        self.symbol = symbol
        self.interval = interval

    def stream_url(self) -> str:
        return f"{self.ws_base_url}/ws/{self.symbol.lower()}@kline_{self.interval}"

    def parse(self, raw):
        return parse_kline_message(raw)


class OrderBookFeed(Feed):
    kind = FeedKind.ORDER_BOOK

    def __init__(self, symbol: str, depth: int = 20, **kwargs):
        super().__init__(**kwargs)
        self.symbol = symbol
        self.depth = depth

    def stream_url(self) -> str:
        return f"{self.ws_base_url}/ws/{self.symbol.lower()}@depth{self.depth}@100ms"

    def parse(self, raw):
        return parse_depth_message(raw)


class TradeFeed(Feed):
    kind = FeedKind.TRADES

    def __init__(self, symbol: str, **kwargs):
        super().__init__(**kwargs)
        self.symbol = symbol

    def stream_url(self) -> str:
        return f"{self.ws_base_url}/ws/{self.symbol.lower()}@trade"

    def parse(self, raw):
        return parse_trade_message(raw)


class WatchlistFeed(Feed):
    kind = FeedKind.WATCHLIST_PRICES

    def __init__(self, symbols: Sequence[str], **kwargs):
        super().__init__(**kwargs)
        self.symbols = list(symbols)

    def stream_url(self) -> str:
        streams = "/".join(f"{symbol.lower()}@miniTicker" for symbol in self.symbols)
        return f"{self.ws_base_url}/stream?streams={streams}"

    def parse(self, raw):
        return parse_mini_ticker_message(raw)


class FeedFactory:
    """Builds configured feeds for the supervisor."""

    def __init__(
        self,
        binance: BinanceConfig,
        feeds: FeedConfig,
        connect: Callable[..., Any] = websockets.connect,
    ):
        self.binance = binance
        self.feeds = feeds
        self._connect = connect

    def reconnect_delay(self, kind: FeedKind) -> float:
        return self.feeds.reconnect_delay(kind)

    def _common(self, kind: FeedKind) -> Dict[str, Any]:
        return {
            'ws_base_url': self.binance.ws_base_url,
            'reconnect_delay': self.feeds.reconnect_delay(kind),
            'channel_size': self.feeds.channel_size(kind),
            'ping_interval': self.feeds.ping_interval_seconds,
            'connect': self._connect,
        }

    def build(
        self,
        kind: FeedKind,
        symbol: str,
        interval: str,
        watchlist: List[str],
    ) -> Feed:
        common = self._common(kind)
        if kind is FeedKind.KLINE:
            return KlineFeed(symbol, interval, **common)
        if kind is FeedKind.ORDER_BOOK:
            return OrderBookFeed(symbol, depth=self.feeds.orderbook_depth, **common)
        if kind is FeedKind.TRADES:
            return TradeFeed(symbol, **common)
        return WatchlistFeed(watchlist, **common)
