"""Domain records shared by the feeds, the supervisor and the display layer."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Union


class FeedKind(Enum):
    """Logical streams maintained by the supervisor."""
    KLINE = "kline"
    ORDER_BOOK = "orderbook"
    TRADES = "trades"
    WATCHLIST_PRICES = "watchlist"


# Feeds whose freshness is tracked for the active symbol, in reporting order.
TRACKED_FEEDS = (FeedKind.KLINE, FeedKind.ORDER_BOOK, FeedKind.TRADES)


class FeedState(Enum):
    """Health of a single feed."""
    LIVE = "live"
    RECONNECTING = "reconnecting"
    DEGRADED = "degraded"


class ConnectionMode(Enum):
    """Aggregate health across the tracked feeds."""
    LIVE = "LIVE"
    DEGRADED = "DEGRADED"
    RECONNECTING = "RECONNECTING"


class Timeframe(Enum):
    """Display timeframe mapped to a provider interval and history limit."""
    ONE_DAY = ("1D", "5m", 288)
    SEVEN_DAYS = ("7D", "15m", 672)
    ONE_MONTH = ("1M", "1h", 720)
    THREE_MONTHS = ("3M", "4h", 540)
    ONE_YEAR = ("1Y", "1d", 365)
    YEAR_TO_DATE = ("YTD", "1d", 365)

    def __init__(self, label: str, interval: str, limit: int):
        self.label = label
        self.interval = interval
        self.limit = limit

    @classmethod
    def from_label(cls, label: str) -> "Timeframe":
        for timeframe in cls:
            if timeframe.label == label.upper():
                return timeframe
        raise ValueError(f"Unknown timeframe: {label}")

    def next(self) -> "Timeframe":
        members = list(Timeframe)
        return members[(members.index(self) + 1) % len(members)]

    def previous(self) -> "Timeframe":
        members = list(Timeframe)
        return members[(members.index(self) - 1) % len(members)]


@dataclass(frozen=True)
class Candle:
    """OHLCV bar keyed by its open time (ms epoch)."""
    open_time: int
    open: float
    high: float
    low: float
    close: float
    volume: float
    close_time: int
    quote_volume: float = 0.0
    trade_count: int = 0
    taker_buy_base: float = 0.0
    taker_buy_quote: float = 0.0


@dataclass(frozen=True)
class Trade:
    price: float
    quantity: float
    is_buyer_maker: bool
    timestamp: int


@dataclass(frozen=True)
class OrderBookLevel:
    price: float
    quantity: float


@dataclass(frozen=True)
class OrderBook:
    """
    Full order book snapshot.

    Bids are ordered by descending price, asks by ascending price. Every new
    snapshot replaces the previous one entirely.
    """
    bids: List[OrderBookLevel] = field(default_factory=list)
    asks: List[OrderBookLevel] = field(default_factory=list)
    last_update: int = 0


@dataclass(frozen=True)
class WatchPrice:
    symbol: str
    last_price: float
    change_pct: float


DomainRecord = Union[Candle, OrderBook, Trade, WatchPrice]


@dataclass(frozen=True)
class FetchRequest:
    id: int
    symbol: str
    interval: str
    limit: int


@dataclass(frozen=True)
class FetchOutcome:
    """Result of a historical fetch, tagged with the request that produced it."""
    id: int
    symbol: str
    interval: str
    candles: Optional[List[Candle]] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class HealthSnapshot:
    kline: FeedState
    orderbook: FeedState
    trades: FeedState
    last_error: Optional[str] = None

    def state_of(self, kind: FeedKind) -> FeedState:
        return {
            FeedKind.KLINE: self.kline,
            FeedKind.ORDER_BOOK: self.orderbook,
            FeedKind.TRADES: self.trades,
        }[kind]
