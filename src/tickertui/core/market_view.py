"""Shared in-memory view read by the display layer."""

import asyncio
from collections import deque
from typing import Deque, Dict, Iterable, List, Optional

from ..models import Candle, ConnectionMode, HealthSnapshot, OrderBook, Trade, WatchPrice
from .candle_buffer import CandleBuffer
from .health import overall_mode


class TradeTape:
    """Most recent trades, oldest first."""

    def __init__(self, max_trades: int = 50):
        self.max_trades = max_trades
        self._trades: Deque[Trade] = deque(maxlen=max_trades)

    def add_trade(self, trade: Trade) -> None:
        self._trades.append(trade)

    def clear(self) -> None:
        self._trades.clear()

    def as_list(self) -> List[Trade]:
        return list(self._trades)

    def __len__(self) -> int:
        return len(self._trades)


class MarketView:
    """
    Candles, order book, trades and watch prices for the active symbol.

    Mutated by the supervisor (feed records, health) and by the fetch
    lifecycle (reseeding after a symbol/timeframe switch); every mutation and
    every display read must hold `lock`.
    """

    def __init__(
        self,
        symbol: str,
        interval: str,
        max_candles: int = 1000,
        max_trades: int = 50,
        zoom: int = 1,
    ):
        self.symbol = symbol
        self.interval = interval
        self.candles = CandleBuffer(max_candles)
        self.order_book = OrderBook()
        self.trades = TradeTape(max_trades)
        self.watch_prices: Dict[str, WatchPrice] = {}

        self.zoom = zoom
        self.offset = 0

        self.connection_mode = ConnectionMode.RECONNECTING
        self.connection_error: Optional[str] = None

        self.lock = asyncio.Lock()

    def reset_candles(self, symbol: str, interval: str, candles: Iterable[Candle]) -> None:
        """Replace all candle state with a fresh history for `symbol`/`interval`."""
        if symbol != self.symbol:
            self.order_book = OrderBook()
            self.trades.clear()
        self.symbol = symbol
        self.interval = interval
        self.candles.clear()
        self.candles.seed(candles)
        self.offset = 0

    def update_order_book(self, book: OrderBook) -> None:
        self.order_book = book

    def update_watch_price(self, price: WatchPrice) -> None:
        self.watch_prices[price.symbol] = price

    def apply_health(self, snapshot: HealthSnapshot) -> None:
        self.connection_mode = overall_mode(snapshot.kline, snapshot.orderbook, snapshot.trades)
        self.connection_error = snapshot.last_error
