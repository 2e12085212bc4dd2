"""Coordinator owning every feed, its health tracker and the shared view."""

import asyncio
import logging
import time
from typing import Any, Callable, Dict, List, Tuple

from ..config.settings import HealthConfig
from ..models import (
    TRACKED_FEEDS,
    Candle,
    FeedKind,
    HealthSnapshot,
    OrderBook,
    Trade,
    WatchPrice,
)
from ..streams.channel import FeedChannel
from ..streams.feeds import FeedFactory
from .health import FeedTracker, HealthAggregator
from .market_view import MarketView

logger = logging.getLogger(__name__)

RESTART = "restart"
TICK = "tick"


def should_restart_stream(
    current_symbol: str,
    current_interval: str,
    new_symbol: str,
    new_interval: str,
) -> bool:
    return current_symbol != new_symbol or current_interval != new_interval


class Supervisor:
    """
    Single coordination point for the streaming side.

    Each loop iteration waits for whichever source is ready first: a record
    from one of the four feeds, a restart request, or the health tick. Only
    this loop spawns, cancels and respawns feeds.
    """

    def __init__(
        self,
        view: MarketView,
        feed_factory: FeedFactory,
        health_config: HealthConfig,
        restart_requests: "asyncio.Queue[Tuple[str, str]]",
        health_sink: Callable[[HealthSnapshot], None],
        symbol: str,
        interval: str,
        watchlist: List[str],
        clock: Callable[[], float] = time.monotonic,
    ):
        self.view = view
        self.feed_factory = feed_factory
        self.restart_requests = restart_requests
        self.current_symbol = symbol
        self.current_interval = interval
        self.watchlist = list(watchlist)
        self.tick_interval = health_config.tick_interval_seconds
        self._clock = clock

        trackers = {
            kind: FeedTracker(*health_config.thresholds(kind)) for kind in TRACKED_FEEDS
        }
        self.health = HealthAggregator(trackers, health_sink)

        self._channels: Dict[FeedKind, FeedChannel] = {}
        self._tasks: Dict[FeedKind, asyncio.Task] = {}
        self._waiters: Dict[Any, asyncio.Future] = {}

        self.stats = {
            'respawns': {kind.value: 0 for kind in FeedKind},
            'restarts': 0,
            'records': {kind.value: 0 for kind in FeedKind},
        }

    # ------------------------------------------------------------------
    # Feed lifecycle
    # ------------------------------------------------------------------

    def _spawn(self, kind: FeedKind, delay: float = 0.0) -> None:
        feed = self.feed_factory.build(
            kind, self.current_symbol, self.current_interval, self.watchlist
        )
        channel, task = feed.start(initial_delay=delay)
        self._channels[kind] = channel
        self._tasks[kind] = task

    def _cancel(self, kind: FeedKind) -> None:
        waiter = self._waiters.pop(kind, None)
        if waiter is not None:
            waiter.cancel()
        task = self._tasks.pop(kind, None)
        if task is not None:
            task.cancel()
        self._channels.pop(kind, None)

    def _respawn(self, kind: FeedKind, delay: float = 0.0) -> None:
        self._cancel(kind)
        self._spawn(kind, delay)

    def is_running(self, kind: FeedKind) -> bool:
        task = self._tasks.get(kind)
        return task is not None and not task.done()

    # ------------------------------------------------------------------
    # Event loop
    # ------------------------------------------------------------------

    def _arm(self) -> None:
        for kind, channel in self._channels.items():
            if kind not in self._waiters:
                self._waiters[kind] = asyncio.ensure_future(channel.receive())
        if RESTART not in self._waiters:
            self._waiters[RESTART] = asyncio.ensure_future(self.restart_requests.get())
        if TICK not in self._waiters:
            self._waiters[TICK] = asyncio.ensure_future(asyncio.sleep(self.tick_interval))

    async def run(self) -> None:
        """Run until cancelled."""
        logger.info(
            f"Supervisor starting: {self.current_symbol} {self.current_interval}, "
            f"watchlist={','.join(self.watchlist)}"
        )
        for kind in FeedKind:
            self._spawn(kind)
        self.health.publish()

        try:
            while True:
                self._arm()
                done, _ = await asyncio.wait(
                    set(self._waiters.values()), return_when=asyncio.FIRST_COMPLETED
                )
                for source, waiter in list(self._waiters.items()):
                    # A respawn earlier in this batch may have replaced the waiter
                    if waiter not in done or self._waiters.get(source) is not waiter:
                        continue
                    del self._waiters[source]
                    await self._dispatch(source, waiter.result())
        finally:
            await self.shutdown()

    async def _dispatch(self, source: Any, result: Any) -> None:
        if source == TICK:
            self.on_tick()
        elif source == RESTART:
            symbol, interval = result
            self.on_restart(symbol, interval)
        elif result is None:
            self.on_feed_closed(source)
        else:
            await self.on_record(source, result)

    # ------------------------------------------------------------------
    # Reactions
    # ------------------------------------------------------------------

    async def on_record(self, kind: FeedKind, record: Any) -> None:
        self.stats['records'][kind.value] += 1

        if kind is FeedKind.KLINE:
            async with self.view.lock:
                if (
                    isinstance(record, Candle)
                    and self.view.symbol == self.current_symbol
                    and self.view.interval == self.current_interval
                ):
                    self.view.candles.add(record)
        elif kind is FeedKind.ORDER_BOOK:
            async with self.view.lock:
                if isinstance(record, OrderBook) and self.view.symbol == self.current_symbol:
                    self.view.update_order_book(record)
        elif kind is FeedKind.TRADES:
            async with self.view.lock:
                if isinstance(record, Trade) and self.view.symbol == self.current_symbol:
                    self.view.trades.add_trade(record)
        else:
            # Watch prices are best-effort display data, not health-tracked
            if isinstance(record, WatchPrice):
                async with self.view.lock:
                    self.view.update_watch_price(record)
            return

        self.health.mark_live(kind, self._clock())

    def on_feed_closed(self, kind: FeedKind) -> None:
        """The producing task exited: replace it with a fresh feed."""
        delay = self.feed_factory.reconnect_delay(kind)
        logger.warning(f"{kind.value} feed ended unexpectedly, respawning in {delay:g}s")
        self.stats['respawns'][kind.value] += 1
        self._respawn(kind, delay)

        if kind in TRACKED_FEEDS:
            self.health.mark_reconnecting(kind, f"{kind.value} stream dropped; reconnecting")

    def on_restart(self, symbol: str, interval: str) -> bool:
        if not should_restart_stream(
            self.current_symbol, self.current_interval, symbol, interval
        ):
            logger.debug(f"Ignoring restart to unchanged target {symbol} {interval}")
            return False

        logger.info(
            f"Restarting feeds: {self.current_symbol} {self.current_interval} "
            f"-> {symbol} {interval}"
        )
        self.current_symbol = symbol
        self.current_interval = interval
        self.stats['restarts'] += 1

        for kind in TRACKED_FEEDS:
            self._respawn(kind)
        self.health.mark_all_reconnecting()
        return True

    def on_tick(self) -> bool:
        return self.health.refresh(self._clock())

    async def shutdown(self) -> None:
        waiters = list(self._waiters.values())
        tasks = list(self._tasks.values())
        self._waiters.clear()
        self._tasks.clear()
        self._channels.clear()

        for pending in waiters + tasks:
            pending.cancel()
        if waiters or tasks:
            await asyncio.gather(*waiters, *tasks, return_exceptions=True)
            logger.info("Supervisor stopped, all feeds cancelled")

    def get_stats(self) -> Dict[str, Any]:
        return {
            **self.stats,
            'symbol': self.current_symbol,
            'interval': self.current_interval,
            'mode': self.health.mode.value,
            'feeds': {kind.value: self.is_running(kind) for kind in FeedKind},
        }
