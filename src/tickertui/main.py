"""TickerTUI service - streaming core behind the terminal display."""

import asyncio
import logging
import os
import signal
import sys
from pathlib import Path
from typing import List, Optional

from .clients.binance_rest import BinanceRESTClient
from .config.preferences import MAX_ZOOM, MIN_ZOOM, Preferences, load_preferences, save_preferences
from .config.settings import load_settings
from .core.fetch import FetchError, FetchLifecycle
from .core.market_view import MarketView
from .core.supervisor import Supervisor
from .models import FetchOutcome, HealthSnapshot, Timeframe
from .streams.feeds import FeedFactory
from .utils.logging import setup_logging


logger = logging.getLogger(__name__)

HEALTH_QUEUE_SIZE = 64
RESTART_QUEUE_SIZE = 10


class TickerService:
    """Wires the REST client, supervisor, fetch lifecycle and shared view together."""

    def __init__(self, config_file: Optional[str] = None):
        self.settings = load_settings(config_file)
        setup_logging(self.settings.logging, self.settings.service_name)

        self.preferences_path = Path(self.settings.preferences_path)
        self.preferences = load_preferences(self.preferences_path)

        self.view: Optional[MarketView] = None
        self.supervisor: Optional[Supervisor] = None
        self.fetcher: Optional[FetchLifecycle] = None
        self.health_updates: Optional[asyncio.Queue] = None
        self._tasks: List[asyncio.Task] = []
        self._shutdown_event: Optional[asyncio.Event] = None

        logger.info(
            f"TickerService initialized: {self.preferences.symbol} "
            f"{self.preferences.timeframe}, preferences={self.preferences_path}"
        )

    async def start(self):
        """Start streaming and block until a shutdown signal arrives."""
        self._shutdown_event = asyncio.Event()
        self._setup_signal_handlers()

        async with BinanceRESTClient(self.settings.binance) as client:
            await self._start_components(client)
            await self._shutdown_event.wait()

            logger.info("Shutting down TickerService")
            await self.stop()

        logger.info("TickerService stopped")

    async def _start_components(self, client: BinanceRESTClient) -> None:
        timeframe = self.preferences.active_timeframe
        symbol = self.preferences.symbol
        interval = timeframe.interval

        self.view = MarketView(
            symbol,
            interval,
            max_candles=self.settings.buffer.max_candles,
            max_trades=self.settings.buffer.max_trades,
            zoom=self.preferences.zoom,
        )
        self.health_updates = asyncio.Queue(maxsize=HEALTH_QUEUE_SIZE)
        restart_requests: asyncio.Queue = asyncio.Queue(maxsize=RESTART_QUEUE_SIZE)

        self.fetcher = FetchLifecycle(
            client,
            self.view,
            restart_requests,
            self.settings.fetch,
            timeframe=timeframe,
            on_applied=self._on_fetch_applied,
        )

        try:
            candles = await self.fetcher.fetch_with_retry(symbol, interval, timeframe.limit)
            self.view.reset_candles(symbol, interval, candles)
        except FetchError as e:
            logger.warning(f"Initial fetch for {symbol} {interval} failed, starting empty: {e}")
            self.view.connection_error = f"fetch: {e}"

        self.supervisor = Supervisor(
            view=self.view,
            feed_factory=FeedFactory(self.settings.binance, self.settings.feeds),
            health_config=self.settings.health,
            restart_requests=restart_requests,
            health_sink=self._publish_health,
            symbol=symbol,
            interval=interval,
            watchlist=self.preferences.watchlist,
        )

        self._tasks = [
            asyncio.create_task(self.supervisor.run(), name="supervisor"),
            asyncio.create_task(self.fetcher.run(), name="fetch-outcomes"),
            asyncio.create_task(self._consume_health(), name="health-consumer"),
        ]

    async def stop(self):
        """Cancel every task and persist preferences."""
        if self.fetcher:
            await self.fetcher.shutdown()

        for task in self._tasks:
            task.cancel()
        results = await asyncio.gather(*self._tasks, return_exceptions=True)
        for task, result in zip(self._tasks, results):
            if isinstance(result, Exception):
                logger.error(f"Task {task.get_name()} failed: {result}", exc_info=result)
        self._tasks = []

        if self.supervisor:
            logger.info(f"Supervisor stats: {self.supervisor.get_stats()}")

        await self.persist_preferences()

    def _setup_signal_handlers(self):
        """Setup signal handlers for graceful shutdown."""
        loop = asyncio.get_running_loop()

        def signal_handler(signum):
            logger.info(f"Received signal {signum}, initiating shutdown")
            self._shutdown_event.set()

        for signum in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(signum, signal_handler, signum)
            except NotImplementedError:
                signal.signal(signum, lambda s, _frame: signal_handler(s))

    # ------------------------------------------------------------------
    # Health publication
    # ------------------------------------------------------------------

    def _publish_health(self, snapshot: HealthSnapshot) -> None:
        """Hand a snapshot to the consumer, keeping only the newest when it lags."""
        if self.health_updates.full():
            self.health_updates.get_nowait()
        self.health_updates.put_nowait(snapshot)

    async def _consume_health(self) -> None:
        while True:
            snapshot = await self.health_updates.get()
            async with self.view.lock:
                previous_mode = self.view.connection_mode
                self.view.apply_health(snapshot)
                mode = self.view.connection_mode

            if mode != previous_mode:
                reason = f" ({snapshot.last_error})" if snapshot.last_error else ""
                logger.info(f"Connection {previous_mode.value} -> {mode.value}{reason}")

    # ------------------------------------------------------------------
    # Display intents
    # ------------------------------------------------------------------

    async def switch_symbol(self, symbol: str):
        return await self.fetcher.switch_symbol(symbol.upper())

    async def switch_interval(self, interval: str, limit: int):
        return await self.fetcher.switch_interval(interval, limit)

    async def switch_timeframe(self, timeframe: Timeframe):
        request = await self.fetcher.switch_timeframe(timeframe)
        await self.persist_preferences()
        return request

    async def set_zoom(self, zoom: int) -> None:
        async with self.view.lock:
            self.view.zoom = min(max(zoom, MIN_ZOOM), MAX_ZOOM)
        await self.persist_preferences()

    async def _on_fetch_applied(self, outcome: FetchOutcome) -> None:
        await self.persist_preferences()

    async def persist_preferences(self) -> None:
        if self.view is None:
            return

        async with self.view.lock:
            symbol = self.view.symbol
            zoom = self.view.zoom

        watchlist = self.preferences.watchlist
        selected = watchlist.index(symbol) if symbol in watchlist else self.preferences.selected_symbol
        self.preferences = Preferences(
            watchlist=watchlist,
            selected_symbol=selected,
            symbol=symbol,
            timeframe=self.fetcher.timeframe.label if self.fetcher else self.preferences.timeframe,
            zoom=zoom,
        ).sanitized()

        try:
            save_preferences(self.preferences_path, self.preferences)
        except OSError as e:
            logger.error(f"Failed to save preferences to {self.preferences_path}: {e}")


async def main():
    """Main entry point."""
    config_file = os.getenv("CONFIG_FILE")
    service = TickerService(config_file)

    try:
        await service.start()
    except Exception as e:
        logger.error(f"Service failed: {e}", exc_info=True)
        sys.exit(1)


def run():
    asyncio.run(main())


if __name__ == "__main__":
    run()
