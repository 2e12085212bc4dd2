"""Historical candle fetches triggered by symbol and timeframe switches."""

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, Tuple

from ..config.settings import FetchConfig
from ..models import Candle, FetchOutcome, FetchRequest, Timeframe
from ..utils.retry import RetryError, retry_with_timeout
from .market_view import MarketView

logger = logging.getLogger(__name__)


class FetchError(Exception):
    """All fetch attempts failed; the message describes the last attempt."""


class FetchLifecycle:
    """
    Issues, retries, times out and supersedes historical fetches.

    Only the most recently queued request may be applied: every outcome is
    tagged with its request id and dropped unless it matches
    `pending_request_id`. Queuing a new request cancels the in-flight one.

    `timeframe` is the timeframe of the data currently in the view; a switch
    only commits its timeframe once the matching fetch has been applied.
    """

    def __init__(
        self,
        client,
        view: MarketView,
        restart_requests: "asyncio.Queue[Tuple[str, str]]",
        config: FetchConfig,
        timeframe: Timeframe = Timeframe.ONE_MONTH,
        on_applied: Optional[Callable[[FetchOutcome], Awaitable[None]]] = None,
    ):
        self.client = client
        self.view = view
        self.restart_requests = restart_requests
        self.config = config
        self.timeframe = timeframe
        self._on_applied = on_applied

        self.next_request_id = 0
        self.pending_request_id: Optional[int] = None
        self.pending_request: Optional[FetchRequest] = None
        self._pending_timeframe: Optional[Timeframe] = None
        self.is_loading = False
        self.last_error: Optional[str] = None
        self.fetch_task: Optional[asyncio.Task] = None
        self.outcomes: "asyncio.Queue[FetchOutcome]" = asyncio.Queue(maxsize=16)

    async def fetch_with_retry(self, symbol: str, interval: str, limit: int) -> List[Candle]:
        """Fetch candles with bounded attempts; raises FetchError when all fail."""
        try:
            return await retry_with_timeout(
                lambda: self.client.get_klines(symbol, interval, limit),
                max_attempts=self.config.max_attempts,
                attempt_timeout=self.config.attempt_timeout_seconds,
                delay=self.config.retry_delay_seconds,
            )
        except RetryError as e:
            raise FetchError(e.description) from e

    def queue_fetch(
        self,
        symbol: str,
        interval: str,
        limit: int,
        timeframe: Optional[Timeframe] = None,
    ) -> FetchRequest:
        """Supersede any in-flight fetch with a new one for `symbol`/`interval`."""
        self.next_request_id += 1
        request = FetchRequest(
            id=self.next_request_id,
            symbol=symbol,
            interval=interval,
            limit=limit,
        )
        self.pending_request_id = request.id
        self.pending_request = request
        self._pending_timeframe = timeframe or self.timeframe
        self.is_loading = True

        if self.fetch_task is not None and not self.fetch_task.done():
            logger.debug("Cancelling superseded fetch")
            self.fetch_task.cancel()

        self.fetch_task = asyncio.create_task(
            self._run_fetch(request), name=f"fetch-{request.id}"
        )
        logger.info(f"Queued fetch #{request.id}: {symbol} {interval} x{limit}")
        return request

    def cancel_pending(self) -> None:
        """Abandon the in-flight fetch; any outcome it already produced becomes stale."""
        if self.pending_request_id is not None:
            logger.debug(f"Abandoning fetch #{self.pending_request_id}")
        if self.fetch_task is not None and not self.fetch_task.done():
            self.fetch_task.cancel()
        self._clear_pending()

    def _clear_pending(self) -> None:
        self.pending_request_id = None
        self.pending_request = None
        self._pending_timeframe = None
        self.fetch_task = None
        self.is_loading = False

    async def _run_fetch(self, request: FetchRequest) -> None:
        try:
            candles = await self.fetch_with_retry(request.symbol, request.interval, request.limit)
            outcome = FetchOutcome(
                id=request.id,
                symbol=request.symbol,
                interval=request.interval,
                candles=candles,
            )
        except FetchError as e:
            outcome = FetchOutcome(
                id=request.id,
                symbol=request.symbol,
                interval=request.interval,
                error=str(e),
            )

        await self.outcomes.put(outcome)

    async def apply_outcome(self, outcome: FetchOutcome) -> bool:
        """Apply `outcome` if it answers the pending request; returns whether it did."""
        if outcome.id != self.pending_request_id:
            logger.debug(
                f"Discarding stale fetch #{outcome.id} "
                f"(pending: {self.pending_request_id})"
            )
            return False

        timeframe = self._pending_timeframe
        self._clear_pending()

        if not outcome.ok:
            self.last_error = f"fetch: {outcome.error}"
            async with self.view.lock:
                self.view.connection_error = self.last_error
            logger.warning(f"Kline fetch failed for {outcome.symbol} {outcome.interval}: {outcome.error}")
            return True

        self.last_error = None
        async with self.view.lock:
            self.view.reset_candles(outcome.symbol, outcome.interval, outcome.candles or [])
        if timeframe is not None:
            self.timeframe = timeframe

        logger.info(
            f"Loaded {len(outcome.candles or [])} candles for {outcome.symbol} {outcome.interval}"
        )
        await self.restart_requests.put((outcome.symbol, outcome.interval))

        if self._on_applied is not None:
            await self._on_applied(outcome)
        return True

    # ------------------------------------------------------------------
    # Display intents
    # ------------------------------------------------------------------

    async def _selection(self) -> Tuple[str, str, int, Timeframe]:
        """Where the user is heading: the pending request, else what is applied."""
        if self.pending_request is not None:
            request = self.pending_request
            return request.symbol, request.interval, request.limit, self._pending_timeframe
        async with self.view.lock:
            return self.view.symbol, self.view.interval, self.timeframe.limit, self.timeframe

    async def _retarget(
        self,
        symbol: str,
        interval: str,
        limit: int,
        timeframe: Timeframe,
    ) -> Optional[FetchRequest]:
        pending = self.pending_request
        if pending is not None and (pending.symbol, pending.interval, pending.limit) == (
            symbol, interval, limit
        ):
            self._pending_timeframe = timeframe
            return None

        async with self.view.lock:
            applied = (self.view.symbol, self.view.interval)

        if (symbol, interval) == applied:
            # Back to what is on screen: nothing to fetch
            self.cancel_pending()
            self.timeframe = timeframe
            return None

        return self.queue_fetch(symbol, interval, limit, timeframe)

    async def switch_symbol(self, symbol: str) -> Optional[FetchRequest]:
        _, interval, limit, timeframe = await self._selection()
        return await self._retarget(symbol, interval, limit, timeframe)

    async def switch_interval(self, interval: str, limit: int) -> Optional[FetchRequest]:
        symbol, _, _, timeframe = await self._selection()
        return await self._retarget(symbol, interval, limit, timeframe)

    async def switch_timeframe(self, timeframe: Timeframe) -> Optional[FetchRequest]:
        symbol, _, _, _ = await self._selection()
        return await self._retarget(symbol, timeframe.interval, timeframe.limit, timeframe)

    async def run(self) -> None:
        """Apply outcomes as fetch tasks deliver them."""
        while True:
            outcome = await self.outcomes.get()
            await self.apply_outcome(outcome)

    async def shutdown(self) -> None:
        if self.fetch_task is not None and not self.fetch_task.done():
            self.fetch_task.cancel()
            try:
                await self.fetch_task
            except asyncio.CancelledError:
                pass
        self.fetch_task = None
