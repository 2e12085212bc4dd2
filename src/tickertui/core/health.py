"""Per-feed staleness tracking and the aggregate connection health."""

import logging
from dataclasses import replace
from typing import Callable, Dict, Optional

from ..models import TRACKED_FEEDS, ConnectionMode, FeedKind, FeedState, HealthSnapshot

logger = logging.getLogger(__name__)


class FeedTracker:
    """
    Classifies one feed from the age of its last message.

    States:
    - RECONNECTING: no data yet, or nothing for `reconnect_after` seconds
    - LIVE: a message arrived less than `reconnect_after` seconds ago
    - DEGRADED: nothing for `degrade_after` seconds
    """

    def __init__(self, reconnect_after: float, degrade_after: float):
        if reconnect_after >= degrade_after:
            raise ValueError("reconnect_after must be lower than degrade_after")

        self.reconnect_after = reconnect_after
        self.degrade_after = degrade_after
        self.last_message: Optional[float] = None
        self.state = FeedState.RECONNECTING

    def mark_live(self, now: float) -> None:
        self.last_message = now
        self.state = FeedState.LIVE

    def mark_reconnecting(self) -> None:
        self.last_message = None
        self.state = FeedState.RECONNECTING

    def refresh(self, now: float) -> bool:
        """Recompute the state from elapsed time; returns True if it changed."""
        previous = self.state

        if self.last_message is None:
            self.state = FeedState.RECONNECTING
        else:
            elapsed = max(now - self.last_message, 0.0)
            if elapsed >= self.degrade_after:
                self.state = FeedState.DEGRADED
            elif elapsed >= self.reconnect_after:
                self.state = FeedState.RECONNECTING
            else:
                self.state = FeedState.LIVE

        return previous != self.state


def overall_mode(kline: FeedState, orderbook: FeedState, trades: FeedState) -> ConnectionMode:
    states = (kline, orderbook, trades)
    if all(state == FeedState.LIVE for state in states):
        return ConnectionMode.LIVE
    if any(state == FeedState.DEGRADED for state in states):
        return ConnectionMode.DEGRADED
    return ConnectionMode.RECONNECTING


def health_reason(snapshot: HealthSnapshot) -> Optional[str]:
    """Names the degraded feeds, or failing that the reconnecting ones."""
    if overall_mode(snapshot.kline, snapshot.orderbook, snapshot.trades) == ConnectionMode.LIVE:
        return None

    degraded = []
    reconnecting = []
    for kind in TRACKED_FEEDS:
        state = snapshot.state_of(kind)
        if state == FeedState.DEGRADED:
            degraded.append(kind.value)
        elif state == FeedState.RECONNECTING:
            reconnecting.append(kind.value)

    if degraded:
        return f"degraded: {','.join(degraded)}"
    if reconnecting:
        return f"reconnecting: {','.join(reconnecting)}"
    return None


class HealthAggregator:
    """
    Owns the trackers of the symbol-scoped feeds and publishes health snapshots.

    A snapshot is handed to `sink` only when it differs from the last one
    published.
    """

    def __init__(
        self,
        trackers: Dict[FeedKind, FeedTracker],
        sink: Callable[[HealthSnapshot], None],
    ):
        missing = [kind.value for kind in TRACKED_FEEDS if kind not in trackers]
        if missing:
            raise ValueError(f"Missing trackers for: {', '.join(missing)}")

        self.trackers = trackers
        self._sink = sink
        self.last_sent: Optional[HealthSnapshot] = None
        self.current = self._snapshot()

    def _snapshot(self, reason: Optional[str] = None) -> HealthSnapshot:
        snapshot = HealthSnapshot(
            kline=self.trackers[FeedKind.KLINE].state,
            orderbook=self.trackers[FeedKind.ORDER_BOOK].state,
            trades=self.trackers[FeedKind.TRADES].state,
        )
        return replace(snapshot, last_error=reason or health_reason(snapshot))

    @property
    def mode(self) -> ConnectionMode:
        return overall_mode(self.current.kline, self.current.orderbook, self.current.trades)

    def publish(self, snapshot: Optional[HealthSnapshot] = None) -> bool:
        """Forward `snapshot` (default: current) unless it equals the last one sent."""
        snapshot = snapshot or self.current
        if snapshot == self.last_sent:
            return False

        self._sink(snapshot)
        self.last_sent = snapshot
        return True

    def _recompute(self) -> bool:
        self.current = self._snapshot()
        return self.publish()

    def mark_live(self, kind: FeedKind, now: float) -> bool:
        self.trackers[kind].mark_live(now)
        return self._recompute()

    def mark_reconnecting(self, kind: FeedKind, reason: Optional[str] = None) -> bool:
        self.trackers[kind].mark_reconnecting()
        self.current = self._snapshot(reason)
        return self.publish()

    def mark_all_reconnecting(self) -> bool:
        for kind in TRACKED_FEEDS:
            self.trackers[kind].mark_reconnecting()
        return self._recompute()

    def refresh(self, now: float) -> bool:
        """Re-evaluate every tracker; publishes only when some state changed."""
        changed = False
        for kind in TRACKED_FEEDS:
            if self.trackers[kind].refresh(now):
                changed = True

        if not changed:
            return False

        logger.debug(
            "Feed states: "
            + ", ".join(f"{kind.value}={self.trackers[kind].state.value}" for kind in TRACKED_FEEDS)
        )
        return self._recompute()
