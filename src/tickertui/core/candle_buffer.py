from collections import deque
from dataclasses import dataclass
from typing import Deque, Iterable, Iterator, List, Optional

from ..models import Candle


@dataclass(frozen=True)
class BufferStats:
    size: int
    capacity: int
    oldest_open_time: Optional[int]
    newest_open_time: Optional[int]


class CandleBuffer:
    """
    Bounded, time-ordered buffer of candles.

    Guarantees:
      - Ascending, unique `open_time` values
      - At most `max_candles` entries; the oldest is evicted first
      - Only the newest entry is ever replaced (the still-open bar being
        re-sent); candles older than the newest entry are rejected
    """

    def __init__(self, max_candles: int = 1000):
        if max_candles <= 0:
            raise ValueError("max_candles must be > 0")

        self.max_candles = max_candles
        self._buf: Deque[Candle] = deque()

    def add(self, candle: Candle) -> bool:
        """
        Merge one candle.

        Returns:
          True if appended or replaced the newest entry
          False if rejected as older than the newest entry
        """
        if self._buf:
            newest = self._buf[-1]
            if candle.open_time == newest.open_time:
                self._buf[-1] = candle
                return True
            if candle.open_time < newest.open_time:
                return False

        self._buf.append(candle)
        if len(self._buf) > self.max_candles:
            self._buf.popleft()
        return True

    def seed(self, candles: Iterable[Candle]) -> None:
        """Bulk-load candles in any order; seeding the same set twice is a no-op."""
        for candle in sorted(candles, key=lambda c: c.open_time):
            self.add(candle)

    def clear(self) -> None:
        self._buf.clear()

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    def latest(self) -> Optional[Candle]:
        return self._buf[-1] if self._buf else None

    def last(self, n: int) -> List[Candle]:
        """Returns the last n candles (or fewer if the buffer is smaller)."""
        if n <= 0:
            return []
        return list(self._buf)[-n:]

    def as_list(self) -> List[Candle]:
        return list(self._buf)

    def stats(self) -> BufferStats:
        return BufferStats(
            size=len(self._buf),
            capacity=self.max_candles,
            oldest_open_time=self._buf[0].open_time if self._buf else None,
            newest_open_time=self._buf[-1].open_time if self._buf else None,
        )

    def __iter__(self) -> Iterator[Candle]:
        return iter(self._buf)

    def __len__(self) -> int:
        return len(self._buf)
