"""Fixtures wiring the supervisor to in-memory feeds."""

import asyncio

import pytest

from tickertui.models import FeedKind
from tickertui.streams.channel import FeedChannel


class FakeFeed:
    """Feed whose records are pushed by the test through `channel`."""

    def __init__(self, kind, symbol, interval, watchlist):
        self.kind = kind
        self.symbol = symbol
        self.interval = interval
        self.watchlist = list(watchlist)
        self.channel = None
        self.task = None
        self.initial_delay = None

    def start(self, initial_delay=0.0):
        self.initial_delay = initial_delay
        self.channel = FeedChannel(100)
        self.task = asyncio.create_task(asyncio.sleep(3600), name=f"fake-{self.kind.value}")
        self.task.add_done_callback(lambda _task: self.channel.close())
        return self.channel, self.task


class FakeFeedFactory:

    def __init__(self, *args, **kwargs):
        self.built = []
        self.delays = {kind: 0.25 for kind in FeedKind}

    def reconnect_delay(self, kind: FeedKind) -> float:
        return self.delays[kind]

    def build(self, kind, symbol, interval, watchlist):
        feed = FakeFeed(kind, symbol, interval, watchlist)
        self.built.append(feed)
        return feed

    def latest(self, kind: FeedKind) -> FakeFeed:
        return [feed for feed in self.built if feed.kind is kind][-1]

    def count(self, kind: FeedKind) -> int:
        return sum(1 for feed in self.built if feed.kind is kind)


class FakeClock:

    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def feed_factory():
    return FakeFeedFactory()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def wait_until():
    async def _wait_until(predicate, timeout=2.0):
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not predicate():
            if loop.time() > deadline:
                raise AssertionError("condition not met before timeout")
            await asyncio.sleep(0.005)
    return _wait_until
