"""Tests for the bounded candle buffer."""

import random

import pytest

from tickertui.core.candle_buffer import CandleBuffer


def open_times(buffer):
    return [candle.open_time for candle in buffer]


@pytest.mark.unit
class TestCandleBuffer:
    """Ordering, replacement and eviction."""

    def test_rejects_non_positive_capacity(self):
        with pytest.raises(ValueError):
            CandleBuffer(max_candles=0)

    def test_append_in_order(self, sample_candles):
        buffer = CandleBuffer(max_candles=10)
        for candle in sample_candles:
            assert buffer.add(candle) is True

        assert open_times(buffer) == [c.open_time for c in sample_candles]
        assert buffer.latest() == sample_candles[-1]

    def test_replaces_open_tail_candle(self, candle_factory):
        buffer = CandleBuffer(max_candles=10)
        buffer.add(candle_factory(1000, close=10.0))
        buffer.add(candle_factory(2000, close=20.0))

        assert buffer.add(candle_factory(2000, close=25.0)) is True

        assert len(buffer) == 2
        assert buffer.latest().close == 25.0
        assert buffer.as_list()[0].close == 10.0

    def test_rejects_candle_older_than_tail(self, candle_factory):
        buffer = CandleBuffer(max_candles=10)
        buffer.add(candle_factory(1000, close=10.0))
        buffer.add(candle_factory(3000, close=30.0))

        assert buffer.add(candle_factory(1000, close=99.0)) is False
        assert buffer.add(candle_factory(2000)) is False

        assert open_times(buffer) == [1000, 3000]
        assert buffer.as_list()[0].close == 10.0

    def test_evicts_oldest_when_full(self, candle_factory):
        buffer = CandleBuffer(max_candles=3)
        for open_time in (1000, 2000, 3000, 4000, 5000):
            buffer.add(candle_factory(open_time))

        assert open_times(buffer) == [3000, 4000, 5000]
        stats = buffer.stats()
        assert stats.size == 3
        assert stats.capacity == 3
        assert stats.oldest_open_time == 3000
        assert stats.newest_open_time == 5000

    def test_random_add_sequences_keep_invariants(self, candle_factory):
        rng = random.Random(42)
        buffer = CandleBuffer(max_candles=25)

        for _ in range(500):
            buffer.add(candle_factory(rng.randint(0, 60) * 1000, close=rng.random()))

            times = open_times(buffer)
            assert times == sorted(times)
            assert len(times) == len(set(times))
            assert len(buffer) <= 25

    def test_seed_sorts_unordered_input(self, sample_candles):
        buffer = CandleBuffer(max_candles=10)
        shuffled = list(reversed(sample_candles))

        buffer.seed(shuffled)

        assert buffer.as_list() == sample_candles

    def test_seed_is_idempotent(self, sample_candles):
        once = CandleBuffer(max_candles=10)
        once.seed(sample_candles)

        twice = CandleBuffer(max_candles=10)
        twice.seed(sample_candles)
        twice.seed(sample_candles)

        assert twice.as_list() == once.as_list()

    def test_seed_respects_capacity(self, sample_candles):
        buffer = CandleBuffer(max_candles=2)
        buffer.seed(sample_candles)

        assert buffer.as_list() == sample_candles[-2:]

    def test_last_and_clear(self, sample_candles):
        buffer = CandleBuffer(max_candles=10)
        buffer.seed(sample_candles)

        assert buffer.last(2) == sample_candles[-2:]
        assert buffer.last(0) == []
        assert buffer.last(50) == sample_candles

        buffer.clear()
        assert len(buffer) == 0
        assert buffer.latest() is None
        assert buffer.stats().oldest_open_time is None
