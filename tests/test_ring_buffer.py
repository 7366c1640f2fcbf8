"""Tests for the ring buffer module."""

import math

import pytest
from ptt_monitor.ring_buffer import RingBuffer, SampleBuffer


class TestRingBuffer:
    """Test cases for RingBuffer."""

    def test_invalid_capacity(self):
        with pytest.raises(ValueError):
            RingBuffer(0)

    def test_snapshot_before_wrap(self):
        ring = RingBuffer(5)
        ring.append(1.0, 10)
        ring.append(2.0, 20)
        values, timestamps = ring.snapshot()
        assert values.tolist() == [1.0, 2.0]
        assert timestamps.tolist() == [10, 20]
        assert len(ring) == 2

    def test_wrap_around_keeps_most_recent(self):
        """After wrapping, reads see only the newest `capacity` items in order."""
        ring = RingBuffer(3)
        for i in range(7):
            ring.append(float(i), i * 10)
        values, timestamps = ring.snapshot()
        assert values.tolist() == [4.0, 5.0, 6.0]
        assert timestamps.tolist() == [40, 50, 60]
        assert len(ring) == 3
        assert ring.total == 7

    def test_snapshot_last_n(self):
        ring = RingBuffer(4)
        for i in range(6):
            ring.append(float(i), i)
        values, _ = ring.snapshot(2)
        assert values.tolist() == [4.0, 5.0]

    def test_snapshot_is_a_copy(self):
        ring = RingBuffer(3)
        ring.append(1.0, 0)
        values, _ = ring.snapshot()
        values[0] = 99.0
        assert ring.snapshot()[0].tolist() == [1.0]

    def test_since_returns_new_items(self):
        ring = RingBuffer(5)
        for i in range(3):
            ring.append(float(i), i)
        values, _, seq, lost = ring.since(0)
        assert values.tolist() == [0.0, 1.0, 2.0]
        assert (seq, lost) == (3, 0)

        ring.append(3.0, 3)
        values, _, seq, lost = ring.since(seq)
        assert values.tolist() == [3.0]
        assert (seq, lost) == (4, 0)

    def test_since_reports_overrun(self):
        """Items overwritten before the consumer got to them are counted as lost."""
        ring = RingBuffer(4)
        for i in range(10):
            ring.append(float(i), i)
        values, _, seq, lost = ring.since(2)
        assert values.tolist() == [6.0, 7.0, 8.0, 9.0]
        assert seq == 10
        assert lost == 4

    def test_clear(self):
        ring = RingBuffer(2)
        ring.append(1.0, 1)
        ring.clear()
        assert len(ring) == 0
        assert ring.total == 0
        assert ring.snapshot()[0].size == 0


class TestSampleBuffer:
    """Test cases for SampleBuffer range checking."""

    def test_accepts_in_range(self):
        buffer = SampleBuffer(10, (0.0, 4095.0))
        assert buffer.write(0.0, 0)
        assert buffer.write(4095.0, 5)
        assert len(buffer) == 2
        assert buffer.rejected == 0

    def test_rejects_out_of_range_and_nan(self):
        buffer = SampleBuffer(10, (0.0, 4095.0))
        assert not buffer.write(-1.0, 0)
        assert not buffer.write(5000.0, 5)
        assert not buffer.write(math.nan, 10)
        assert len(buffer) == 0
        assert buffer.rejected == 3

    def test_clear_resets_rejected(self):
        buffer = SampleBuffer(10, (0.0, 1.0))
        buffer.write(2.0, 0)
        buffer.clear()
        assert buffer.rejected == 0
