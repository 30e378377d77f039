"""Tests for the token bucket used to pace ledger requests."""

import pytest

from payout_reconciler.reconciliation import TokenBucket


class TestTokenBucketInit:

    def test_rejects_non_positive_rate(self):
        with pytest.raises(ValueError):
            TokenBucket(rate=0)

    def test_rejects_zero_capacity(self):
        with pytest.raises(ValueError):
            TokenBucket(rate=1.0, capacity=0)

    def test_starts_full(self, fake_clock):
        bucket = TokenBucket(rate=2.0, capacity=3, clock=fake_clock, sleep=fake_clock.sleep)
        assert bucket.available == 3.0


class TestTokenBucketAcquire:

    async def test_first_acquire_does_not_wait(self, fake_clock):
        """A full bucket hands out its first token immediately."""
        bucket = TokenBucket(rate=1.0, capacity=1, clock=fake_clock, sleep=fake_clock.sleep)

        waited = await bucket.acquire()

        assert waited == 0.0
        assert fake_clock.sleeps == []

    async def test_default_spacing_is_one_second(self, fake_clock):
        """Successive acquires are at least 1/rate apart."""
        bucket = TokenBucket(rate=1.0, capacity=1, clock=fake_clock, sleep=fake_clock.sleep)
        start = fake_clock()

        for _ in range(4):
            await bucket.acquire()

        assert fake_clock() - start == pytest.approx(3.0)
        assert fake_clock.sleeps == [pytest.approx(1.0)] * 3

    async def test_faster_rate(self, fake_clock):
        bucket = TokenBucket(rate=4.0, capacity=1, clock=fake_clock, sleep=fake_clock.sleep)

        await bucket.acquire()
        waited = await bucket.acquire()

        assert waited == pytest.approx(0.25)

    async def test_burst_then_paced(self, fake_clock):
        """Capacity tokens go out back to back, then pacing resumes."""
        bucket = TokenBucket(rate=1.0, capacity=3, clock=fake_clock, sleep=fake_clock.sleep)

        waits = [await bucket.acquire() for _ in range(4)]

        assert waits[:3] == [0.0, 0.0, 0.0]
        assert waits[3] == pytest.approx(1.0)

    async def test_idle_time_refills_without_exceeding_capacity(self, fake_clock):
        bucket = TokenBucket(rate=1.0, capacity=2, clock=fake_clock, sleep=fake_clock.sleep)
        await bucket.acquire()
        await bucket.acquire()

        fake_clock.advance(60)

        assert bucket.available == 2.0

    async def test_partial_refill_waits_only_for_remainder(self, fake_clock):
        bucket = TokenBucket(rate=1.0, capacity=1, clock=fake_clock, sleep=fake_clock.sleep)
        await bucket.acquire()

        fake_clock.advance(0.6)
        waited = await bucket.acquire()

        assert waited == pytest.approx(0.4)
