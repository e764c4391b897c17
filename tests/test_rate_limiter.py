import pytest

from data.rate_limiter import TokenBucket


class FakeClock:
    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


def test_burst_then_empty(clock):
    bucket = TokenBucket(rate=2.0, capacity=2, clock=clock, sleep=clock.sleep)

    assert bucket.try_acquire()
    assert bucket.try_acquire()
    assert not bucket.try_acquire()


def test_refills_over_time(clock):
    bucket = TokenBucket(rate=2.0, capacity=2, clock=clock, sleep=clock.sleep)
    bucket.try_acquire()
    bucket.try_acquire()

    clock.now += 0.5
    assert bucket.try_acquire()
    assert not bucket.try_acquire()


def test_refill_is_capped_at_capacity(clock):
    bucket = TokenBucket(rate=10.0, capacity=2, clock=clock, sleep=clock.sleep)
    clock.now += 100

    assert bucket.try_acquire()
    assert bucket.try_acquire()
    assert not bucket.try_acquire()


def test_acquire_waits_for_next_token(clock):
    bucket = TokenBucket(rate=4.0, capacity=1, clock=clock, sleep=clock.sleep)

    assert bucket.acquire() == 0.0
    waited = bucket.acquire()

    assert waited == pytest.approx(0.25)
    assert clock.now == pytest.approx(0.25)


def test_sustained_rate(clock):
    bucket = TokenBucket(rate=2.0, capacity=1, clock=clock, sleep=clock.sleep)
    for _ in range(5):
        bucket.acquire()

    # First token is free, the other four each take half a second
    assert clock.now == pytest.approx(2.0)


@pytest.mark.parametrize("rate,capacity", [(0, 1), (-1, 1), (1, 0)])
def test_rejects_bad_settings(rate, capacity):
    with pytest.raises(ValueError):
        TokenBucket(rate=rate, capacity=capacity)
