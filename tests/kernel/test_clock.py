"""Tests for sitemap_kernel.domain.clock."""

from datetime import date, datetime, timedelta, timezone

import pytest

from sitemap_kernel.domain.clock import DeterministicClock, SequentialClock, SystemClock

T0 = datetime(2026, 2, 1, 12, 0, tzinfo=timezone.utc)


class TestSystemClock:
    def test_timezone_aware(self):
        assert SystemClock().now().tzinfo is not None


class TestDeterministicClock:
    def test_fixed_until_advanced(self):
        clock = DeterministicClock(T0)
        assert clock.now() == clock.now() == T0

    def test_advance(self):
        clock = DeterministicClock(T0)
        clock.advance(30.5)
        assert clock.now() == T0 + timedelta(seconds=30.5)

    def test_set_time_resets_advance(self):
        clock = DeterministicClock(T0)
        clock.advance(100)
        clock.set_time(T0 + timedelta(days=1))
        assert clock.now() == T0 + timedelta(days=1)

    def test_tick(self):
        clock = DeterministicClock(T0)
        assert clock.tick() == T0 + timedelta(seconds=1)

    def test_today(self):
        assert DeterministicClock(T0).today() == date(2026, 2, 1)


class TestSequentialClock:
    def test_steps_on_every_read(self):
        clock = SequentialClock(T0, step=5)
        assert [clock.now(), clock.now(), clock.now()] == [
            T0,
            T0 + timedelta(seconds=5),
            T0 + timedelta(seconds=10),
        ]

    def test_timedelta_step(self):
        clock = SequentialClock(T0, step=timedelta(minutes=1))
        clock.now()
        assert clock.now_utc() == T0 + timedelta(minutes=1)

    def test_step_must_be_positive(self):
        with pytest.raises(ValueError):
            SequentialClock(T0, step=0)
