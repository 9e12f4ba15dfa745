from __future__ import annotations

import pytest

from voicewin.core.clock import FakeClock, QuietTimer, Throttle


def test_fake_clock_only_moves_forward():
    clock = FakeClock()
    clock.advance(1.5)
    assert clock.now() == 1.5
    with pytest.raises(ValueError):
        clock.advance(-1)


def test_throttle_admits_once_per_interval():
    clock = FakeClock()
    throttle = Throttle(clock, interval_s=0.5)

    assert throttle.ready()
    clock.advance(0.25)
    assert not throttle.ready()
    clock.advance(0.25)
    assert throttle.ready()
    assert not throttle.ready()


def test_quiet_timer_measures_continuous_quiet():
    clock = FakeClock()
    timer = QuietTimer(clock)

    assert timer.update(True) == 0.0
    clock.advance(0.3)
    assert timer.update(True) == pytest.approx(0.3)
    assert timer.update(False) == 0.0
    clock.advance(0.1)
    assert timer.update(True) == 0.0

    clock.advance(0.2)
    timer.reset()
    assert timer.update(True) == 0.0
