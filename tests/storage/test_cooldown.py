"""Tests for the analysis cooldown."""

from __future__ import annotations

import pytest

from curve_scout.storage.cooldown import CooldownState


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class TestCooldownState:
    def test_inactive_before_first_run(self) -> None:
        cooldown = CooldownState(60, clock=FakeClock())
        assert cooldown.remaining_ms() == 0
        assert not cooldown.is_active

    def test_full_window_right_after_start(self) -> None:
        cooldown = CooldownState(60, clock=FakeClock())
        cooldown.start()
        assert cooldown.remaining_ms() == 60_000
        assert cooldown.is_active

    def test_counts_down(self) -> None:
        clock = FakeClock()
        cooldown = CooldownState(60, clock=clock)
        cooldown.start()

        clock.now += 45.5
        assert cooldown.remaining_ms() == 14_500

    @pytest.mark.parametrize("elapsed", [60.0, 61.0, 3600.0])
    def test_zero_once_elapsed(self, elapsed: float) -> None:
        clock = FakeClock()
        cooldown = CooldownState(60, clock=clock)
        cooldown.start()

        clock.now += elapsed
        assert cooldown.remaining_ms() == 0
        assert not cooldown.is_active

    def test_restart_rearms(self) -> None:
        clock = FakeClock()
        cooldown = CooldownState(60, clock=clock)
        cooldown.start()
        clock.now += 90
        cooldown.start()
        assert cooldown.remaining_ms() == 60_000

    def test_reset(self) -> None:
        cooldown = CooldownState(60, clock=FakeClock())
        cooldown.start()
        cooldown.reset()
        assert cooldown.remaining_ms() == 0

    def test_zero_duration_never_active(self) -> None:
        cooldown = CooldownState(0, clock=FakeClock())
        cooldown.start()
        assert cooldown.remaining_ms() == 0
        assert cooldown.duration_ms == 0

    def test_negative_duration_rejected(self) -> None:
        with pytest.raises(ValueError):
            CooldownState(-1)
