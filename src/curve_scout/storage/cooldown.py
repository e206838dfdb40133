"""In-memory cooldown between analysis runs.

The cooldown is advisory: callers consult it before offering a new run. It
lives in process memory only and is not persisted across restarts.
"""

from __future__ import annotations

import time
from collections.abc import Callable

DEFAULT_COOLDOWN_SECONDS = 60


class CooldownState:
    """Earliest-next-allowed-run timestamp on a monotonic clock."""

    def __init__(
        self,
        duration_seconds: float = DEFAULT_COOLDOWN_SECONDS,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if duration_seconds < 0:
            raise ValueError("duration_seconds must be >= 0")
        self._duration = duration_seconds
        self._clock = clock
        self._next_allowed_at: float | None = None

    @property
    def duration_ms(self) -> int:
        return int(self._duration * 1000)

    def start(self) -> None:
        """Arm the cooldown window starting now."""
        self._next_allowed_at = self._clock() + self._duration

    def remaining_ms(self) -> int:
        """Milliseconds until a new run is allowed; exactly 0 once expired."""
        if self._next_allowed_at is None:
            return 0
        remaining = self._next_allowed_at - self._clock()
        if remaining <= 0:
            self._next_allowed_at = None
            return 0
        return int(round(remaining * 1000))

    @property
    def is_active(self) -> bool:
        return self.remaining_ms() > 0

    def reset(self) -> None:
        self._next_allowed_at = None
