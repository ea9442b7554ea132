"""
Sliding-window rate limiting over recorded attempts.

A policy is a list of windows such as "10 per 24h" and "5 per 5min".
Windows are checked longest first and the first saturated one decides
when the next attempt becomes possible.  Once a longer window has been
found to be fine, shorter ones are only consulted if the attempts inside
the long window could possibly saturate them.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timedelta


@dataclass(frozen=True)
class RateWindow:
    max_attempts: int
    duration: timedelta

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.duration <= timedelta(0):
            raise ValueError("duration must be positive")


@dataclass(frozen=True)
class RateLimitPolicy:
    windows: tuple[RateWindow, ...] = field(default_factory=tuple)

    @classmethod
    def of(cls, *windows: RateWindow) -> RateLimitPolicy:
        return cls(tuple(sorted(windows, key=lambda w: w.duration, reverse=True)))

    @property
    def longest(self) -> timedelta:
        """How far back the ledger has to be read to evaluate this policy."""
        if not self.windows:
            return timedelta(0)
        return max(w.duration for w in self.windows)


def next_available_at(
    attempts: Iterable[datetime],
    policy: RateLimitPolicy,
    now: datetime,
) -> datetime | None:
    """
    Return when the next attempt is allowed, or ``None`` if it is allowed now.

    For a saturated window of ``max_attempts`` N the answer is the moment the
    N-th most recent attempt inside it slides out of the window.
    """
    recent = sorted(attempts, reverse=True)
    checked_count: int | None = None

    for window in sorted(policy.windows, key=lambda w: w.duration, reverse=True):
        # Fewer attempts in a longer window than this one allows means this
        # window cannot be saturated either.
        if checked_count is not None and checked_count < window.max_attempts:
            continue

        window_start = now - window.duration
        in_window = [t for t in recent if t > window_start]
        checked_count = len(in_window)

        if checked_count >= window.max_attempts:
            blocking = in_window[window.max_attempts - 1]
            return now + (blocking - window_start)

    return None
