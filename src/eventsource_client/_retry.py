"""
Reconnect delay computation.

The base delay is a budget measured from the moment the last stream was
established: a stream that stayed open longer than the base delay reconnects
immediately. A server ``retry`` field overrides the computation once.
"""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_RECONNECT_DELAY_MS = 3000


def next_delay(
    connected_at: float,
    now: float,
    base_delay_ms: int,
    override_ms: int | None = None,
) -> tuple[int, bool]:
    """
    Compute the delay before the next connection attempt.

    Args:
        connected_at: Monotonic timestamp (seconds) when the stream opened.
        now: Current monotonic timestamp (seconds).
        base_delay_ms: Configured reconnect delay; also the upper bound.
        override_ms: Pending server ``retry`` value, if any.

    Returns:
        ``(delay_ms, consumed_override)``; the delay is always within
        ``[0, base_delay_ms]``.
    """
    elapsed_ms = int((now - connected_at) * 1000)
    candidate = base_delay_ms - elapsed_ms
    consumed = False

    if override_ms is not None and override_ms > 0:
        candidate = override_ms
        consumed = True

    return min(max(candidate, 0), max(base_delay_ms, 0)), consumed


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    base_delay_ms: int = DEFAULT_RECONNECT_DELAY_MS

    def next_delay(
        self,
        connected_at: float,
        now: float,
        override_ms: int | None = None,
    ) -> tuple[int, bool]:
        return next_delay(connected_at, now, self.base_delay_ms, override_ms)
