"""Manual override timing.

A manual override is a time-boxed suppression of automatic control after the
user toggles the charger themselves. Only the override timestamp is needed to
derive its state; the two log timestamps exist to rate-limit log output.
"""

from __future__ import annotations

import math

from .const import (
    MANUAL_OVERRIDE_DURATION_MS,
    MILLISECONDS_PER_MINUTE,
    OVERRIDE_LOG_INTERVAL_MS,
)
from .models import ManualOverrideState
from .time_utils import is_valid_timestamp


def _is_set(timestamp: float | None) -> bool:
    # 0 and None both mean "no override recorded"
    return bool(timestamp) and is_valid_timestamp(timestamp)


def is_override_active(timestamp: float | None, now: float) -> bool:
    """Return True while now is less than DURATION past the override."""
    if not _is_set(timestamp):
        return False
    return now - timestamp < MANUAL_OVERRIDE_DURATION_MS


def remaining_minutes(timestamp: float | None, now: float) -> int:
    """Whole minutes left on the override, rounded up; 0 once expired."""
    if not is_override_active(timestamp, now):
        return 0
    remaining = MANUAL_OVERRIDE_DURATION_MS - (now - timestamp)
    return max(0, math.ceil(remaining / MILLISECONDS_PER_MINUTE))


def time_since_manual(timestamp: float | None, now: float) -> int:
    """Milliseconds since the override was recorded, 0 if none."""
    if not _is_set(timestamp):
        return 0
    return max(0, int(now - timestamp))


def expiration_time(timestamp: float | None) -> int | None:
    if not _is_set(timestamp):
        return None
    return int(timestamp + MANUAL_OVERRIDE_DURATION_MS)


def should_log_remaining(last_log_time: float | None, now: float) -> bool:
    """Log "still active" at most once per log interval."""
    if not _is_set(last_log_time):
        return True
    return now - last_log_time >= OVERRIDE_LOG_INTERVAL_MS


def should_log_expiration(
    last_expiration_log_time: float | None,
    expiration: float | None,
) -> bool:
    """Log "expired" once per override, i.e. only if not logged since it expired."""
    if expiration is None:
        return False
    if not _is_set(last_expiration_log_time):
        return True
    return last_expiration_log_time < expiration


def override_state(timestamp: float | None, now: float) -> ManualOverrideState:
    """Aggregate view used by the controller and the sensors."""
    return ManualOverrideState(
        is_active=is_override_active(timestamp, now),
        remaining_minutes=remaining_minutes(timestamp, now),
        time_since_manual=time_since_manual(timestamp, now),
        expiration_time=expiration_time(timestamp),
    )
