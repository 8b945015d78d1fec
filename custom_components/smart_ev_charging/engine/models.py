"""Data models for the low-price charging engine."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .const import DEFAULT_BLOCKS_COUNT, SELECTION_MODE_WINDOW


@dataclass(frozen=True)
class PriceEntry:
    """A single price point as delivered by a price source."""

    date: str  # ISO 8601, e.g. "2025-12-28T00:00:00+01:00"
    price: float  # €/kWh


@dataclass(frozen=True)
class PriceBlock:
    """A priced 15-minute interval, half-open [start, end)."""

    start: int  # epoch ms
    end: int  # epoch ms
    price: float  # €/kWh

    def contains(self, timestamp: float) -> bool:
        """Return True if the timestamp falls inside this block."""
        return self.start <= timestamp < self.end


PriceCache = dict[int, PriceBlock]


@dataclass
class MergeStats:
    """Counts reported by a cache merge."""

    new_blocks: int = 0
    updated_blocks: int = 0
    price_changes: int = 0

    @property
    def total(self) -> int:
        return self.new_blocks + self.updated_blocks


class ChargingDecision(Enum):
    """Verdict of one decision cycle."""

    TURN_ON = "turnOn"
    TURN_OFF = "turnOff"
    NO_CHANGE = "noChange"


@dataclass(frozen=True)
class DecisionContext:
    """Inputs to the decision state machine besides the cheapest blocks."""

    enable_low_price: bool
    battery_level: float | None = None
    low_battery_threshold: float | None = None
    manual_override_active: bool = False
    was_on_due_to_price: bool = False
    was_on_due_to_battery: bool = False


@dataclass
class ChargingControlState:
    """Why the charger is currently on.

    The decision logic guarantees at most one flag is the active reason,
    but both are stored independently.
    """

    low_battery_enabled: bool = False
    low_price_enabled: bool = False

    @property
    def automatic_control_active(self) -> bool:
        return self.low_battery_enabled or self.low_price_enabled

    def as_dict(self) -> dict[str, bool]:
        return {
            "low_battery_enabled": self.low_battery_enabled,
            "low_price_enabled": self.low_price_enabled,
        }

    @classmethod
    def from_dict(cls, data: dict | None) -> ChargingControlState:
        if not data:
            return cls()
        return cls(
            low_battery_enabled=bool(data.get("low_battery_enabled", False)),
            low_price_enabled=bool(data.get("low_price_enabled", False)),
        )


@dataclass
class ManualOverrideRecord:
    """Persisted manual-override timestamps (epoch ms).

    Only `timestamp` carries decision semantics; the two log times exist
    to throttle log output.
    """

    timestamp: int | None = None
    last_override_log_time: int | None = None
    last_expiration_log_time: int | None = None

    def as_dict(self) -> dict[str, int | None]:
        return {
            "timestamp": self.timestamp,
            "last_override_log_time": self.last_override_log_time,
            "last_expiration_log_time": self.last_expiration_log_time,
        }

    @classmethod
    def from_dict(cls, data: dict | None) -> ManualOverrideRecord:
        if not data:
            return cls()

        def _ts(key: str) -> int | None:
            value = data.get(key)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                return None
            return int(value) or None

        return cls(
            timestamp=_ts("timestamp"),
            last_override_log_time=_ts("last_override_log_time"),
            last_expiration_log_time=_ts("last_expiration_log_time"),
        )


@dataclass(frozen=True)
class ManualOverrideState:
    """Derived view of a manual override at a point in time."""

    is_active: bool
    remaining_minutes: int
    time_since_manual: int
    expiration_time: int | None


@dataclass(frozen=True)
class ChargingSettings:
    """Settings the engine reads each cycle (read-only from its perspective)."""

    enable_low_price_charging: bool = False
    low_battery_threshold: float | None = None
    low_price_blocks_count: int = DEFAULT_BLOCKS_COUNT
    selection_mode: str = SELECTION_MODE_WINDOW
    timezone: str = "UTC"
