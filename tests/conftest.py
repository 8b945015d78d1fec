"""Shared test fixtures for Smart EV Charging tests.

Import the pure engine package directly to avoid triggering HA imports from __init__.py.
The glue tests call stub_homeassistant() first and import the smart_ev_charging package.
"""

from __future__ import annotations

import copy
import sys
import uuid
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import MagicMock

import pytest

# Add the component directory to the path so we can import the engine package directly
_COMPONENT_DIR = Path(__file__).parent.parent / "custom_components" / "smart_ev_charging"
sys.path.insert(0, str(_COMPONENT_DIR))

from engine.const import BLOCK_DURATION_MS
from engine.models import PriceBlock, PriceCache, PriceEntry
from engine.time_utils import to_ms


def ms(year: int, month: int, day: int, hour: int = 0, minute: int = 0) -> int:
    """Epoch ms for a UTC wall-clock time."""
    return to_ms(datetime(year, month, day, hour, minute, tzinfo=timezone.utc))


def make_cache(start: int, prices: list[float]) -> PriceCache:
    """Build a cache of consecutive 15-minute blocks beginning at start."""
    cache: PriceCache = {}
    for i, price in enumerate(prices):
        block_start = start + i * BLOCK_DURATION_MS
        cache[block_start] = PriceBlock(
            start=block_start, end=block_start + BLOCK_DURATION_MS, price=price
        )
    return cache


@pytest.fixture
def midnight() -> int:
    """2026-03-10 00:00 UTC."""
    return ms(2026, 3, 10)


@pytest.fixture
def scenario_a_cache(midnight: int) -> PriceCache:
    """Four blocks from midnight priced 0.30, 0.10, 0.20, 0.40."""
    return make_cache(midnight, [0.30, 0.10, 0.20, 0.40])


@pytest.fixture
def sample_entries() -> list[PriceEntry]:
    """An hour of quarter-hourly entries with a local offset."""
    return [
        PriceEntry(date="2026-03-10T01:00:00+01:00", price=0.25),
        PriceEntry(date="2026-03-10T01:15:00+01:00", price=0.22),
        PriceEntry(date="2026-03-10T01:30:00+01:00", price=0.18),
        PriceEntry(date="2026-03-10T01:45:00+01:00", price=0.21),
    ]


# --- Home Assistant stand-ins for the glue tests ---

_HA_MODULES = [
    "homeassistant",
    "homeassistant.const",
    "homeassistant.core",
    "homeassistant.config_entries",
    "homeassistant.helpers",
    "homeassistant.helpers.aiohttp_client",
    "homeassistant.helpers.event",
    "homeassistant.helpers.storage",
    "homeassistant.helpers.update_coordinator",
    "homeassistant.util",
    "homeassistant.util.dt",
]


class _Context:
    """Enough of homeassistant.core.Context for context matching."""

    def __init__(self, parent_id: str | None = None) -> None:
        self.id = uuid.uuid4().hex
        self.parent_id = parent_id


class _UpdateFailed(Exception):
    pass


class _DataUpdateCoordinator:
    """Minimal DataUpdateCoordinator: refresh runs _async_update_data inline."""

    def __init__(self, hass, logger, *, name, update_interval=None, **kwargs) -> None:
        self.hass = hass
        self.logger = logger
        self.name = name
        self.update_interval = update_interval
        self.data = None

    def __class_getitem__(cls, item):
        return cls

    async def async_request_refresh(self) -> None:
        self.data = await self._async_update_data()


def stub_homeassistant() -> None:
    """Install HA module mocks so the integration package can be imported."""
    for mod_name in _HA_MODULES:
        sys.modules.setdefault(mod_name, MagicMock())

    ha_const = sys.modules["homeassistant.const"]
    ha_const.STATE_ON = "on"
    ha_const.STATE_UNKNOWN = "unknown"
    ha_const.STATE_UNAVAILABLE = "unavailable"
    sys.modules["homeassistant.core"].Context = _Context
    update_coordinator = sys.modules["homeassistant.helpers.update_coordinator"]
    update_coordinator.DataUpdateCoordinator = _DataUpdateCoordinator
    update_coordinator.UpdateFailed = _UpdateFailed

    components_dir = str(_COMPONENT_DIR.parent)
    if components_dir not in sys.path:
        sys.path.insert(0, components_dir)


class FakeStore:
    """In-memory replacement for homeassistant.helpers.storage.Store."""

    def __init__(self, hass, version, key) -> None:
        self.key = key
        self.data = None
        self.load_error: Exception | None = None
        self.save_error: Exception | None = None
        self.saves: list[dict] = []
        self.removed = False

    async def async_load(self):
        if self.load_error:
            raise self.load_error
        return self.data

    async def async_save(self, data) -> None:
        if self.save_error:
            raise self.save_error
        self.saves.append(copy.deepcopy(data))
        self.data = data

    async def async_remove(self) -> None:
        self.removed = True
