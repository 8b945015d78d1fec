"""JSON-based persistent storage for Smart EV Charging.

Holds the price block cache, the charging control state and the manual
override record in HA's .storage directory. Load and save failures are
logged and never raised: a broken file means starting with an empty cache.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from homeassistant.core import HomeAssistant
from homeassistant.helpers.storage import Store

from .const import DOMAIN
from .engine.models import ChargingControlState, ManualOverrideRecord, PriceCache
from .engine.price_cache import deserialize_cache, serialize_cache

_LOGGER = logging.getLogger(__name__)

STORAGE_VERSION = 1
STORAGE_KEY_PREFIX = DOMAIN


def _default_data() -> dict[str, Any]:
    """Return default storage data."""
    return {
        "price_cache": {},
        "control_state": ChargingControlState().as_dict(),
        "manual_override": ManualOverrideRecord().as_dict(),
    }


class SmartEVChargingStore:
    """Manages persistent storage for one config entry."""

    def __init__(self, hass: HomeAssistant, entry_id: str) -> None:
        self._store = Store(
            hass,
            STORAGE_VERSION,
            f"{STORAGE_KEY_PREFIX}.{entry_id}",
        )
        self._data: dict[str, Any] = _default_data()
        self.price_cache: PriceCache = {}
        # Serialises every read-modify-write of the price cache
        self.cache_lock = asyncio.Lock()

    async def async_load(self) -> None:
        """Load data from storage, falling back to defaults on any error."""
        try:
            stored = await self._store.async_load()
        except Exception:
            _LOGGER.exception("Failed to load stored data, starting empty")
            stored = None

        if isinstance(stored, dict):
            self._data = {**_default_data(), **stored}
        else:
            self._data = _default_data()

        self.price_cache = deserialize_cache(self._data.get("price_cache"))
        _LOGGER.debug("Loaded %d cached price blocks", len(self.price_cache))

    async def async_save(self) -> bool:
        """Save data to storage. Returns False if the write failed."""
        self._data["price_cache"] = serialize_cache(self.price_cache)
        try:
            await self._store.async_save(self._data)
        except Exception:
            _LOGGER.exception("Failed to save data")
            return False
        return True

    # --- Price cache ---

    async def async_set_price_cache(self, cache: PriceCache) -> None:
        """Replace the price cache and persist. Caller holds cache_lock."""
        self.price_cache = cache
        await self.async_save()

    # --- Charging control state ---

    @property
    def control_state(self) -> ChargingControlState:
        return ChargingControlState.from_dict(self._data.get("control_state"))

    @property
    def manual_override(self) -> ManualOverrideRecord:
        return ManualOverrideRecord.from_dict(self._data.get("manual_override"))

    async def async_set_charging_state(
        self,
        state: ChargingControlState,
        override: ManualOverrideRecord,
    ) -> None:
        """Persist the control state and override record together."""
        self._data["control_state"] = state.as_dict()
        self._data["manual_override"] = override.as_dict()
        await self.async_save()

    async def async_remove(self) -> None:
        """Remove the storage file."""
        await self._store.async_remove()
