"""DataUpdateCoordinator for Smart EV Charging.

Central hub: owns the price cache updates, reads the vehicle battery level,
runs the charging controller each poll and exposes derived values to the
entity platforms.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any

from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant
from homeassistant.helpers.update_coordinator import DataUpdateCoordinator, UpdateFailed
from homeassistant.util import dt as dt_util

from .const import (
    CONF_BATTERY_SENSOR,
    CONF_ENABLE_LOW_PRICE_CHARGING,
    CONF_LOW_BATTERY_THRESHOLD,
    CONF_LOW_PRICE_BLOCKS_COUNT,
    CONF_SELECTION_MODE,
    CONF_TIMEZONE,
    DEFAULT_ENABLE_LOW_PRICE_CHARGING,
    DEFAULT_LOW_BATTERY_THRESHOLD,
    DEFAULT_LOW_PRICE_BLOCKS_COUNT,
    DEFAULT_SELECTION_MODE,
    DEFAULT_TIMEZONE,
    DOMAIN,
    UPDATE_INTERVAL_SECONDS,
)
from .engine.charging_control import ChargingController
from .engine.const import CACHE_RETENTION_DAYS, MILLISECONDS_PER_DAY, SELECTION_MODE_INDIVIDUAL
from .engine.manual_override import override_state
from .engine.models import ChargingSettings, PriceBlock
from .engine.price_cache import InvalidPriceEntryError, merge_price_entries, prune_price_cache
from .engine.selector import (
    current_block,
    find_cheapest_blocks,
    find_cheapest_window,
    format_next_charging_times,
    format_price,
    is_within_blocks,
)
from .engine.sources import PriceSource, PriceSourceError
from .engine.time_utils import from_ms, to_ms
from .storage import SmartEVChargingStore

_LOGGER = logging.getLogger(__name__)


class SmartEVChargingCoordinator(DataUpdateCoordinator[dict[str, Any]]):
    """Coordinator that runs the control cycle and recomputes sensor values."""

    config_entry: ConfigEntry

    def __init__(
        self,
        hass: HomeAssistant,
        entry: ConfigEntry,
        store: SmartEVChargingStore,
        controller: ChargingController,
        price_source: PriceSource,
    ) -> None:
        super().__init__(
            hass,
            _LOGGER,
            name=DOMAIN,
            update_interval=timedelta(seconds=UPDATE_INTERVAL_SECONDS),
        )
        self.entry = entry
        self.store = store
        self.controller = controller
        self.price_source = price_source
        self.last_price_update: int | None = None
        self.last_price_error: str | None = None

    def _opt(self, key: str, default: Any) -> Any:
        """Get a config value, preferring options over data."""
        return self.entry.options.get(key, self.entry.data.get(key, default))

    def _update_option(self, key: str, value: Any) -> None:
        """Update a single option in the config entry."""
        new_options = {**self.entry.options, key: value}
        self.hass.config_entries.async_update_entry(self.entry, options=new_options)

    # --- Settings (live, re-read each cycle) ---

    @property
    def low_battery_threshold(self) -> float:
        return float(self._opt(CONF_LOW_BATTERY_THRESHOLD, DEFAULT_LOW_BATTERY_THRESHOLD))

    @low_battery_threshold.setter
    def low_battery_threshold(self, value: float) -> None:
        self._update_option(CONF_LOW_BATTERY_THRESHOLD, value)

    @property
    def enable_low_price_charging(self) -> bool:
        return bool(
            self._opt(CONF_ENABLE_LOW_PRICE_CHARGING, DEFAULT_ENABLE_LOW_PRICE_CHARGING)
        )

    @enable_low_price_charging.setter
    def enable_low_price_charging(self, value: bool) -> None:
        self._update_option(CONF_ENABLE_LOW_PRICE_CHARGING, value)

    @property
    def low_price_blocks_count(self) -> int:
        return int(self._opt(CONF_LOW_PRICE_BLOCKS_COUNT, DEFAULT_LOW_PRICE_BLOCKS_COUNT))

    @low_price_blocks_count.setter
    def low_price_blocks_count(self, value: float) -> None:
        self._update_option(CONF_LOW_PRICE_BLOCKS_COUNT, int(value))

    @property
    def selection_mode(self) -> str:
        return str(self._opt(CONF_SELECTION_MODE, DEFAULT_SELECTION_MODE))

    @property
    def timezone(self) -> str:
        return str(self._opt(CONF_TIMEZONE, DEFAULT_TIMEZONE))

    @property
    def settings(self) -> ChargingSettings:
        return ChargingSettings(
            enable_low_price_charging=self.enable_low_price_charging,
            low_battery_threshold=self.low_battery_threshold,
            low_price_blocks_count=self.low_price_blocks_count,
            selection_mode=self.selection_mode,
            timezone=self.timezone,
        )

    # --- HA state reading ---

    @property
    def battery_level(self) -> float | None:
        """Vehicle battery level in percent, None if unknown."""
        entity_id = self.entry.data.get(CONF_BATTERY_SENSOR, "")
        if not entity_id:
            return None
        state = self.hass.states.get(entity_id)
        if state is None or state.state in ("unknown", "unavailable"):
            return None
        try:
            return float(state.state)
        except (ValueError, TypeError):
            return None

    # --- Price cache maintenance ---

    async def async_update_prices(self) -> bool:
        """Fetch prices and merge them into the cache.

        Returns True if the cache was updated. Any failure leaves the cache
        untouched; the next tick retries.
        """
        try:
            entries = await self.price_source.fetch()
        except PriceSourceError as err:
            self.last_price_error = str(err)
            _LOGGER.warning("Price update failed: %s", err)
            return False

        async with self.store.cache_lock:
            try:
                cache, stats = merge_price_entries(self.store.price_cache, entries)
            except InvalidPriceEntryError as err:
                self.last_price_error = str(err)
                _LOGGER.error("Discarding malformed price data: %s", err)
                return False
            await self.store.async_set_price_cache(cache)

        self.last_price_update = to_ms(dt_util.utcnow())
        self.last_price_error = None
        _LOGGER.info(
            "Price cache updated: %d new, %d updated, %d price changes (%d blocks cached)",
            stats.new_blocks,
            stats.updated_blocks,
            stats.price_changes,
            len(cache),
        )
        return True

    async def async_prune_cache(self) -> int:
        """Drop blocks older than the retention period. Returns removed count."""
        before = to_ms(dt_util.utcnow()) - CACHE_RETENTION_DAYS * MILLISECONDS_PER_DAY
        async with self.store.cache_lock:
            cache, removed = prune_price_cache(self.store.price_cache, before)
            if removed:
                await self.store.async_set_price_cache(cache)
        if removed:
            _LOGGER.info("Pruned %d expired price blocks", removed)
        return removed

    # --- Control cycle ---

    def cheapest_for_control(self, now: int) -> list[PriceBlock]:
        """Blocks that drive on/off under the configured selection mode."""
        cache = self.store.price_cache
        count = self.low_price_blocks_count
        if self.selection_mode == SELECTION_MODE_INDIVIDUAL:
            return find_cheapest_blocks(cache, count, now)
        return find_cheapest_window(cache, count, now)

    async def _async_update_data(self) -> dict[str, Any]:
        """Run one control cycle and recompute derived values."""
        now = to_ms(dt_util.utcnow())
        settings = self.settings
        battery = self.battery_level

        cache = self.store.price_cache
        window = find_cheapest_window(cache, settings.low_price_blocks_count, now)
        control_blocks = self.cheapest_for_control(now)

        try:
            decision = await self.controller.async_evaluate(
                control_blocks, now, settings, battery
            )
        except Exception as err:
            raise UpdateFailed(f"Charging control cycle failed: {err}") from err

        block = current_block(cache, now)
        override = override_state(self.controller.override.timestamp, now)

        return {
            "battery_level": battery,
            "decision": decision.value,
            "next_charging_times": format_next_charging_times(window, now, settings.timezone),
            "in_cheapest_block": is_within_blocks(control_blocks, now),
            "current_price": block.price if block else None,
            "current_price_formatted": format_price(block.price) if block else None,
            "cheapest_window": [
                {
                    "start": from_ms(b.start).isoformat(),
                    "end": from_ms(b.end).isoformat(),
                    "price": b.price,
                }
                for b in window
            ],
            "cached_blocks": len(cache),
            "selection_mode": settings.selection_mode,
            "manual_override_active": override.is_active,
            "manual_override_remaining": override.remaining_minutes,
            "manual_override_expires": (
                from_ms(override.expiration_time).isoformat()
                if override.is_active and override.expiration_time
                else None
            ),
            "low_battery_enabled": self.controller.state.low_battery_enabled,
            "low_price_enabled": self.controller.state.low_price_enabled,
            "last_price_update": (
                from_ms(self.last_price_update).isoformat()
                if self.last_price_update
                else None
            ),
            "last_price_error": self.last_price_error,
        }
