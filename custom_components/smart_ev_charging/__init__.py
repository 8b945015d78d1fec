"""Smart EV Charging integration for Home Assistant.

Switches an EV charger on during the cheapest 15-minute electricity price
blocks, with a low-battery override and a time-boxed manual override.
"""

from __future__ import annotations

import logging
from datetime import timedelta

from homeassistant.config_entries import ConfigEntry
from homeassistant.const import STATE_ON, STATE_UNAVAILABLE, STATE_UNKNOWN
from homeassistant.core import CALLBACK_TYPE, Event, HomeAssistant
from homeassistant.helpers.aiohttp_client import async_get_clientsession
from homeassistant.helpers.event import (
    async_call_later,
    async_track_state_change_event,
    async_track_time_change,
)
from homeassistant.util import dt as dt_util

from .charger import SwitchCharger
from .const import (
    CONF_CHARGER_SWITCH,
    CONF_FALLBACK_SOURCE,
    CONF_MARKET_AREA,
    CONF_PRICE_SOURCE,
    CONF_TIBBER_TOKEN,
    DEFAULT_FALLBACK_SOURCE,
    DEFAULT_MARKET_AREA_OPTION,
    DEFAULT_PRICE_SOURCE,
    DOMAIN,
    MAINTENANCE_HOUR,
    MAINTENANCE_MINUTE,
    PLATFORMS,
)
from .coordinator import SmartEVChargingCoordinator
from .engine.charging_control import ChargingController
from .engine.jobs import NonOverlappingJob
from .engine.sources import PriceSource, create_price_source
from .engine.time_utils import next_15_minute_boundary, to_ms
from .storage import SmartEVChargingStore

_LOGGER = logging.getLogger(__name__)


def _build_price_source(hass: HomeAssistant, entry: ConfigEntry) -> PriceSource:
    """Create the configured price source chain."""
    config = {**entry.data, **entry.options}
    fallback = config.get(CONF_FALLBACK_SOURCE, DEFAULT_FALLBACK_SOURCE)
    return create_price_source(
        async_get_clientsession(hass),
        config.get(CONF_PRICE_SOURCE, DEFAULT_PRICE_SOURCE),
        market_area=config.get(CONF_MARKET_AREA, DEFAULT_MARKET_AREA_OPTION),
        tibber_token=config.get(CONF_TIBBER_TOKEN),
        fallback=None if fallback == DEFAULT_FALLBACK_SOURCE else fallback,
    )


async def async_setup_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Set up Smart EV Charging from a config entry."""
    hass.data.setdefault(DOMAIN, {})

    # Initialize storage
    store = SmartEVChargingStore(hass, entry.entry_id)
    await store.async_load()

    charger = SwitchCharger(hass, entry.data[CONF_CHARGER_SWITCH])
    controller = ChargingController(
        charger,
        store.async_set_charging_state,
        state=store.control_state,
        override=store.manual_override,
    )
    if controller.state.automatic_control_active:
        _LOGGER.info(
            "Restored charging state: low battery %s, low price %s",
            controller.state.low_battery_enabled,
            controller.state.low_price_enabled,
        )

    coordinator = SmartEVChargingCoordinator(
        hass, entry, store, controller, _build_price_source(hass, entry)
    )
    await coordinator.async_config_entry_first_refresh()

    hass.data[DOMAIN][entry.entry_id] = coordinator

    # Set up platforms
    await hass.config_entries.async_forward_entry_setups(entry, PLATFORMS)

    # Register timers and listeners
    _register_event_listeners(hass, entry, coordinator, charger)

    # Listen for options updates
    entry.async_on_unload(entry.add_update_listener(_async_update_listener))

    _LOGGER.info("Smart EV Charging setup complete for %s", entry.title)
    return True


def _register_event_listeners(
    hass: HomeAssistant,
    entry: ConfigEntry,
    coordinator: SmartEVChargingCoordinator,
    charger: SwitchCharger,
) -> None:
    """Register the price timer, the maintenance timer and the charger listener."""

    async def _update_prices() -> None:
        try:
            await coordinator.async_update_prices()
        finally:
            # Decide on whatever is cached, even after a failed fetch
            await coordinator.async_request_refresh()

    async def _prune_cache() -> None:
        await coordinator.async_prune_cache()

    price_job = NonOverlappingJob("price update", _update_prices)
    prune_job = NonOverlappingJob("price cache maintenance", _prune_cache)

    # 1. Price update aligned to :00/:15/:30/:45, re-armed after every run
    cancel_price_timer: CALLBACK_TYPE | None = None
    unloaded = False

    def _schedule_price_update() -> None:
        nonlocal cancel_price_timer
        if unloaded:
            return
        delay_ms = next_15_minute_boundary(to_ms(dt_util.utcnow()))
        cancel_price_timer = async_call_later(
            hass, timedelta(milliseconds=delay_ms), _on_price_tick
        )

    async def _on_price_tick(_now=None) -> None:
        try:
            await price_job.async_run()
        finally:
            _schedule_price_update()

    def _cancel_price_timer() -> None:
        nonlocal unloaded
        unloaded = True
        if cancel_price_timer is not None:
            cancel_price_timer()

    _schedule_price_update()
    entry.async_on_unload(_cancel_price_timer)

    # Fetch once right away so the first cycle has prices
    hass.async_create_task(price_job.async_run())

    # 2. Daily maintenance → prune old price blocks
    async def _on_maintenance(_now=None) -> None:
        await prune_job.async_run()

    unsub = async_track_time_change(
        hass, _on_maintenance, hour=MAINTENANCE_HOUR, minute=MAINTENANCE_MINUTE, second=0
    )
    entry.async_on_unload(unsub)

    # 3. Charger switch toggled by someone else → manual override
    async def _on_charger_state(event: Event) -> None:
        new_state = event.data.get("new_state")
        old_state = event.data.get("old_state")
        if new_state is None or old_state is None:
            return
        if new_state.state == old_state.state:
            return
        if new_state.state in (STATE_UNKNOWN, STATE_UNAVAILABLE):
            return
        if old_state.state in (STATE_UNKNOWN, STATE_UNAVAILABLE):
            return
        if charger.is_own_context(new_state.context):
            return
        try:
            await coordinator.controller.async_on_manual_action(
                new_state.state == STATE_ON, to_ms(dt_util.utcnow())
            )
            await coordinator.async_request_refresh()
        except Exception:
            _LOGGER.exception("Error handling manual charger change")

    unsub = async_track_state_change_event(hass, [charger.entity_id], _on_charger_state)
    entry.async_on_unload(unsub)

    _LOGGER.debug("Registered price, maintenance and charger listeners")


async def async_unload_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Unload a config entry."""
    unload_ok = await hass.config_entries.async_unload_platforms(entry, PLATFORMS)
    if unload_ok:
        hass.data[DOMAIN].pop(entry.entry_id, None)
    return unload_ok


async def async_remove_entry(hass: HomeAssistant, entry: ConfigEntry) -> None:
    """Remove a config entry — clean up storage."""
    store = SmartEVChargingStore(hass, entry.entry_id)
    await store.async_remove()


async def _async_update_listener(hass: HomeAssistant, entry: ConfigEntry) -> None:
    """Handle options update."""
    await hass.config_entries.async_reload(entry.entry_id)
