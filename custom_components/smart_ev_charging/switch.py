"""Switch platform for Smart EV Charging."""

from __future__ import annotations

from homeassistant.components.switch import SwitchEntity
from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant
from homeassistant.helpers.entity_platform import AddEntitiesCallback

from .const import DOMAIN
from .coordinator import SmartEVChargingCoordinator


async def async_setup_entry(
    hass: HomeAssistant,
    entry: ConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Set up Smart EV Charging switch."""
    coordinator: SmartEVChargingCoordinator = hass.data[DOMAIN][entry.entry_id]
    async_add_entities([LowPriceChargingSwitch(coordinator, entry)])


class LowPriceChargingSwitch(SwitchEntity):
    """Enable/disable charging during the cheapest price blocks."""

    _attr_has_entity_name = True
    _attr_translation_key = "enable_low_price_charging"
    _attr_icon = "mdi:cash-clock"

    def __init__(
        self,
        coordinator: SmartEVChargingCoordinator,
        entry: ConfigEntry,
    ) -> None:
        self.coordinator = coordinator
        self._attr_unique_id = f"{entry.entry_id}_enable_low_price_charging"
        self._attr_device_info = {
            "identifiers": {(DOMAIN, entry.entry_id)},
            "name": entry.title,
            "manufacturer": "Smart EV Charging",
            "model": "Virtual",
        }

    @property
    def is_on(self) -> bool:
        """Return true if low-price charging is enabled."""
        return self.coordinator.enable_low_price_charging

    async def async_turn_on(self, **kwargs) -> None:
        """Enable low-price charging."""
        self.coordinator.enable_low_price_charging = True
        self.async_write_ha_state()

    async def async_turn_off(self, **kwargs) -> None:
        """Disable low-price charging; the next cycle turns a price-driven charge off."""
        self.coordinator.enable_low_price_charging = False
        self.async_write_ha_state()
