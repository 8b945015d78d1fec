"""Number platform for Smart EV Charging.

Each number entity is both a live setting and synced with the config entry options,
so changes from the dashboard/automations are persisted and used by the coordinator.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from homeassistant.components.number import NumberEntity, NumberEntityDescription, NumberMode
from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant
from homeassistant.helpers.entity_platform import AddEntitiesCallback

from .const import DOMAIN, MAX_BLOCKS_COUNT, MIN_BLOCKS_COUNT
from .coordinator import SmartEVChargingCoordinator


@dataclass(frozen=True, kw_only=True)
class SmartEVChargingNumberDescription(NumberEntityDescription):
    """Describe a Smart EV Charging number entity."""

    getter: Callable[[SmartEVChargingCoordinator], float]
    setter: Callable[[SmartEVChargingCoordinator, float], None]


NUMBER_DESCRIPTIONS: tuple[SmartEVChargingNumberDescription, ...] = (
    SmartEVChargingNumberDescription(
        key="low_battery_threshold",
        translation_key="low_battery_threshold",
        icon="mdi:battery-alert-variant-outline",
        native_min_value=0.0,
        native_max_value=100.0,
        native_step=1.0,
        native_unit_of_measurement="%",
        mode=NumberMode.SLIDER,
        getter=lambda c: c.low_battery_threshold,
        setter=lambda c, v: setattr(c, "low_battery_threshold", v),
    ),
    SmartEVChargingNumberDescription(
        key="low_price_blocks_count",
        translation_key="low_price_blocks_count",
        icon="mdi:timer-sand",
        native_min_value=float(MIN_BLOCKS_COUNT),
        native_max_value=float(MAX_BLOCKS_COUNT),
        native_step=1.0,
        mode=NumberMode.BOX,
        getter=lambda c: c.low_price_blocks_count,
        setter=lambda c, v: setattr(c, "low_price_blocks_count", v),
    ),
)


async def async_setup_entry(
    hass: HomeAssistant,
    entry: ConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Set up Smart EV Charging number entities."""
    coordinator: SmartEVChargingCoordinator = hass.data[DOMAIN][entry.entry_id]
    async_add_entities(
        SmartEVChargingNumber(coordinator, description, entry)
        for description in NUMBER_DESCRIPTIONS
    )


class SmartEVChargingNumber(NumberEntity):
    """A Smart EV Charging number entity backed by config options."""

    entity_description: SmartEVChargingNumberDescription
    _attr_has_entity_name = True

    def __init__(
        self,
        coordinator: SmartEVChargingCoordinator,
        description: SmartEVChargingNumberDescription,
        entry: ConfigEntry,
    ) -> None:
        self.coordinator = coordinator
        self.entity_description = description
        self._attr_unique_id = f"{entry.entry_id}_{description.key}"
        self._attr_device_info = {
            "identifiers": {(DOMAIN, entry.entry_id)},
            "name": entry.title,
            "manufacturer": "Smart EV Charging",
            "model": "Virtual",
        }

    @property
    def native_value(self) -> float:
        """Return the current value."""
        return self.entity_description.getter(self.coordinator)

    async def async_set_native_value(self, value: float) -> None:
        """Update the value."""
        self.entity_description.setter(self.coordinator, value)
