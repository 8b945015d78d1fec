"""Binary sensor platform for Smart EV Charging."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from homeassistant.components.binary_sensor import (
    BinarySensorEntity,
    BinarySensorEntityDescription,
)
from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant
from homeassistant.helpers.entity_platform import AddEntitiesCallback
from homeassistant.helpers.update_coordinator import CoordinatorEntity

from .const import DOMAIN
from .coordinator import SmartEVChargingCoordinator


@dataclass(frozen=True, kw_only=True)
class SmartEVChargingBinarySensorDescription(BinarySensorEntityDescription):
    """Describe a Smart EV Charging binary sensor."""

    value_fn: Callable[[dict[str, Any]], bool]


BINARY_SENSOR_DESCRIPTIONS: tuple[SmartEVChargingBinarySensorDescription, ...] = (
    SmartEVChargingBinarySensorDescription(
        key="in_cheapest_block",
        translation_key="in_cheapest_block",
        icon="mdi:cash-check",
        value_fn=lambda d: d.get("in_cheapest_block", False),
    ),
    SmartEVChargingBinarySensorDescription(
        key="manual_override_active",
        translation_key="manual_override_active",
        icon="mdi:hand-back-right",
        value_fn=lambda d: d.get("manual_override_active", False),
    ),
)


async def async_setup_entry(
    hass: HomeAssistant,
    entry: ConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Set up Smart EV Charging binary sensors."""
    coordinator: SmartEVChargingCoordinator = hass.data[DOMAIN][entry.entry_id]
    async_add_entities(
        SmartEVChargingBinarySensor(coordinator, description, entry)
        for description in BINARY_SENSOR_DESCRIPTIONS
    )


class SmartEVChargingBinarySensor(
    CoordinatorEntity[SmartEVChargingCoordinator], BinarySensorEntity
):
    """A Smart EV Charging binary sensor."""

    entity_description: SmartEVChargingBinarySensorDescription
    _attr_has_entity_name = True

    def __init__(
        self,
        coordinator: SmartEVChargingCoordinator,
        description: SmartEVChargingBinarySensorDescription,
        entry: ConfigEntry,
    ) -> None:
        super().__init__(coordinator)
        self.entity_description = description
        self._attr_unique_id = f"{entry.entry_id}_{description.key}"
        self._attr_device_info = {
            "identifiers": {(DOMAIN, entry.entry_id)},
            "name": entry.title,
            "manufacturer": "Smart EV Charging",
            "model": "Virtual",
        }

    @property
    def is_on(self) -> bool | None:
        """Return the binary sensor state."""
        if self.coordinator.data is None:
            return None
        return self.entity_description.value_fn(self.coordinator.data)
