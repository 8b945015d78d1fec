"""Sensor platform for Smart EV Charging."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from homeassistant.components.sensor import (
    SensorDeviceClass,
    SensorEntity,
    SensorEntityDescription,
)
from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant
from homeassistant.helpers.entity_platform import AddEntitiesCallback
from homeassistant.helpers.update_coordinator import CoordinatorEntity

from .const import DOMAIN
from .coordinator import SmartEVChargingCoordinator


@dataclass(frozen=True, kw_only=True)
class SmartEVChargingSensorDescription(SensorEntityDescription):
    """Describe a Smart EV Charging sensor."""

    value_fn: Callable[[dict[str, Any]], Any]
    attrs_fn: Callable[[dict[str, Any]], dict[str, Any]] | None = None


SENSOR_DESCRIPTIONS: tuple[SmartEVChargingSensorDescription, ...] = (
    SmartEVChargingSensorDescription(
        key="next_charging_times",
        translation_key="next_charging_times",
        icon="mdi:clock-outline",
        value_fn=lambda d: d["next_charging_times"],
        attrs_fn=lambda d: {
            "window": d["cheapest_window"],
            "selection_mode": d["selection_mode"],
        },
    ),
    SmartEVChargingSensorDescription(
        key="current_price",
        translation_key="current_price",
        icon="mdi:currency-eur",
        native_unit_of_measurement="€/kWh",
        suggested_display_precision=5,
        value_fn=lambda d: d["current_price"],
        attrs_fn=lambda d: {
            "formatted": d["current_price_formatted"],
            "cached_blocks": d["cached_blocks"],
            "last_update": d["last_price_update"],
            "last_error": d["last_price_error"],
        },
    ),
    SmartEVChargingSensorDescription(
        key="charging_decision",
        translation_key="charging_decision",
        icon="mdi:ev-station",
        device_class=SensorDeviceClass.ENUM,
        options=["turnOn", "turnOff", "noChange"],
        value_fn=lambda d: d["decision"],
        attrs_fn=lambda d: {
            "low_battery_enabled": d["low_battery_enabled"],
            "low_price_enabled": d["low_price_enabled"],
            "battery_level": d["battery_level"],
        },
    ),
    SmartEVChargingSensorDescription(
        key="manual_override_remaining",
        translation_key="manual_override_remaining",
        icon="mdi:hand-back-right-outline",
        native_unit_of_measurement="min",
        value_fn=lambda d: d["manual_override_remaining"],
        attrs_fn=lambda d: {"expires": d["manual_override_expires"]},
    ),
)


async def async_setup_entry(
    hass: HomeAssistant,
    entry: ConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Set up Smart EV Charging sensors."""
    coordinator: SmartEVChargingCoordinator = hass.data[DOMAIN][entry.entry_id]
    async_add_entities(
        SmartEVChargingSensor(coordinator, description, entry)
        for description in SENSOR_DESCRIPTIONS
    )


class SmartEVChargingSensor(
    CoordinatorEntity[SmartEVChargingCoordinator], SensorEntity
):
    """A Smart EV Charging sensor."""

    entity_description: SmartEVChargingSensorDescription
    _attr_has_entity_name = True

    def __init__(
        self,
        coordinator: SmartEVChargingCoordinator,
        description: SmartEVChargingSensorDescription,
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
    def native_value(self) -> Any:
        """Return the sensor value."""
        if self.coordinator.data is None:
            return None
        return self.entity_description.value_fn(self.coordinator.data)

    @property
    def extra_state_attributes(self) -> dict[str, Any] | None:
        """Return additional attributes."""
        if self.coordinator.data is None or self.entity_description.attrs_fn is None:
            return None
        return self.entity_description.attrs_fn(self.coordinator.data)
