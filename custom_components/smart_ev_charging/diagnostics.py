"""Diagnostics support for Smart EV Charging."""

from __future__ import annotations

from typing import Any

from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant

from .const import CONF_TIBBER_TOKEN, DOMAIN
from .coordinator import SmartEVChargingCoordinator
from .engine.time_utils import from_ms


def _redact(config: dict[str, Any]) -> dict[str, Any]:
    redacted = dict(config)
    if redacted.get(CONF_TIBBER_TOKEN):
        redacted[CONF_TIBBER_TOKEN] = "**REDACTED**"
    return redacted


async def async_get_config_entry_diagnostics(
    hass: HomeAssistant, entry: ConfigEntry
) -> dict[str, Any]:
    """Return diagnostics for a config entry."""
    coordinator: SmartEVChargingCoordinator = hass.data[DOMAIN][entry.entry_id]
    cache = coordinator.store.price_cache
    starts = sorted(cache)

    return {
        "config": _redact(dict(entry.data)),
        "options": _redact(dict(entry.options)),
        "coordinator_data": coordinator.data if coordinator.data else {},
        "price_source": getattr(coordinator.price_source, "name", None),
        "price_cache": {
            "blocks": len(cache),
            "first": from_ms(starts[0]).isoformat() if starts else None,
            "last": from_ms(starts[-1]).isoformat() if starts else None,
        },
        "control_state": coordinator.controller.state.as_dict(),
        "manual_override": coordinator.controller.override.as_dict(),
    }
