"""Config flow for Smart EV Charging integration."""

from __future__ import annotations

import logging
from typing import Any

import voluptuous as vol
from homeassistant.config_entries import ConfigEntry, ConfigFlow, OptionsFlow
from homeassistant.core import callback
from homeassistant.data_entry_flow import FlowResult
from homeassistant.helpers import selector

from .const import (
    CONF_BATTERY_SENSOR,
    CONF_CHARGER_SWITCH,
    CONF_ENABLE_LOW_PRICE_CHARGING,
    CONF_FALLBACK_SOURCE,
    CONF_LOW_BATTERY_THRESHOLD,
    CONF_LOW_PRICE_BLOCKS_COUNT,
    CONF_MARKET_AREA,
    CONF_PRICE_SOURCE,
    CONF_SELECTION_MODE,
    CONF_TIBBER_TOKEN,
    CONF_TIMEZONE,
    DEFAULT_ENABLE_LOW_PRICE_CHARGING,
    DEFAULT_FALLBACK_SOURCE,
    DEFAULT_LOW_BATTERY_THRESHOLD,
    DEFAULT_LOW_PRICE_BLOCKS_COUNT,
    DEFAULT_MARKET_AREA_OPTION,
    DEFAULT_NAME,
    DEFAULT_PRICE_SOURCE,
    DEFAULT_SELECTION_MODE,
    DEFAULT_TIMEZONE,
    DOMAIN,
    MAX_BLOCKS_COUNT,
    MIN_BLOCKS_COUNT,
)
from .engine.const import SELECTION_MODES
from .engine.sources import FALLBACK_SOURCES, MARKET_AREAS, PRICE_SOURCES
from .engine.time_utils import is_valid_timezone

_LOGGER = logging.getLogger(__name__)


def _entity_selector(domain: str) -> selector.EntitySelector:
    return selector.EntitySelector(selector.EntitySelectorConfig(domain=domain))


def _select_selector(options: list[str]) -> selector.SelectSelector:
    return selector.SelectSelector(
        selector.SelectSelectorConfig(
            options=options,
            mode=selector.SelectSelectorMode.DROPDOWN,
        )
    )


def _settings_schema(current: dict[str, Any]) -> vol.Schema:
    """Schema for the charging settings, shared by config and options flow."""
    return vol.Schema(
        {
            vol.Required(
                CONF_LOW_BATTERY_THRESHOLD,
                default=current.get(CONF_LOW_BATTERY_THRESHOLD, DEFAULT_LOW_BATTERY_THRESHOLD),
            ): vol.All(vol.Coerce(float), vol.Range(min=0, max=100)),
            vol.Required(
                CONF_ENABLE_LOW_PRICE_CHARGING,
                default=current.get(
                    CONF_ENABLE_LOW_PRICE_CHARGING, DEFAULT_ENABLE_LOW_PRICE_CHARGING
                ),
            ): bool,
            vol.Required(
                CONF_LOW_PRICE_BLOCKS_COUNT,
                default=current.get(CONF_LOW_PRICE_BLOCKS_COUNT, DEFAULT_LOW_PRICE_BLOCKS_COUNT),
            ): vol.All(vol.Coerce(int), vol.Range(min=MIN_BLOCKS_COUNT, max=MAX_BLOCKS_COUNT)),
            vol.Required(
                CONF_SELECTION_MODE,
                default=current.get(CONF_SELECTION_MODE, DEFAULT_SELECTION_MODE),
            ): _select_selector(list(SELECTION_MODES)),
            vol.Required(
                CONF_TIMEZONE,
                default=current.get(CONF_TIMEZONE, DEFAULT_TIMEZONE),
            ): str,
        }
    )


def _price_schema(current: dict[str, Any]) -> vol.Schema:
    return vol.Schema(
        {
            vol.Required(
                CONF_PRICE_SOURCE,
                default=current.get(CONF_PRICE_SOURCE, DEFAULT_PRICE_SOURCE),
            ): _select_selector(PRICE_SOURCES),
            vol.Required(
                CONF_MARKET_AREA,
                default=current.get(CONF_MARKET_AREA, DEFAULT_MARKET_AREA_OPTION),
            ): _select_selector(list(MARKET_AREAS)),
            vol.Optional(
                CONF_TIBBER_TOKEN,
                default=current.get(CONF_TIBBER_TOKEN, ""),
            ): str,
            vol.Required(
                CONF_FALLBACK_SOURCE,
                default=current.get(CONF_FALLBACK_SOURCE, DEFAULT_FALLBACK_SOURCE),
            ): _select_selector([DEFAULT_FALLBACK_SOURCE, *FALLBACK_SOURCES]),
        }
    )


def _validate_timezone(user_input: dict[str, Any]) -> dict[str, str]:
    errors: dict[str, str] = {}
    if not is_valid_timezone(user_input.get(CONF_TIMEZONE)):
        errors[CONF_TIMEZONE] = "invalid_timezone"
    return errors


class SmartEVChargingConfigFlow(ConfigFlow, domain=DOMAIN):
    """Handle a config flow for Smart EV Charging."""

    VERSION = 1

    def __init__(self) -> None:
        """Initialize the config flow."""
        self._data: dict[str, Any] = {}

    @staticmethod
    @callback
    def async_get_options_flow(config_entry: ConfigEntry) -> OptionsFlow:
        """Get the options flow handler."""
        return SmartEVChargingOptionsFlow(config_entry)

    async def async_step_user(
        self, user_input: dict[str, Any] | None = None
    ) -> FlowResult:
        """Step 1: Name."""
        if user_input is not None:
            self._data.update(user_input)
            return await self.async_step_entities()

        return self.async_show_form(
            step_id="user",
            data_schema=vol.Schema(
                {
                    vol.Required("name", default=DEFAULT_NAME): str,
                }
            ),
        )

    async def async_step_entities(
        self, user_input: dict[str, Any] | None = None
    ) -> FlowResult:
        """Step 2: Vehicle battery sensor and charger switch."""
        if user_input is not None:
            self._data.update(user_input)
            await self.async_set_unique_id(
                f"{DOMAIN}_{user_input[CONF_CHARGER_SWITCH]}"
            )
            self._abort_if_unique_id_configured()
            return await self.async_step_price()

        return self.async_show_form(
            step_id="entities",
            data_schema=vol.Schema(
                {
                    vol.Required(CONF_CHARGER_SWITCH): _entity_selector("switch"),
                    vol.Optional(CONF_BATTERY_SENSOR): _entity_selector("sensor"),
                }
            ),
        )

    async def async_step_price(
        self, user_input: dict[str, Any] | None = None
    ) -> FlowResult:
        """Step 3: Price source."""
        if user_input is not None:
            self._data.update(user_input)
            return await self.async_step_settings()

        return self.async_show_form(step_id="price", data_schema=_price_schema({}))

    async def async_step_settings(
        self, user_input: dict[str, Any] | None = None
    ) -> FlowResult:
        """Step 4: Charging settings."""
        errors: dict[str, str] = {}

        if user_input is not None:
            errors = _validate_timezone(user_input)
            if not errors:
                self._data.update(user_input)
                return self.async_create_entry(
                    title=self._data.get("name", DEFAULT_NAME),
                    data=self._data,
                )

        return self.async_show_form(
            step_id="settings",
            data_schema=_settings_schema(user_input or {}),
            errors=errors,
        )


class SmartEVChargingOptionsFlow(OptionsFlow):
    """Handle options for Smart EV Charging."""

    def __init__(self, config_entry: ConfigEntry) -> None:
        """Initialize options flow."""
        self._config_entry = config_entry
        self._options: dict[str, Any] = {}

    async def async_step_init(
        self, user_input: dict[str, Any] | None = None
    ) -> FlowResult:
        """Manage the charging settings."""
        errors: dict[str, str] = {}
        current = {**self._config_entry.data, **self._config_entry.options}

        if user_input is not None:
            errors = _validate_timezone(user_input)
            if not errors:
                self._options.update(user_input)
                return await self.async_step_price()
            current.update(user_input)

        return self.async_show_form(
            step_id="init",
            data_schema=_settings_schema(current),
            errors=errors,
        )

    async def async_step_price(
        self, user_input: dict[str, Any] | None = None
    ) -> FlowResult:
        """Manage the price source."""
        if user_input is not None:
            self._options.update(user_input)
            return self.async_create_entry(
                title="", data={**self._config_entry.options, **self._options}
            )

        current = {**self._config_entry.data, **self._config_entry.options}
        return self.async_show_form(step_id="price", data_schema=_price_schema(current))
