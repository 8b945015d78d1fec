"""Charging controller — executes decisions against the charger.

Owns the ChargingControlState (why the charger is on) and the manual override
record, and is the only place either is mutated. Each mutation is followed by
exactly one persist call.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from typing import Protocol

from .decision import decide_low_price_charging, is_battery_recovered, is_low_battery
from .manual_override import (
    expiration_time,
    is_override_active,
    remaining_minutes,
    should_log_expiration,
    should_log_remaining,
)
from .models import (
    ChargingControlState,
    ChargingDecision,
    ChargingSettings,
    DecisionContext,
    ManualOverrideRecord,
    PriceBlock,
)

_LOGGER = logging.getLogger(__name__)


class Charger(Protocol):
    """Anything that can switch the load on and off."""

    async def async_turn_on(self) -> None: ...

    async def async_turn_off(self) -> None: ...


PersistCallback = Callable[[ChargingControlState, ManualOverrideRecord], Awaitable[None]]


class ChargingController:
    """Stateful wrapper around decide_low_price_charging."""

    def __init__(
        self,
        charger: Charger,
        persist_state: PersistCallback,
        state: ChargingControlState | None = None,
        override: ManualOverrideRecord | None = None,
    ) -> None:
        self._charger = charger
        self._persist_state = persist_state
        self.state = state or ChargingControlState()
        self.override = override or ManualOverrideRecord()
        self._lock = asyncio.Lock()
        self.last_decision: ChargingDecision | None = None

    async def _async_persist(self) -> None:
        try:
            await self._persist_state(self.state, self.override)
        except Exception:
            _LOGGER.exception("Failed to persist charging state")

    def is_override_active(self, now: float) -> bool:
        return is_override_active(self.override.timestamp, now)

    # --- Control cycle ---

    async def async_evaluate(
        self,
        cheapest: Iterable[PriceBlock],
        now: float,
        settings: ChargingSettings,
        battery_level: float | None,
    ) -> ChargingDecision:
        """Run one control cycle and return the verdict that was executed."""
        async with self._lock:
            cheapest = list(cheapest)
            override_active = await self._async_check_override(now)

            if (
                not override_active
                and self.state.low_battery_enabled
                and is_battery_recovered(battery_level, settings.low_battery_threshold)
            ):
                decision = await self._async_recover(cheapest, now, settings, battery_level)
                self.last_decision = decision
                return decision

            context = DecisionContext(
                enable_low_price=settings.enable_low_price_charging,
                battery_level=battery_level,
                low_battery_threshold=settings.low_battery_threshold,
                manual_override_active=override_active,
                was_on_due_to_price=self.state.low_price_enabled,
                was_on_due_to_battery=self.state.low_battery_enabled,
            )
            decision = decide_low_price_charging(cheapest, now, context)
            _LOGGER.debug("Charging decision: %s", decision.value)

            if decision is ChargingDecision.TURN_ON:
                due_to_battery = is_low_battery(battery_level, settings.low_battery_threshold)
                already_on = (
                    self.state.low_battery_enabled
                    if due_to_battery
                    else self.state.low_price_enabled
                )
                if not already_on:
                    await self._async_turn_on(due_to_low_battery=due_to_battery)
            elif decision is ChargingDecision.TURN_OFF:
                await self._async_turn_off()

            self.last_decision = decision
            return decision

    async def _async_check_override(self, now: float) -> bool:
        """Derive the override state, logging at most once per interval."""
        record = self.override
        if record.timestamp is None:
            return False

        if is_override_active(record.timestamp, now):
            if should_log_remaining(record.last_override_log_time, now):
                _LOGGER.info(
                    "Manual override active, %d min remaining",
                    remaining_minutes(record.timestamp, now),
                )
                record.last_override_log_time = int(now)
                await self._async_persist()
            return True

        expiration = expiration_time(record.timestamp)
        if should_log_expiration(record.last_expiration_log_time, expiration):
            _LOGGER.info("Manual override expired, automatic control resumed")
            record.last_expiration_log_time = int(now)
            await self._async_persist()
        return False

    async def _async_recover(
        self,
        cheapest: list[PriceBlock],
        now: float,
        settings: ChargingSettings,
        battery_level: float | None,
    ) -> ChargingDecision:
        """Drop the low-battery reason, keeping the charger on if price wants it."""
        _LOGGER.info(
            "Battery recovered to %s%% (threshold %s%%)",
            battery_level,
            settings.low_battery_threshold,
        )
        context = DecisionContext(
            enable_low_price=settings.enable_low_price_charging,
            battery_level=battery_level,
            low_battery_threshold=settings.low_battery_threshold,
        )
        if decide_low_price_charging(cheapest, now, context) is ChargingDecision.TURN_ON:
            # Charger is already on; only the reason changes
            self.state.low_battery_enabled = False
            self.state.low_price_enabled = True
            _LOGGER.info("Inside a cheapest block, charging continues for low price")
            await self._async_persist()
            return ChargingDecision.TURN_ON

        await self._async_turn_off()
        return ChargingDecision.TURN_OFF

    # --- Charger actions ---

    async def async_turn_on(self, due_to_low_battery: bool = False) -> bool:
        async with self._lock:
            return await self._async_turn_on(due_to_low_battery)

    async def async_turn_off(self) -> bool:
        async with self._lock:
            return await self._async_turn_off()

    async def _async_turn_on(self, due_to_low_battery: bool) -> bool:
        reason = "low battery" if due_to_low_battery else "low price"
        try:
            await self._charger.async_turn_on()
        except Exception as err:
            _LOGGER.error("Failed to turn charger on (%s): %s", reason, err)
            return False

        if due_to_low_battery:
            self.state.low_battery_enabled = True
            self.state.low_price_enabled = False
        else:
            self.state.low_price_enabled = True
            self.state.low_battery_enabled = False
        _LOGGER.info("Charger turned on due to %s", reason)
        await self._async_persist()
        return True

    async def _async_turn_off(self) -> bool:
        try:
            await self._charger.async_turn_off()
        except Exception as err:
            _LOGGER.error("Failed to turn charger off: %s", err)
            return False

        self.state.low_battery_enabled = False
        self.state.low_price_enabled = False
        _LOGGER.info("Charger turned off")
        await self._async_persist()
        return True

    # --- Manual action ---

    async def async_on_manual_action(self, is_on: bool, now: float) -> None:
        """Record a user toggle of the charger and start the override."""
        async with self._lock:
            self.override = ManualOverrideRecord(
                timestamp=int(now),
                last_override_log_time=int(now),
                last_expiration_log_time=None,
            )
            if not is_on:
                self.state.low_battery_enabled = False
                self.state.low_price_enabled = False
            _LOGGER.info(
                "Manual %s detected, automatic control paused",
                "turn-on" if is_on else "turn-off",
            )
            await self._async_persist()
