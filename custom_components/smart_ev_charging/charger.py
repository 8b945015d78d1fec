"""Charger switch gateway.

All charger interactions go through switch.turn_on / switch.turn_off service
calls on the configured entity. Each call carries its own Context so state
changes we caused can be told apart from the user toggling the switch.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque

from homeassistant.const import STATE_ON
from homeassistant.core import Context, HomeAssistant

from .const import CHARGER_CALL_TIMEOUT, OWN_CONTEXT_HISTORY

_LOGGER = logging.getLogger(__name__)


class ChargerCommandError(Exception):
    """Raised when a charger switch command fails."""


class SwitchCharger:
    """Drive a charger exposed as a switch entity."""

    def __init__(self, hass: HomeAssistant, entity_id: str) -> None:
        self._hass = hass
        self.entity_id = entity_id
        self._own_contexts: deque[str] = deque(maxlen=OWN_CONTEXT_HISTORY)

    @property
    def is_on(self) -> bool | None:
        """Current switch state, None if unknown."""
        state = self._hass.states.get(self.entity_id)
        if state is None or state.state in ("unknown", "unavailable"):
            return None
        return state.state == STATE_ON

    def is_own_context(self, context: Context | None) -> bool:
        """Return True if the context belongs to one of our service calls."""
        if context is None:
            return False
        return context.id in self._own_contexts or (
            context.parent_id is not None and context.parent_id in self._own_contexts
        )

    async def _call(self, service: str) -> None:
        """Call switch.<service> with timeout."""
        context = Context()
        self._own_contexts.append(context.id)
        _LOGGER.debug("Calling switch.%s on %s", service, self.entity_id)
        try:
            await asyncio.wait_for(
                self._hass.services.async_call(
                    "switch",
                    service,
                    {"entity_id": self.entity_id},
                    blocking=True,
                    context=context,
                ),
                timeout=CHARGER_CALL_TIMEOUT,
            )
        except asyncio.TimeoutError:
            _LOGGER.error(
                "Timeout calling switch.%s on %s after %ds",
                service, self.entity_id, CHARGER_CALL_TIMEOUT,
            )
            raise ChargerCommandError(f"Timeout calling switch.{service}") from None
        except Exception as err:
            raise ChargerCommandError(
                f"switch.{service} on {self.entity_id} failed: {err}"
            ) from err

    async def async_turn_on(self) -> None:
        await self._call("turn_on")

    async def async_turn_off(self) -> None:
        await self._call("turn_off")
