"""Low-price charging decision.

Pure, single-cycle evaluation. The checks run in a fixed priority order and
each one short-circuits the rest:

1. manual override active -> NO_CHANGE
2. low battery -> TURN_ON (NO_CHANGE if already on for battery)
3. low-price charging disabled -> TURN_OFF if on for price
4. now inside a cheapest block -> TURN_ON
5. on for price but outside every block -> TURN_OFF
6. otherwise NO_CHANGE

Turning off after the battery recovers is handled by the caller, which owns
the reason flags.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable

from .models import ChargingDecision, DecisionContext, PriceBlock
from .selector import is_within_blocks

_LOGGER = logging.getLogger(__name__)


def _as_number(value: object) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if math.isnan(value):
        return None
    return float(value)


def is_low_battery(battery_level: object, threshold: object) -> bool:
    """True when a positive threshold is set and the battery is known and below it."""
    level = _as_number(battery_level)
    limit = _as_number(threshold)
    if level is None or limit is None or limit <= 0:
        return False
    return level < limit


def is_battery_recovered(battery_level: object, threshold: object) -> bool:
    """True when the battery is known and no longer below the threshold."""
    if _as_number(battery_level) is None:
        return False
    return not is_low_battery(battery_level, threshold)


def decide_low_price_charging(
    cheapest: Iterable[PriceBlock],
    now: float,
    context: DecisionContext,
) -> ChargingDecision:
    """Return the verdict for this cycle."""
    if context.manual_override_active:
        _LOGGER.debug("Manual override active, leaving charger untouched")
        return ChargingDecision.NO_CHANGE

    if is_low_battery(context.battery_level, context.low_battery_threshold):
        if context.was_on_due_to_battery:
            return ChargingDecision.NO_CHANGE
        _LOGGER.debug(
            "Battery %s%% below threshold %s%%",
            context.battery_level,
            context.low_battery_threshold,
        )
        return ChargingDecision.TURN_ON

    if not context.enable_low_price:
        if context.was_on_due_to_price:
            return ChargingDecision.TURN_OFF
        return ChargingDecision.NO_CHANGE

    if is_within_blocks(cheapest or [], now):
        return ChargingDecision.TURN_ON

    if context.was_on_due_to_price:
        return ChargingDecision.TURN_OFF

    return ChargingDecision.NO_CHANGE
