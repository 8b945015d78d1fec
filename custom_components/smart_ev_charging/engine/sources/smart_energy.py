"""Smart Energy (Austria) spot price client."""

from __future__ import annotations

import logging
from typing import Any

import aiohttp

from ..const import BLOCK_DURATION_MINUTES
from ..models import PriceEntry
from .base import PriceSourceError, async_request_json

_LOGGER = logging.getLogger(__name__)

API_URL = "https://apis.smartenergy.at/market/v1/price"


def parse_prices(data: Any) -> list[PriceEntry]:
    """Convert a Smart Energy payload (ct/kWh) into entries in €/kWh.

    Payload: {"tariff", "unit", "interval": 15, "data": [{"date", "value"}]}
    """
    if not isinstance(data, dict):
        raise PriceSourceError("Smart Energy API: invalid response structure")

    interval = data.get("interval")
    if interval != BLOCK_DURATION_MINUTES:
        raise PriceSourceError(
            f"Smart Energy API returned interval of {interval} minutes, "
            f"expected {BLOCK_DURATION_MINUTES}"
        )

    items = data.get("data")
    if not isinstance(items, list):
        raise PriceSourceError("Smart Energy API: missing price data")

    entries: list[PriceEntry] = []
    for item in items:
        try:
            entries.append(PriceEntry(date=item["date"], price=float(item["value"]) / 100))
        except (KeyError, TypeError, ValueError) as err:
            raise PriceSourceError(f"Smart Energy API: invalid entry {item!r}") from err
    return entries


class SmartEnergyPriceSource:
    """Fetch 15-minute prices from the Smart Energy market API."""

    name = "smart_energy"

    def __init__(self, session: aiohttp.ClientSession) -> None:
        self._session = session

    async def fetch(self) -> list[PriceEntry]:
        data = await async_request_json(
            self._session, "GET", API_URL, source="Smart Energy"
        )
        entries = parse_prices(data)
        _LOGGER.debug("Smart Energy: %d price entries", len(entries))
        return entries
