"""SMARD.de wholesale price client.

SMARD publishes day-ahead prices per bidding zone as weekly series files.
An index lists the series start timestamps; each series is a list of
[timestamp_ms, €/MWh] pairs where future or missing values are null.

API: https://www.smard.de/app/chart_data/{filter}/{area}/...
"""

from __future__ import annotations

import logging
import time
from typing import Any

import aiohttp

from ..const import BLOCKS_PER_DAY
from ..models import PriceEntry
from ..time_utils import from_ms, is_valid_timestamp, parse_iso_timestamp, utc_date
from .base import PriceSourceError, async_request_json

_LOGGER = logging.getLogger(__name__)

BASE_URL = "https://www.smard.de/app/chart_data"
RESOLUTION = "quarterhour"
SERIES_TO_FETCH = 2

MARKET_AREAS: dict[str, int] = {
    "DE-LU": 4169,
    "Anrainer DE-LU": 5078,
    "BE": 4996,
    "NO2": 4997,
    "AT": 4170,
    "DK1": 252,
    "DK2": 253,
    "FR": 254,
    "IT (North)": 255,
    "NL": 256,
    "PL": 257,
    "CH": 259,
    "SI": 260,
    "CZ": 261,
    "HU": 262,
}
DEFAULT_MARKET_AREA = "DE-LU"


def parse_index(data: Any) -> list[int]:
    """Return the newest series timestamps from an index payload."""
    timestamps = data.get("timestamps") if isinstance(data, dict) else None
    if not timestamps:
        raise PriceSourceError("SMARD API: no timestamps available")
    return list(timestamps)[-SERIES_TO_FETCH:]


def parse_series(data: Any) -> list[PriceEntry]:
    """Convert one series payload into price entries in €/kWh.

    Null prices (not yet published) are skipped.
    """
    series = data.get("series") if isinstance(data, dict) else None
    if not isinstance(series, list):
        return []

    entries: list[PriceEntry] = []
    for item in series:
        if not isinstance(item, (list, tuple)) or len(item) < 2:
            continue
        timestamp, price_mwh = item[0], item[1]
        if price_mwh is None or not is_valid_timestamp(timestamp):
            continue
        if isinstance(price_mwh, bool) or not isinstance(price_mwh, (int, float)):
            raise PriceSourceError(f"SMARD API: invalid price {price_mwh!r}")
        entries.append(
            PriceEntry(date=from_ms(timestamp).isoformat(), price=price_mwh / 1000)
        )
    return entries


def trim_entries(entries: list[PriceEntry], now: float) -> list[PriceEntry]:
    """Keep yesterday and today, plus tomorrow once it is published."""
    if not entries:
        return []

    entries = sorted(entries, key=lambda e: parse_iso_timestamp(e.date))
    latest_day = utc_date(parse_iso_timestamp(entries[-1].date))
    days = 2 if latest_day == utc_date(now) else 3
    return entries[-days * BLOCKS_PER_DAY :]


class SmardPriceSource:
    """Fetch quarter-hourly day-ahead prices from SMARD.de."""

    name = "smard"

    def __init__(
        self,
        session: aiohttp.ClientSession,
        market_area: str = DEFAULT_MARKET_AREA,
    ) -> None:
        if market_area not in MARKET_AREAS:
            raise ValueError(
                f"Invalid market area: {market_area}. "
                f"Supported areas: {', '.join(MARKET_AREAS)}"
            )
        self._session = session
        self.market_area = market_area
        self._filter = MARKET_AREAS[market_area]

    def _index_url(self) -> str:
        return f"{BASE_URL}/{self._filter}/{self.market_area}/index_{RESOLUTION}.json"

    def _series_url(self, timestamp: int) -> str:
        return (
            f"{BASE_URL}/{self._filter}/{self.market_area}/"
            f"{self._filter}_{self.market_area}_{RESOLUTION}_{timestamp}.json"
        )

    async def fetch(self) -> list[PriceEntry]:
        index = await async_request_json(
            self._session, "GET", self._index_url(), source="SMARD"
        )

        entries: list[PriceEntry] = []
        for timestamp in parse_index(index):
            try:
                data = await async_request_json(
                    self._session, "GET", self._series_url(timestamp), source="SMARD"
                )
            except PriceSourceError as err:
                _LOGGER.warning("SMARD series %s unavailable: %s", timestamp, err)
                continue
            entries.extend(parse_series(data))

        trimmed = trim_entries(entries, time.time() * 1000)
        _LOGGER.debug("SMARD %s: %d price entries", self.market_area, len(trimmed))
        return trimmed
