"""Price sources: provider clients, factory and the fallback policy."""

from __future__ import annotations

import logging

import aiohttp

from ..models import PriceEntry
from .base import PriceSource, PriceSourceError, PriceSourceFetchError
from .smard import DEFAULT_MARKET_AREA, MARKET_AREAS, SmardPriceSource
from .smart_energy import SmartEnergyPriceSource
from .tibber import TibberPriceSource

_LOGGER = logging.getLogger(__name__)

SOURCE_SMARD = "smard"
SOURCE_SMART_ENERGY = "smart_energy"
SOURCE_TIBBER = "tibber"
SOURCE_NONE = "none"

PRICE_SOURCES = [SOURCE_SMARD, SOURCE_SMART_ENERGY, SOURCE_TIBBER]
FALLBACK_SOURCES = [SOURCE_NONE, *PRICE_SOURCES]

__all__ = [
    "DEFAULT_MARKET_AREA",
    "FALLBACK_SOURCES",
    "MARKET_AREAS",
    "PRICE_SOURCES",
    "FallbackPriceSource",
    "PriceSource",
    "PriceSourceError",
    "PriceSourceFetchError",
    "SmardPriceSource",
    "SmartEnergyPriceSource",
    "TibberPriceSource",
    "create_price_source",
]


class FallbackPriceSource:
    """Try the primary source; on failure use the fallback for this fetch only.

    The primary stays in charge: every fetch starts with it again.
    """

    def __init__(self, primary: PriceSource, fallback: PriceSource) -> None:
        self.primary = primary
        self.fallback = fallback
        self.name = f"{primary.name}+{fallback.name}"
        self.last_used: str | None = None

    async def fetch(self) -> list[PriceEntry]:
        try:
            entries = await self.primary.fetch()
        except PriceSourceError as err:
            _LOGGER.warning(
                "%s price source failed (%s), falling back to %s",
                self.primary.name,
                err,
                self.fallback.name,
            )
        else:
            self.last_used = self.primary.name
            return entries

        entries = await self.fallback.fetch()
        self.last_used = self.fallback.name
        return entries


def _build_source(
    kind: str,
    session: aiohttp.ClientSession,
    market_area: str,
    tibber_token: str | None,
) -> PriceSource:
    if kind == SOURCE_SMARD:
        return SmardPriceSource(session, market_area)
    if kind == SOURCE_SMART_ENERGY:
        return SmartEnergyPriceSource(session)
    if kind == SOURCE_TIBBER:
        return TibberPriceSource(session, tibber_token)
    raise ValueError(f"Unknown price source: {kind}")


def create_price_source(
    session: aiohttp.ClientSession,
    source: str = SOURCE_SMARD,
    *,
    market_area: str = DEFAULT_MARKET_AREA,
    tibber_token: str | None = None,
    fallback: str | None = None,
) -> PriceSource:
    """Build the configured price source chain.

    Tibber falls back to SMARD (DE-LU unless another market area is set)
    when no fallback is configured.
    A fallback equal to the primary, or "none", disables it.
    """
    primary = _build_source(source, session, market_area, tibber_token)

    if fallback is None and source == SOURCE_TIBBER:
        fallback = SOURCE_SMARD
    if not fallback or fallback in (SOURCE_NONE, source):
        return primary

    secondary = _build_source(fallback, session, market_area, tibber_token)
    return FallbackPriceSource(primary, secondary)
