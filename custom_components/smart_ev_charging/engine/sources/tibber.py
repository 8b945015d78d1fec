"""Tibber GraphQL price client.

The market area is determined by the account behind the token. Without a
token Tibber's public demo account is used.
"""

from __future__ import annotations

import logging
from typing import Any

import aiohttp

from ..models import PriceEntry
from .base import PriceSourceError, async_request_json

_LOGGER = logging.getLogger(__name__)

API_URL = "https://api.tibber.com/v1-beta/gql"
DEMO_TOKEN = "3A77EECF61BD445F47241A5A36202185C35AF3AF58609E19B53F3A8872AD7BE1-1"

PRICE_QUERY = """
{
  viewer {
    homes {
      currentSubscription {
        priceInfo(resolution: QUARTER_HOURLY) {
          today { total startsAt currency }
          tomorrow { total startsAt currency }
        }
      }
    }
  }
}
"""


def resolve_token(token: str | None) -> str:
    """Return the token to use; empty or "demo" selects the demo account."""
    token = (token or "").strip()
    if not token or token.lower() == "demo":
        return DEMO_TOKEN
    return token


def parse_price_info(data: Any) -> list[PriceEntry]:
    """Extract today's and tomorrow's prices (already €/kWh) from a response."""
    if not isinstance(data, dict):
        raise PriceSourceError("Tibber API: invalid response structure")

    errors = data.get("errors")
    if errors:
        messages = ", ".join(
            str(error.get("message", error)) if isinstance(error, dict) else str(error)
            for error in errors
        )
        raise PriceSourceError(f"Tibber API errors: {messages}")

    try:
        price_info = data["data"]["viewer"]["homes"][0]["currentSubscription"]["priceInfo"]
    except (KeyError, IndexError, TypeError) as err:
        raise PriceSourceError("Tibber API: invalid response structure") from err
    if not isinstance(price_info, dict):
        raise PriceSourceError("Tibber API: invalid response structure")

    entries: list[PriceEntry] = []
    for day in ("today", "tomorrow"):
        for item in price_info.get(day) or []:
            starts_at = item.get("startsAt") if isinstance(item, dict) else None
            total = item.get("total") if isinstance(item, dict) else None
            if starts_at is None or total is None:
                # Tomorrow is published around 13:00 and may be partial before
                continue
            entries.append(PriceEntry(date=starts_at, price=total))
    return entries


class TibberPriceSource:
    """Fetch quarter-hourly prices for the first home on a Tibber account."""

    name = "tibber"

    def __init__(self, session: aiohttp.ClientSession, token: str | None = None) -> None:
        self._session = session
        self._token = resolve_token(token)

    @property
    def uses_demo_token(self) -> bool:
        return self._token == DEMO_TOKEN

    async def fetch(self) -> list[PriceEntry]:
        data = await async_request_json(
            self._session,
            "POST",
            API_URL,
            source="Tibber",
            json={"query": PRICE_QUERY},
            headers={"Authorization": f"Bearer {self._token}"},
        )
        entries = parse_price_info(data)
        _LOGGER.debug("Tibber: %d price entries", len(entries))
        return entries
