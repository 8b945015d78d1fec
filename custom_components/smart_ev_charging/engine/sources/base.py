"""Shared pieces of the price source clients."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Protocol

import aiohttp

from ..models import PriceEntry

_LOGGER = logging.getLogger(__name__)

REQUEST_TIMEOUT_SECONDS = 30


class PriceSourceError(Exception):
    """Raised when a price source returns data that cannot be used."""


class PriceSourceFetchError(PriceSourceError):
    """Raised when a price source cannot be reached (network, HTTP, auth)."""


class PriceSource(Protocol):
    """A provider of 15-minute price entries."""

    name: str

    async def fetch(self) -> list[PriceEntry]: ...


async def async_request_json(
    session: aiohttp.ClientSession,
    method: str,
    url: str,
    *,
    source: str,
    timeout: int = REQUEST_TIMEOUT_SECONDS,
    **kwargs: Any,
) -> Any:
    """Perform an HTTP request and return the decoded JSON body.

    Network failures and non-200 responses raise PriceSourceFetchError; a body
    that is not JSON raises PriceSourceError.
    """
    try:
        async with session.request(
            method,
            url,
            timeout=aiohttp.ClientTimeout(total=timeout),
            **kwargs,
        ) as response:
            if response.status != 200:
                error_text = await response.text()
                raise PriceSourceFetchError(
                    f"{source} API error {response.status}: {error_text[:200]}"
                )
            try:
                return await response.json(content_type=None)
            except ValueError as err:
                raise PriceSourceError(f"{source} API returned invalid JSON") from err
    except asyncio.TimeoutError as err:
        raise PriceSourceFetchError(f"{source} API timed out after {timeout}s") from err
    except aiohttp.ClientError as err:
        raise PriceSourceFetchError(f"Network error calling {source} API: {err}") from err
