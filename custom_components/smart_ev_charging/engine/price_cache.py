"""Price block cache: merge, prune and (de)serialisation.

The cache maps a block's start (epoch ms) to its PriceBlock. Storage itself
is handled by the integration; this module only transforms plain data.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable
from typing import Any

from .const import BLOCK_DURATION_MS
from .models import MergeStats, PriceBlock, PriceCache, PriceEntry
from .time_utils import from_ms, is_valid_timestamp, parse_iso_timestamp

_LOGGER = logging.getLogger(__name__)


class InvalidPriceEntryError(ValueError):
    """Raised when a price entry cannot be turned into a block."""


def _entry_to_block(entry: PriceEntry) -> PriceBlock:
    try:
        start = parse_iso_timestamp(entry.date)
    except (ValueError, TypeError) as err:
        raise InvalidPriceEntryError(f"Invalid date in price entry: {entry.date!r}") from err

    try:
        price = float(entry.price)
    except (ValueError, TypeError) as err:
        raise InvalidPriceEntryError(f"Invalid price for {entry.date}: {entry.price!r}") from err
    if math.isnan(price):
        raise InvalidPriceEntryError(f"NaN price for {entry.date}")

    return PriceBlock(start=start, end=start + BLOCK_DURATION_MS, price=price)


def merge_price_entries(
    cache: PriceCache,
    entries: Iterable[PriceEntry],
) -> tuple[PriceCache, MergeStats]:
    """Upsert entries into a copy of the cache.

    Last write wins on key collision. All entries are validated before the
    copy is touched, so a malformed payload raises InvalidPriceEntryError and
    the caller keeps its previous cache unchanged.
    """
    blocks = [_entry_to_block(entry) for entry in entries]

    merged: PriceCache = dict(cache)
    stats = MergeStats()

    for block in blocks:
        existing = merged.get(block.start)
        merged[block.start] = block

        if existing is None:
            stats.new_blocks += 1
            continue

        stats.updated_blocks += 1
        if existing.price != block.price:
            stats.price_changes += 1
            _LOGGER.debug(
                "Price updated for %s: %s -> %s",
                from_ms(block.start).isoformat(),
                existing.price,
                block.price,
            )

    return merged, stats


def prune_price_cache(cache: PriceCache, before: int) -> tuple[PriceCache, int]:
    """Drop blocks that ended before the given timestamp.

    Returns the pruned copy and the number of removed blocks.
    """
    kept = {start: block for start, block in cache.items() if block.end >= before}
    return kept, len(cache) - len(kept)


def serialize_cache(cache: PriceCache) -> dict[str, dict[str, Any]]:
    """Return the JSON-serialisable form keyed by str(start)."""
    return {
        str(block.start): {"start": block.start, "end": block.end, "price": block.price}
        for block in cache.values()
    }


def deserialize_cache(data: Any) -> PriceCache:
    """Rebuild a cache from its persisted form.

    Unknown extra fields are ignored; records that are not valid blocks are
    skipped. Anything that is not a mapping yields an empty cache.
    """
    cache: PriceCache = {}
    if not isinstance(data, dict):
        return cache

    skipped = 0
    for record in data.values():
        if not isinstance(record, dict):
            skipped += 1
            continue
        start = record.get("start")
        end = record.get("end")
        price = record.get("price")
        if not is_valid_timestamp(start) or not is_valid_timestamp(end):
            skipped += 1
            continue
        if isinstance(price, bool) or not isinstance(price, (int, float)) or math.isnan(price):
            skipped += 1
            continue
        cache[int(start)] = PriceBlock(start=int(start), end=int(end), price=float(price))

    if skipped:
        _LOGGER.warning("Skipped %d invalid price cache records", skipped)
    return cache
