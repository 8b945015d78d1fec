"""Cheapest price block selection.

Two policies are exposed:

* find_cheapest_window: the contiguous window of `count` blocks with the
  smallest total price across today and tomorrow (the default control and
  display policy; contiguous schedules do not flap).
* find_cheapest_blocks: the `count` individually cheapest blocks of today,
  falling back to tomorrow only when none of today's are still ahead.

Both are recomputed from the cache on every cycle and never cached.
"""

from __future__ import annotations

import math
from collections.abc import Callable, Iterable
from fractions import Fraction
from typing import Any

from .const import BLOCK_DURATION_MS, MILLISECONDS_PER_DAY, UNKNOWN_TIMES
from .models import PriceBlock, PriceCache
from .time_utils import (
    from_ms,
    is_valid_timestamp,
    resolve_timezone,
    today_and_tomorrow,
    utc_date,
)

DayKey = Callable[[float], Any]


def _valid_blocks(cache: PriceCache | Iterable[PriceBlock]) -> list[PriceBlock]:
    """Return blocks with usable timestamps and non-NaN prices."""
    blocks = cache.values() if isinstance(cache, dict) else cache
    valid: list[PriceBlock] = []
    for block in blocks:
        if not isinstance(block, PriceBlock):
            continue
        if not is_valid_timestamp(block.start) or not is_valid_timestamp(block.end):
            continue
        if not isinstance(block.price, (int, float)) or math.isnan(block.price):
            continue
        valid.append(block)
    return valid


def _normalize_count(count: Any) -> int:
    """Coerce a block count to int; anything unusable counts as zero."""
    if isinstance(count, bool):
        return 0
    if isinstance(count, float):
        return int(count) if math.isfinite(count) else 0
    if isinstance(count, int):
        return count
    return 0


def _is_usable_now(now: Any) -> bool:
    # Tomorrow must be representable too
    return is_valid_timestamp(now) and is_valid_timestamp(now + MILLISECONDS_PER_DAY)


def relevant_blocks(
    cache: PriceCache,
    now: float,
    day_key: DayKey = utc_date,
) -> list[PriceBlock]:
    """Blocks that fall on today or tomorrow (by day_key), sorted by start."""
    if not _is_usable_now(now):
        return []
    today, tomorrow = today_and_tomorrow(now, day_key)
    blocks = [b for b in _valid_blocks(cache) if day_key(b.start) in (today, tomorrow)]
    blocks.sort(key=lambda b: b.start)
    return blocks


class _WindowSum:
    """Exact running sum of prices that tolerates +/-inf and huge values.

    Finite prices are accumulated as Fractions so adding and removing a
    price never drifts or overflows; infinities are counted separately.
    """

    __slots__ = ("finite", "pos_inf", "neg_inf")

    def __init__(self) -> None:
        self.finite = Fraction(0)
        self.pos_inf = 0
        self.neg_inf = 0

    def add(self, price: float, sign: int = 1) -> None:
        if price == math.inf:
            self.pos_inf += sign
        elif price == -math.inf:
            self.neg_inf += sign
        else:
            self.finite += sign * Fraction(price)

    def remove(self, price: float) -> None:
        self.add(price, -1)

    def key(self) -> tuple[int, Fraction]:
        """Total-order key; smaller is cheaper."""
        if self.neg_inf and not self.pos_inf:
            return (-1, Fraction(0))
        if self.pos_inf:
            # +inf alone, or an undefined inf - inf total, ranks last
            return (1, Fraction(0))
        return (0, self.finite)


def _is_gap_free(blocks: list[PriceBlock], index: int, count: int) -> bool:
    span = blocks[index + count - 1].start - blocks[index].start
    return span == (count - 1) * BLOCK_DURATION_MS


def cheapest_window_start(blocks: list[PriceBlock], count: int) -> int:
    """Index of the first block of the cheapest contiguous window.

    Blocks must be sorted by start and len(blocks) >= count > 0. Windows that
    span a missing quarter-hour are skipped; only when every window has a
    gap does the cheapest of them win. Only a strictly smaller sum replaces
    the current best, so ties resolve to the earliest window.
    """
    window = _WindowSum()
    for block in blocks[:count]:
        window.add(block.price)

    best_any = (window.key(), 0)
    best_gap_free = best_any if _is_gap_free(blocks, 0, count) else None

    for index in range(1, len(blocks) - count + 1):
        window.remove(blocks[index - 1].price)
        window.add(blocks[index + count - 1].price)
        current = window.key()
        if current < best_any[0]:
            best_any = (current, index)
        if _is_gap_free(blocks, index, count) and (
            best_gap_free is None or current < best_gap_free[0]
        ):
            best_gap_free = (current, index)

    return (best_gap_free or best_any)[1]

def find_cheapest_window(
    cache: PriceCache,
    count: int,
    now: float,
    day_key: DayKey = utc_date,
) -> list[PriceBlock]:
    """Find the contiguous run of `count` blocks with the lowest total price.

    Args:
        cache: Price cache (start ms -> PriceBlock).
        count: Number of 15-minute blocks wanted.
        now: Current time in epoch ms.
        day_key: Maps a timestamp to its day; utc_day_number gives the
            legacy day-of-month behaviour.

    Returns:
        The winning blocks sorted by start, all relevant blocks when count
        covers them, or [] when nothing can be selected.
    """
    count = _normalize_count(count)
    if count <= 0:
        return []

    blocks = relevant_blocks(cache, now, day_key)
    if not blocks:
        return []
    if count >= len(blocks):
        return blocks

    start = cheapest_window_start(blocks, count)
    return blocks[start : start + count]


def _cheapest_by_price(blocks: list[PriceBlock], count: int) -> list[PriceBlock]:
    # Stable sort keeps earlier blocks first on equal prices
    return sorted(blocks, key=lambda b: b.price)[:count]


def find_cheapest_blocks(
    cache: PriceCache,
    count: int,
    now: float,
    day_key: DayKey = utc_date,
) -> list[PriceBlock]:
    """Find the individually cheapest blocks for live on/off checks.

    Takes today's `count` cheapest blocks (past ones included in the ranking)
    and keeps those not yet over. If and only if none of them remain,
    returns the `count` cheapest future blocks of tomorrow instead.
    """
    count = _normalize_count(count)
    if count <= 0 or not _is_usable_now(now):
        return []

    today, tomorrow = today_and_tomorrow(now, day_key)
    blocks = _valid_blocks(cache)

    today_blocks = [b for b in blocks if day_key(b.start) == today]
    cheapest = [b for b in _cheapest_by_price(today_blocks, count) if b.end > now]

    if not cheapest:
        tomorrow_blocks = [
            b for b in blocks if day_key(b.start) == tomorrow and b.end > now
        ]
        cheapest = _cheapest_by_price(tomorrow_blocks, count)

    cheapest.sort(key=lambda b: b.start)
    return cheapest


def is_within_blocks(blocks: Iterable[PriceBlock], now: float) -> bool:
    """Return True if now falls inside any block's [start, end)."""
    return any(
        isinstance(block, PriceBlock) and block.contains(now) for block in blocks or ()
    )


def current_block(cache: PriceCache, now: float) -> PriceBlock | None:
    """Return the cached block covering now, if any."""
    for block in _valid_blocks(cache):
        if block.contains(now):
            return block
    return None


def format_price(price: float, decimals: int = 5) -> str:
    """Format a €/kWh price without scientific notation."""
    if math.isnan(price):
        return "NaN €/kWh"
    if math.isinf(price):
        return f"{'-' if price < 0 else ''}inf €/kWh"
    text = f"{price:.{decimals}f}"
    if text.startswith("-") and float(text) == 0:
        text = text[1:]
    return f"{text} €/kWh"


def group_consecutive(blocks: Iterable[PriceBlock]) -> list[tuple[int, int]]:
    """Merge blocks that touch end-to-start into (start, end) ranges."""
    ranges: list[tuple[int, int]] = []
    for block in sorted(blocks, key=lambda b: b.start):
        if ranges and block.start == ranges[-1][1]:
            ranges[-1] = (ranges[-1][0], block.end)
        else:
            ranges.append((block.start, block.end))
    return ranges


def format_next_charging_times(
    blocks: Iterable[PriceBlock],
    now: float,
    timezone: str | None = "UTC",
) -> str:
    """Format upcoming charging blocks for display.

    Consecutive blocks are grouped into ranges, e.g. 11:00, 11:15, 11:30
    become "11:00–11:45". A single block is shown as its start time.
    Returns "Unknown" when no block starts in the future.
    """
    future = [b for b in _valid_blocks(blocks) if b.start > now]
    if not future:
        return UNKNOWN_TIMES

    tz = resolve_timezone(timezone)
    parts: list[str] = []
    for start, end in group_consecutive(future):
        start_str = from_ms(start).astimezone(tz).strftime("%H:%M")
        if end - start == BLOCK_DURATION_MS:
            parts.append(start_str)
            continue
        end_str = from_ms(end).astimezone(tz).strftime("%H:%M")
        parts.append(f"{start_str}–{end_str}")
    return ", ".join(parts)
