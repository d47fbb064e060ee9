"""Interval fuzzing.

Cards reviewed together would otherwise come due together again. Long-term
intervals are spread over a band that widens with the interval. The pick is
seeded from the review itself, so the same review always fuzzes the same way.
"""

import random
from datetime import datetime

from subflash.srs.parameters import DEFAULT_FUZZ_RANGES, FuzzRange

# Shorter intervals are never fuzzed
MIN_FUZZ_INTERVAL = 2.5


def fuzz_range(
    interval: float,
    elapsed_days: float,
    maximum_interval: int,
    ranges: tuple[FuzzRange, ...] = DEFAULT_FUZZ_RANGES,
) -> tuple[int, int]:
    """Return the inclusive (min, max) days a fuzzed ``interval`` may take.

    The band is +/- (1 day + the banded percentages of the interval), never
    below 2 days, never above ``maximum_interval``, and never at or below the
    days already elapsed when the interval itself exceeds them.
    """
    delta = 1.0
    for band in ranges:
        delta += band.factor * max(min(interval, band.end) - band.start, 0.0)

    interval = min(interval, maximum_interval)
    min_ivl = max(2, round(interval - delta))
    max_ivl = min(round(interval + delta), maximum_interval)
    if interval > elapsed_days:
        min_ivl = max(min_ivl, int(elapsed_days) + 1)
    min_ivl = min(min_ivl, max_ivl)
    return min_ivl, max_ivl


def fuzz_seed(review_time: datetime, reps: int, difficulty: float, stability: float) -> str:
    """Seed string identifying one review of one card."""
    return f"{review_time.isoformat()}_{reps}_{difficulty * stability}"


def apply_fuzz(
    interval: int,
    elapsed_days: float,
    maximum_interval: int,
    seed: str,
    ranges: tuple[FuzzRange, ...] = DEFAULT_FUZZ_RANGES,
) -> int:
    """Pick a day in the fuzz band of ``interval``, deterministically for ``seed``."""
    if interval < MIN_FUZZ_INTERVAL:
        return interval
    min_ivl, max_ivl = fuzz_range(interval, elapsed_days, maximum_interval, ranges)
    fuzz_factor = random.Random(seed).random()
    return int(fuzz_factor * (max_ivl - min_ivl + 1) + min_ivl)
