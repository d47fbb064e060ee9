"""Scheduler configuration.

``SchedulerParameters`` is an explicit value handed to each ``Scheduler``;
nothing here is global state, so several configurations (for instance
per-user retention targets) can coexist.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import TYPE_CHECKING

from subflash.srs.errors import ConfigurationError

if TYPE_CHECKING:
    from subflash.config import Settings

# FSRS-5 default weights
# w[0..3]: initial stability for Again/Hard/Good/Easy
# w[4..5]: initial difficulty (base, rating exponent)
# w[6]: difficulty change per rating
# w[7]: difficulty mean reversion
# w[8..10]: recall stability (scale, stability decay, retrievability gain)
# w[11..14]: forget stability (scale, difficulty, stability, retrievability)
# w[15..16]: hard penalty, easy bonus
# w[17..18]: short-term stability (scale, offset)
DEFAULT_WEIGHTS: tuple[float, ...] = (
    0.40255,
    1.18385,
    3.173,
    15.69105,
    7.1949,
    0.5345,
    1.4604,
    0.0046,
    1.54575,
    0.1192,
    1.01925,
    1.9395,
    0.11,
    0.29605,
    2.2698,
    0.2315,
    2.9898,
    0.51655,
    0.6621,
)
WEIGHT_COUNT = 19

DEFAULT_REQUEST_RETENTION = 0.9
DEFAULT_MAXIMUM_INTERVAL = 36500
DEFAULT_LEARNING_STEPS = (timedelta(minutes=1), timedelta(minutes=10))
DEFAULT_RELEARNING_STEPS = (timedelta(minutes=10),)


@dataclass(frozen=True)
class FuzzRange:
    """Intervals between ``start`` and ``end`` days widen the fuzz by ``factor``."""

    start: float
    end: float
    factor: float


DEFAULT_FUZZ_RANGES: tuple[FuzzRange, ...] = (
    FuzzRange(start=2.5, end=7.0, factor=0.15),
    FuzzRange(start=7.0, end=20.0, factor=0.1),
    FuzzRange(start=20.0, end=math.inf, factor=0.05),
)


class HardStepPolicy(Enum):
    """What a Hard rating does while a card is on a (re)learning step."""

    BLENDED = "blended"  # Midway to the next step, 1.5x on the last one
    REPEAT = "repeat"  # The current step again


_STEP_PATTERN = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([smhd])\s*$")
_STEP_UNITS = {"s": "seconds", "m": "minutes", "h": "hours", "d": "days"}


def parse_step(value: str | int | float | timedelta) -> timedelta:
    """Parse a learning step such as ``"10m"``, ``"1h"`` or ``"2d"``.

    Bare numbers are minutes.
    """
    if isinstance(value, timedelta):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return timedelta(minutes=value)
    if isinstance(value, str):
        match = _STEP_PATTERN.match(value)
        if match:
            amount, unit = match.groups()
            return timedelta(**{_STEP_UNITS[unit]: float(amount)})
    raise ConfigurationError(f"Invalid learning step: {value!r}")


@dataclass(frozen=True)
class SchedulerParameters:
    """Weights and policies for one scheduler.

    Validated on construction; an inconsistent combination raises
    ``ConfigurationError`` here rather than at review time.
    """

    weights: tuple[float, ...] = DEFAULT_WEIGHTS
    request_retention: float = DEFAULT_REQUEST_RETENTION
    maximum_interval: int = DEFAULT_MAXIMUM_INTERVAL
    enable_fuzz: bool = False
    enable_short_term: bool = True
    learning_steps: tuple[timedelta, ...] = DEFAULT_LEARNING_STEPS
    relearning_steps: tuple[timedelta, ...] = DEFAULT_RELEARNING_STEPS
    graduate_new_on_easy: bool = True
    hard_step_policy: HardStepPolicy = HardStepPolicy.BLENDED
    fuzz_ranges: tuple[FuzzRange, ...] = DEFAULT_FUZZ_RANGES

    def __post_init__(self) -> None:
        # Normalise list/str inputs so callers can pass plain config values
        try:
            object.__setattr__(self, "weights", tuple(float(w) for w in self.weights))
        except (TypeError, ValueError):
            raise ConfigurationError("Weights must be numbers") from None
        object.__setattr__(
            self, "learning_steps", tuple(parse_step(s) for s in self.learning_steps)
        )
        object.__setattr__(
            self, "relearning_steps", tuple(parse_step(s) for s in self.relearning_steps)
        )
        if not isinstance(self.hard_step_policy, HardStepPolicy):
            try:
                policy = HardStepPolicy(self.hard_step_policy)
            except ValueError:
                raise ConfigurationError(
                    f"Unknown hard step policy: {self.hard_step_policy!r}"
                ) from None
            object.__setattr__(self, "hard_step_policy", policy)
        self._validate()

    def _validate(self) -> None:
        if len(self.weights) != WEIGHT_COUNT:
            raise ConfigurationError(
                f"Expected {WEIGHT_COUNT} weights, got {len(self.weights)}"
            )
        if not all(math.isfinite(w) for w in self.weights):
            raise ConfigurationError("Weights must be finite numbers")
        if not 0 < self.request_retention < 1:
            raise ConfigurationError(
                f"request_retention must be in (0, 1), got {self.request_retention}"
            )
        if self.maximum_interval < 1:
            raise ConfigurationError(
                f"maximum_interval must be at least 1 day, got {self.maximum_interval}"
            )
        for step in (*self.learning_steps, *self.relearning_steps):
            if step <= timedelta(0):
                raise ConfigurationError(f"Learning steps must be positive, got {step}")
        if self.enable_short_term and not self.learning_steps and not self.graduate_new_on_easy:
            # A New card would have neither a step to enter nor a way to graduate
            raise ConfigurationError(
                "Short-term learning needs learning steps unless new cards graduate on Easy"
            )

    @classmethod
    def from_settings(cls, settings: Settings) -> SchedulerParameters:
        """Build a fresh parameter set from application settings."""
        return cls(
            request_retention=settings.request_retention,
            maximum_interval=settings.maximum_interval,
            enable_fuzz=settings.enable_fuzz,
            enable_short_term=settings.enable_short_term,
            learning_steps=tuple(settings.learning_steps),
            relearning_steps=tuple(settings.relearning_steps),
            graduate_new_on_easy=settings.graduate_new_on_easy,
            hard_step_policy=settings.hard_step_policy,
        )
