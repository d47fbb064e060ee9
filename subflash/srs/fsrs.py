"""FSRS (Free Spaced Repetition Scheduler) memory model.

The numeric half of the scheduler: pure functions of the configured weights,
with no notion of card lifecycle. ``subflash.srs.scheduler`` decides which
of these formulas applies to a review.
Reference: https://github.com/open-spaced-repetition/fsrs4anki

Key concepts:
- Stability (S): Days until retrievability decays to the target retention.
- Difficulty (D): A value between 1 and 10 representing inherent item difficulty.
- Retrievability (R): The probability of recall at a given time since last review.
- Grade: 1=Again, 2=Hard, 3=Good, 4=Easy
"""

import math

from subflash.srs.parameters import SchedulerParameters

# Bounds
MIN_DIFFICULTY = 1.0
MAX_DIFFICULTY = 10.0
MIN_STABILITY = 0.01
MAX_STABILITY = 36500.0

# Forgetting curve time constant: R = exp(-t / (CURVE_FACTOR * S))
CURVE_FACTOR = 9.0


def clamp_difficulty(difficulty: float) -> float:
    return max(MIN_DIFFICULTY, min(MAX_DIFFICULTY, difficulty))


def clamp_stability(stability: float) -> float:
    if math.isnan(stability):
        return MIN_STABILITY
    return max(MIN_STABILITY, min(MAX_STABILITY, stability))


class FSRS:
    """Memory model formulas for one parameter set."""

    def __init__(self, parameters: SchedulerParameters | None = None) -> None:
        """Initialize the model with validated scheduler parameters."""
        self.parameters = parameters or SchedulerParameters()
        self.w = self.parameters.weights
        self.request_retention = self.parameters.request_retention

    def init_stability(self, grade: int) -> float:
        """Stability after the first review: S0 = w[grade - 1]."""
        return clamp_stability(self.w[grade - 1])

    def init_difficulty(self, grade: int) -> float:
        """Difficulty after the first review.

        D0 = w4 - e^(w5 * (grade - 1)) + 1
        """
        return clamp_difficulty(self.w[4] - math.exp(self.w[5] * (grade - 1)) + 1)

    def next_difficulty(self, difficulty: float, grade: int) -> float:
        """Update difficulty after a review.

        The change is damped linearly as D approaches 10, then pulled back
        toward D0(Easy) by the mean reversion weight w7.
        """
        delta = -self.w[6] * (grade - 3)
        damped = difficulty + delta * (10 - difficulty) / 9
        reverted = self.w[7] * self.init_difficulty(4) + (1 - self.w[7]) * damped
        return clamp_difficulty(reverted)

    def retrievability(self, elapsed_days: float, stability: float) -> float:
        """Calculate the probability of recall given elapsed time and stability.

        Uses the exponential forgetting curve: R = exp(-t / (9 * S))
        """
        if stability <= 0:
            return 0.0
        if elapsed_days <= 0:
            return 1.0
        return math.exp(-elapsed_days / (CURVE_FACTOR * stability))

    def raw_interval(self, stability: float) -> float:
        """Days until retrievability drops to the requested retention.

        Solving request_retention = exp(-t / (9 * S)) for t:
        t = -9 * S * ln(request_retention)
        """
        return -CURVE_FACTOR * stability * math.log(self.request_retention)

    def next_interval(self, stability: float) -> int:
        """Whole-day interval for ``stability``, within [1, maximum_interval]."""
        interval = round(self.raw_interval(stability))
        return max(1, min(self.parameters.maximum_interval, interval))

    def recall_stability(
        self,
        difficulty: float,
        stability: float,
        retrievability: float,
        grade: int,
    ) -> float:
        """Stability after a successful long-term review (grade >= 2).

        S' = S * (1 + e^w8 * (11 - D) * S^(-w9) * (e^(w10 * (1 - R)) - 1) * h * b)
        where h is the hard penalty w15 and b the easy bonus w16.
        """
        difficulty = clamp_difficulty(difficulty)
        stability = clamp_stability(stability)
        hard_penalty = self.w[15] if grade == 2 else 1.0
        easy_bonus = self.w[16] if grade == 4 else 1.0
        factor = (
            math.exp(self.w[8])
            * (11 - difficulty)
            * stability ** (-self.w[9])
            * (math.exp(self.w[10] * (1 - retrievability)) - 1)
            * hard_penalty
            * easy_bonus
        )
        return clamp_stability(stability * (1 + factor))

    def forget_stability(
        self,
        difficulty: float,
        stability: float,
        retrievability: float,
    ) -> float:
        """Stability after a lapse (grade = 1). Never above the prior stability.

        S' = w11 * D^(-w12) * ((S + 1)^w13 - 1) * e^(w14 * (1 - R))
        """
        difficulty = clamp_difficulty(difficulty)
        stability = clamp_stability(stability)
        new_s = (
            self.w[11]
            * difficulty ** (-self.w[12])
            * ((stability + 1) ** self.w[13] - 1)
            * math.exp(self.w[14] * (1 - retrievability))
        )
        if self.parameters.enable_short_term:
            new_s = min(new_s, stability / math.exp(self.w[17] * self.w[18]))
        return clamp_stability(min(new_s, stability))

    def short_term_stability(self, stability: float, grade: int) -> float:
        """Stability after a same-day (learning step) review.

        S' = S * e^(w17 * (grade - 3 + w18)); Good and Easy never lower it.
        """
        growth = math.exp(self.w[17] * (grade - 3 + self.w[18]))
        if grade >= 3:
            growth = max(growth, 1.0)
        return clamp_stability(stability * growth)
