"""Review scheduling: the card lifecycle on top of the FSRS memory model.

``Scheduler.next`` is a pure function of (parameters, card, now, rating). It
returns a new card and exactly one review log and never performs I/O, so a
single scheduler can be shared between threads and requests.

Lifecycle:
- New: the first rating sets stability and difficulty, then the card enters
  the learning steps (or graduates on Easy, or straight away when short-term
  learning is off).
- Learning / Relearning: minute-scale steps. Again restarts them, Hard stays,
  Good advances and graduates after the last one, Easy graduates at once.
- Review: whole-day intervals from stability. Again is a lapse and sends the
  card to Relearning.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timedelta

from subflash.srs.card import (
    SCHEDULING_RATINGS,
    Card,
    Rating,
    ReviewLog,
    SchedulingResult,
    State,
    coerce_rating,
    coerce_state,
)
from subflash.srs.errors import InvalidCardStateError, InvalidRatingError
from subflash.srs.fsrs import FSRS
from subflash.srs.fuzz import apply_fuzz, fuzz_seed
from subflash.srs.parameters import HardStepPolicy, SchedulerParameters

logger = logging.getLogger(__name__)

DAY = timedelta(days=1)


def elapsed_days_between(last_review: datetime | None, now: datetime) -> float:
    """Real-valued days from ``last_review`` to ``now`` (0 if never reviewed)."""
    if last_review is None:
        return 0.0
    return max(0.0, (now - last_review) / DAY)


class Scheduler:
    """Computes the next card state for a rating under one parameter set."""

    def __init__(self, parameters: SchedulerParameters | None = None) -> None:
        self.parameters = parameters or SchedulerParameters()
        self.model = FSRS(self.parameters)

    def next(self, card: Card, now: datetime, rating: Rating | str | int) -> SchedulingResult:
        """Apply ``rating`` given at ``now`` to ``card``.

        Args:
            card: Current card state. Left untouched.
            now: Review time. May be earlier than ``card.due``.
            rating: Again/Hard/Good/Easy, or Manual for a log-only entry.

        Returns:
            SchedulingResult with the updated card and its review log.

        Raises:
            InvalidRatingError: ``rating`` is not a known rating.
            InvalidCardStateError: ``card`` has an unknown state or a
                negative learning step.
        """
        rating = coerce_rating(rating)
        card = self._checked(card)
        elapsed_days = elapsed_days_between(card.last_review, now)
        log = self._build_log(card, rating, now, elapsed_days)

        if rating is Rating.MANUAL:
            return SchedulingResult(card=replace(card), log=log)

        if card.state is State.NEW:
            updated = self._schedule_new(card, now, rating, elapsed_days)
        elif card.state is State.REVIEW:
            updated = self._schedule_review(card, now, rating, elapsed_days)
        else:
            updated = self._schedule_steps(card, now, rating, elapsed_days)

        updated = replace(
            updated,
            reps=card.reps + 1,
            elapsed_days=elapsed_days,
            last_review=now,
        )
        logger.debug(
            "Rated %s: %s -> %s (S=%.4f D=%.4f), due %s",
            rating.value,
            card.state.value,
            updated.state.value,
            updated.stability,
            updated.difficulty,
            updated.due.isoformat(),
        )
        return SchedulingResult(card=updated, log=log)

    def preview(self, card: Card, now: datetime) -> dict[Rating, SchedulingResult]:
        """Return what each of the four ratings would do to ``card``."""
        return {rating: self.next(card, now, rating) for rating in SCHEDULING_RATINGS}

    def get_retrievability(self, card: Card, now: datetime) -> float:
        """Current probability of recalling ``card`` (0 for a new card)."""
        card = self._checked(card)
        if card.state is State.NEW:
            return 0.0
        elapsed_days = elapsed_days_between(card.last_review, now)
        return self.model.retrievability(elapsed_days, card.stability)

    def rollback(self, card: Card, log: ReviewLog) -> Card:
        """Reconstruct the card as it was before the review ``log`` records.

        The previous ``last_review`` is not stored in the log. It is
        ``review_time - elapsed_days``; when elapsed days were floored to 0
        (a review timestamped before the previous one) it falls back to
        ``due - scheduled_days``, which is exact for cards scheduled here.
        """
        if log.rating is Rating.MANUAL:
            raise InvalidRatingError("Manual reviews do not change a card; nothing to roll back")

        lapses = card.lapses
        if log.state is State.REVIEW and log.rating is Rating.AGAIN:
            lapses = max(0, lapses - 1)
        last_review = None
        if log.state is not State.NEW:
            if log.elapsed_days > 0:
                last_review = log.review_time - timedelta(days=log.elapsed_days)
            else:
                last_review = log.due - timedelta(days=log.scheduled_days)

        return Card(
            due=log.due,
            stability=log.stability,
            difficulty=log.difficulty,
            elapsed_days=log.last_elapsed_days,
            scheduled_days=log.scheduled_days,
            reps=max(0, card.reps - 1),
            lapses=lapses,
            state=log.state,
            last_review=last_review,
            learning_steps=log.learning_steps,
        )

    def forget(self, card: Card, now: datetime, reset_count: bool = False) -> SchedulingResult:
        """Reset ``card`` to New, due at ``now``. Logged as a Manual review."""
        card = self._checked(card)
        elapsed_days = elapsed_days_between(card.last_review, now)
        forgotten = Card(
            due=now,
            reps=0 if reset_count else card.reps,
            lapses=0 if reset_count else card.lapses,
            last_review=card.last_review,
        )
        log = self._build_log(card, Rating.MANUAL, now, elapsed_days)
        return SchedulingResult(card=forgotten, log=log)

    # --- State handlers ---

    def _schedule_new(self, card: Card, now: datetime, rating: Rating, elapsed_days: float) -> Card:
        grade = rating.grade
        card = replace(
            card,
            stability=self.model.init_stability(grade),
            difficulty=self.model.init_difficulty(grade),
            learning_steps=0,
        )
        if not self.parameters.enable_short_term:
            return self._graduate(card, now, elapsed_days)
        if rating is Rating.EASY and self.parameters.graduate_new_on_easy:
            return self._graduate(card, now, elapsed_days)

        steps = self.parameters.learning_steps
        if not steps:
            # Only reachable when new cards graduate on Easy
            if rating is Rating.AGAIN:
                return self._long_term(card, now, State.LEARNING, self._interval(card, elapsed_days, now))
            return self._graduate(card, now, elapsed_days)

        delay = self._hard_delay(steps, 0) if rating is Rating.HARD else steps[0]
        return self._step(card, now, State.LEARNING, 0, delay)

    def _schedule_steps(self, card: Card, now: datetime, rating: Rating, elapsed_days: float) -> Card:
        grade = rating.grade
        phase = card.state
        difficulty = self.model.next_difficulty(card.difficulty, grade)

        if not self.parameters.enable_short_term:
            retrievability = self.model.retrievability(elapsed_days, card.stability)
            if rating is Rating.AGAIN:
                stability = self.model.forget_stability(card.difficulty, card.stability, retrievability)
            else:
                stability = self.model.recall_stability(card.difficulty, card.stability, retrievability, grade)
            updated = replace(card, stability=stability, difficulty=difficulty)
            if rating is Rating.AGAIN:
                return self._long_term(updated, now, phase, self._interval(updated, elapsed_days, now))
            return self._graduate(updated, now, elapsed_days)

        updated = replace(
            card,
            stability=self.model.short_term_stability(card.stability, grade),
            difficulty=difficulty,
        )
        steps = self.parameters.learning_steps if phase is State.LEARNING else self.parameters.relearning_steps

        if rating is Rating.AGAIN:
            if not steps:
                return self._long_term(updated, now, phase, self._interval(updated, elapsed_days, now))
            return self._step(updated, now, phase, 0, steps[0])
        if rating is Rating.EASY:
            return self._graduate_easy(card, updated, now, elapsed_days)
        if not steps:
            return self._graduate(updated, now, elapsed_days)

        current = min(card.learning_steps, len(steps) - 1)
        if rating is Rating.HARD:
            return self._step(updated, now, phase, current, self._hard_delay(steps, current))
        if current + 1 < len(steps):
            return self._step(updated, now, phase, current + 1, steps[current + 1])
        return self._graduate(updated, now, elapsed_days)

    def _schedule_review(self, card: Card, now: datetime, rating: Rating, elapsed_days: float) -> Card:
        grade = rating.grade
        retrievability = self.model.retrievability(elapsed_days, card.stability)
        difficulty = self.model.next_difficulty(card.difficulty, grade)

        if rating is Rating.AGAIN:
            updated = replace(
                card,
                stability=self.model.forget_stability(card.difficulty, card.stability, retrievability),
                difficulty=difficulty,
                lapses=card.lapses + 1,
                learning_steps=0,
            )
            steps = self.parameters.relearning_steps
            if self.parameters.enable_short_term and steps:
                return self._step(updated, now, State.RELEARNING, 0, steps[0])
            return self._long_term(updated, now, State.RELEARNING, self._interval(updated, elapsed_days, now))

        stabilities = {
            g: self.model.recall_stability(card.difficulty, card.stability, retrievability, g)
            for g in (2, 3, 4)
        }
        intervals = self._ordered_intervals(stabilities)
        updated = replace(card, stability=stabilities[grade], difficulty=difficulty)
        interval = self._fuzz(intervals[grade], elapsed_days, now, updated)
        return self._long_term(updated, now, State.REVIEW, interval)

    # --- Interval helpers ---

    def _ordered_intervals(self, stabilities: dict[int, float]) -> dict[int, int]:
        """Whole-day intervals for Hard/Good/Easy with hard <= good < easy."""
        maximum = self.parameters.maximum_interval
        hard = self.model.next_interval(stabilities[2])
        good = self.model.next_interval(stabilities[3])
        easy = self.model.next_interval(stabilities[4])
        hard = min(hard, good)
        good = min(max(good, hard + 1), maximum)
        easy = min(max(easy, good + 1), maximum)
        return {2: hard, 3: good, 4: easy}

    def _interval(self, card: Card, elapsed_days: float, now: datetime) -> int:
        return self._fuzz(self.model.next_interval(card.stability), elapsed_days, now, card)

    def _fuzz(self, interval: int, elapsed_days: float, now: datetime, card: Card) -> int:
        if not self.parameters.enable_fuzz:
            return interval
        seed = fuzz_seed(now, card.reps, card.difficulty, card.stability)
        return apply_fuzz(
            interval,
            elapsed_days,
            self.parameters.maximum_interval,
            seed,
            self.parameters.fuzz_ranges,
        )

    def _hard_delay(self, steps: tuple[timedelta, ...], index: int) -> timedelta:
        current = steps[index]
        if self.parameters.hard_step_policy is HardStepPolicy.REPEAT:
            return current
        if index + 1 < len(steps):
            return (current + steps[index + 1]) / 2
        return min(current * 1.5, current + DAY)

    def _graduate(self, card: Card, now: datetime, elapsed_days: float) -> Card:
        return self._long_term(card, now, State.REVIEW, self._interval(card, elapsed_days, now))

    def _graduate_easy(self, before: Card, updated: Card, now: datetime, elapsed_days: float) -> Card:
        """Graduate on Easy with an interval beyond what Good would give."""
        good_stability = self.model.short_term_stability(before.stability, 3)
        good_interval = self.model.next_interval(good_stability)
        easy_interval = min(
            max(self.model.next_interval(updated.stability), good_interval + 1),
            self.parameters.maximum_interval,
        )
        interval = self._fuzz(easy_interval, elapsed_days, now, updated)
        return self._long_term(updated, now, State.REVIEW, interval)

    @staticmethod
    def _step(card: Card, now: datetime, state: State, index: int, delay: timedelta) -> Card:
        return replace(
            card,
            state=state,
            learning_steps=index,
            scheduled_days=delay / DAY,
            due=now + delay,
        )

    @staticmethod
    def _long_term(card: Card, now: datetime, state: State, interval: int) -> Card:
        return replace(
            card,
            state=state,
            learning_steps=0,
            scheduled_days=float(interval),
            due=now + timedelta(days=interval),
        )

    # --- Validation and logging ---

    @staticmethod
    def _checked(card: Card) -> Card:
        state = coerce_state(card.state)
        if not isinstance(card.learning_steps, int) or card.learning_steps < 0:
            raise InvalidCardStateError(
                f"learning_steps must be a non-negative integer, got {card.learning_steps!r}"
            )
        return card if state is card.state else replace(card, state=state)

    @staticmethod
    def _build_log(card: Card, rating: Rating, now: datetime, elapsed_days: float) -> ReviewLog:
        return ReviewLog(
            rating=rating,
            state=card.state,
            due=card.due,
            stability=card.stability,
            difficulty=card.difficulty,
            elapsed_days=elapsed_days,
            last_elapsed_days=card.elapsed_days,
            scheduled_days=card.scheduled_days,
            learning_steps=card.learning_steps,
            review_time=now,
        )
