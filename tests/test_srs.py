"""Tests for the SRS engine: FSRS memory model, fuzz, stats, and queue logic."""

import math
from datetime import datetime, timedelta

import pytest

from subflash.srs.card import Card, State, create_empty_card
from subflash.srs.fsrs import FSRS, MAX_STABILITY, MIN_STABILITY
from subflash.srs.fuzz import apply_fuzz, fuzz_range, fuzz_seed
from subflash.srs.parameters import DEFAULT_WEIGHTS as W
from subflash.srs.parameters import SchedulerParameters
from subflash.srs.queue import DueBucket, ReviewQueue, bucket_by_due, due_bucket
from subflash.srs.stats import compute_study_stats, count_reviewed_on

NOW = datetime(2024, 3, 1, 15, 30, 0)

# --- FSRS Memory Model ---


class TestFSRS:
    def setup_method(self) -> None:
        self.fsrs = FSRS(SchedulerParameters())

    def test_initial_stability_is_weight(self) -> None:
        for grade in (1, 2, 3, 4):
            assert self.fsrs.init_stability(grade) == W[grade - 1]

    def test_initial_difficulty(self) -> None:
        assert self.fsrs.init_difficulty(1) == pytest.approx(W[4])
        assert self.fsrs.init_difficulty(3) == pytest.approx(W[4] - math.exp(W[5] * 2) + 1)
        # Easier first ratings mean easier cards
        assert self.fsrs.init_difficulty(4) < self.fsrs.init_difficulty(1)

    def test_next_difficulty(self) -> None:
        damped = 5.0 + (-W[6] * (1 - 3)) * (10 - 5.0) / 9
        expected = W[7] * self.fsrs.init_difficulty(4) + (1 - W[7]) * damped
        assert self.fsrs.next_difficulty(5.0, 1) == pytest.approx(expected)
        assert self.fsrs.next_difficulty(5.0, 4) < 5.0

    def test_difficulty_stays_bounded(self) -> None:
        """Difficulty should remain in [1, 10] regardless of rating history."""
        d = self.fsrs.init_difficulty(3)
        for _ in range(50):
            d = self.fsrs.next_difficulty(d, 4)
        assert 1.0 <= d <= 10.0

        d = self.fsrs.init_difficulty(1)
        for _ in range(50):
            d = self.fsrs.next_difficulty(d, 1)
        assert 1.0 <= d <= 10.0

    def test_retrievability(self) -> None:
        # At time 0, retrievability should be 1
        assert self.fsrs.retrievability(0, 10.0) == 1.0
        # Exponential decay with a 9 * S time constant
        assert self.fsrs.retrievability(5, 10.0) == math.exp(-5 / 90)
        # Over time, retrievability decays
        r1 = self.fsrs.retrievability(5, 10.0)
        r2 = self.fsrs.retrievability(10, 10.0)
        assert 0 < r2 < r1 < 1

    def test_retrievability_without_stability(self) -> None:
        assert self.fsrs.retrievability(3, 0.0) == 0.0

    def test_retrievability_extreme_stability(self) -> None:
        """Retrievability should stay valid with extreme stability values."""
        r = self.fsrs.retrievability(30, 1000.0)
        assert 0.99 < r <= 1.0
        r2 = self.fsrs.retrievability(30, 0.1)
        assert 0 <= r2 < 0.05

    def test_interval_at_target_retention(self) -> None:
        # t = -9 * S * ln(0.9)
        assert self.fsrs.raw_interval(10.0) == pytest.approx(-90 * math.log(0.9))
        assert self.fsrs.next_interval(10.0) == 9
        assert self.fsrs.next_interval(20.0) > self.fsrs.next_interval(10.0)

    def test_interval_minimum_one_day(self) -> None:
        assert self.fsrs.next_interval(0.01) == 1

    def test_interval_capped(self) -> None:
        fsrs = FSRS(SchedulerParameters(maximum_interval=100))
        assert fsrs.next_interval(MAX_STABILITY) == 100

    def test_custom_target_retention(self) -> None:
        fsrs_80 = FSRS(SchedulerParameters(request_retention=0.8))
        fsrs_95 = FSRS(SchedulerParameters(request_retention=0.95))
        # Lower retention target -> longer intervals (more forgetting allowed)
        assert fsrs_80.next_interval(10.0) > fsrs_95.next_interval(10.0)

    def test_recall_stability(self) -> None:
        d, s, r = 5.0, 20.0, 0.9
        base = math.exp(W[8]) * (11 - d) * s ** (-W[9]) * (math.exp(W[10] * (1 - r)) - 1)
        assert self.fsrs.recall_stability(d, s, r, 3) == pytest.approx(s * (1 + base))
        assert self.fsrs.recall_stability(d, s, r, 2) == pytest.approx(s * (1 + base * W[15]))
        assert self.fsrs.recall_stability(d, s, r, 4) == pytest.approx(s * (1 + base * W[16]))

    def test_forget_stability_never_grows(self) -> None:
        for s in (0.5, 5.0, 50.0, 500.0):
            for r in (0.1, 0.5, 0.9, 1.0):
                assert self.fsrs.forget_stability(5.0, s, r) <= s

    def test_forget_stability_formula(self) -> None:
        fsrs = FSRS(SchedulerParameters(enable_short_term=False))
        d, s, r = 5.0, 20.0, 0.8
        expected = W[11] * d ** (-W[12]) * ((s + 1) ** W[13] - 1) * math.exp(W[14] * (1 - r))
        assert fsrs.forget_stability(d, s, r) == pytest.approx(expected)

    def test_out_of_range_inputs_are_clamped(self) -> None:
        """Stored values outside the model's bounds should not crash it."""
        assert self.fsrs.recall_stability(0.0, 0.0, 1.0, 3) >= MIN_STABILITY
        assert self.fsrs.forget_stability(0.0, 0.0, 0.0) == MIN_STABILITY

    def test_short_term_stability(self) -> None:
        s = 3.0
        assert self.fsrs.short_term_stability(s, 1) == pytest.approx(s * math.exp(W[17] * (W[18] - 2)))
        assert self.fsrs.short_term_stability(s, 1) < s
        assert self.fsrs.short_term_stability(s, 3) >= s
        assert self.fsrs.short_term_stability(s, 4) > self.fsrs.short_term_stability(s, 3)


# --- Fuzz ---


class TestFuzz:
    def test_band_grows_with_interval(self) -> None:
        low_10, high_10 = fuzz_range(10, 0, 36500)
        low_100, high_100 = fuzz_range(100, 0, 36500)
        assert high_100 - low_100 > high_10 - low_10

    def test_band_for_known_interval(self) -> None:
        # delta = 1 + 0.15 * 4.5 + 0.1 * 3 = 1.975
        assert fuzz_range(10, 0, 36500) == (8, 12)

    def test_band_respects_maximum(self) -> None:
        low, high = fuzz_range(100, 0, 100)
        assert high == 100
        assert low < high

    def test_band_stays_beyond_elapsed_days(self) -> None:
        low, _ = fuzz_range(10, 9.5, 36500)
        assert low == 10

    def test_short_intervals_untouched(self) -> None:
        assert apply_fuzz(2, 0, 36500, "seed") == 2
        assert apply_fuzz(1, 0, 36500, "seed") == 1

    def test_same_seed_same_interval(self) -> None:
        seed = fuzz_seed(NOW, 4, 5.0, 20.0)
        assert apply_fuzz(30, 20, 36500, seed) == apply_fuzz(30, 20, 36500, seed)

    def test_fuzzed_interval_in_band(self) -> None:
        low, high = fuzz_range(30, 20, 36500)
        for reps in range(50):
            seed = fuzz_seed(NOW, reps, 5.0, 20.0)
            assert low <= apply_fuzz(30, 20, 36500, seed) <= high


# --- Stats ---


def _card(state: State, due: datetime) -> Card:
    return Card(due=due, state=state, stability=1.0, difficulty=5.0)


class TestStudyStats:
    def setup_method(self) -> None:
        self.cards = [
            create_empty_card(NOW - timedelta(days=2)),
            create_empty_card(NOW + timedelta(hours=1)),
            _card(State.LEARNING, NOW - timedelta(minutes=5)),
            _card(State.REVIEW, NOW + timedelta(days=3)),
            _card(State.REVIEW, NOW),
            _card(State.RELEARNING, NOW + timedelta(minutes=10)),
        ]
        self.reviews = [
            (1, NOW - timedelta(hours=2)),
            (1, NOW - timedelta(hours=1)),
            (2, NOW.replace(hour=0, minute=0)),
            (3, NOW - timedelta(days=1)),
        ]

    def test_counts_by_state(self) -> None:
        stats = compute_study_stats(self.cards, self.reviews, NOW)
        assert stats.total_cards == 6
        assert stats.new_cards == 2
        assert stats.learning_cards == 1
        assert stats.review_cards == 2
        assert stats.relearning_cards == 1

    def test_due_includes_new_cards_due_now(self) -> None:
        stats = compute_study_stats(self.cards, self.reviews, NOW)
        assert stats.due_cards == 3

    def test_reviewed_today_counts_distinct_cards(self) -> None:
        assert count_reviewed_on(self.reviews, NOW.date()) == 2

    def test_idempotent(self) -> None:
        first = compute_study_stats(self.cards, self.reviews, NOW)
        second = compute_study_stats(self.cards, self.reviews, NOW)
        assert first == second

    def test_empty_deck(self) -> None:
        stats = compute_study_stats([], [], NOW)
        assert stats.total_cards == 0
        assert stats.reviewed_today == 0


# --- Due buckets ---


class TestDueBuckets:
    def test_bucket_boundaries(self) -> None:
        assert due_bucket(NOW, NOW) == DueBucket.OVERDUE
        assert due_bucket(NOW - timedelta(days=3), NOW) == DueBucket.OVERDUE
        assert due_bucket(NOW + timedelta(hours=1), NOW) == DueBucket.DUE_TODAY
        assert due_bucket(NOW.replace(hour=23, minute=59), NOW) == DueBucket.DUE_TODAY
        assert due_bucket(NOW + timedelta(days=1), NOW) == DueBucket.DUE_THIS_WEEK
        assert due_bucket(NOW + timedelta(days=10), NOW) == DueBucket.LATER

    def test_bucket_by_due_keeps_order(self) -> None:
        cards = [
            _card(State.REVIEW, NOW + timedelta(days=30)),
            _card(State.REVIEW, NOW - timedelta(days=1)),
            _card(State.REVIEW, NOW - timedelta(days=2)),
        ]
        buckets = bucket_by_due(cards, NOW)
        assert buckets[DueBucket.OVERDUE] == [cards[1], cards[2]]
        assert buckets[DueBucket.LATER] == [cards[0]]
        assert buckets[DueBucket.DUE_TODAY] == []


# --- Queue ---


class TestReviewQueue:
    def test_interleaved_no_new(self) -> None:
        queue = ReviewQueue(due_cards=["a", "b", "c"], new_cards=[], total=3)
        assert queue.interleaved() == ["a", "b", "c"]

    def test_interleaved_no_due(self) -> None:
        queue = ReviewQueue(due_cards=[], new_cards=["x", "y"], total=2)
        assert queue.interleaved() == ["x", "y"]

    def test_interleaved_mixes(self) -> None:
        queue = ReviewQueue(
            due_cards=["a", "b", "c", "d", "e", "f"],
            new_cards=["x", "y"],
            total=8,
        )
        result = queue.interleaved()
        # All items present
        assert len(result) == 8
        assert set(result) == {"a", "b", "c", "d", "e", "f", "x", "y"}
        # New cards should not all be at the start
        first_three = result[:3]
        assert not all(item in ["x", "y"] for item in first_three)
