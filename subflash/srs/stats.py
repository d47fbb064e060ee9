"""Study statistics over a set of cards.

Pure aggregation: the store fetches the cards and the day's reviews, these
functions only count. Running them twice over the same input gives the same
numbers.
"""

from collections.abc import Hashable, Iterable
from dataclasses import dataclass
from datetime import date, datetime

from subflash.srs.card import Card, State


@dataclass
class StudyStats:
    """Card counts for a deck (one movie, several movies, or everything)."""

    total_cards: int = 0
    due_cards: int = 0
    reviewed_today: int = 0  # Distinct cards, not reviews
    new_cards: int = 0
    learning_cards: int = 0
    review_cards: int = 0
    relearning_cards: int = 0


def count_reviewed_on(reviews: Iterable[tuple[Hashable, datetime]], day: date) -> int:
    """Count distinct card ids with at least one review on ``day``.

    Args:
        reviews: (card_id, review_time) pairs.
        day: Calendar day, in the same timezone as the review times.
    """
    return len({card_id for card_id, review_time in reviews if review_time.date() == day})


def compute_study_stats(
    cards: Iterable[Card],
    reviews: Iterable[tuple[Hashable, datetime]],
    now: datetime,
) -> StudyStats:
    """Aggregate lifecycle counts and today's activity.

    Args:
        cards: Scheduling state of every card in the deck.
        reviews: (card_id, review_time) pairs for the deck's cards; reviews
            on other days are ignored.
        now: Reference time for "due" and "today".
    """
    stats = StudyStats(reviewed_today=count_reviewed_on(reviews, now.date()))
    for card in cards:
        stats.total_cards += 1
        if card.due <= now:
            stats.due_cards += 1
        if card.state is State.NEW:
            stats.new_cards += 1
        elif card.state is State.LEARNING:
            stats.learning_cards += 1
        elif card.state is State.REVIEW:
            stats.review_cards += 1
        elif card.state is State.RELEARNING:
            stats.relearning_cards += 1
    return stats
