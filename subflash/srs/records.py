"""Conversion between ORM records and scheduler values.

The only place where stored literal strings become ``State``/``Rating``
members and back. Everything on the scheduler side of this module works with
enums, everything on the database side with strings.
"""

from subflash.models.flashcard import Flashcard
from subflash.models.review_log import ReviewLog as ReviewLogRecord
from subflash.srs.card import Card, ReviewLog, coerce_rating, coerce_state


def card_from_record(flashcard: Flashcard) -> Card:
    """Read the scheduling state out of a flashcard record."""
    return Card(
        due=flashcard.due,
        stability=flashcard.stability,
        difficulty=flashcard.difficulty,
        elapsed_days=flashcard.elapsed_days,
        scheduled_days=flashcard.scheduled_days,
        reps=flashcard.reps,
        lapses=flashcard.lapses,
        state=coerce_state(flashcard.state),
        last_review=flashcard.last_review,
        learning_steps=flashcard.learning_steps,
    )


def apply_card_to_record(card: Card, flashcard: Flashcard) -> None:
    """Copy a card's scheduling state onto a flashcard record."""
    flashcard.due = card.due
    flashcard.stability = card.stability
    flashcard.difficulty = card.difficulty
    flashcard.elapsed_days = card.elapsed_days
    flashcard.scheduled_days = card.scheduled_days
    flashcard.reps = card.reps
    flashcard.lapses = card.lapses
    flashcard.state = card.state.value
    flashcard.last_review = card.last_review
    flashcard.learning_steps = card.learning_steps


def log_to_record(log: ReviewLog, flashcard_id: int) -> ReviewLogRecord:
    """Build a new review log record for ``flashcard_id``."""
    return ReviewLogRecord(
        flashcard_id=flashcard_id,
        rating=log.rating.value,
        state=log.state.value,
        due=log.due,
        stability=log.stability,
        difficulty=log.difficulty,
        elapsed_days=log.elapsed_days,
        last_elapsed_days=log.last_elapsed_days,
        scheduled_days=log.scheduled_days,
        learning_steps=log.learning_steps,
        review_time=log.review_time,
    )


def log_from_record(record: ReviewLogRecord) -> ReviewLog:
    """Read a stored review log back into a scheduler value."""
    return ReviewLog(
        rating=coerce_rating(record.rating),
        state=coerce_state(record.state),
        due=record.due,
        stability=record.stability,
        difficulty=record.difficulty,
        elapsed_days=record.elapsed_days,
        last_elapsed_days=record.last_elapsed_days,
        scheduled_days=record.scheduled_days,
        learning_steps=record.learning_steps,
        review_time=record.review_time,
    )
