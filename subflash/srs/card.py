"""Card state model for the FSRS scheduler.

A ``Card`` is the scheduling state of one flashcard; a ``ReviewLog`` is the
immutable record of one review of it. Both are plain values: the scheduler
never mutates a card in place, it returns a new one.

State and rating values are the literal strings the record store uses
("New", "Good", ...). Numeric grades only exist for the memory model.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from subflash.config import utcnow
from subflash.srs.errors import InvalidCardStateError, InvalidRatingError

# Difficulty of a card that has never been reviewed. Never read by the
# memory model: the first rating derives the real difficulty.
UNINITIALIZED_DIFFICULTY = 0.0


class State(Enum):
    """Lifecycle phase of a card."""

    NEW = "New"
    LEARNING = "Learning"
    REVIEW = "Review"
    RELEARNING = "Relearning"


class Rating(Enum):
    """How well a card was recalled. Manual marks a log-only entry."""

    MANUAL = "Manual"
    AGAIN = "Again"
    HARD = "Hard"
    GOOD = "Good"
    EASY = "Easy"

    @property
    def grade(self) -> int:
        """Numeric grade used by the memory model (Manual=0 ... Easy=4)."""
        return _GRADES[self]


_GRADES = {
    Rating.MANUAL: 0,
    Rating.AGAIN: 1,
    Rating.HARD: 2,
    Rating.GOOD: 3,
    Rating.EASY: 4,
}

SCHEDULING_RATINGS = (Rating.AGAIN, Rating.HARD, Rating.GOOD, Rating.EASY)


def coerce_state(value: State | str) -> State:
    """Return ``value`` as a State, accepting the store's literal strings."""
    if isinstance(value, State):
        return value
    try:
        return State(value)
    except ValueError:
        raise InvalidCardStateError(f"Unknown card state: {value!r}") from None


def coerce_rating(value: Rating | str | int) -> Rating:
    """Return ``value`` as a Rating.

    Accepts Rating members, their literal strings, and numeric grades 0-4.
    """
    if isinstance(value, Rating):
        return value
    if isinstance(value, int) and not isinstance(value, bool):
        for rating, grade in _GRADES.items():
            if grade == value:
                return rating
    elif isinstance(value, str):
        try:
            return Rating(value)
        except ValueError:
            pass
    raise InvalidRatingError(f"Unknown rating: {value!r}")


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _parse_iso(value: str | datetime | None) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        # Stores such as PocketBase write "2024-01-01 10:00:00.000Z"
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is not None:
        # Naive UTC like utcnow() and the database columns
        parsed = parsed.astimezone(UTC).replace(tzinfo=None)
    return parsed


@dataclass
class Card:
    """Scheduling state of a single flashcard."""

    due: datetime
    stability: float = 0.0  # Days until retrievability decays to the target
    difficulty: float = UNINITIALIZED_DIFFICULTY  # 1-10 once reviewed
    elapsed_days: float = 0.0  # Days between the last two reviews
    scheduled_days: float = 0.0  # Interval chosen at the last review
    reps: int = 0
    lapses: int = 0
    state: State = State.NEW
    last_review: datetime | None = None
    learning_steps: int = 0  # Index into the (re)learning steps

    def to_dict(self) -> dict[str, Any]:
        """Convert the card to the record store's field layout."""
        return {
            "due": _iso(self.due),
            "stability": self.stability,
            "difficulty": self.difficulty,
            "elapsed_days": self.elapsed_days,
            "scheduled_days": self.scheduled_days,
            "reps": self.reps,
            "lapses": self.lapses,
            "state": self.state.value,
            "last_review": _iso(self.last_review),
            "learning_steps": self.learning_steps,
        }

    @staticmethod
    def from_dict(source: dict[str, Any]) -> Card:
        """Build a card from a record store dictionary."""
        return Card(
            due=_parse_iso(source["due"]),
            stability=float(source.get("stability") or 0.0),
            difficulty=float(source.get("difficulty") or 0.0),
            elapsed_days=float(source.get("elapsed_days") or 0.0),
            scheduled_days=float(source.get("scheduled_days") or 0.0),
            reps=int(source.get("reps") or 0),
            lapses=int(source.get("lapses") or 0),
            state=coerce_state(source.get("state") or State.NEW),
            last_review=_parse_iso(source.get("last_review")),
            learning_steps=int(source.get("learning_steps") or 0),
        )


@dataclass(frozen=True)
class ReviewLog:
    """Record of one review.

    ``state``, ``due``, ``stability``, ``difficulty``, ``scheduled_days`` and
    ``learning_steps`` are the card's values *before* the review, so the
    review can be undone. ``elapsed_days`` is the value computed for this
    review and ``last_elapsed_days`` the one stored on the card before it.
    """

    rating: Rating
    state: State
    due: datetime
    stability: float
    difficulty: float
    elapsed_days: float
    last_elapsed_days: float
    scheduled_days: float
    learning_steps: int
    review_time: datetime

    def to_dict(self) -> dict[str, Any]:
        """Convert the log to the record store's field layout."""
        return {
            "rating": self.rating.value,
            "state": self.state.value,
            "due": _iso(self.due),
            "stability": self.stability,
            "difficulty": self.difficulty,
            "elapsed_days": self.elapsed_days,
            "last_elapsed_days": self.last_elapsed_days,
            "scheduled_days": self.scheduled_days,
            "learning_steps": self.learning_steps,
            "review_time": _iso(self.review_time),
        }

    @staticmethod
    def from_dict(source: dict[str, Any]) -> ReviewLog:
        """Build a log from a record store dictionary."""
        return ReviewLog(
            rating=coerce_rating(source["rating"]),
            state=coerce_state(source["state"]),
            due=_parse_iso(source["due"]),
            stability=float(source.get("stability") or 0.0),
            difficulty=float(source.get("difficulty") or 0.0),
            elapsed_days=float(source.get("elapsed_days") or 0.0),
            last_elapsed_days=float(source.get("last_elapsed_days") or 0.0),
            scheduled_days=float(source.get("scheduled_days") or 0.0),
            learning_steps=int(source.get("learning_steps") or 0),
            review_time=_parse_iso(source["review_time"]),
        )


@dataclass
class SchedulingResult:
    """The updated card and the log produced by one review."""

    card: Card
    log: ReviewLog


def create_empty_card(now: datetime | None = None) -> Card:
    """Create a never-reviewed card that is due immediately."""
    return Card(due=now or utcnow())
