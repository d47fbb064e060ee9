"""Queue management for study sessions.

Handles card prioritization, mixing new cards with reviews,
session limits to prevent overwhelm, and due-date buckets for display.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, time, timedelta
from enum import Enum
from typing import Protocol, TypeVar

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from subflash.config import settings, utcnow
from subflash.models.flashcard import Flashcard
from subflash.srs.card import State

logger = logging.getLogger(__name__)


class DueBucket(Enum):
    """Where a card's due date falls relative to now."""

    OVERDUE = "overdue"  # Due now or earlier
    DUE_TODAY = "due_today"  # Later today
    DUE_THIS_WEEK = "due_this_week"  # Within the next seven days
    LATER = "later"


class HasDue(Protocol):
    due: datetime


T = TypeVar("T", bound=HasDue)


def due_bucket(due: datetime, now: datetime) -> DueBucket:
    """Classify a due date against ``now``."""
    if due <= now:
        return DueBucket.OVERDUE
    start_of_today = datetime.combine(now.date(), time.min, tzinfo=now.tzinfo)
    if due < start_of_today + timedelta(days=1):
        return DueBucket.DUE_TODAY
    if due < start_of_today + timedelta(days=7):
        return DueBucket.DUE_THIS_WEEK
    return DueBucket.LATER


def bucket_by_due(items: Iterable[T], now: datetime) -> dict[DueBucket, list[T]]:
    """Group cards (anything with a ``due``) by due bucket, keeping input order."""
    buckets: dict[DueBucket, list[T]] = {bucket: [] for bucket in DueBucket}
    for item in items:
        buckets[due_bucket(item.due, now)].append(item)
    return buckets


@dataclass
class QueueConfig:
    """Configuration for queue building."""

    max_reviews: int = settings.max_reviews_per_session
    max_new: int = settings.max_new_cards_per_session
    new_card_ratio: float = 0.25  # 1 new card per 4 reviews


@dataclass
class ReviewQueue:
    """A prepared queue of cards for a study session."""

    due_cards: list[Flashcard] = field(default_factory=list)
    new_cards: list[Flashcard] = field(default_factory=list)
    total: int = 0

    def interleaved(self) -> list[Flashcard]:
        """Return cards interleaved: mostly reviews with new cards mixed in.

        Strategy: Insert new cards at regular intervals within the review queue
        to maintain engagement without overwhelming with unfamiliar material.
        """
        if not self.new_cards:
            return list(self.due_cards)
        if not self.due_cards:
            return list(self.new_cards)

        result: list[Flashcard] = []
        due = list(self.due_cards)
        new = list(self.new_cards)

        # Insert a new card every N reviews
        interval = max(1, len(due) // (len(new) + 1))
        new_idx = 0

        for i, card in enumerate(due):
            result.append(card)
            if new_idx < len(new) and (i + 1) % interval == 0:
                result.append(new[new_idx])
                new_idx += 1

        # Append any remaining new cards at the end
        result.extend(new[new_idx:])
        return result


async def build_queue(
    session: AsyncSession,
    movie_id: int | None = None,
    config: QueueConfig | None = None,
    now: datetime | None = None,
) -> ReviewQueue:
    """Build a study queue, optionally limited to one movie's flashcards.

    Fetches due cards (most overdue first) and new cards (never reviewed),
    respecting session limits.

    Args:
        session: Database session.
        movie_id: Only queue this movie's cards when given.
        config: Queue configuration (limits, ratios).
        now: Current time (defaults to utcnow).

    Returns:
        A ReviewQueue with due and new cards.
    """
    config = config or QueueConfig()
    now = now or utcnow()
    scope = [Flashcard.movie_id == movie_id] if movie_id is not None else []

    due_stmt = (
        select(Flashcard)
        .where(
            and_(
                *scope,
                Flashcard.state != State.NEW.value,
                Flashcard.due <= now,
            )
        )
        .order_by(Flashcard.due.asc())  # Most overdue first
        .limit(config.max_reviews)
    )
    due_result = await session.execute(due_stmt)
    due_cards = list(due_result.scalars().all())

    # Calculate how many new cards to introduce
    new_card_slots = min(
        config.max_new,
        max(1, int(len(due_cards) * config.new_card_ratio)),
    )

    new_stmt = (
        select(Flashcard)
        .where(and_(*scope, Flashcard.state == State.NEW.value))
        .order_by(Flashcard.id.asc())  # Oldest first (FIFO)
        .limit(new_card_slots)
    )
    new_result = await session.execute(new_stmt)
    new_cards = list(new_result.scalars().all())

    queue = ReviewQueue(
        due_cards=due_cards,
        new_cards=new_cards,
        total=len(due_cards) + len(new_cards),
    )

    logger.info(
        "Built queue for movie %s: %d due + %d new = %d total",
        movie_id if movie_id is not None else "*",
        len(due_cards),
        len(new_cards),
        queue.total,
    )
    return queue
