"""Record store for movies, flashcards and review logs.

Async functions over an ``AsyncSession``. A review loads the flashcard,
runs the scheduler, writes the new state and appends the log in one
transaction; nothing else writes scheduling fields.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

from sqlalchemy import Select, delete, distinct, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from subflash.config import utcnow
from subflash.models.flashcard import Flashcard
from subflash.models.movie import Movie
from subflash.models.review_log import ReviewLog
from subflash.srs.card import Rating, ReviewLog as ReviewLogValue, coerce_rating, create_empty_card
from subflash.srs.records import apply_card_to_record, card_from_record, log_to_record
from subflash.srs.scheduler import Scheduler
from subflash.srs.stats import StudyStats, compute_study_stats

logger = logging.getLogger(__name__)


class RecordNotFoundError(LookupError):
    """No record with the requested id."""


@dataclass
class DeletionStats:
    """What deleting a movie would remove."""

    flashcard_count: int
    review_log_count: int
    flashcards_with_notes: int


def _day_range(day: date) -> tuple[datetime, datetime]:
    start = datetime.combine(day, time.min)
    return start, start + timedelta(days=1)


# --- Movies ---


async def create_movie(
    db: AsyncSession,
    title: str,
    mp4_path: str,
    srt_path: str | None = None,
) -> Movie:
    movie = Movie(title=title, mp4_path=mp4_path, srt_path=srt_path)
    db.add(movie)
    await db.commit()
    await db.refresh(movie)
    logger.info("Created movie %d: %s", movie.id, title)
    return movie


async def get_movie(db: AsyncSession, movie_id: int) -> Movie:
    movie = await db.get(Movie, movie_id)
    if movie is None:
        raise RecordNotFoundError(f"Movie {movie_id} not found")
    return movie


async def list_movies(db: AsyncSession) -> list[Movie]:
    result = await db.execute(select(Movie).order_by(Movie.updated.desc(), Movie.id.desc()))
    return list(result.scalars().all())


def _recent_first(stmt: Select) -> Select:
    return stmt.order_by(Movie.last_accessed.desc().nulls_last(), Movie.updated.desc(), Movie.id.desc())


async def search_movies(db: AsyncSession, query: str, limit: int = 50) -> list[Movie]:
    """Movies whose title contains ``query`` (case-insensitive), recently opened first."""
    stmt = _recent_first(select(Movie).where(Movie.title.icontains(query, autoescape=True))).limit(limit)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def get_recent_movies(db: AsyncSession, limit: int = 10) -> list[Movie]:
    """Movies ordered by when they were last opened; never-opened ones last."""
    result = await db.execute(_recent_first(select(Movie)).limit(limit))
    return list(result.scalars().all())


async def get_movie_by_path(db: AsyncSession, mp4_path: str) -> Movie | None:
    """The movie registered for a video file, if any."""
    stmt = select(Movie).where(Movie.mp4_path == mp4_path).order_by(Movie.id.asc()).limit(1)
    return (await db.execute(stmt)).scalar_one_or_none()


async def update_movie(
    db: AsyncSession,
    movie_id: int,
    title: str | None = None,
    mp4_path: str | None = None,
    srt_path: str | None = None,
    srt_delay: float | None = None,
    last_position: float | None = None,
) -> Movie:
    """Edit a movie's metadata, subtitle offset or playback position."""
    movie = await get_movie(db, movie_id)
    if last_position is not None and last_position < 0:
        raise ValueError(f"last_position must not be negative, got {last_position}")
    if title is not None:
        movie.title = title
    if mp4_path is not None:
        movie.mp4_path = mp4_path
    if srt_path is not None:
        movie.srt_path = srt_path
    if srt_delay is not None:
        movie.srt_delay = srt_delay
    if last_position is not None:
        movie.last_position = last_position
        movie.last_accessed = utcnow()
    await db.commit()
    await db.refresh(movie)
    logger.info("Updated movie %d", movie_id)
    return movie


async def touch_movie(db: AsyncSession, movie_id: int, now: datetime | None = None) -> Movie:
    """Mark a movie as opened now."""
    movie = await get_movie(db, movie_id)
    movie.last_accessed = now or utcnow()
    await db.commit()
    await db.refresh(movie)
    return movie


async def movie_deletion_stats(db: AsyncSession, movie_id: int) -> DeletionStats:
    """Count the flashcards, notes and review logs owned by a movie."""
    await get_movie(db, movie_id)
    card_ids = select(Flashcard.id).where(Flashcard.movie_id == movie_id)

    flashcard_count = (
        await db.execute(select(func.count(Flashcard.id)).where(Flashcard.movie_id == movie_id))
    ).scalar() or 0
    with_notes = (
        await db.execute(
            select(func.count(Flashcard.id)).where(
                Flashcard.movie_id == movie_id,
                Flashcard.free_space.is_not(None),
                Flashcard.free_space != "",
            )
        )
    ).scalar() or 0
    log_count = (
        await db.execute(select(func.count(ReviewLog.id)).where(ReviewLog.flashcard_id.in_(card_ids)))
    ).scalar() or 0

    return DeletionStats(
        flashcard_count=flashcard_count,
        review_log_count=log_count,
        flashcards_with_notes=with_notes,
    )


async def delete_movie(db: AsyncSession, movie_id: int) -> None:
    """Delete a movie with its flashcards and their review logs."""
    movie = await get_movie(db, movie_id)
    card_ids = select(Flashcard.id).where(Flashcard.movie_id == movie_id)
    await db.execute(delete(ReviewLog).where(ReviewLog.flashcard_id.in_(card_ids)))
    await db.execute(delete(Flashcard).where(Flashcard.movie_id == movie_id))
    await db.delete(movie)
    await db.commit()
    logger.info("Deleted movie %d with its flashcards", movie_id)


# --- Flashcards ---


async def create_flashcard(
    db: AsyncSession,
    movie_id: int,
    subtitle_text: str,
    start_time: float = 0.0,
    end_time: float = 0.0,
    free_space: str | None = None,
    now: datetime | None = None,
) -> Flashcard:
    """Create a flashcard from a subtitle line, new and due immediately."""
    await get_movie(db, movie_id)
    flashcard = Flashcard(
        movie_id=movie_id,
        subtitle_text=subtitle_text,
        free_space=free_space,
        start_time=start_time,
        end_time=end_time,
    )
    apply_card_to_record(create_empty_card(now or utcnow()), flashcard)
    db.add(flashcard)
    await db.commit()
    await db.refresh(flashcard)
    logger.info("Created flashcard %d for movie %d", flashcard.id, movie_id)
    return flashcard


async def get_flashcard(db: AsyncSession, flashcard_id: int) -> Flashcard:
    flashcard = await db.get(Flashcard, flashcard_id)
    if flashcard is None:
        raise RecordNotFoundError(f"Flashcard {flashcard_id} not found")
    return flashcard


async def list_flashcards(
    db: AsyncSession,
    movie_id: int | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[Flashcard]:
    """Flashcards newest first, optionally for one movie."""
    stmt = select(Flashcard).order_by(Flashcard.id.desc()).limit(limit).offset(offset)
    if movie_id is not None:
        stmt = stmt.where(Flashcard.movie_id == movie_id)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def list_due_flashcards(
    db: AsyncSession,
    now: datetime | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[Flashcard]:
    """Flashcards due at ``now``, earliest due first."""
    now = now or utcnow()
    stmt = (
        select(Flashcard)
        .where(Flashcard.due <= now)
        .order_by(Flashcard.due.asc(), Flashcard.id.asc())
        .limit(limit)
        .offset(offset)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def update_flashcard_content(
    db: AsyncSession,
    flashcard_id: int,
    subtitle_text: str | None = None,
    free_space: str | None = None,
    start_time: float | None = None,
    end_time: float | None = None,
) -> Flashcard:
    """Edit a flashcard's content. Scheduling fields only change by review."""
    flashcard = await get_flashcard(db, flashcard_id)
    if subtitle_text is not None:
        flashcard.subtitle_text = subtitle_text
    if free_space is not None:
        flashcard.free_space = free_space
    if start_time is not None:
        flashcard.start_time = start_time
    if end_time is not None:
        flashcard.end_time = end_time
    await db.commit()
    await db.refresh(flashcard)
    return flashcard


async def delete_flashcard(db: AsyncSession, flashcard_id: int) -> None:
    """Delete a flashcard and its review logs."""
    flashcard = await get_flashcard(db, flashcard_id)
    await db.execute(delete(ReviewLog).where(ReviewLog.flashcard_id == flashcard_id))
    await db.delete(flashcard)
    await db.commit()
    logger.info("Deleted flashcard %d", flashcard_id)


# --- Reviews ---


def _locked_flashcard_query(flashcard_id: int) -> Select:
    """Select one flashcard FOR UPDATE; every scheduling write goes through it."""
    return select(Flashcard).where(Flashcard.id == flashcard_id).with_for_update()


async def _lock_flashcard(db: AsyncSession, flashcard_id: int) -> Flashcard:
    result = await db.execute(_locked_flashcard_query(flashcard_id))
    flashcard = result.scalar_one_or_none()
    if flashcard is None:
        raise RecordNotFoundError(f"Flashcard {flashcard_id} not found")
    return flashcard


async def review_flashcard(
    db: AsyncSession,
    flashcard_id: int,
    rating: Rating | str,
    scheduler: Scheduler,
    now: datetime | None = None,
) -> tuple[Flashcard, ReviewLog]:
    """Apply a rating to a flashcard and append the review log.

    The card row is selected FOR UPDATE so concurrent reviews of one card
    serialize on databases that support row locks.

    Returns:
        The updated flashcard record and the new review log record.
    """
    rating = coerce_rating(rating)
    now = now or utcnow()
    flashcard = await _lock_flashcard(db, flashcard_id)

    outcome = scheduler.next(card_from_record(flashcard), now, rating)
    apply_card_to_record(outcome.card, flashcard)
    log_record = log_to_record(outcome.log, flashcard.id)
    db.add(log_record)
    await db.commit()
    await db.refresh(flashcard)

    logger.info(
        "Reviewed flashcard %d as %s: %s -> %s, due %s",
        flashcard_id,
        rating.value,
        outcome.log.state.value,
        flashcard.state,
        flashcard.due.isoformat(),
    )
    return flashcard, log_record


async def forget_flashcard(
    db: AsyncSession,
    flashcard_id: int,
    scheduler: Scheduler,
    reset_count: bool = False,
    now: datetime | None = None,
) -> tuple[Flashcard, ReviewLog]:
    """Reset a flashcard to New and log it as a Manual review."""
    now = now or utcnow()
    flashcard = await _lock_flashcard(db, flashcard_id)
    outcome = scheduler.forget(card_from_record(flashcard), now, reset_count=reset_count)
    apply_card_to_record(outcome.card, flashcard)
    log_record = log_to_record(outcome.log, flashcard.id)
    db.add(log_record)
    await db.commit()
    await db.refresh(flashcard)
    logger.info("Reset flashcard %d to New", flashcard_id)
    return flashcard, log_record


async def create_review_log(db: AsyncSession, flashcard_id: int, log: ReviewLogValue) -> ReviewLog:
    """Store a review log produced outside ``review_flashcard``."""
    await get_flashcard(db, flashcard_id)
    record = log_to_record(log, flashcard_id)
    db.add(record)
    await db.commit()
    await db.refresh(record)
    return record


async def list_review_logs(
    db: AsyncSession,
    flashcard_id: int,
    limit: int = 50,
    offset: int = 0,
    newest_first: bool = True,
) -> list[ReviewLog]:
    """Review logs of one flashcard ordered by review time."""
    await get_flashcard(db, flashcard_id)
    order = ReviewLog.review_time.desc() if newest_first else ReviewLog.review_time.asc()
    stmt = (
        select(ReviewLog)
        .where(ReviewLog.flashcard_id == flashcard_id)
        .order_by(order, ReviewLog.id.desc() if newest_first else ReviewLog.id.asc())
        .limit(limit)
        .offset(offset)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def count_cards_reviewed_on(db: AsyncSession, day: date) -> int:
    """Number of distinct flashcards reviewed on ``day``."""
    start, end = _day_range(day)
    stmt = select(func.count(distinct(ReviewLog.flashcard_id))).where(
        ReviewLog.review_time >= start,
        ReviewLog.review_time < end,
    )
    return (await db.execute(stmt)).scalar() or 0


# --- Statistics ---


async def fetch_study_stats(
    db: AsyncSession,
    movie_id: int | None = None,
    now: datetime | None = None,
) -> StudyStats:
    """Study statistics for one movie, or for every flashcard."""
    now = now or utcnow()
    movie_ids = [movie_id] if movie_id is not None else None
    grouped = await _grouped_stats(db, movie_ids, now)
    if movie_id is not None:
        return grouped.get(movie_id, StudyStats())
    return grouped.get(None, StudyStats())


async def fetch_multiple_movie_stats(
    db: AsyncSession,
    movie_ids: Sequence[int],
    now: datetime | None = None,
) -> dict[int, StudyStats]:
    """Study statistics per movie, with two queries for all of them."""
    if not movie_ids:
        return {}
    now = now or utcnow()
    grouped = await _grouped_stats(db, list(movie_ids), now)
    return {movie_id: grouped.get(movie_id, StudyStats()) for movie_id in movie_ids}


async def _grouped_stats(
    db: AsyncSession,
    movie_ids: list[int] | None,
    now: datetime,
) -> dict[int | None, StudyStats]:
    """Stats keyed by movie id, or under ``None`` for all flashcards."""
    card_stmt = select(Flashcard)
    start, end = _day_range(now.date())
    review_stmt = (
        select(Flashcard.movie_id, ReviewLog.flashcard_id, ReviewLog.review_time)
        .join(Flashcard, Flashcard.id == ReviewLog.flashcard_id)
        .where(ReviewLog.review_time >= start, ReviewLog.review_time < end)
    )
    if movie_ids is not None:
        card_stmt = card_stmt.where(Flashcard.movie_id.in_(movie_ids))
        review_stmt = review_stmt.where(Flashcard.movie_id.in_(movie_ids))

    flashcards = list((await db.execute(card_stmt)).scalars().all())
    reviews = (await db.execute(review_stmt)).all()

    def key(movie_id: int) -> int | None:
        return movie_id if movie_ids is not None else None

    cards_by_key: dict[int | None, list] = {}
    for flashcard in flashcards:
        cards_by_key.setdefault(key(flashcard.movie_id), []).append(card_from_record(flashcard))
    reviews_by_key: dict[int | None, list] = {}
    for movie_id, flashcard_id, review_time in reviews:
        reviews_by_key.setdefault(key(movie_id), []).append((flashcard_id, review_time))

    return {
        k: compute_study_stats(cards_by_key.get(k, []), reviews_by_key.get(k, []), now)
        for k in set(cards_by_key) | set(reviews_by_key)
    }
