"""API routes for study statistics and dashboard data."""

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from subflash import store
from subflash.api.schemas import DueBucketsResponse, StudyStatsResponse
from subflash.config import utcnow
from subflash.database import get_session
from subflash.models.flashcard import Flashcard
from subflash.srs.queue import DueBucket, bucket_by_due
from subflash.srs.stats import StudyStats

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/stats", tags=["stats"])


def _stats_response(stats: StudyStats) -> StudyStatsResponse:
    return StudyStatsResponse(
        total_cards=stats.total_cards,
        due_cards=stats.due_cards,
        reviewed_today=stats.reviewed_today,
        new_cards=stats.new_cards,
        learning_cards=stats.learning_cards,
        review_cards=stats.review_cards,
        relearning_cards=stats.relearning_cards,
    )


@router.get("", response_model=StudyStatsResponse)
async def get_study_stats(db: AsyncSession = Depends(get_session)) -> StudyStatsResponse:
    """Statistics across every flashcard."""
    return _stats_response(await store.fetch_study_stats(db))


@router.get("/movies", response_model=dict[int, StudyStatsResponse])
async def get_multiple_movie_stats(
    movie_ids: list[int] = Query(default=[]),
    db: AsyncSession = Depends(get_session),
) -> dict[int, StudyStatsResponse]:
    """Statistics for several movies at once."""
    stats = await store.fetch_multiple_movie_stats(db, movie_ids)
    return {movie_id: _stats_response(s) for movie_id, s in stats.items()}


@router.get("/movies/{movie_id}", response_model=StudyStatsResponse)
async def get_movie_stats(
    movie_id: int,
    db: AsyncSession = Depends(get_session),
) -> StudyStatsResponse:
    """Statistics for one movie's flashcards."""
    await store.get_movie(db, movie_id)
    return _stats_response(await store.fetch_study_stats(db, movie_id=movie_id))


@router.get("/due-buckets", response_model=DueBucketsResponse)
async def get_due_buckets(
    movie_id: int | None = None,
    db: AsyncSession = Depends(get_session),
) -> DueBucketsResponse:
    """Count flashcards that are overdue, due today, this week, or later."""
    stmt = select(Flashcard.id, Flashcard.due)
    if movie_id is not None:
        stmt = stmt.where(Flashcard.movie_id == movie_id)
    rows = (await db.execute(stmt)).all()
    buckets = bucket_by_due(rows, utcnow())
    return DueBucketsResponse(
        overdue=len(buckets[DueBucket.OVERDUE]),
        due_today=len(buckets[DueBucket.DUE_TODAY]),
        due_this_week=len(buckets[DueBucket.DUE_THIS_WEEK]),
        later=len(buckets[DueBucket.LATER]),
    )
