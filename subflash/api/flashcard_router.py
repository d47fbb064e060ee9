"""API routes for flashcards and their reviews."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from subflash import store
from subflash.api.dependencies import get_scheduler
from subflash.api.schemas import (
    FlashcardCreateRequest,
    FlashcardResponse,
    FlashcardUpdateRequest,
    ForgetRequest,
    PreviewOption,
    PreviewResponse,
    QueueResponse,
    ReviewLogResponse,
    ReviewRequest,
    ReviewResponse,
)
from subflash.config import utcnow
from subflash.database import get_session
from subflash.srs.card import Rating
from subflash.srs.queue import build_queue
from subflash.srs.records import card_from_record
from subflash.srs.scheduler import Scheduler

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/flashcards", tags=["flashcards"])


def _review_response(flashcard, log) -> ReviewResponse:
    return ReviewResponse(
        flashcard=FlashcardResponse.model_validate(flashcard),
        log=ReviewLogResponse.model_validate(log),
    )


@router.post("", response_model=FlashcardResponse, status_code=201)
async def create_flashcard(
    request: FlashcardCreateRequest,
    db: AsyncSession = Depends(get_session),
) -> FlashcardResponse:
    """Create a new flashcard, due immediately."""
    flashcard = await store.create_flashcard(
        db,
        movie_id=request.movie_id,
        subtitle_text=request.subtitle_text,
        start_time=request.start_time,
        end_time=request.end_time,
        free_space=request.free_space,
    )
    return FlashcardResponse.model_validate(flashcard)


@router.get("", response_model=list[FlashcardResponse])
async def list_flashcards(
    movie_id: int | None = None,
    limit: int = 50,
    offset: int = 0,
    db: AsyncSession = Depends(get_session),
) -> list[FlashcardResponse]:
    """List flashcards newest first, optionally for one movie."""
    flashcards = await store.list_flashcards(db, movie_id=movie_id, limit=limit, offset=offset)
    return [FlashcardResponse.model_validate(f) for f in flashcards]


@router.get("/due", response_model=list[FlashcardResponse])
async def list_due_flashcards(
    limit: int = 50,
    offset: int = 0,
    db: AsyncSession = Depends(get_session),
) -> list[FlashcardResponse]:
    """List flashcards that are due now, earliest first."""
    flashcards = await store.list_due_flashcards(db, limit=limit, offset=offset)
    return [FlashcardResponse.model_validate(f) for f in flashcards]


@router.get("/queue", response_model=QueueResponse)
async def get_queue(
    movie_id: int | None = None,
    db: AsyncSession = Depends(get_session),
) -> QueueResponse:
    """Build a study queue: due reviews with new cards mixed in."""
    queue = await build_queue(db, movie_id=movie_id)
    return QueueResponse(
        due_cards=len(queue.due_cards),
        new_cards=len(queue.new_cards),
        flashcards=[FlashcardResponse.model_validate(f) for f in queue.interleaved()],
    )


@router.get("/{flashcard_id}", response_model=FlashcardResponse)
async def get_flashcard(
    flashcard_id: int,
    db: AsyncSession = Depends(get_session),
) -> FlashcardResponse:
    flashcard = await store.get_flashcard(db, flashcard_id)
    return FlashcardResponse.model_validate(flashcard)


@router.patch("/{flashcard_id}", response_model=FlashcardResponse)
async def update_flashcard(
    flashcard_id: int,
    request: FlashcardUpdateRequest,
    db: AsyncSession = Depends(get_session),
) -> FlashcardResponse:
    """Edit a flashcard's text, timing or notes."""
    flashcard = await store.update_flashcard_content(
        db,
        flashcard_id,
        subtitle_text=request.subtitle_text,
        free_space=request.free_space,
        start_time=request.start_time,
        end_time=request.end_time,
    )
    return FlashcardResponse.model_validate(flashcard)


@router.delete("/{flashcard_id}", status_code=204)
async def delete_flashcard(flashcard_id: int, db: AsyncSession = Depends(get_session)) -> None:
    await store.delete_flashcard(db, flashcard_id)


@router.post("/{flashcard_id}/review", response_model=ReviewResponse)
async def review_flashcard(
    flashcard_id: int,
    request: ReviewRequest,
    db: AsyncSession = Depends(get_session),
    scheduler: Scheduler = Depends(get_scheduler),
) -> ReviewResponse:
    """Rate a flashcard and schedule its next review."""
    flashcard, log = await store.review_flashcard(db, flashcard_id, request.rating, scheduler)
    return _review_response(flashcard, log)


@router.post("/{flashcard_id}/manual", response_model=ReviewResponse)
async def log_manual_review(
    flashcard_id: int,
    db: AsyncSession = Depends(get_session),
    scheduler: Scheduler = Depends(get_scheduler),
) -> ReviewResponse:
    """Record a Manual review: logged, but the schedule is left alone."""
    flashcard, log = await store.review_flashcard(db, flashcard_id, Rating.MANUAL, scheduler)
    return _review_response(flashcard, log)


@router.post("/{flashcard_id}/forget", response_model=ReviewResponse)
async def forget_flashcard(
    flashcard_id: int,
    request: ForgetRequest,
    db: AsyncSession = Depends(get_session),
    scheduler: Scheduler = Depends(get_scheduler),
) -> ReviewResponse:
    """Reset a flashcard to New."""
    flashcard, log = await store.forget_flashcard(
        db, flashcard_id, scheduler, reset_count=request.reset_count
    )
    return _review_response(flashcard, log)


@router.get("/{flashcard_id}/preview", response_model=PreviewResponse)
async def preview_flashcard(
    flashcard_id: int,
    db: AsyncSession = Depends(get_session),
    scheduler: Scheduler = Depends(get_scheduler),
) -> PreviewResponse:
    """Show what each rating would do, without saving anything."""
    flashcard = await store.get_flashcard(db, flashcard_id)
    card = card_from_record(flashcard)
    now = utcnow()
    outcomes = scheduler.preview(card, now)
    return PreviewResponse(
        flashcard_id=flashcard_id,
        retrievability=scheduler.get_retrievability(card, now),
        options=[
            PreviewOption(
                rating=rating.value,
                state=outcome.card.state.value,
                due=outcome.card.due,
                scheduled_days=outcome.card.scheduled_days,
                stability=outcome.card.stability,
                difficulty=outcome.card.difficulty,
            )
            for rating, outcome in outcomes.items()
        ],
    )


@router.get("/{flashcard_id}/logs", response_model=list[ReviewLogResponse])
async def list_review_logs(
    flashcard_id: int,
    limit: int = 50,
    offset: int = 0,
    db: AsyncSession = Depends(get_session),
) -> list[ReviewLogResponse]:
    """Review history of a flashcard, newest first."""
    logs = await store.list_review_logs(db, flashcard_id, limit=limit, offset=offset)
    return [ReviewLogResponse.model_validate(log) for log in logs]
