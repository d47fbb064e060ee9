"""API routes for movies, the parents of flashcards."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from subflash import store
from subflash.api.schemas import (
    DeletionStatsResponse,
    MovieCreateRequest,
    MovieResponse,
    MovieUpdateRequest,
)
from subflash.database import get_session

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/movies", tags=["movies"])


@router.post("", response_model=MovieResponse, status_code=201)
async def create_movie(
    request: MovieCreateRequest,
    db: AsyncSession = Depends(get_session),
) -> MovieResponse:
    """Register a movie."""
    movie = await store.create_movie(db, request.title, request.mp4_path, request.srt_path)
    return MovieResponse.model_validate(movie)


@router.get("", response_model=list[MovieResponse])
async def list_movies(
    q: str | None = None,
    db: AsyncSession = Depends(get_session),
) -> list[MovieResponse]:
    """List movies, most recently updated first, or search them by title."""
    if q:
        movies = await store.search_movies(db, q)
    else:
        movies = await store.list_movies(db)
    return [MovieResponse.model_validate(movie) for movie in movies]


@router.get("/recent", response_model=list[MovieResponse])
async def get_recent_movies(
    limit: int = 10,
    db: AsyncSession = Depends(get_session),
) -> list[MovieResponse]:
    """Movies most recently opened."""
    movies = await store.get_recent_movies(db, limit=limit)
    return [MovieResponse.model_validate(movie) for movie in movies]


@router.get("/by-path", response_model=MovieResponse)
async def get_movie_by_path(
    mp4_path: str,
    db: AsyncSession = Depends(get_session),
) -> MovieResponse:
    """Find the movie registered for a video file."""
    movie = await store.get_movie_by_path(db, mp4_path)
    if movie is None:
        raise store.RecordNotFoundError(f"No movie for {mp4_path}")
    return MovieResponse.model_validate(movie)


@router.get("/{movie_id}", response_model=MovieResponse)
async def get_movie(movie_id: int, db: AsyncSession = Depends(get_session)) -> MovieResponse:
    movie = await store.get_movie(db, movie_id)
    return MovieResponse.model_validate(movie)


@router.patch("/{movie_id}", response_model=MovieResponse)
async def update_movie(
    movie_id: int,
    request: MovieUpdateRequest,
    db: AsyncSession = Depends(get_session),
) -> MovieResponse:
    """Edit a movie's metadata, subtitle delay or playback position."""
    movie = await store.update_movie(
        db,
        movie_id,
        title=request.title,
        mp4_path=request.mp4_path,
        srt_path=request.srt_path,
        srt_delay=request.srt_delay,
        last_position=request.last_position,
    )
    return MovieResponse.model_validate(movie)


@router.post("/{movie_id}/access", response_model=MovieResponse)
async def mark_movie_accessed(movie_id: int, db: AsyncSession = Depends(get_session)) -> MovieResponse:
    """Record that a movie was opened."""
    movie = await store.touch_movie(db, movie_id)
    return MovieResponse.model_validate(movie)


@router.get("/{movie_id}/deletion-stats", response_model=DeletionStatsResponse)
async def get_deletion_stats(
    movie_id: int,
    db: AsyncSession = Depends(get_session),
) -> DeletionStatsResponse:
    """Show what deleting a movie would remove."""
    stats = await store.movie_deletion_stats(db, movie_id)
    return DeletionStatsResponse(
        flashcard_count=stats.flashcard_count,
        review_log_count=stats.review_log_count,
        flashcards_with_notes=stats.flashcards_with_notes,
    )


@router.delete("/{movie_id}", status_code=204)
async def delete_movie(movie_id: int, db: AsyncSession = Depends(get_session)) -> None:
    """Delete a movie with its flashcards and review logs."""
    await store.delete_movie(db, movie_id)
