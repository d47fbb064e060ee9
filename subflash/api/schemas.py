"""Pydantic schemas for API request/response models."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

# --- Movies ---


class MovieCreateRequest(BaseModel):
    """Request to register a movie."""

    title: str
    mp4_path: str
    srt_path: str | None = None


class MovieResponse(BaseModel):
    """A movie that flashcards can be cut from."""

    model_config = {"from_attributes": True}

    id: int
    title: str
    mp4_path: str
    srt_path: str | None
    srt_delay: float
    last_position: float
    last_accessed: datetime | None
    created: datetime
    updated: datetime


class MovieUpdateRequest(BaseModel):
    """Edits to a movie; omitted fields are left unchanged."""

    title: str | None = None
    mp4_path: str | None = None
    srt_path: str | None = None
    srt_delay: float | None = None  # Seconds to shift subtitles by
    last_position: float | None = Field(default=None, ge=0)


class DeletionStatsResponse(BaseModel):
    """What deleting a movie would remove."""

    flashcard_count: int
    review_log_count: int
    flashcards_with_notes: int


# --- Flashcards ---


class FlashcardCreateRequest(BaseModel):
    """Request to create a flashcard from a subtitle line."""

    movie_id: int
    subtitle_text: str
    start_time: float = 0.0  # Seconds into the movie
    end_time: float = 0.0
    free_space: str | None = None  # Learner notes


class FlashcardUpdateRequest(BaseModel):
    """Content edits; scheduling state is only changed by reviews."""

    subtitle_text: str | None = None
    start_time: float | None = None
    end_time: float | None = None
    free_space: str | None = None


class FlashcardResponse(BaseModel):
    """A flashcard with its scheduling state."""

    model_config = {"from_attributes": True}

    id: int
    movie_id: int
    subtitle_text: str
    free_space: str | None
    start_time: float
    end_time: float
    due: datetime
    stability: float
    difficulty: float
    elapsed_days: float
    scheduled_days: float
    reps: int
    lapses: int
    learning_steps: int
    state: str  # New, Learning, Review, Relearning
    last_review: datetime | None


class ReviewRequest(BaseModel):
    """Request to review a flashcard."""

    rating: Literal["Again", "Hard", "Good", "Easy"]


class ForgetRequest(BaseModel):
    """Request to reset a flashcard to New."""

    reset_count: bool = False


class ReviewLogResponse(BaseModel):
    """One stored review. Scheduling fields are the pre-review values."""

    model_config = {"from_attributes": True}

    id: int
    flashcard_id: int
    rating: str  # Manual, Again, Hard, Good, Easy
    state: str
    due: datetime
    stability: float
    difficulty: float
    elapsed_days: float
    last_elapsed_days: float
    scheduled_days: float
    learning_steps: int
    review_time: datetime


class ReviewResponse(BaseModel):
    """The flashcard after a review and the log it produced."""

    flashcard: FlashcardResponse
    log: ReviewLogResponse


class PreviewOption(BaseModel):
    """What one rating would do to a flashcard."""

    rating: str
    state: str
    due: datetime
    scheduled_days: float
    stability: float
    difficulty: float


class PreviewResponse(BaseModel):
    """Outcomes of all four ratings for a flashcard, without saving any."""

    flashcard_id: int
    retrievability: float
    options: list[PreviewOption]


class QueueResponse(BaseModel):
    """Flashcards to study, reviews first with new cards mixed in."""

    due_cards: int
    new_cards: int
    flashcards: list[FlashcardResponse]


# --- Stats ---


class StudyStatsResponse(BaseModel):
    """Card counts for a deck."""

    total_cards: int
    due_cards: int
    reviewed_today: int  # Distinct cards
    new_cards: int
    learning_cards: int
    review_cards: int
    relearning_cards: int


class DueBucketsResponse(BaseModel):
    """How many flashcards fall into each due-date bucket."""

    overdue: int
    due_today: int
    due_this_week: int
    later: int
