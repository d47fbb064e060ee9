"""Flashcard model: subtitle content plus its FSRS scheduling state."""

from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from subflash.config import utcnow
from subflash.models.base import Base, TimestampMixin
from subflash.srs.card import UNINITIALIZED_DIFFICULTY


class Flashcard(Base, TimestampMixin):
    """A flashcard cut from a movie's subtitles, with its scheduling state."""

    __tablename__ = "flashcards"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    movie_id: Mapped[int] = mapped_column(ForeignKey("movies.id", ondelete="CASCADE"), nullable=False, index=True)
    subtitle_text: Mapped[str] = mapped_column(Text, nullable=False)
    free_space: Mapped[str | None] = mapped_column(Text, nullable=True)  # Learner notes
    start_time: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)  # Seconds into the movie
    end_time: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    due: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow, index=True)
    stability: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    difficulty: Mapped[float] = mapped_column(Float, nullable=False, default=UNINITIALIZED_DIFFICULTY)
    elapsed_days: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    scheduled_days: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    reps: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    lapses: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    learning_steps: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    state: Mapped[str] = mapped_column(String(20), nullable=False, default="New")  # New, Learning, Review, Relearning
    last_review: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    movie: Mapped["Movie"] = relationship(back_populates="flashcards")  # type: ignore[name-defined] # noqa: F821
    review_logs: Mapped[list["ReviewLog"]] = relationship(  # type: ignore[name-defined] # noqa: F821
        back_populates="flashcard", cascade="all, delete-orphan", passive_deletes=True
    )
