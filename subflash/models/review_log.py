from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from subflash.models.base import Base, TimestampMixin


class ReviewLog(Base, TimestampMixin):
    __tablename__ = "review_logs"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    flashcard_id: Mapped[int] = mapped_column(ForeignKey("flashcards.id", ondelete="CASCADE"), nullable=False, index=True)
    rating: Mapped[str] = mapped_column(String(10), nullable=False)  # Manual, Again, Hard, Good, Easy
    state: Mapped[str] = mapped_column(String(20), nullable=False)  # State before the review
    due: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    stability: Mapped[float] = mapped_column(Float, nullable=False)
    difficulty: Mapped[float] = mapped_column(Float, nullable=False)
    elapsed_days: Mapped[float] = mapped_column(Float, nullable=False)
    last_elapsed_days: Mapped[float] = mapped_column(Float, nullable=False)
    scheduled_days: Mapped[float] = mapped_column(Float, nullable=False)
    learning_steps: Mapped[int] = mapped_column(Integer, nullable=False)
    review_time: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)

    flashcard: Mapped["Flashcard"] = relationship(back_populates="review_logs")  # type: ignore[name-defined] # noqa: F821
