from datetime import datetime

from sqlalchemy import DateTime, Float, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from subflash.models.base import Base, TimestampMixin


class Movie(Base, TimestampMixin):
    __tablename__ = "movies"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    mp4_path: Mapped[str] = mapped_column(String(1000), nullable=False, index=True)
    srt_path: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    srt_delay: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)  # Seconds, may be negative
    last_position: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)  # Playback seconds
    last_accessed: Mapped[datetime | None] = mapped_column(DateTime, nullable=True, index=True)

    flashcards: Mapped[list["Flashcard"]] = relationship(  # type: ignore[name-defined] # noqa: F821
        back_populates="movie", cascade="all, delete-orphan", passive_deletes=True
    )
