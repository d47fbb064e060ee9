"""SQLAlchemy ORM models for the Subflash database."""

from subflash.models.base import Base
from subflash.models.flashcard import Flashcard
from subflash.models.movie import Movie
from subflash.models.review_log import ReviewLog

__all__ = ["Base", "Flashcard", "Movie", "ReviewLog"]
