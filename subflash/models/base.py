"""Declarative base and shared columns for the ORM models."""

from datetime import datetime

from sqlalchemy import DateTime
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from subflash.config import utcnow


class Base(DeclarativeBase):
    pass


class TimestampMixin:
    created: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    updated: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
