"""SQLAlchemy ORM models for MindfulTimer."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from sqlalchemy import Column, Integer, String, DateTime, Text
from sqlalchemy.orm import DeclarativeBase


class Rating(Enum):
    """How a session felt, on an ordered five-point scale."""

    VERY_POOR = "very_poor"
    POOR = "poor"
    AVERAGE = "average"
    GOOD = "good"
    EXCELLENT = "excellent"

    @property
    def score(self) -> int:
        """1 (very poor) → 5 (excellent)."""
        return list(Rating).index(self) + 1

    @property
    def label(self) -> str:
        return self.value.replace("_", " ").capitalize()

    @classmethod
    def parse(cls, value: str | None) -> "Rating":
        """Stored value → Rating.  Missing or unknown values read as AVERAGE."""
        try:
            return cls(value)
        except ValueError:
            return cls.AVERAGE


class Base(DeclarativeBase):
    pass


class MeditationSession(Base):
    """One finished meditation session."""

    __tablename__ = "meditation_sessions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    finished_at = Column(DateTime, nullable=False, default=datetime.now, index=True)
    started_at = Column(DateTime, nullable=False)
    total_elapsed_seconds = Column(Integer, nullable=False, default=0)  # incl. pauses
    meditated_seconds = Column(Integer, nullable=False, default=0)      # countdown running
    pause_count = Column(Integer, nullable=False, default=0)
    rating = Column(String(16), nullable=False, default=Rating.AVERAGE.value)
    notes = Column(Text, nullable=True)

    def __repr__(self) -> str:
        return (
            f"<MeditationSession id={self.id} "
            f"meditated={self.meditated_seconds}s rating={self.rating}>"
        )
