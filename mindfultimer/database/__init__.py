"""Database package."""

from .db import Database
from .models import MeditationSession, Rating
from .repository import SessionRecord, SessionRepository, StorageError

__all__ = [
    "Database",
    "MeditationSession",
    "Rating",
    "SessionRecord",
    "SessionRepository",
    "StorageError",
]
