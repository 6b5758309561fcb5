"""Database connection and session management."""

from __future__ import annotations

import logging
from contextlib import contextmanager

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import sessionmaker, Session as OrmSession

from ..settings import APP_SUPPORT_DIR
from .models import Base

logger = logging.getLogger(__name__)

DB_PATH = APP_SUPPORT_DIR / "mindfultimer.db"


def default_url() -> str:
    APP_SUPPORT_DIR.mkdir(parents=True, exist_ok=True)
    return f"sqlite:///{DB_PATH}"


class Database:
    """Owns one SQLAlchemy engine and its session factory.

    Constructed explicitly and handed to whoever needs it.  Tests pass
    ``"sqlite:///:memory:"`` to get a private throwaway database.
    """

    def __init__(self, url: str | None = None) -> None:
        self.url = url or default_url()
        self.engine = create_engine(
            self.url,
            connect_args={"check_same_thread": False},
            echo=False,
        )
        self._factory = sessionmaker(bind=self.engine, expire_on_commit=False)

    def init(self) -> None:
        """Create all tables and run migrations."""
        Base.metadata.create_all(self.engine)
        _run_migrations(self.engine)
        logger.debug("database ready at %s", self.url)

    @contextmanager
    def session(self):
        """Yield a SQLAlchemy session; commit on success, rollback on error."""
        session: OrmSession = self._factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def dispose(self) -> None:
        self.engine.dispose()


def _run_migrations(engine) -> None:
    """Schema migrations for existing databases.

    Runs after ``create_all`` so new columns exist in fresh installs.
    Each migration is idempotent and keeps old rows readable with the
    column defaults (no pauses, an average rating, no notes).
    """
    insp = inspect(engine)
    if "meditation_sessions" not in set(insp.get_table_names()):
        return

    columns = {c["name"] for c in insp.get_columns("meditation_sessions")}
    added = {
        "pause_count": "INTEGER NOT NULL DEFAULT 0",
        "rating": "VARCHAR(16) NOT NULL DEFAULT 'average'",
        "notes": "TEXT",
    }

    with engine.connect() as conn:
        for name, ddl in added.items():
            if name not in columns:
                logger.info("migrating meditation_sessions: adding %s", name)
                conn.execute(text(
                    f"ALTER TABLE meditation_sessions ADD COLUMN {name} {ddl}"
                ))

        # Rows written before ratings were validated
        conn.execute(text(
            "UPDATE meditation_sessions SET rating = 'average' "
            "WHERE rating IS NULL OR rating = ''"
        ))
        conn.commit()
