"""SQLAlchemy ORM models for the local Iris database.

Iris keeps one local table: the last list of submissions fetched from
Airtable, so the autofill tooling keeps working when Airtable is slow or
unreachable.
"""

from datetime import datetime, timezone
from functools import lru_cache
from pathlib import Path
from typing import Optional

from sqlalchemy import JSON, DateTime, Integer, String, create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

from iris.config import settings


class Base(DeclarativeBase):
    pass


# ── Submission cache ──────────────────────────────────────────────

class CachedSubmission(Base):
    __tablename__ = "iris_cached_submissions"

    record_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    created_time: Mapped[Optional[str]] = mapped_column(String(40))
    fields: Mapped[dict] = mapped_column(JSON, default=dict)
    cached_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )


# ── Engine & Session ──────────────────────────────────────────────

def create_db_engine(database_url: str) -> Engine:
    """Create an engine for *database_url* and make sure the schema exists.

    File-backed SQLite URLs get their parent directory created; in-memory
    URLs share a single connection so every session sees the same data.
    """
    url = make_url(database_url)
    kwargs: dict = {"echo": False}
    if url.get_backend_name() == "sqlite":
        kwargs["connect_args"] = {"check_same_thread": False}
        if url.database in (None, "", ":memory:"):
            kwargs["poolclass"] = StaticPool
        else:
            Path(url.database).expanduser().resolve().parent.mkdir(parents=True, exist_ok=True)
    engine = create_engine(database_url, **kwargs)
    Base.metadata.create_all(engine)
    return engine


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(engine, expire_on_commit=False)


@lru_cache(maxsize=1)
def default_session_factory() -> sessionmaker:
    """Session factory bound to ``settings.database_url``, created on first use."""
    return create_session_factory(create_db_engine(settings.database_url))
