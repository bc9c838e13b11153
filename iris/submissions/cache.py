"""Submission cache and the fetch-with-fallback service built on it.

:class:`SubmissionService` answers "give me the submissions" from the best
source available, in this order:

    1. the in-memory copy from an earlier call
    2. Airtable (a successful fetch refreshes the persisted cache)
    3. the persisted cache, while younger than the TTL
    4. the built-in sample submissions

A failure at any step is logged and the next source is tried.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Callable, Literal

import requests
from pydantic import BaseModel, Field
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from iris.airtable.client import AirtableError, AirtableRecord
from iris.config import Settings, settings
from iris.db import CachedSubmission, default_session_factory
from iris.submissions.repository import SubmissionRepository, search_by_name
from iris.submissions.samples import sample_submissions

logger = logging.getLogger("iris.submissions.cache")

CacheStatus = Literal["success", "expired", "empty"]
SubmissionSource = Literal["memory", "airtable", "cache", "samples"]


class CacheResult(BaseModel):
    """Outcome of a cache read."""

    status: CacheStatus
    submissions: list[AirtableRecord] = Field(default_factory=list)
    cache_age_seconds: int | None = None
    message: str = ""


class SubmissionCache:
    """Persisted copy of the most recent submission list.

    Parameters
    ----------
    session_factory:
        SQLAlchemy ``sessionmaker``.  Defaults to the one bound to
        ``settings.database_url``.
    ttl_seconds:
        Age after which :meth:`get` reports ``expired``.
    clock:
        Returns the current Unix time; replaced in tests.
    """

    def __init__(
        self,
        session_factory: sessionmaker | None = None,
        ttl_seconds: int | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._session_factory = session_factory
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.submission_cache_ttl_seconds
        self._clock = clock

    @property
    def session_factory(self) -> sessionmaker:
        if self._session_factory is None:
            self._session_factory = default_session_factory()
        return self._session_factory

    def put(self, submissions: list[AirtableRecord]) -> None:
        cached_at = datetime.fromtimestamp(self._clock(), tz=timezone.utc)
        with self.session_factory() as session, session.begin():
            session.execute(delete(CachedSubmission))
            session.add_all(
                CachedSubmission(
                    record_id=record.id,
                    position=index,
                    created_time=record.created_time,
                    fields=record.fields,
                    cached_at=cached_at,
                )
                for index, record in enumerate(submissions)
            )
        logger.info("Cached %d submissions", len(submissions))

    def get(self) -> CacheResult:
        with self.session_factory() as session:
            rows = session.scalars(
                select(CachedSubmission).order_by(CachedSubmission.position)
            ).all()
        if not rows:
            return CacheResult(status="empty", message="No cached submissions found")

        cached_at = rows[0].cached_at
        if cached_at.tzinfo is None:
            cached_at = cached_at.replace(tzinfo=timezone.utc)
        age = self._clock() - cached_at.timestamp()
        if age >= self.ttl_seconds:
            return CacheResult(status="expired", message="Cache is expired")

        return CacheResult(
            status="success",
            submissions=[
                AirtableRecord(id=r.record_id, created_time=r.created_time, fields=dict(r.fields or {}))
                for r in rows
            ],
            cache_age_seconds=round(age),
        )

    def clear(self) -> None:
        with self.session_factory() as session, session.begin():
            session.execute(delete(CachedSubmission))
        logger.info("Submissions cache cleared")


class SubmissionService:
    """Submission list for the autofill tooling, resilient to Airtable outages."""

    def __init__(
        self,
        repository: SubmissionRepository,
        cache: SubmissionCache,
        config: Settings = settings,
    ) -> None:
        self.repository = repository
        self.cache = cache
        self.config = config
        self._submissions: list[AirtableRecord] | None = None
        self.source: SubmissionSource | None = None

    def fetch(self, force_refresh: bool = False) -> list[AirtableRecord]:
        if force_refresh:
            self._submissions = None
        elif self._submissions is not None:
            self.source = "memory"
            return self._submissions

        submissions = self._from_airtable()
        if submissions is not None:
            self._remember(submissions, "airtable")
            self._write_cache(submissions)
            return submissions

        if not force_refresh:
            try:
                cached = self.cache.get()
            except SQLAlchemyError as exc:
                logger.error("Error reading submissions cache: %s", exc)
            else:
                if cached.status == "success":
                    logger.info(
                        "Using %d cached submissions (age %ss)",
                        len(cached.submissions),
                        cached.cache_age_seconds,
                    )
                    self._remember(cached.submissions, "cache")
                    return cached.submissions
                logger.info("Submissions cache %s", cached.status)

        logger.warning("Falling back to built-in sample submissions")
        submissions = sample_submissions()
        self._remember(submissions, "samples")
        self._write_cache(submissions)
        return submissions

    def _from_airtable(self) -> list[AirtableRecord] | None:
        if not self.config.airtable_api_key:
            logger.warning("AIRTABLE_API_KEY not configured; skipping Airtable fetch")
            return None
        try:
            submissions = self.repository.all()
        except (AirtableError, requests.RequestException) as exc:
            logger.error("Error fetching submissions from Airtable: %s", exc)
            return None
        if not submissions:
            logger.warning("Airtable returned no submissions")
            return None
        return submissions

    def _remember(self, submissions: list[AirtableRecord], source: SubmissionSource) -> None:
        self._submissions = submissions
        self.source = source

    def _write_cache(self, submissions: list[AirtableRecord]) -> None:
        try:
            self.cache.put(submissions)
        except SQLAlchemyError as exc:
            logger.error("Error writing submissions cache: %s", exc)

    # ------------------------------------------------------------------
    # Queries over the loaded list
    # ------------------------------------------------------------------

    def count(self) -> int:
        return len(self.fetch())

    def search(self, query: str) -> list[AirtableRecord]:
        return search_by_name(self.fetch(), query)

    def get(self, record_id: str) -> AirtableRecord | None:
        return next((r for r in self.fetch() if r.id == record_id), None)

    def clear_cache(self) -> None:
        self._submissions = None
        self.source = None
        self.cache.clear()
